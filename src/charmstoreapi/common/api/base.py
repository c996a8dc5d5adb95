# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from fastapi import APIRouter

from charmstoreapi.common.api.models.responses.errors import (
    ValidationErrorBodyResponse,
)


class Handler:
    """An API handler for a group of store endpoints."""

    def get_handlers(self):
        """Get the list of handler functions in the class.

        Routes with a fixed path must be registered before the ones
        matching any entity id, so subclasses list their handlers in
        registration order.
        """
        return dir(self)

    def register(self, router: APIRouter):
        for name in self.get_handlers():
            if name.startswith("_"):
                continue

            attr = getattr(self, name)
            if config := getattr(attr, "__handler_config", None):
                router.add_api_route(endpoint=attr, **config)


def handler(**config):
    """Decorator for API handlers inside a Handler class."""

    def register_handler(func):
        # The python function name is the openapi operationId.
        config["operation_id"] = func.__name__
        if "responses" in config:
            # FastAPI would add HTTPValidationError for 422 otherwise.
            config["responses"].update(
                {422: {"model": ValidationErrorBodyResponse}}
            )
        func.__handler_config = config
        return func

    return register_handler


class API:
    """API definition."""

    def __init__(self, prefix: str, handlers: list[Handler]):
        self.prefix = prefix
        self.handlers = handlers

    def register(self, router: APIRouter):
        """Register the API with the router."""
        api_router = APIRouter()
        for handler in self.handlers:
            handler.register(api_router)
        router.include_router(router=api_router, prefix=self.prefix)
