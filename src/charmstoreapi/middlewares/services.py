# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from charmstore.auth.config import AuthConfig
from charmstore.blobstore import LocalBlobStore
from charmstore.services import CacheForServices, ServiceCollection


async def services(
    request: Request,
) -> ServiceCollection:
    """Dependency to return the services collection."""
    return request.state.services


class ServicesMiddleware(BaseHTTPMiddleware):
    """Injects the services in the request state."""

    def __init__(
        self,
        app: ASGIApp,
        cache: CacheForServices,
        auth_config: AuthConfig,
        blobstore: LocalBlobStore,
    ):
        super().__init__(app)
        self.cache = cache
        self.auth_config = auth_config
        self.blobstore = blobstore

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request.state.services = await ServiceCollection.produce(
            context=request.state.context,
            cache=self.cache,
            auth_config=self.auth_config,
            blobstore=self.blobstore,
        )
        return await call_next(request)
