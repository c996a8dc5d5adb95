#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from abc import ABC
from dataclasses import dataclass

from charmstore.context import Context


@dataclass(slots=True)
class ServiceCache(ABC):  # noqa: B024
    """Process wide state of a service, shared by every request."""

    def clear(self):
        for field in list(self.__slots__):
            self.__setattr__(field, None)

    async def close(self):  # noqa: B027
        """Shutdown operations to be performed when destroying the cache."""


class Service(ABC):  # noqa: B024
    """Base class for services."""

    def __init__(self, context: Context, cache: ServiceCache | None = None):
        self.context = context
        self.cache = cache

    @staticmethod
    def build_cache_object() -> ServiceCache:
        """Return the cache specific to the service."""
        raise NotImplementedError(
            "build_cache_object must be overridden in the service."
        )

    @staticmethod
    def from_cache_or_execute(attr: str):
        """Decorator looking `attr` up in the cache before running the method.

        On a miss the method runs and its result is stored in the cache.
        Arguments are not part of the key: only use it for methods whose
        result does not depend on them.
        """

        def inner_decorator(fn):
            async def wrapped(self, *args, **kwargs):
                if self.cache is None:
                    return await fn(self, *args, **kwargs)
                if getattr(self.cache, attr) is None:
                    setattr(self.cache, attr, await fn(self, *args, **kwargs))
                return getattr(self.cache, attr)

            return wrapped

        return inner_decorator
