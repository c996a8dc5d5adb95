#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Callable, Self

from charmstore.auth.config import AuthConfig
from charmstore.blobstore import LocalBlobStore
from charmstore.context import Context
from charmstore.db.repositories.audit import AuditRepository
from charmstore.db.repositories.base_entities import BaseEntitiesRepository
from charmstore.db.repositories.entities import EntitiesRepository
from charmstore.db.repositories.rootkeys import RootKeysRepository
from charmstore.services.acls import ACLsService
from charmstore.services.audit import AuditService
from charmstore.services.authorization import AuthorizationService
from charmstore.services.base import ServiceCache
from charmstore.services.entities import EntitiesService
from charmstore.services.groups import GroupsService
from charmstore.services.resolver import ResolverService
from charmstore.services.rootkeys import RootKeysService


class CacheForServices:
    """Hold the caches of the services for the lifetime of the process."""

    def __init__(self):
        self.cache: dict[str, ServiceCache] = {}

    def get(self, name: str, fn: Callable) -> ServiceCache:
        """Return the cache of the service named `name`.

        `fn` builds the cache when it does not exist yet.
        """
        if name not in self.cache:
            self.cache[name] = fn()
        return self.cache[name]

    async def close(self) -> None:
        """Perform all the shutdown operations for all caches."""
        for cache in self.cache.values():
            await cache.close()


class ServiceCollection:
    """Provide all services of a request."""

    # Keep them in alphabetical order, please
    acls: ACLsService
    audit: AuditService
    authorization: AuthorizationService
    blobstore: LocalBlobStore
    entities: EntitiesService
    groups: GroupsService
    resolver: ResolverService
    rootkeys: RootKeysService

    @classmethod
    async def produce(
        cls,
        context: Context,
        cache: CacheForServices,
        auth_config: AuthConfig,
        blobstore: LocalBlobStore,
    ) -> Self:
        services = cls()
        services.blobstore = blobstore
        entities_repository = EntitiesRepository(context)
        base_entities_repository = BaseEntitiesRepository(context)
        services.resolver = ResolverService(
            context=context, entities_repository=entities_repository
        )
        services.acls = ACLsService(
            context=context,
            base_entities_repository=base_entities_repository,
        )
        services.audit = AuditService(
            context=context, audit_repository=AuditRepository(context)
        )
        services.rootkeys = RootKeysService(
            context=context,
            rootkeys_repository=RootKeysRepository(context),
        )
        services.groups = GroupsService(
            context=context,
            auth_config=auth_config,
            cache=cache.get(
                GroupsService.__name__, GroupsService.build_cache_object
            ),  # type: ignore
        )
        services.authorization = AuthorizationService(
            context=context,
            auth_config=auth_config,
            rootkeys_service=services.rootkeys,
            groups_service=services.groups,
            acls_service=services.acls,
            entities_repository=entities_repository,
        )
        services.entities = EntitiesService(
            context=context,
            entities_repository=entities_repository,
            base_entities_repository=base_entities_repository,
            acls_service=services.acls,
            audit_service=services.audit,
        )
        return services
