#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from dataclasses import dataclass

import structlog

from charmstore.auth.config import AuthConfig
from charmstore.auth.identity import IdentityAsyncClient
from charmstore.context import Context
from charmstore.exceptions.catalog import IdentityClientException
from charmstore.services.base import Service, ServiceCache

logger = structlog.getLogger(__name__)


@dataclass(slots=True)
class GroupsServiceCache(ServiceCache):
    identity_client: IdentityAsyncClient | None = None

    async def close(self) -> None:
        if self.identity_client:
            await self.identity_client.close()


class GroupsService(Service):
    """Group memberships of users, as known by the identity service.

    Only the client is cached: memberships are fetched on every call.
    """

    def __init__(
        self,
        context: Context,
        auth_config: AuthConfig,
        cache: GroupsServiceCache | None = None,
    ):
        super().__init__(context, cache)
        self.auth_config = auth_config

    @staticmethod
    def build_cache_object() -> GroupsServiceCache:
        return GroupsServiceCache()

    @Service.from_cache_or_execute(attr="identity_client")
    async def get_identity_client(self) -> IdentityAsyncClient:
        if not self.auth_config.identity_api_url:
            raise IdentityClientException("identity API not configured")
        return IdentityAsyncClient(
            self.auth_config.identity_api_url,
            self.auth_config.identity_auth_info(),
        )

    async def groups_for_user(self, username: str) -> list[str]:
        """Return the groups of `username`, or none without identity API.

        Raises the identity client exceptions when the lookup fails.
        """
        if not self.auth_config.identity_api_url:
            logger.debug(
                "identity API not configured, not retrieving groups",
                username=username,
            )
            return []
        client = await self.get_identity_client()
        return await client.get_groups(username)
