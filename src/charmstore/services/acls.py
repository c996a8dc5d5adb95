#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Literal

import structlog

from charmstore.context import Context
from charmstore.db.repositories.base_entities import BaseEntitiesRepository
from charmstore.exceptions.catalog import NotFoundException
from charmstore.exceptions.constants import UNEXISTING_ENTITY_VIOLATION_TYPE
from charmstore.models.entities import ACL, BaseEntity, is_public
from charmstore.models.identifiers import Channel, ResolvedIdentifier
from charmstore.services.base import Service

logger = structlog.getLogger(__name__)

ACL_FIELDS = ("read", "write")


class ACLsService(Service):
    """Per channel access control lists of base entities."""

    def __init__(
        self,
        context: Context,
        base_entities_repository: BaseEntitiesRepository,
    ):
        super().__init__(context)
        self.base_entities_repository = base_entities_repository

    async def get_base_entity(self, entity: ResolvedIdentifier) -> BaseEntity:
        base_entity = await self.base_entities_repository.find_by_owner_name(
            entity.owner, entity.name
        )
        if base_entity is None:
            raise NotFoundException.with_reason(
                UNEXISTING_ENTITY_VIOLATION_TYPE,
                f'base entity for "{entity}" not found',
            )
        return base_entity

    async def effective_acl(self, entity: ResolvedIdentifier) -> ACL:
        """Return the ACL of the channel the entity was resolved in."""
        base_entity = await self.get_base_entity(entity)
        return base_entity.acl(entity.channel)

    async def set_acl(
        self,
        entity: ResolvedIdentifier,
        channel: Channel,
        field: Literal["read", "write"],
        principals: list[str],
    ) -> BaseEntity:
        """Replace one list of one channel of the entity's base entity.

        Changing the stable read list also updates the public flag.
        """
        if field not in ACL_FIELDS:
            raise ValueError(f"unknown ACL field {field!r}")
        base_entity = await self.get_base_entity(entity)
        await self.base_entities_repository.set_acl_field(
            base_entity.id, channel, field, principals
        )
        acls = dict(base_entity.acls)
        acls[channel] = acls.get(channel, ACL()).model_copy(
            update={field: list(principals)}
        )
        public = base_entity.public
        if field == "read" and channel == Channel.STABLE:
            public = is_public(acls[channel])
            if public != base_entity.public:
                await self.base_entities_repository.set_public(
                    base_entity.id, public
                )
        logger.debug(
            "ACL updated",
            entity=entity.base_url(),
            channel=str(channel),
            field=field,
            principals=principals,
        )
        return base_entity.model_copy(update={"acls": acls, "public": public})
