#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Any, Iterable, Literal

import structlog

from charmstore.constants import PROMULGATORS_GROUP
from charmstore.context import Context
from charmstore.db.repositories.base_entities import BaseEntitiesRepository
from charmstore.db.repositories.entities import (
    EntitiesRepository,
    EntityResourceBuilder,
)
from charmstore.exceptions.catalog import BadRequestException
from charmstore.exceptions.constants import INVALID_ARGUMENT_VIOLATION_TYPE
from charmstore.logging.security import (
    PERMISSIONS_UPDATED,
    PROMULGATION_UPDATED,
    PUBLISHED,
    SECURITY,
)
from charmstore.models.audit import AuditEntry, AuditOperation
from charmstore.models.auth import Authorization
from charmstore.models.entities import ACL, BaseEntity, Entity
from charmstore.models.identifiers import (
    Channel,
    PackageIdentifier,
    ResolvedIdentifier,
)
from charmstore.services.acls import ACLsService
from charmstore.services.audit import AuditService
from charmstore.services.base import Service
from charmstore.services.resolver import not_found
from charmstore.utils.date import utcnow

logger = structlog.getLogger(__name__)

PUBLISHABLE_CHANNELS = (Channel.DEVELOPMENT, Channel.STABLE)


def check_publishable_channels(channels: list[Channel]) -> None:
    if not channels:
        raise BadRequestException.with_reason(
            INVALID_ARGUMENT_VIOLATION_TYPE, "no channels provided"
        )
    for channel in channels:
        if channel not in PUBLISHABLE_CHANNELS:
            raise BadRequestException.with_reason(
                INVALID_ARGUMENT_VIOLATION_TYPE,
                f"cannot publish to {channel} channel",
            )


class EntitiesService(Service):
    def __init__(
        self,
        context: Context,
        entities_repository: EntitiesRepository,
        base_entities_repository: BaseEntitiesRepository,
        acls_service: ACLsService,
        audit_service: AuditService,
    ):
        super().__init__(context)
        self.entities_repository = entities_repository
        self.base_entities_repository = base_entities_repository
        self.acls_service = acls_service
        self.audit_service = audit_service

    async def get_entity(self, resolved: ResolvedIdentifier) -> Entity:
        entity = await self.entities_repository.find_by_resolved(resolved)
        if entity is None:
            raise not_found(resolved)
        return entity

    async def get_base_entity(
        self, resolved: ResolvedIdentifier
    ) -> BaseEntity:
        return await self.acls_service.get_base_entity(resolved)

    async def add_entity(
        self,
        url: PackageIdentifier,
        terms: Iterable[str] = (),
        blob_name: str | None = None,
        size: int | None = None,
        extra_info: dict[str, Any] | None = None,
        channels: Iterable[Channel] = (),
    ) -> Entity:
        """Store a new revision, creating its base entity if needed.

        Revisions of a promulgated base entity get the next promulgated
        revision of their name and series.
        """
        if not (url.owner and url.series and url.revision is not None):
            raise ValueError(f"entity URL {url} is not fully qualified")
        base_entity = await self.base_entities_repository.find_by_owner_name(
            url.owner, url.name
        )
        if base_entity is None:
            base_entity = await self.base_entities_repository.create(
                url.owner, url.name
            )
        promulgated_revision = None
        if base_entity.promulgated:
            promulgated_revision = await self._next_promulgated_revision(
                url.name, url.series
            )
        channels = set(channels)
        builder = (
            EntityResourceBuilder()
            .with_timestamps()
            .with_base_entity_id(base_entity.id)
            .with_url(url.owner, url.series, url.name, url.revision)
            .with_promulgated_revision(promulgated_revision)
            .with_terms(list(terms))
            .with_blob(blob_name, size, utcnow())
            .with_extra_info(extra_info or {})
            .with_channels(
                development=Channel.DEVELOPMENT in channels,
                stable=Channel.STABLE in channels,
            )
        )
        return await self.entities_repository.create(builder.build())

    async def set_promulgated(
        self, resolved: ResolvedIdentifier, promulgated: bool
    ) -> BaseEntity:
        """Toggle the promulgated flag of the entity's base entity.

        Promulgating unpromulgates any other base entity with the same name
        and gives the newest revision of each series a promulgated revision
        when it has none yet.
        """
        base_entity = await self.get_base_entity(resolved)
        if not promulgated:
            await self.base_entities_repository.set_promulgated(
                base_entity.id, False
            )
            return base_entity.model_copy(update={"promulgated": False})

        await self.base_entities_repository.unpromulgate_homonyms(
            base_entity.id, base_entity.name
        )
        await self.base_entities_repository.set_promulgated(
            base_entity.id, True
        )
        newest: dict[str, Entity] = {}
        for entity in await self.entities_repository.find_by_base_entity(
            base_entity.id
        ):
            current = newest.get(entity.series)
            if current is None or entity.revision > current.revision:
                newest[entity.series] = entity
        for series, entity in sorted(newest.items()):
            if entity.promulgated_revision is not None:
                continue
            revision = await self._next_promulgated_revision(
                entity.name, series
            )
            await self.entities_repository.update(
                entity.id,
                EntityResourceBuilder()
                .with_promulgated_revision(revision)
                .build(),
            )
        return base_entity.model_copy(update={"promulgated": True})

    async def promulgate(
        self,
        authorization: Authorization,
        resolved: ResolvedIdentifier,
        promulgated: bool,
    ) -> BaseEntity:
        """Promulgate or unpromulgate, then record it in the audit log.

        Once promulgated, only promulgators may write to the channel the
        entity was resolved in.
        """
        base_entity = await self.set_promulgated(resolved, promulgated)
        if promulgated:
            base_entity = await self.acls_service.set_acl(
                resolved, resolved.channel, "write", [PROMULGATORS_GROUP]
            )
        await self.audit_service.log(
            AuditEntry.build(
                authorization,
                (
                    AuditOperation.PROMULGATE
                    if promulgated
                    else AuditOperation.UNPROMULGATE
                ),
                resolved,
                promulgated=promulgated,
            )
        )
        logger.info(
            PROMULGATION_UPDATED,
            type=SECURITY,
            entity=resolved.base_url(),
            promulgated=promulgated,
        )
        return base_entity

    async def set_perm(
        self,
        authorization: Authorization,
        resolved: ResolvedIdentifier,
        fields: dict[Literal["read", "write"], list[str]],
    ) -> BaseEntity:
        """Replace ACL lists of the channel the entity was resolved in."""
        base_entity = None
        for field, principals in fields.items():
            base_entity = await self.acls_service.set_acl(
                resolved, resolved.channel, field, principals
            )
            await self.audit_service.log(
                AuditEntry.build(
                    authorization,
                    AuditOperation.SET_PERM,
                    resolved,
                    acl=ACL(**{field: principals}),
                )
            )
        logger.info(
            PERMISSIONS_UPDATED,
            type=SECURITY,
            entity=resolved.base_url(),
            channel=str(resolved.channel),
            fields=sorted(fields),
        )
        if base_entity is None:
            base_entity = await self.get_base_entity(resolved)
        return base_entity

    async def publish(
        self,
        authorization: Authorization,
        resolved: ResolvedIdentifier,
        channels: list[Channel],
    ) -> Entity:
        """Add the entity to the given published channels."""
        check_publishable_channels(channels)
        entity = await self.get_entity(resolved)
        updated = await self.entities_repository.update(
            entity.id,
            EntityResourceBuilder()
            .with_channels(
                development=(
                    entity.development or Channel.DEVELOPMENT in channels
                ),
                stable=entity.stable or Channel.STABLE in channels,
            )
            .build(),
        )
        await self.audit_service.log(
            AuditEntry.build(
                authorization,
                AuditOperation.PUBLISH,
                resolved,
                channels=[str(channel) for channel in channels],
            )
        )
        logger.info(
            PUBLISHED,
            type=SECURITY,
            entity=resolved.user_owned_url(),
            channels=[str(channel) for channel in channels],
        )
        return updated

    async def update_extra_info(
        self, resolved: ResolvedIdentifier, extra_info: dict[str, Any]
    ) -> Entity:
        """Merge `extra_info` into the entity's; null values remove keys."""
        entity = await self.get_entity(resolved)
        merged = dict(entity.extra_info)
        for key, value in extra_info.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        return await self.entities_repository.update(
            entity.id,
            EntityResourceBuilder().with_extra_info(merged).build(),
        )

    async def _next_promulgated_revision(self, name: str, series: str) -> int:
        current = await self.entities_repository.max_promulgated_revision(
            name, series
        )
        return 0 if current is None else current + 1
