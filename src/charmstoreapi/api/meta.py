# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

"""Registry of the metadata served under `{id}/meta/{name}`.

Every entry states where its data comes from (the entity revision or its
base entity), the stored fields it depends on, how to render it and, for
the writable ones, how to update it. Nothing else can be served.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Awaitable, Callable

from pydantic import TypeAdapter, ValidationError

from charmstore.exceptions.catalog import (
    BadRequestException,
    MethodNotAllowedException,
    NotFoundException,
)
from charmstore.exceptions.constants import (
    INVALID_ARGUMENT_VIOLATION_TYPE,
    METHOD_NOT_ALLOWED_VIOLATION_TYPE,
    UNEXISTING_RESOURCE_VIOLATION_TYPE,
)
from charmstore.models.auth import Authorization
from charmstore.models.entities import BaseEntity, Entity
from charmstore.models.identifiers import Channel, ResolvedIdentifier
from charmstore.services import ServiceCollection
from charmstoreapi.api.models.requests import PermRequest
from charmstoreapi.api.models.responses import (
    ArchiveSizeResponse,
    ArchiveUploadTimeResponse,
    IdNameResponse,
    IdResponse,
    IdRevisionResponse,
    IdSeriesResponse,
    IdUserResponse,
    PermResponse,
    PromulgatedResponse,
    PublishedInfo,
    PublishedResponse,
)

PERM_PREFIX = "perm/"


class MetaSource(StrEnum):
    ENTITY = "entity"
    BASE_ENTITY = "base-entity"


@dataclass(frozen=True)
class MetaTarget:
    """The entity a metadata request is about."""

    resolved: ResolvedIdentifier
    # Ids without an owner are answered with promulgated URLs.
    use_promulgated: bool = False

    @property
    def preferred_owner(self) -> str | None:
        if self.use_promulgated and self.promulgated:
            return None
        return self.resolved.owner

    @property
    def preferred_revision(self) -> int:
        if self.use_promulgated and self.promulgated:
            return self.resolved.promulgated_revision
        return self.resolved.revision

    @property
    def promulgated(self) -> bool:
        return self.resolved.promulgated_revision is not None

    def preferred_url(self) -> str:
        return self.resolved.preferred_url(self.use_promulgated)


Getter = Callable[[Entity | BaseEntity, MetaTarget], Any]
Setter = Callable[
    [ServiceCollection, Authorization, MetaTarget, Any], Awaitable[None]
]


@dataclass(frozen=True)
class MetaEndpoint:
    name: str
    source: MetaSource
    fields: tuple[str, ...]
    getter: Getter
    setter: Setter | None = None

    @property
    def puttable(self) -> bool:
        return self.setter is not None


def _validate(type_: Any, value: Any, name: str) -> Any:
    try:
        return TypeAdapter(type_).validate_python(value)
    except ValidationError:
        raise BadRequestException.with_reason(
            INVALID_ARGUMENT_VIOLATION_TYPE, f"invalid value for {name}"
        ) from None


def _meta_id(entity: Entity, target: MetaTarget) -> IdResponse:
    return IdResponse(
        id=target.preferred_url(),
        user=target.preferred_owner,
        series=target.resolved.series,
        name=target.resolved.name,
        revision=target.preferred_revision,
    )


def _meta_published(
    entity: Entity, target: MetaTarget
) -> PublishedResponse:
    return PublishedResponse(
        info=[
            PublishedInfo(channel=str(channel))
            for channel in entity.channels()
            if channel != Channel.UNPUBLISHED
        ]
    )


def _meta_perm(base_entity: BaseEntity, target: MetaTarget) -> PermResponse:
    acl = base_entity.acl(target.resolved.channel)
    return PermResponse(read=acl.read, write=acl.write)


async def _put_extra_info(
    services: ServiceCollection,
    authorization: Authorization,
    target: MetaTarget,
    value: Any,
) -> None:
    extra_info = _validate(dict[str, Any], value, "extra-info")
    await services.entities.update_extra_info(target.resolved, extra_info)


async def _put_perm(
    services: ServiceCollection,
    authorization: Authorization,
    target: MetaTarget,
    value: Any,
) -> None:
    perms = _validate(PermRequest, value, "perm")
    await services.entities.set_perm(
        authorization,
        target.resolved,
        {"read": perms.read, "write": perms.write},
    )


def _put_perm_field(field: str) -> Setter:
    async def put(
        services: ServiceCollection,
        authorization: Authorization,
        target: MetaTarget,
        value: Any,
    ) -> None:
        principals = _validate(list[str], value, f"perm/{field}")
        await services.entities.set_perm(
            authorization, target.resolved, {field: principals}
        )

    return put


META_ENDPOINTS: dict[str, MetaEndpoint] = {
    endpoint.name: endpoint
    for endpoint in (
        MetaEndpoint(
            name="archive-size",
            source=MetaSource.ENTITY,
            fields=("size",),
            getter=lambda entity, target: ArchiveSizeResponse(
                size=entity.size
            ),
        ),
        MetaEndpoint(
            name="archive-upload-time",
            source=MetaSource.ENTITY,
            fields=("upload_time",),
            getter=lambda entity, target: ArchiveUploadTimeResponse(
                upload_time=entity.upload_time
            ),
        ),
        MetaEndpoint(
            name="extra-info",
            source=MetaSource.ENTITY,
            fields=("extra_info",),
            getter=lambda entity, target: entity.extra_info,
            setter=_put_extra_info,
        ),
        MetaEndpoint(
            name="id",
            source=MetaSource.ENTITY,
            fields=("user", "series", "name", "revision"),
            getter=_meta_id,
        ),
        MetaEndpoint(
            name="id-name",
            source=MetaSource.ENTITY,
            fields=("name",),
            getter=lambda entity, target: IdNameResponse(
                name=target.resolved.name
            ),
        ),
        MetaEndpoint(
            name="id-revision",
            source=MetaSource.ENTITY,
            fields=("revision", "promulgated_revision"),
            getter=lambda entity, target: IdRevisionResponse(
                revision=target.preferred_revision
            ),
        ),
        MetaEndpoint(
            name="id-series",
            source=MetaSource.ENTITY,
            fields=("series",),
            getter=lambda entity, target: IdSeriesResponse(
                series=target.resolved.series
            ),
        ),
        MetaEndpoint(
            name="id-user",
            source=MetaSource.ENTITY,
            fields=("user",),
            getter=lambda entity, target: IdUserResponse(
                user=target.preferred_owner
            ),
        ),
        MetaEndpoint(
            name="perm",
            source=MetaSource.BASE_ENTITY,
            fields=("acls",),
            getter=_meta_perm,
            setter=_put_perm,
        ),
        MetaEndpoint(
            name="perm/read",
            source=MetaSource.BASE_ENTITY,
            fields=("acls",),
            getter=lambda base_entity, target: base_entity.acl(
                target.resolved.channel
            ).read,
            setter=_put_perm_field("read"),
        ),
        MetaEndpoint(
            name="perm/write",
            source=MetaSource.BASE_ENTITY,
            fields=("acls",),
            getter=lambda base_entity, target: base_entity.acl(
                target.resolved.channel
            ).write,
            setter=_put_perm_field("write"),
        ),
        MetaEndpoint(
            name="promulgated",
            source=MetaSource.BASE_ENTITY,
            fields=("promulgated",),
            getter=lambda base_entity, target: PromulgatedResponse(
                promulgated=base_entity.promulgated
            ),
        ),
        MetaEndpoint(
            name="published",
            source=MetaSource.ENTITY,
            fields=("development", "stable"),
            getter=_meta_published,
        ),
        MetaEndpoint(
            name="terms",
            source=MetaSource.ENTITY,
            fields=("terms",),
            getter=lambda entity, target: entity.terms,
        ),
    )
}


def get_meta_endpoint(name: str, method: str) -> MetaEndpoint:
    """Return the registry entry serving `method` on `name`."""
    endpoint = META_ENDPOINTS.get(name)
    if endpoint is None:
        message = (
            "unknown permission"
            if name.startswith(PERM_PREFIX)
            else f'unknown metadata "{name}"'
        )
        raise NotFoundException.with_reason(
            UNEXISTING_RESOURCE_VIOLATION_TYPE, message
        )
    if method == "PUT" and not endpoint.puttable:
        raise MethodNotAllowedException.with_reason(
            METHOD_NOT_ALLOWED_VIOLATION_TYPE, f"PUT not allowed on {name}"
        )
    return endpoint
