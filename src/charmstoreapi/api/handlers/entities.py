# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Any

from fastapi import Depends, Request, Response
from fastapi.responses import StreamingResponse

from charmstore.blobstore import BlobNotFound
from charmstore.constants import PROMULGATORS_GROUP
from charmstore.exceptions.catalog import (
    BadRequestException,
    NotFoundException,
)
from charmstore.exceptions.constants import (
    INVALID_ARGUMENT_VIOLATION_TYPE,
    UNEXISTING_BLOB_VIOLATION_TYPE,
)
from charmstore.models.auth import RequestCredentials
from charmstore.models.identifiers import (
    Channel,
    PackageIdentifier,
    ResolvedIdentifier,
)
from charmstore.services import ServiceCollection
from charmstore.services.entities import check_publishable_channels
from charmstoreapi.api.dependencies import (
    package_identifier,
    request_credentials,
    resolved_identifier,
)
from charmstoreapi.api.meta import get_meta_endpoint, MetaSource, MetaTarget
from charmstoreapi.api.models.requests import (
    PromulgateRequest,
    PublishRequest,
)
from charmstoreapi.api.models.responses import PublishResponse
from charmstoreapi.common.api.base import Handler, handler
from charmstoreapi.middlewares.services import services

ARCHIVE_MEDIA_TYPE = "application/zip"


def _parse_channels(values: list[str]) -> list[Channel]:
    try:
        return [Channel.parse(value) for value in values]
    except ValueError:
        raise BadRequestException.with_reason(
            INVALID_ARGUMENT_VIOLATION_TYPE, "invalid channel"
        ) from None


class EntitiesHandler(Handler):
    """Endpoints scoped to a single charm or bundle revision."""

    def get_handlers(self):
        return [
            "get_meta",
            "put_meta",
            "get_archive",
            "promulgate",
            "publish",
        ]

    @handler(
        path="/{id:path}/meta/{name:path}",
        methods=["GET"],
        response_model=None,
    )
    async def get_meta(
        self,
        name: str,
        request: Request,
        identifier: PackageIdentifier = Depends(package_identifier),
        resolved: ResolvedIdentifier = Depends(resolved_identifier),
        credentials: RequestCredentials = Depends(request_credentials),
        services: ServiceCollection = Depends(services),
    ) -> Any:
        endpoint = get_meta_endpoint(name, request.method)
        await services.authorization.authorize_entity(
            credentials, resolved, request.method
        )
        if endpoint.source == MetaSource.BASE_ENTITY:
            record = await services.entities.get_base_entity(resolved)
        else:
            record = await services.entities.get_entity(resolved)
        return endpoint.getter(
            record,
            MetaTarget(
                resolved=resolved, use_promulgated=identifier.owner is None
            ),
        )

    @handler(path="/{id:path}/meta/{name:path}", methods=["PUT"])
    async def put_meta(
        self,
        name: str,
        request: Request,
        identifier: PackageIdentifier = Depends(package_identifier),
        resolved: ResolvedIdentifier = Depends(resolved_identifier),
        credentials: RequestCredentials = Depends(request_credentials),
        services: ServiceCollection = Depends(services),
    ) -> Response:
        endpoint = get_meta_endpoint(name, request.method)
        authorization = await services.authorization.authorize_entity(
            credentials, resolved, request.method
        )
        try:
            value = await request.json()
        except ValueError:
            raise BadRequestException.with_reason(
                INVALID_ARGUMENT_VIOLATION_TYPE, "cannot unmarshal body"
            ) from None
        await endpoint.setter(
            services,
            authorization,
            MetaTarget(
                resolved=resolved, use_promulgated=identifier.owner is None
            ),
            value,
        )
        return Response(status_code=200)

    @handler(path="/{id:path}/archive", methods=["GET"])
    async def get_archive(
        self,
        identifier: PackageIdentifier = Depends(package_identifier),
        resolved: ResolvedIdentifier = Depends(resolved_identifier),
        credentials: RequestCredentials = Depends(request_credentials),
        services: ServiceCollection = Depends(services),
    ) -> Response:
        await services.authorization.authorize_entities_and_terms(
            credentials, [resolved]
        )
        entity = await services.entities.get_entity(resolved)
        try:
            if entity.blob_name is None:
                raise BlobNotFound(str(resolved))
            chunks = await services.blobstore.open(entity.blob_name)
        except BlobNotFound:
            raise NotFoundException.with_reason(
                UNEXISTING_BLOB_VIOLATION_TYPE,
                f"archive for {resolved} not found",
            ) from None
        headers = {
            "Entity-Id": resolved.preferred_url(identifier.owner is None)
        }
        if entity.size is not None:
            headers["Content-Length"] = str(entity.size)
        return StreamingResponse(
            chunks, media_type=ARCHIVE_MEDIA_TYPE, headers=headers
        )

    @handler(path="/{id:path}/promulgate", methods=["PUT"])
    async def promulgate(
        self,
        body: PromulgateRequest,
        resolved: ResolvedIdentifier = Depends(resolved_identifier),
        credentials: RequestCredentials = Depends(request_credentials),
        services: ServiceCollection = Depends(services),
    ) -> Response:
        authorization = await services.authorization.authorize(
            credentials, [PROMULGATORS_GROUP], entity=resolved
        )
        await services.entities.promulgate(
            authorization, resolved, body.promulgated
        )
        return Response(status_code=200)

    @handler(
        path="/{id:path}/publish",
        methods=["PUT"],
        responses={200: {"model": PublishResponse}},
    )
    async def publish(
        self,
        body: PublishRequest,
        resolved: ResolvedIdentifier = Depends(resolved_identifier),
        credentials: RequestCredentials = Depends(request_credentials),
        services: ServiceCollection = Depends(services),
    ) -> PublishResponse:
        channels = _parse_channels(body.channels)
        check_publishable_channels(channels)
        base_entity = await services.entities.get_base_entity(resolved)
        authorization = None
        for channel in channels:
            authorization = await services.authorization.authorize(
                credentials,
                base_entity.acl(channel).write,
                entity=resolved.with_channel(channel),
            )
        entity = await services.entities.publish(
            authorization, resolved, channels
        )
        return PublishResponse(
            id=resolved.user_owned_url(),
            promulgated_id=resolved.promulgated_url(),
            channels=[
                str(channel)
                for channel in entity.channels()
                if channel != Channel.UNPUBLISHED
            ],
        )
