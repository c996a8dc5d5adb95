# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from fastapi import Depends, Query, Request
from macaroonbakery import httpbakery

from charmstore.auth.macaroons import extract_macaroons
from charmstore.exceptions.catalog import (
    BadRequestException,
    NotFoundException,
)
from charmstore.exceptions.constants import (
    INVALID_ARGUMENT_VIOLATION_TYPE,
    UNEXISTING_RESOURCE_VIOLATION_TYPE,
)
from charmstore.models.auth import RequestCredentials
from charmstore.models.identifiers import (
    Channel,
    PackageIdentifier,
    ResolvedIdentifier,
)
from charmstore.services import ServiceCollection
from charmstoreapi.middlewares.services import services


async def request_credentials(request: Request) -> RequestCredentials:
    """Dependency collecting what the request presents to be authorized."""
    return RequestCredentials(
        authorization=request.headers.get("authorization"),
        macaroons=extract_macaroons(request.cookies, request.headers),
        bakery_version=httpbakery.request_version(request.headers),
    )


async def channel_param(
    channel: str | None = Query(default=None),
) -> Channel | None:
    if not channel:
        return None
    try:
        return Channel.parse(channel)
    except ValueError:
        raise BadRequestException.with_reason(
            INVALID_ARGUMENT_VIOLATION_TYPE, "invalid channel"
        ) from None


async def package_identifier(
    id: str, channel: Channel | None = Depends(channel_param)
) -> PackageIdentifier:
    """Parse the entity id found in the path."""
    try:
        return PackageIdentifier.parse(id, channel=channel)
    except ValueError as e:
        raise NotFoundException.with_reason(
            UNEXISTING_RESOURCE_VIOLATION_TYPE, str(e)
        ) from None


async def resolved_identifier(
    identifier: PackageIdentifier = Depends(package_identifier),
    services: ServiceCollection = Depends(services),
) -> ResolvedIdentifier:
    return await services.resolver.resolve(identifier)
