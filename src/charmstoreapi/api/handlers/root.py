# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from fastapi import Depends, Query, Request, Response
from fastapi.responses import JSONResponse
import structlog

from charmstore.auth.macaroons import encode_macaroons, macaroons_from_json
from charmstore.constants import EVERYONE, UI_AUTH_COOKIE_NAME
from charmstore.exceptions.catalog import (
    BadRequestException,
    ForbiddenException,
    IdentityApiException,
    IdentityClientException,
)
from charmstore.exceptions.constants import (
    ADMIN_CREDENTIALS_VIOLATION_TYPE,
    INVALID_ARGUMENT_VIOLATION_TYPE,
)
from charmstore.models.auth import RequestCredentials
from charmstore.models.identifiers import PackageIdentifier
from charmstore.services import ServiceCollection
from charmstoreapi.api.dependencies import request_credentials
from charmstoreapi.api.models.responses import WhoAmIResponse
from charmstoreapi.common.api.base import Handler, handler
from charmstoreapi.middlewares.services import services

logger = structlog.getLogger(__name__)


class RootHandler(Handler):
    """Endpoints that are not about a single entity."""

    @handler(path="/macaroon", methods=["GET"])
    async def get_macaroon(
        self,
        credentials: RequestCredentials = Depends(request_credentials),
        services: ServiceCollection = Depends(services),
    ) -> Response:
        macaroon = await services.authorization.new_macaroon(
            version=credentials.bakery_version
        )
        return JSONResponse(content=macaroon.to_dict())

    @handler(path="/delegatable-macaroon", methods=["GET"])
    async def get_delegatable_macaroon(
        self,
        ids: list[str] = Query(default=[], alias="id"),
        credentials: RequestCredentials = Depends(request_credentials),
        services: ServiceCollection = Depends(services),
    ) -> Response:
        identifiers = []
        for id in ids:
            try:
                identifiers.append(PackageIdentifier.parse(id))
            except ValueError:
                raise BadRequestException.build_for_field(
                    "id", 'bad "id" parameter'
                ) from None
        resolved = await services.resolver.resolve_many(identifiers)
        macaroon = await services.authorization.delegatable_macaroon(
            credentials, resolved
        )
        return JSONResponse(content=macaroon.to_dict())

    @handler(
        path="/whoami",
        methods=["GET"],
        responses={200: {"model": WhoAmIResponse}},
    )
    async def whoami(
        self,
        credentials: RequestCredentials = Depends(request_credentials),
        services: ServiceCollection = Depends(services),
    ) -> WhoAmIResponse:
        authorization = await services.authorization.authorize(
            credentials, [EVERYONE], always_auth=True
        )
        if authorization.is_admin:
            raise ForbiddenException.with_reason(
                ADMIN_CREDENTIALS_VIOLATION_TYPE, "admin credentials used"
            )
        try:
            groups = await services.groups.groups_for_user(
                authorization.username
            )
        except (IdentityApiException, IdentityClientException) as e:
            raise RuntimeError("cannot retrieve groups") from e
        return WhoAmIResponse(user=authorization.username, groups=groups)

    @handler(path="/set-auth-cookie", methods=["PUT"])
    async def set_auth_cookie(self, request: Request) -> Response:
        try:
            body = await request.json()
        except ValueError:
            raise BadRequestException.with_reason(
                INVALID_ARGUMENT_VIOLATION_TYPE, "cannot unmarshal macaroons"
            ) from None
        try:
            macaroons = macaroons_from_json(
                body.get("Macaroons") if isinstance(body, dict) else None
            )
        except ValueError as e:
            raise BadRequestException.with_reason(
                INVALID_ARGUMENT_VIOLATION_TYPE,
                f"cannot create macaroons cookie: {e}",
            ) from None
        response = Response(status_code=200)
        # Allow xhr requests from the origin of this request to set it.
        response.headers["Access-Control-Allow-Origin"] = request.headers.get(
            "origin", ""
        )
        response.set_cookie(
            UI_AUTH_COOKIE_NAME, encode_macaroons(macaroons), path="/"
        )
        return response
