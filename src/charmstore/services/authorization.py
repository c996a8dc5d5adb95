#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

"""Macaroon based authorization of store operations.

A request is checked against an ACL in three steps:

    - ACLs open to everyone need no credentials at all, unless the caller
      asks for authentication to be always required;
    - HTTP basic credentials must match the superuser ones. Wrong ones are
      a permanent failure, they never fall back to macaroons;
    - otherwise the macaroons attached to the request are verified. When
      none of them passes, a new macaroon requiring the identity service
      to declare the user name is minted and returned to the client
      through a DischargeRequiredException.

Once the caller is known its membership in the ACL is checked, directly
or through the groups the identity service reports.
"""

from typing import Sequence

from macaroonbakery import bakery, checkers
import structlog

from charmstore.auth.caveats import (
    authenticated_user_caveat,
    build_auth_context,
    build_checker,
    build_namespace,
    check_conditions,
    declared_username_caveat,
    deny_terms_caveat,
    has_agreed_caveat,
    is_entity_caveat,
)
from charmstore.auth.config import AuthConfig
from charmstore.auth.credentials import (
    CredentialsError,
    match_credentials,
    parse_basic_credentials,
)
from charmstore.constants import (
    EVERYONE,
    OP_ACCESS_WITH_TERMS,
    OP_OTHER,
    USERNAME_ATTR,
)
from charmstore.context import Context
from charmstore.db.repositories.entities import EntitiesRepository
from charmstore.exceptions.catalog import (
    DischargeRequiredException,
    ForbiddenException,
    IdentityApiException,
    IdentityClientException,
    ServiceUnavailableException,
    UnauthorizedException,
)
from charmstore.exceptions.constants import (
    ADMIN_CREDENTIALS_VIOLATION_TYPE,
    INVALID_CREDENTIALS_VIOLATION_TYPE,
    MISSING_PERMISSIONS_VIOLATION_TYPE,
    NOT_AUTHENTICATED_VIOLATION_TYPE,
    SERVICE_NOT_CONFIGURED_VIOLATION_TYPE,
    TERMS_NOT_SUPPORTED_VIOLATION_TYPE,
)
from charmstore.logging.security import (
    AUTHN_AUTH_FAILED,
    AUTHN_AUTH_SUCCESSFUL,
    AUTHN_DISCHARGE_REQUIRED,
    AUTHZ_ADMIN,
    AUTHZ_FAIL,
    SECURITY,
)
from charmstore.models.auth import Authorization, RequestCredentials
from charmstore.models.identifiers import ResolvedIdentifier
from charmstore.services.acls import ACLsService
from charmstore.services.base import Service
from charmstore.services.groups import GroupsService
from charmstore.services.resolver import not_found
from charmstore.services.rootkeys import RootKeysService
from charmstore.utils.date import utcnow

logger = structlog.getLogger(__name__)

WRITE_METHODS = frozenset(("DELETE", "PATCH", "POST", "PUT"))


def _access_denied(username: str) -> UnauthorizedException:
    return UnauthorizedException.with_reason(
        MISSING_PERMISSIONS_VIOLATION_TYPE,
        f'access denied for user "{username}"',
    )


class AuthorizationService(Service):
    def __init__(
        self,
        context: Context,
        auth_config: AuthConfig,
        rootkeys_service: RootKeysService,
        groups_service: GroupsService,
        acls_service: ACLsService,
        entities_repository: EntitiesRepository,
    ):
        super().__init__(context)
        self.auth_config = auth_config
        self.rootkeys_service = rootkeys_service
        self.groups_service = groups_service
        self.acls_service = acls_service
        self.entities_repository = entities_repository
        self.namespace = build_namespace()
        self.checker = build_checker(self.namespace)

    async def authorize(
        self,
        credentials: RequestCredentials,
        acl: Sequence[str],
        always_auth: bool = False,
        entity: ResolvedIdentifier | None = None,
    ) -> Authorization:
        """Check that the caller is allowed by `acl`.

        A macaroon minted here denies the archive access of entities
        requiring terms: only `authorize_entities_and_terms` deals with
        terms.
        """
        if not always_auth and EVERYONE in acl:
            return Authorization()
        entities = [entity] if entity is not None else []
        authorization = await self._check_or_mint(
            credentials, entities, OP_OTHER, [deny_terms_caveat()]
        )
        await self.check_acl_membership(authorization, acl)
        return authorization

    async def authorize_entity(
        self,
        credentials: RequestCredentials,
        entity: ResolvedIdentifier,
        method: str,
    ) -> Authorization:
        """Authorize an HTTP method on an entity.

        Mutating methods need the write ACL of the channel the entity was
        resolved in, every other one the read ACL.
        """
        acl = await self.acls_service.effective_acl(entity)
        return await self.authorize(
            credentials,
            acl.for_write(method.upper() in WRITE_METHODS),
            entity=entity,
        )

    async def authorize_entities_and_terms(
        self,
        credentials: RequestCredentials,
        entities: Sequence[ResolvedIdentifier],
    ) -> Authorization:
        """Authorize read access to all `entities` at once.

        When any of them requires terms to be agreed, a macaroon minted here
        also needs a discharge from the terms service for all of them.
        """
        if not entities:
            raise UnauthorizedException.with_reason(
                NOT_AUTHENTICATED_VIOLATION_TYPE, "entity id not specified"
            )
        acls: list[list[str]] = []
        required_terms: set[str] = set()
        public = True
        for entity in entities:
            record = await self.entities_repository.find_by_resolved(entity)
            if record is None:
                raise not_found(entity)
            acl = (await self.acls_service.effective_acl(entity)).read
            acls.append(acl)
            if record.terms:
                required_terms.update(record.terms)
                public = False
            else:
                public = public and EVERYONE in acl
        if public:
            return Authorization()

        if required_terms and not self.auth_config.terms_location:
            raise UnauthorizedException.with_reason(
                TERMS_NOT_SUPPORTED_VIOLATION_TYPE,
                "charmstore not configured to serve charms with terms "
                "and conditions",
            )
        if required_terms:
            operation = OP_ACCESS_WITH_TERMS
            caveats = [
                has_agreed_caveat(
                    self.auth_config.terms_location, required_terms
                )
            ]
        else:
            operation = OP_OTHER
            caveats = []
        authorization = await self._check_or_mint(
            credentials, entities, operation, caveats
        )
        for acl in acls:
            await self.check_acl_membership(authorization, acl)
        return authorization

    async def check_request(
        self,
        credentials: RequestCredentials,
        entities: Sequence[ResolvedIdentifier],
        operation: str,
    ) -> Authorization:
        """Return who the request credentials identify.

        Raises UnauthorizedException for invalid credentials and
        bakery.VerificationError when no attached macaroon is valid for the
        entities and the operation.
        """
        if credentials.authorization is not None:
            return self._check_basic_credentials(credentials.authorization)
        if not self.auth_config.identity_location:
            raise UnauthorizedException.with_reason(
                NOT_AUTHENTICATED_VIOLATION_TYPE, "authentication failed"
            )
        return await self._verify_macaroons(
            credentials.macaroons, entities, operation
        )

    async def check_acl_membership(
        self, authorization: Authorization, acl: Sequence[str]
    ) -> None:
        if authorization.is_admin:
            return
        username = authorization.username
        if not username:
            raise UnauthorizedException.with_reason(
                NOT_AUTHENTICATED_VIOLATION_TYPE, "no username declared"
            )
        if username in acl or EVERYONE in acl:
            return
        try:
            groups = await self.groups_service.groups_for_user(username)
        except (IdentityApiException, IdentityClientException) as e:
            logger.warning(
                "cannot get groups", username=username, error=str(e)
            )
            raise _access_denied(username) from None
        if any(group in acl for group in groups):
            return
        logger.info(AUTHZ_FAIL, type=SECURITY, username=username, acl=acl)
        raise _access_denied(username)

    async def new_macaroon(
        self,
        caveats: Sequence[checkers.Caveat] = (),
        version: int = bakery.LATEST_VERSION,
    ) -> bakery.Macaroon:
        """Mint a macaroon that needs the identity service to name the user."""
        if not self.auth_config.identity_location:
            raise ServiceUnavailableException.with_reason(
                SERVICE_NOT_CONFIGURED_VIOLATION_TYPE,
                "identity location not configured",
            )
        return await self._mint(
            [
                *caveats,
                authenticated_user_caveat(self.auth_config.identity_location),
            ],
            self.auth_config.macaroon_expiry,
            version,
        )

    async def delegatable_macaroon(
        self,
        credentials: RequestCredentials,
        entities: Sequence[ResolvedIdentifier] = (),
    ) -> bakery.Macaroon:
        """Mint a short lived macaroon declaring the caller's user name.

        Without entities the macaroon is valid for anything but the archives
        of entities requiring terms. With entities, the caller must pass the
        terms gate for them and the macaroon is restricted to them.
        """
        if not entities:
            authorization = await self.authorize(
                credentials, [EVERYONE], always_auth=True
            )
            caveats = [deny_terms_caveat()]
        else:
            authorization = await self.authorize_entities_and_terms(
                credentials, entities
            )
            if not authorization.is_admin and not authorization.username:
                # Public entities let anyone in without naming them.
                authorization = await self._check_or_mint(
                    credentials, entities, OP_OTHER, [deny_terms_caveat()]
                )
            caveats = [is_entity_caveat(entities)]
        if not authorization.username:
            raise ForbiddenException.with_reason(
                ADMIN_CREDENTIALS_VIOLATION_TYPE,
                "delegatable macaroon is not obtainable using admin "
                "credentials",
            )
        return await self._mint(
            [declared_username_caveat(authorization.username), *caveats],
            self.auth_config.delegatable_macaroon_expiry,
            credentials.bakery_version,
        )

    async def _check_or_mint(
        self,
        credentials: RequestCredentials,
        entities: Sequence[ResolvedIdentifier],
        operation: str,
        caveats: list[checkers.Caveat],
    ) -> Authorization:
        try:
            return await self.check_request(credentials, entities, operation)
        except bakery.VerificationError as e:
            logger.info(
                AUTHN_DISCHARGE_REQUIRED,
                type=SECURITY,
                operation=operation,
                reason=str(e),
            )
            macaroon = await self.new_macaroon(
                caveats, credentials.bakery_version
            )
            raise DischargeRequiredException(macaroon=macaroon) from None

    def _check_basic_credentials(self, header: str) -> Authorization:
        try:
            username, password = parse_basic_credentials(header)
        except CredentialsError as e:
            logger.info(AUTHN_AUTH_FAILED, type=SECURITY, reason=str(e))
            raise UnauthorizedException.with_reason(
                INVALID_CREDENTIALS_VIOLATION_TYPE, "authentication failed"
            ) from None
        if not match_credentials(
            username,
            password,
            self.auth_config.admin_username,
            self.auth_config.admin_password,
        ):
            raise UnauthorizedException.with_reason(
                INVALID_CREDENTIALS_VIOLATION_TYPE,
                "invalid user name or password",
            )
        logger.info(AUTHZ_ADMIN, type=SECURITY)
        return Authorization(is_admin=True)

    async def _verify_macaroons(
        self,
        mss: list[list],
        entities: Sequence[ResolvedIdentifier],
        operation: str,
    ) -> Authorization:
        if not mss:
            raise bakery.VerificationError("no macaroons")
        oven = await self._oven(for_minting=False)
        failures = []
        for ms in mss:
            try:
                _, conditions = oven.macaroon_ops(ms)
            except bakery.VerificationError as e:
                failures.append(str(e))
                continue
            declared = checkers.infer_declared_from_conditions(
                conditions, self.namespace
            )
            ctx = build_auth_context(entities, operation, declared)
            if error := check_conditions(self.checker, ctx, conditions):
                failures.append(error)
                continue
            username = declared.get(USERNAME_ATTR, "")
            logger.info(
                AUTHN_AUTH_SUCCESSFUL, type=SECURITY, username=username
            )
            return Authorization(username=username)
        raise bakery.VerificationError(failures[0])

    async def _mint(
        self,
        caveats: list[checkers.Caveat],
        expiry,
        version: int,
    ) -> bakery.Macaroon:
        oven = await self._oven(for_minting=True)
        return oven.macaroon(
            version, utcnow() + expiry, caveats, [bakery.LOGIN_OP]
        )

    async def _oven(self, for_minting: bool) -> bakery.Oven:
        snapshot = await self.rootkeys_service.snapshot(for_minting)
        return bakery.Oven(
            key=self.auth_config.key,
            location=self.auth_config.location,
            locator=self.auth_config.locator,
            namespace=self.namespace,
            root_keystore_for_ops=lambda ops: snapshot,
        )
