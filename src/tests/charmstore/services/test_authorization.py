# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

import base64
from dataclasses import replace

import pytest

from charmstore.constants import EVERYONE
from charmstore.exceptions.catalog import (
    DischargeRequiredException,
    ForbiddenException,
    ServiceUnavailableException,
    UnauthorizedException,
)
from charmstore.models.auth import Authorization, RequestCredentials
from charmstore.models.identifiers import Channel
from tests.fixtures.auth import (
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    agreed_to,
    authenticated_as,
    discharge_all,
    groups_url,
    identified_as,
    IDENTITY_LOCATION,
    TERMS_LOCATION,
)
from tests.fixtures.factories import create_test_entity

NO_CREDENTIALS = RequestCredentials()


def basic_credentials(username: str, password: str) -> RequestCredentials:
    value = base64.b64encode(f"{username}:{password}".encode()).decode()
    return RequestCredentials(authorization=f"Basic {value}")


def macaroon_credentials(*mss) -> RequestCredentials:
    return RequestCredentials(macaroons=list(mss))


ADMIN_CREDENTIALS = basic_credentials(ADMIN_USERNAME, ADMIN_PASSWORD)


async def required_macaroon(coro):
    with pytest.raises(DischargeRequiredException) as exc_info:
        await coro
    return exc_info.value.macaroon


class TestAuthorize:
    async def test_everyone_needs_no_credentials(self, services, mocker):
        snapshot = mocker.spy(services.rootkeys, "snapshot")
        authorization = await services.authorization.authorize(
            NO_CREDENTIALS, [EVERYONE]
        )
        assert authorization == Authorization()
        snapshot.assert_not_called()

    async def test_admin(self, services):
        authorization = await services.authorization.authorize(
            ADMIN_CREDENTIALS, ["bob"]
        )
        assert authorization == Authorization(is_admin=True)

    async def test_wrong_password(self, services):
        with pytest.raises(UnauthorizedException) as exc_info:
            await services.authorization.authorize(
                basic_credentials(ADMIN_USERNAME, "bad"), ["bob"]
            )
        assert exc_info.value.reason == "invalid user name or password"

    async def test_invalid_header(self, services):
        with pytest.raises(UnauthorizedException):
            await services.authorization.authorize(
                RequestCredentials(authorization="Bearer xyz"), ["bob"]
            )

    async def test_discharge_round_trip(self, services, identity_discharger):
        macaroon = await required_macaroon(
            services.authorization.authorize(NO_CREDENTIALS, ["bob"])
        )
        ms = discharge_all(
            macaroon,
            identified_as(identity_discharger, "bob"),
        )
        authorization = await services.authorization.authorize(
            macaroon_credentials(ms), ["bob"]
        )
        assert authorization == Authorization(username="bob")
        assert identity_discharger.conditions == ["is-authenticated-user"]

    async def test_user_not_in_acl(
        self, services, identity_discharger, mock_aioresponse
    ):
        mock_aioresponse.get(groups_url("alice"), payload=["qa"])
        macaroon = await required_macaroon(
            services.authorization.authorize(NO_CREDENTIALS, ["bob"])
        )
        ms = discharge_all(
            macaroon,
            {
                IDENTITY_LOCATION: (
                    identity_discharger,
                    authenticated_as("alice"),
                )
            },
        )
        with pytest.raises(UnauthorizedException) as exc_info:
            await services.authorization.authorize(
                macaroon_credentials(ms), ["bob"]
            )
        assert exc_info.value.reason == 'access denied for user "alice"'

    async def test_group_membership(
        self, services, identity_discharger, mock_aioresponse
    ):
        mock_aioresponse.get(groups_url("alice"), payload=["charmers"])
        macaroon = await required_macaroon(
            services.authorization.authorize(NO_CREDENTIALS, ["charmers"])
        )
        ms = discharge_all(
            macaroon,
            {
                IDENTITY_LOCATION: (
                    identity_discharger,
                    authenticated_as("alice"),
                )
            },
        )
        authorization = await services.authorization.authorize(
            macaroon_credentials(ms), ["charmers"]
        )
        assert authorization.username == "alice"

    async def test_groups_unavailable(
        self, services, identity_discharger, mock_aioresponse
    ):
        mock_aioresponse.get(groups_url("alice"), status=500, body="")
        macaroon = await required_macaroon(
            services.authorization.authorize(NO_CREDENTIALS, ["charmers"])
        )
        ms = discharge_all(
            macaroon,
            {
                IDENTITY_LOCATION: (
                    identity_discharger,
                    authenticated_as("alice"),
                )
            },
        )
        with pytest.raises(UnauthorizedException):
            await services.authorization.authorize(
                macaroon_credentials(ms), ["charmers"]
            )

    async def test_undischarged_macaroon(self, services):
        macaroon = await required_macaroon(
            services.authorization.authorize(NO_CREDENTIALS, ["bob"])
        )
        await required_macaroon(
            services.authorization.authorize(
                macaroon_credentials([macaroon.macaroon]), ["bob"]
            )
        )

    async def test_always_auth(self, services):
        await required_macaroon(
            services.authorization.authorize(
                NO_CREDENTIALS, [EVERYONE], always_auth=True
            )
        )

    async def test_no_identity_location(self, services, auth_config):
        services.authorization.auth_config = replace(
            auth_config, identity_location=None
        )
        with pytest.raises(UnauthorizedException):
            await services.authorization.authorize(NO_CREDENTIALS, ["bob"])
        with pytest.raises(ServiceUnavailableException):
            await services.authorization.new_macaroon()


class TestAuthorizeEntity:
    async def test_channel_acls(self, services):
        entity = await create_test_entity(services, "~bob/trusty/wordpress-1")
        await services.acls.set_acl(
            entity.resolved(), Channel.STABLE, "read", [EVERYONE]
        )
        authorization = await services.authorization.authorize_entity(
            NO_CREDENTIALS, entity.resolved(Channel.STABLE), "GET"
        )
        assert authorization == Authorization()
        await required_macaroon(
            services.authorization.authorize_entity(
                NO_CREDENTIALS, entity.resolved(Channel.UNPUBLISHED), "GET"
            )
        )

    async def test_write_methods(self, services):
        entity = await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        await required_macaroon(
            services.authorization.authorize_entity(
                NO_CREDENTIALS, entity.resolved(), "PUT"
            )
        )

    async def test_not_terms_aware(self, services):
        entity = await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True, terms=["t/1"]
        )
        authorization = await services.authorization.authorize_entity(
            NO_CREDENTIALS, entity.resolved(), "GET"
        )
        assert authorization == Authorization()


class TestAuthorizeEntitiesAndTerms:
    async def test_no_entities(self, services):
        with pytest.raises(UnauthorizedException) as exc_info:
            await services.authorization.authorize_entities_and_terms(
                NO_CREDENTIALS, []
            )
        assert exc_info.value.reason == "entity id not specified"

    async def test_public(self, services):
        entity = await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        authorization = (
            await services.authorization.authorize_entities_and_terms(
                NO_CREDENTIALS, [entity.resolved()]
            )
        )
        assert authorization == Authorization()

    async def test_private_without_terms(self, services):
        entity = await create_test_entity(services, "~bob/trusty/wordpress-1")
        macaroon = await required_macaroon(
            services.authorization.authorize_entities_and_terms(
                NO_CREDENTIALS, [entity.resolved()]
            )
        )
        conditions = [
            caveat.caveat_id_bytes.decode("utf-8").split()[0]
            for caveat in macaroon.macaroon.first_party_caveats()
        ]
        assert conditions == ["time-before"]
        [caveat] = macaroon.macaroon.third_party_caveats()
        assert caveat.location == IDENTITY_LOCATION

    async def test_terms(
        self, services, identity_discharger, terms_discharger
    ):
        entity = await create_test_entity(
            services,
            "~bob/trusty/wordpress-1",
            public=True,
            terms=["terms-2/1", "terms-1/1"],
        )
        macaroon = await required_macaroon(
            services.authorization.authorize_entities_and_terms(
                NO_CREDENTIALS, [entity.resolved()]
            )
        )
        ms = discharge_all(
            macaroon,
            {
                IDENTITY_LOCATION: (
                    identity_discharger,
                    authenticated_as("alice"),
                ),
                TERMS_LOCATION: (
                    terms_discharger,
                    agreed_to("terms-1/1", "terms-2/1"),
                ),
            },
        )
        assert terms_discharger.conditions == [
            "has-agreed terms-1/1 terms-2/1"
        ]
        authorization = (
            await services.authorization.authorize_entities_and_terms(
                macaroon_credentials(ms), [entity.resolved()]
            )
        )
        assert authorization == Authorization(username="alice")

    async def test_plain_macaroon_denies_terms(
        self, services, identity_discharger
    ):
        public = await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        with_terms = await create_test_entity(
            services, "~bob/trusty/mysql-1", public=True, terms=["t/1"]
        )
        macaroon = await required_macaroon(
            services.authorization.authorize(
                NO_CREDENTIALS, [EVERYONE], always_auth=True
            )
        )
        ms = discharge_all(
            macaroon,
            identified_as(identity_discharger, "bob"),
        )
        # Good for everything but the archives of entities with terms.
        authorization = (
            await services.authorization.authorize_entities_and_terms(
                macaroon_credentials(ms), [public.resolved()]
            )
        )
        assert authorization == Authorization()
        await required_macaroon(
            services.authorization.authorize_entities_and_terms(
                macaroon_credentials(ms), [with_terms.resolved()]
            )
        )

    async def test_mixed_entities(
        self, services, identity_discharger, terms_discharger
    ):
        public = await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        with_terms = await create_test_entity(
            services, "~bob/trusty/mysql-1", public=True, terms=["t/1"]
        )
        entities = [public.resolved(), with_terms.resolved()]
        macaroon = await required_macaroon(
            services.authorization.authorize_entities_and_terms(
                NO_CREDENTIALS, entities
            )
        )
        ms = discharge_all(
            macaroon,
            {
                IDENTITY_LOCATION: (
                    identity_discharger,
                    authenticated_as("bob"),
                ),
                TERMS_LOCATION: (terms_discharger, agreed_to("t/1")),
            },
        )
        authorization = (
            await services.authorization.authorize_entities_and_terms(
                macaroon_credentials(ms), entities
            )
        )
        assert authorization.username == "bob"

    async def test_terms_not_supported(self, services, auth_config):
        services.authorization.auth_config = replace(
            auth_config, terms_location=None
        )
        entity = await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True, terms=["t/1"]
        )
        with pytest.raises(UnauthorizedException) as exc_info:
            await services.authorization.authorize_entities_and_terms(
                NO_CREDENTIALS, [entity.resolved()]
            )
        assert exc_info.value.reason == (
            "charmstore not configured to serve charms with terms "
            "and conditions"
        )

    async def test_every_acl_checked(self, services, identity_discharger):
        public = await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        private = await create_test_entity(
            services, "~alice/trusty/mysql-1"
        )
        entities = [public.resolved(), private.resolved()]
        macaroon = await required_macaroon(
            services.authorization.authorize_entities_and_terms(
                NO_CREDENTIALS, entities
            )
        )
        ms = discharge_all(
            macaroon,
            identified_as(identity_discharger, "bob"),
        )
        services.groups.auth_config = replace(
            services.groups.auth_config, identity_api_url=None
        )
        with pytest.raises(UnauthorizedException):
            await services.authorization.authorize_entities_and_terms(
                macaroon_credentials(ms), entities
            )


class TestDelegatableMacaroon:
    async def bob_credentials(self, services, identity_discharger):
        macaroon = await required_macaroon(
            services.authorization.authorize(
                NO_CREDENTIALS, [EVERYONE], always_auth=True
            )
        )
        return macaroon_credentials(
            discharge_all(
                macaroon,
                {
                    IDENTITY_LOCATION: (
                        identity_discharger,
                        authenticated_as("bob"),
                    )
                },
            )
        )

    async def test_admin_forbidden(self, services):
        with pytest.raises(ForbiddenException):
            await services.authorization.delegatable_macaroon(
                ADMIN_CREDENTIALS
            )

    async def test_declares_user(self, services, identity_discharger):
        credentials = await self.bob_credentials(
            services, identity_discharger
        )
        macaroon = await services.authorization.delegatable_macaroon(
            credentials
        )
        # No third party caveat: usable on its own.
        authorization = await services.authorization.authorize(
            macaroon_credentials([macaroon.macaroon]), ["bob"]
        )
        assert authorization == Authorization(username="bob")

    async def test_restricted_to_entities(
        self, services, identity_discharger
    ):
        wordpress = await create_test_entity(
            services, "~bob/trusty/wordpress-1"
        )
        mysql = await create_test_entity(services, "~bob/trusty/mysql-1")
        credentials = await self.bob_credentials(
            services, identity_discharger
        )
        macaroon = await services.authorization.delegatable_macaroon(
            credentials, [wordpress.resolved()]
        )
        delegated = macaroon_credentials([macaroon.macaroon])
        authorization = await services.authorization.authorize_entity(
            delegated, wordpress.resolved(), "GET"
        )
        assert authorization.username == "bob"
        await required_macaroon(
            services.authorization.authorize_entity(
                delegated, mysql.resolved(), "GET"
            )
        )

    async def test_public_entities_still_named(
        self, services, identity_discharger
    ):
        entity = await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        await required_macaroon(
            services.authorization.delegatable_macaroon(
                NO_CREDENTIALS, [entity.resolved()]
            )
        )
        credentials = await self.bob_credentials(
            services, identity_discharger
        )
        macaroon = await services.authorization.delegatable_macaroon(
            credentials, [entity.resolved()]
        )
        assert macaroon.macaroon.location == "charmstore"
