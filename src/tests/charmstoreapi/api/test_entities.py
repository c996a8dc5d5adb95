# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from charmstore.constants import EVERYONE
from charmstore.models.identifiers import Channel
from tests.fixtures.auth import (
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    agreed_to,
    discharge_all,
    groups_url,
    identified_as,
    macaroons_header,
    required_macaroon,
    TERMS_LOCATION,
)
from tests.fixtures.factories import create_test_entity

ADMIN_AUTH = (ADMIN_USERNAME, ADMIN_PASSWORD)


class TestMeta:
    async def test_public(self, api_client, services):
        await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        response = await api_client.get("~bob/wordpress/meta/id")
        assert response.status_code == 200
        assert response.json() == {
            "Id": "cs:~bob/trusty/wordpress-1",
            "User": "bob",
            "Series": "trusty",
            "Name": "wordpress",
            "Revision": 1,
        }

    async def test_promulgated_id(self, api_client, services):
        await create_test_entity(
            services,
            "~bob/trusty/wordpress-1",
            public=True,
            promulgated=True,
        )
        response = await api_client.get("trusty/wordpress/meta/id")
        assert response.status_code == 200
        assert response.json()["Id"] == "cs:trusty/wordpress-0"
        assert response.json().get("User") is None

    async def test_private_needs_discharge(
        self, api_client, services, identity_discharger
    ):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.get("~bob/wordpress/meta/id-name")
        ms = discharge_all(
            required_macaroon(response),
            identified_as(identity_discharger, "bob"),
        )
        response = await api_client.get(
            "~bob/wordpress/meta/id-name", headers=macaroons_header(ms)
        )
        assert response.status_code == 200
        assert response.json() == {"Name": "wordpress"}

    async def test_not_found(self, api_client):
        response = await api_client.get("~bob/wordpress/meta/id")
        assert response.status_code == 404

    async def test_invalid_id(self, api_client):
        response = await api_client.get("~BOB/wordpress/meta/id")
        assert response.status_code == 404

    async def test_unknown_metadata(self, api_client, services):
        await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        response = await api_client.get("~bob/wordpress/meta/bogus")
        assert response.status_code == 404
        assert response.json()["details"][0]["message"] == (
            'unknown metadata "bogus"'
        )

    async def test_put_read_only(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.put(
            "~bob/wordpress/meta/archive-size", json=1, auth=ADMIN_AUTH
        )
        assert response.status_code == 405

    async def test_extra_info(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.put(
            "~bob/wordpress/meta/extra-info",
            json={"bugs-url": "https://bugs.example.com"},
            auth=ADMIN_AUTH,
        )
        assert response.status_code == 200
        response = await api_client.get(
            "~bob/wordpress/meta/extra-info", auth=ADMIN_AUTH
        )
        assert response.json() == {"bugs-url": "https://bugs.example.com"}

    async def test_invalid_value(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.put(
            "~bob/wordpress/meta/perm/read", json="bob", auth=ADMIN_AUTH
        )
        assert response.status_code == 400


class TestPerm:
    async def test_put_and_get(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.put(
            "~bob/wordpress/meta/perm",
            json={"Read": [EVERYONE], "Write": ["bob", "alice"]},
            auth=ADMIN_AUTH,
        )
        assert response.status_code == 200
        response = await api_client.get("~bob/wordpress/meta/perm")
        assert response.status_code == 200
        assert response.json() == {
            "Read": [EVERYONE],
            "Write": ["bob", "alice"],
        }

    async def test_put_single_field(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.put(
            "~bob/wordpress/meta/perm/read",
            json=[EVERYONE],
            auth=ADMIN_AUTH,
        )
        assert response.status_code == 200
        response = await api_client.get("~bob/wordpress/meta/perm/write")
        assert response.json() == ["bob"]

    async def test_channel_acls(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        await api_client.put(
            "~bob/wordpress/meta/perm/read",
            json=[EVERYONE],
            auth=ADMIN_AUTH,
        )
        response = await api_client.get("~bob/wordpress/meta/perm/read")
        assert response.status_code == 200
        response = await api_client.get(
            "~bob/wordpress/meta/perm/read",
            params={"channel": "unpublished"},
        )
        required_macaroon(response)

    async def test_unknown_permission(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.get(
            "~bob/wordpress/meta/perm/admin", auth=ADMIN_AUTH
        )
        assert response.status_code == 404
        assert response.json()["details"][0]["message"] == (
            "unknown permission"
        )

    async def test_invalid_channel(self, api_client, services):
        await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        response = await api_client.get(
            "~bob/wordpress/meta/perm", params={"channel": "beta"}
        )
        assert response.status_code == 400


class TestPromulgate:
    async def test_admin(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.put(
            "~bob/wordpress/promulgate",
            json={"Promulgated": True},
            auth=ADMIN_AUTH,
        )
        assert response.status_code == 200
        response = await api_client.get(
            "~bob/wordpress/meta/promulgated", auth=ADMIN_AUTH
        )
        assert response.json() == {"Promulgated": True}
        response = await api_client.get(
            "~bob/wordpress/meta/perm/write", auth=ADMIN_AUTH
        )
        assert response.json() == ["charmers"]
        [entry] = await services.audit.list_for_entity(
            "cs:~bob/trusty/wordpress-1"
        )
        assert entry.user == "admin"

    async def test_needs_promulgator(
        self, api_client, services, identity_discharger, mock_aioresponse
    ):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        response = await api_client.put(
            "~bob/wordpress/promulgate", json={"Promulgated": True}
        )
        ms = discharge_all(
            required_macaroon(response),
            identified_as(identity_discharger, "bob"),
        )
        mock_aioresponse.get(groups_url("bob"), payload=[])
        response = await api_client.put(
            "~bob/wordpress/promulgate",
            json={"Promulgated": True},
            headers=macaroons_header(ms),
        )
        assert response.status_code == 401


class TestPublish:
    async def test_publish(self, api_client, services):
        await create_test_entity(
            services, "~bob/trusty/wordpress-1", channels=[]
        )
        response = await api_client.put(
            "~bob/trusty/wordpress-1/publish",
            json={"Channels": ["development", "stable"]},
            auth=ADMIN_AUTH,
        )
        assert response.status_code == 200
        assert response.json() == {
            "Id": "cs:~bob/trusty/wordpress-1",
            "PromulgatedId": None,
            "Channels": ["stable", "development"],
        }
        response = await api_client.get(
            "~bob/wordpress/meta/published", auth=ADMIN_AUTH
        )
        assert response.json() == {
            "Info": [{"Channel": "stable"}, {"Channel": "development"}]
        }

    async def test_invalid_channels(self, api_client, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        for channels in ([], ["unpublished"], ["beta"]):
            response = await api_client.put(
                "~bob/trusty/wordpress-1/publish",
                json={"Channels": channels},
            )
            assert response.status_code == 400

    async def test_needs_write_access(self, api_client, services):
        await create_test_entity(
            services, "~bob/trusty/wordpress-1", channels=[]
        )
        response = await api_client.put(
            "~bob/trusty/wordpress-1/publish",
            json={"Channels": ["stable"]},
        )
        required_macaroon(response)


class TestArchive:
    async def test_public(self, api_client, services):
        await create_test_entity(
            services,
            "~bob/trusty/wordpress-1",
            public=True,
            promulgated=True,
            content=b"zip content",
        )
        response = await api_client.get("trusty/wordpress/archive")
        assert response.status_code == 200
        assert response.content == b"zip content"
        assert response.headers["Entity-Id"] == "cs:trusty/wordpress-0"
        assert response.headers["Content-Type"] == "application/zip"

    async def test_missing_blob(self, api_client, services):
        await create_test_entity(
            services, "~bob/trusty/wordpress-1", public=True
        )
        response = await api_client.get("~bob/wordpress/archive")
        assert response.status_code == 404

    async def test_terms(
        self, api_client, services, identity_discharger, terms_discharger
    ):
        await create_test_entity(
            services,
            "~bob/trusty/wordpress-1",
            public=True,
            terms=["terms-1/1"],
            content=b"zip content",
        )
        response = await api_client.get("~bob/wordpress/archive")
        dischargers = identified_as(identity_discharger, "alice")
        dischargers[TERMS_LOCATION] = (
            terms_discharger,
            agreed_to("terms-1/1"),
        )
        ms = discharge_all(required_macaroon(response), dischargers)
        response = await api_client.get(
            "~bob/wordpress/archive", headers=macaroons_header(ms)
        )
        assert response.status_code == 200
        assert response.content == b"zip content"

    async def test_development_channel(self, api_client, services):
        entity = await create_test_entity(
            services,
            "~bob/trusty/wordpress-1",
            channels=[Channel.DEVELOPMENT],
            content=b"zip content",
        )
        await services.acls.set_acl(
            entity.resolved(), Channel.DEVELOPMENT, "read", [EVERYONE]
        )
        response = await api_client.get("~bob/wordpress/archive")
        assert response.status_code == 200
