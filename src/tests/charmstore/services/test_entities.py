# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

import pytest

from charmstore.constants import PROMULGATORS_GROUP
from charmstore.exceptions.catalog import BadRequestException
from charmstore.models.audit import AuditOperation
from charmstore.models.auth import Authorization
from charmstore.models.identifiers import Channel, PackageIdentifier
from charmstore.services.entities import check_publishable_channels
from tests.fixtures.factories import create_test_entity

ADMIN = Authorization(is_admin=True)


class TestCheckPublishableChannels:
    def test_valid(self):
        check_publishable_channels([Channel.STABLE, Channel.DEVELOPMENT])

    def test_no_channels(self):
        with pytest.raises(BadRequestException) as exc_info:
            check_publishable_channels([])
        assert exc_info.value.reason == "no channels provided"

    def test_unpublished(self):
        with pytest.raises(BadRequestException) as exc_info:
            check_publishable_channels([Channel.UNPUBLISHED])
        assert exc_info.value.reason == (
            "cannot publish to unpublished channel"
        )


class TestEntitiesService:
    async def test_add_entity(self, services):
        entity = await create_test_entity(
            services,
            "~bob/trusty/wordpress-1",
            channels=[Channel.DEVELOPMENT],
            terms=["terms-1/1"],
        )
        assert entity.channels() == [
            Channel.DEVELOPMENT,
            Channel.UNPUBLISHED,
        ]
        assert entity.terms == ["terms-1/1"]
        assert entity.promulgated_revision is None
        assert entity.upload_time is not None

    async def test_add_entity_partial_url(self, services):
        with pytest.raises(ValueError):
            await services.entities.add_entity(
                PackageIdentifier.parse("~bob/wordpress")
            )

    async def test_add_to_promulgated_base_entity(self, services):
        await create_test_entity(
            services, "~bob/trusty/wordpress-1", promulgated=True
        )
        entity = await create_test_entity(services, "~bob/trusty/wordpress-2")
        assert entity.promulgated_revision == 1

    async def test_set_promulgated(self, services):
        await create_test_entity(services, "~bob/trusty/wordpress-1")
        newest = await create_test_entity(
            services, "~bob/trusty/wordpress-2"
        )
        base_entity = await services.entities.set_promulgated(
            newest.resolved(), True
        )
        assert base_entity.promulgated
        entity = await services.entities.get_entity(newest.resolved())
        assert entity.promulgated_revision == 0

    async def test_promulgating_replaces_homonym(self, services):
        alice = await create_test_entity(
            services, "~alice/trusty/wordpress-1", promulgated=True
        )
        bob = await create_test_entity(services, "~bob/trusty/wordpress-1")
        await services.entities.set_promulgated(bob.resolved(), True)
        alice_base = await services.entities.get_base_entity(
            alice.resolved()
        )
        assert not alice_base.promulgated
        entity = await services.entities.get_entity(bob.resolved())
        assert entity.promulgated_revision == 1

    async def test_promulgate_restricts_write(self, services):
        entity = await create_test_entity(services, "~bob/trusty/wordpress-1")
        base_entity = await services.entities.promulgate(
            ADMIN, entity.resolved(), True
        )
        assert base_entity.promulgated
        assert base_entity.acl(Channel.STABLE).write == [PROMULGATORS_GROUP]
        assert base_entity.acl(Channel.DEVELOPMENT).write == ["bob"]
        [entry] = await services.audit.list_for_entity(
            "cs:~bob/trusty/wordpress-1"
        )
        assert entry.op == AuditOperation.PROMULGATE
        assert entry.user == "admin"

    async def test_unpromulgate(self, services):
        entity = await create_test_entity(
            services, "~bob/trusty/wordpress-1", promulgated=True
        )
        base_entity = await services.entities.promulgate(
            Authorization(username="charmer"), entity.resolved(), False
        )
        assert not base_entity.promulgated
        [entry] = await services.audit.list_for_entity(
            "cs:~bob/trusty/wordpress-1"
        )
        assert entry.op == AuditOperation.UNPROMULGATE
        assert entry.user == "charmer"

    async def test_set_perm(self, services):
        entity = await create_test_entity(services, "~bob/trusty/wordpress-1")
        base_entity = await services.entities.set_perm(
            Authorization(username="bob"),
            entity.resolved(),
            {"read": ["everyone"], "write": ["bob", "alice"]},
        )
        acl = base_entity.acl(Channel.STABLE)
        assert acl.read == ["everyone"]
        assert acl.write == ["bob", "alice"]
        assert base_entity.public
        entries = await services.audit.list_for_entity(
            "cs:~bob/trusty/wordpress-1"
        )
        assert [entry.op for entry in entries] == [
            AuditOperation.SET_PERM,
            AuditOperation.SET_PERM,
        ]

    async def test_publish(self, services):
        entity = await create_test_entity(
            services, "~bob/trusty/wordpress-1", channels=[]
        )
        updated = await services.entities.publish(
            ADMIN, entity.resolved(), [Channel.DEVELOPMENT]
        )
        assert updated.channels() == [
            Channel.DEVELOPMENT,
            Channel.UNPUBLISHED,
        ]
        updated = await services.entities.publish(
            ADMIN, entity.resolved(), [Channel.STABLE]
        )
        assert updated.channels() == list(
            (Channel.STABLE, Channel.DEVELOPMENT, Channel.UNPUBLISHED)
        )
        entries = await services.audit.list_for_entity(
            "cs:~bob/trusty/wordpress-1"
        )
        assert [entry.channels for entry in entries] == [
            ["development"],
            ["stable"],
        ]

    async def test_publish_invalid_channels(self, services):
        entity = await create_test_entity(services, "~bob/trusty/wordpress-1")
        with pytest.raises(BadRequestException):
            await services.entities.publish(
                ADMIN, entity.resolved(), [Channel.UNPUBLISHED]
            )

    async def test_update_extra_info(self, services):
        entity = await create_test_entity(services, "~bob/trusty/wordpress-1")
        await services.entities.update_extra_info(
            entity.resolved(), {"a": 1, "b": "two"}
        )
        updated = await services.entities.update_extra_info(
            entity.resolved(), {"a": None, "c": [3]}
        )
        assert updated.extra_info == {"b": "two", "c": [3]}
