# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from charmstore.models.audit import AuditEntry, AuditOperation
from charmstore.models.auth import Authorization
from charmstore.models.identifiers import Channel, ResolvedIdentifier

WORDPRESS = ResolvedIdentifier(
    owner="bob",
    series="trusty",
    name="wordpress",
    revision=1,
    channel=Channel.STABLE,
)


class TestAuditEntry:
    def test_admin_user(self):
        entry = AuditEntry.build(
            Authorization(is_admin=True), AuditOperation.PUBLISH, WORDPRESS
        )
        assert entry.user == "admin"
        assert entry.entity == "cs:~bob/trusty/wordpress-1"

    def test_named_user(self):
        entry = AuditEntry.build(
            Authorization(username="bob"), AuditOperation.PUBLISH, WORDPRESS
        )
        assert entry.user == "bob"


class TestAuditService:
    async def test_log(self, services, mocker):
        logger = mocker.patch("charmstore.services.audit.logger")
        entry = AuditEntry.build(
            Authorization(username="bob"),
            AuditOperation.PUBLISH,
            WORDPRESS,
            channels=["stable"],
        )
        await services.audit.log(entry)
        [stored] = await services.audit.list_for_entity(entry.entity)
        assert stored.op == AuditOperation.PUBLISH
        assert stored.channels == ["stable"]
        logger.info.assert_called_once()
