#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from sqlalchemy import select

from charmstore.db.repositories.base import BaseRepository
from charmstore.db.tables import AuditLogTable
from charmstore.models.audit import AuditEntry


class AuditRepository(BaseRepository):
    async def create(self, entry: AuditEntry) -> None:
        stmt = AuditLogTable.insert().values(
            created=entry.time,
            user=entry.user,
            op=str(entry.op),
            entity=entry.entity,
            acl=entry.acl.model_dump() if entry.acl else None,
            promulgated=entry.promulgated,
            channels=entry.channels,
        )
        await self.connection.execute(stmt)

    async def list_for_entity(self, entity: str) -> list[AuditEntry]:
        stmt = (
            select(AuditLogTable.columns)
            .select_from(AuditLogTable)
            .where(AuditLogTable.c.entity == entity)
            .order_by(AuditLogTable.c.id)
        )
        result = await self.connection.execute(stmt)
        return [
            AuditEntry(
                time=row.created,
                user=row.user,
                op=row.op,
                entity=row.entity,
                acl=row.acl,
                promulgated=row.promulgated,
                channels=row.channels,
            )
            for row in result.all()
        ]
