#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from datetime import datetime

from sqlalchemy import and_, delete, desc, select
from sqlalchemy.sql.operators import eq, ge, gt, le

from charmstore.db.repositories.base import BaseRepository
from charmstore.db.tables import RootKeyTable
from charmstore.models.rootkeys import RootKey


class RootKeysRepository(BaseRepository):
    async def find_best_key(
        self, created_after: datetime, expires_after: datetime
    ) -> RootKey | None:
        """Return the newest key usable for minting, if any."""
        stmt = (
            select(RootKeyTable.columns)
            .select_from(RootKeyTable)
            .where(
                and_(
                    ge(RootKeyTable.c.created, created_after),
                    ge(RootKeyTable.c.expiration, expires_after),
                )
            )
            .order_by(desc(RootKeyTable.c.created))
            .limit(1)
        )
        row = (await self.connection.execute(stmt)).first()
        if not row:
            return None
        return RootKey(**row._asdict())

    async def find_by_id(self, id: int, now: datetime) -> RootKey | None:
        stmt = (
            select(RootKeyTable.columns)
            .select_from(RootKeyTable)
            .where(
                and_(
                    eq(RootKeyTable.c.id, id),
                    gt(RootKeyTable.c.expiration, now),
                )
            )
        )
        row = (await self.connection.execute(stmt)).one_or_none()
        if not row:
            return None
        return RootKey(**row._asdict())

    async def find_valid(self, now: datetime) -> list[RootKey]:
        stmt = (
            select(RootKeyTable.columns)
            .select_from(RootKeyTable)
            .where(gt(RootKeyTable.c.expiration, now))
            .order_by(desc(RootKeyTable.c.created))
        )
        result = await self.connection.execute(stmt)
        return [RootKey(**row._asdict()) for row in result.all()]

    async def create(
        self, created: datetime, expiration: datetime, material: bytes
    ) -> RootKey:
        stmt = (
            RootKeyTable.insert()
            .returning(RootKeyTable.columns)
            .values(created=created, expiration=expiration, material=material)
        )
        row = (await self.connection.execute(stmt)).one()
        return RootKey(**row._asdict())

    async def delete_expired(self, now: datetime) -> None:
        stmt = delete(RootKeyTable).where(le(RootKeyTable.c.expiration, now))
        await self.connection.execute(stmt)
