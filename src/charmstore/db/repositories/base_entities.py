#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Literal

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql.operators import eq, ne

from charmstore.db.repositories.base import BaseRepository
from charmstore.db.tables import BaseEntityACLTable, BaseEntityTable
from charmstore.exceptions.catalog import BadRequestException
from charmstore.exceptions.constants import INVALID_ARGUMENT_VIOLATION_TYPE
from charmstore.models.entities import ACL, BaseEntity, default_acls
from charmstore.models.identifiers import Channel
from charmstore.utils.date import utcnow


class BaseEntitiesRepository(BaseRepository):
    async def find_by_id(self, id: int) -> BaseEntity | None:
        return await self._find_one(eq(BaseEntityTable.c.id, id))

    async def find_by_owner_name(
        self, user: str, name: str
    ) -> BaseEntity | None:
        return await self._find_one(
            and_(
                eq(BaseEntityTable.c.user, user),
                eq(BaseEntityTable.c.name, name),
            )
        )

    async def find_promulgated(self, name: str) -> BaseEntity | None:
        return await self._find_one(
            and_(
                eq(BaseEntityTable.c.name, name),
                eq(BaseEntityTable.c.promulgated, True),
            )
        )

    async def create(self, user: str, name: str) -> BaseEntity:
        """Create a base entity readable and writable only by its owner."""
        now = utcnow()
        stmt = (
            BaseEntityTable.insert()
            .returning(BaseEntityTable.c.id)
            .values(
                created=now,
                updated=now,
                user=user,
                name=name,
                promulgated=False,
                public=False,
            )
        )
        try:
            base_entity_id = (await self.connection.execute(stmt)).scalar()
        except IntegrityError:
            raise BadRequestException.with_reason(
                INVALID_ARGUMENT_VIOLATION_TYPE, "base entity already exists"
            ) from None
        acls = default_acls(user)
        await self.connection.execute(
            BaseEntityACLTable.insert(),
            [
                {
                    "base_entity_id": base_entity_id,
                    "channel": str(channel),
                    "read": acl.read,
                    "write": acl.write,
                }
                for channel, acl in acls.items()
            ],
        )
        return BaseEntity(
            id=base_entity_id, user=user, name=name, acls=acls
        )

    async def set_promulgated(self, id: int, promulgated: bool) -> None:
        await self._update(id, promulgated=promulgated)

    async def unpromulgate_homonyms(self, id: int, name: str) -> None:
        """Unset the promulgated flag of every other base entity named so."""
        stmt = (
            update(BaseEntityTable)
            .where(
                and_(
                    eq(BaseEntityTable.c.name, name),
                    ne(BaseEntityTable.c.id, id),
                    eq(BaseEntityTable.c.promulgated, True),
                )
            )
            .values(promulgated=False, updated=utcnow())
        )
        await self.connection.execute(stmt)

    async def set_public(self, id: int, public: bool) -> None:
        await self._update(id, public=public)

    async def set_acl_field(
        self,
        id: int,
        channel: Channel,
        field: Literal["read", "write"],
        principals: list[str],
    ) -> None:
        """Replace one list of one channel, leaving the others untouched."""
        stmt = (
            update(BaseEntityACLTable)
            .where(
                and_(
                    eq(BaseEntityACLTable.c.base_entity_id, id),
                    eq(BaseEntityACLTable.c.channel, str(channel)),
                )
            )
            .values({field: list(principals)})
        )
        result = await self.connection.execute(stmt)
        if result.rowcount == 0:
            values = {"read": [], "write": []}
            values[field] = list(principals)
            await self.connection.execute(
                BaseEntityACLTable.insert().values(
                    base_entity_id=id, channel=str(channel), **values
                )
            )
        await self._update(id)

    async def _update(self, id: int, **values) -> None:
        stmt = (
            update(BaseEntityTable)
            .where(eq(BaseEntityTable.c.id, id))
            .values(updated=utcnow(), **values)
        )
        await self.connection.execute(stmt)

    async def _find_one(self, clause) -> BaseEntity | None:
        stmt = (
            select(BaseEntityTable.columns)
            .select_from(BaseEntityTable)
            .where(clause)
        )
        row = (await self.connection.execute(stmt)).one_or_none()
        if not row:
            return None
        return BaseEntity(
            id=row.id,
            user=row.user,
            name=row.name,
            promulgated=row.promulgated,
            public=row.public,
            acls=await self._get_acls(row.id),
        )

    async def _get_acls(self, id: int) -> dict[Channel, ACL]:
        stmt = (
            select(
                BaseEntityACLTable.c.channel,
                BaseEntityACLTable.c.read,
                BaseEntityACLTable.c.write,
            )
            .select_from(BaseEntityACLTable)
            .where(eq(BaseEntityACLTable.c.base_entity_id, id))
        )
        result = await self.connection.execute(stmt)
        return {
            Channel(row.channel): ACL(read=row.read, write=row.write)
            for row in result.all()
        }
