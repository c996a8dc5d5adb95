#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from datetime import datetime
from typing import Any, Iterable, Self

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql.operators import eq

from charmstore.db.repositories.base import (
    BaseRepository,
    CreateOrUpdateResource,
    CreateOrUpdateResourceBuilder,
)
from charmstore.db.tables import EntityTable
from charmstore.exceptions.catalog import BadRequestException
from charmstore.exceptions.constants import INVALID_ARGUMENT_VIOLATION_TYPE
from charmstore.models.entities import Entity
from charmstore.models.identifiers import PackageIdentifier, ResolvedIdentifier
from charmstore.utils.date import utcnow


class EntityResourceBuilder(CreateOrUpdateResourceBuilder):
    def with_base_entity_id(self, value: int) -> Self:
        self._request.set_value(EntityTable.c.base_entity_id.name, value)
        return self

    def with_url(
        self, user: str, series: str, name: str, revision: int
    ) -> Self:
        self._request.set_value(EntityTable.c.user.name, user)
        self._request.set_value(EntityTable.c.series.name, series)
        self._request.set_value(EntityTable.c.name.name, name)
        self._request.set_value(EntityTable.c.revision.name, revision)
        return self

    def with_promulgated_revision(self, value: int | None) -> Self:
        self._request.set_value(
            EntityTable.c.promulgated_revision.name, value
        )
        return self

    def with_terms(self, value: list[str]) -> Self:
        self._request.set_value(EntityTable.c.terms.name, value)
        return self

    def with_blob(
        self, blob_name: str | None, size: int | None, upload_time: datetime
    ) -> Self:
        self._request.set_value(EntityTable.c.blob_name.name, blob_name)
        self._request.set_value(EntityTable.c.size.name, size)
        self._request.set_value(EntityTable.c.upload_time.name, upload_time)
        return self

    def with_extra_info(self, value: dict[str, Any]) -> Self:
        self._request.set_value(EntityTable.c.extra_info.name, value)
        return self

    def with_channels(self, development: bool, stable: bool) -> Self:
        self._request.set_value(EntityTable.c.development.name, development)
        self._request.set_value(EntityTable.c.stable.name, stable)
        return self


class EntitiesRepository(BaseRepository):
    async def find_candidates(
        self, identifier: PackageIdentifier
    ) -> list[Entity]:
        """Return every entity the identifier can resolve to.

        With no owner only promulgated entities are considered and the
        revision, if any, is matched against the promulgated revision.
        """
        clauses = [eq(EntityTable.c.name, identifier.name)]
        if identifier.owner:
            clauses.append(eq(EntityTable.c.user, identifier.owner))
        else:
            clauses.append(EntityTable.c.promulgated_revision.is_not(None))
        if identifier.series:
            clauses.append(eq(EntityTable.c.series, identifier.series))
        if identifier.revision is not None:
            revision_column = (
                EntityTable.c.revision
                if identifier.owner
                else EntityTable.c.promulgated_revision
            )
            clauses.append(eq(revision_column, identifier.revision))
        stmt = (
            select(EntityTable.columns)
            .select_from(EntityTable)
            .where(and_(*clauses))
        )
        result = await self.connection.execute(stmt)
        return [Entity(**row._asdict()) for row in result.all()]

    async def find_by_names(self, names: Iterable[str]) -> list[Entity]:
        stmt = (
            select(EntityTable.columns)
            .select_from(EntityTable)
            .where(EntityTable.c.name.in_(sorted(set(names))))
        )
        result = await self.connection.execute(stmt)
        return [Entity(**row._asdict()) for row in result.all()]

    async def find_by_resolved(
        self, resolved: ResolvedIdentifier
    ) -> Entity | None:
        stmt = (
            select(EntityTable.columns)
            .select_from(EntityTable)
            .where(
                and_(
                    eq(EntityTable.c.user, resolved.owner),
                    eq(EntityTable.c.series, resolved.series),
                    eq(EntityTable.c.name, resolved.name),
                    eq(EntityTable.c.revision, resolved.revision),
                )
            )
        )
        row = (await self.connection.execute(stmt)).one_or_none()
        if not row:
            return None
        return Entity(**row._asdict())

    async def find_by_base_entity(self, base_entity_id: int) -> list[Entity]:
        stmt = (
            select(EntityTable.columns)
            .select_from(EntityTable)
            .where(eq(EntityTable.c.base_entity_id, base_entity_id))
        )
        result = await self.connection.execute(stmt)
        return [Entity(**row._asdict()) for row in result.all()]

    async def max_promulgated_revision(
        self, name: str, series: str
    ) -> int | None:
        stmt = select(func.max(EntityTable.c.promulgated_revision)).where(
            and_(
                eq(EntityTable.c.name, name),
                eq(EntityTable.c.series, series),
            )
        )
        return (await self.connection.execute(stmt)).scalar()

    async def create(self, resource: CreateOrUpdateResource) -> Entity:
        values = {
            EntityTable.c.terms.name: [],
            EntityTable.c.extra_info.name: {},
            EntityTable.c.development.name: False,
            EntityTable.c.stable.name: False,
        }
        values.update(resource.get_values())
        stmt = (
            EntityTable.insert()
            .returning(EntityTable.columns)
            .values(**values)
        )
        try:
            row = (await self.connection.execute(stmt)).one()
        except IntegrityError:
            raise BadRequestException.with_reason(
                INVALID_ARGUMENT_VIOLATION_TYPE, "entity already exists"
            ) from None
        return Entity(**row._asdict())

    async def update(
        self, id: int, resource: CreateOrUpdateResource
    ) -> Entity:
        values = dict(resource.get_values())
        values.setdefault(EntityTable.c.updated.name, utcnow())
        stmt = (
            update(EntityTable)
            .where(eq(EntityTable.c.id, id))
            .returning(EntityTable.columns)
            .values(**values)
        )
        row = (await self.connection.execute(stmt)).one()
        return Entity(**row._asdict())
