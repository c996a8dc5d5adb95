#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Iterable, Sequence

from charmstore.context import Context
from charmstore.db.repositories.entities import EntitiesRepository
from charmstore.exceptions.catalog import NotFoundException
from charmstore.exceptions.constants import UNEXISTING_ENTITY_VIOLATION_TYPE
from charmstore.models.entities import Entity
from charmstore.models.identifiers import (
    Channel,
    CHANNEL_PREFERENCE,
    PackageIdentifier,
    ResolvedIdentifier,
)
from charmstore.series import series_score
from charmstore.services.base import Service


def _matches(entity: Entity, identifier: PackageIdentifier) -> bool:
    if entity.name != identifier.name:
        return False
    if identifier.owner:
        if entity.user != identifier.owner:
            return False
    elif entity.promulgated_revision is None:
        return False
    if identifier.series and entity.series != identifier.series:
        return False
    if identifier.revision is not None:
        revision = (
            entity.revision
            if identifier.owner
            else entity.promulgated_revision
        )
        return revision == identifier.revision
    return True


def find_best_entity(
    candidates: Iterable[Entity], identifier: PackageIdentifier
) -> ResolvedIdentifier | None:
    """Pick the entity a possibly partial identifier refers to.

    Newer series win over older ones, then higher revisions over lower
    ones. An explicit channel restricts the candidates to the entities
    occupying it; otherwise the most published channel holding a candidate
    is chosen.
    """
    candidates = [e for e in candidates if _matches(e, identifier)]
    if identifier.channel is not None:
        channels: Sequence[Channel] = (identifier.channel,)
    else:
        channels = CHANNEL_PREFERENCE

    def sort_key(entity: Entity):
        revision = (
            entity.revision
            if identifier.owner
            else entity.promulgated_revision
        )
        return series_score(entity.series), revision

    for channel in channels:
        eligible = [e for e in candidates if e.occupies(channel)]
        if eligible:
            return max(eligible, key=sort_key).resolved(channel)
    return None


def not_found(identifier: PackageIdentifier | str) -> NotFoundException:
    return NotFoundException.with_reason(
        UNEXISTING_ENTITY_VIOLATION_TYPE,
        f'no matching charm or bundle for "{identifier}"',
    )


class ResolverService(Service):
    def __init__(
        self, context: Context, entities_repository: EntitiesRepository
    ):
        super().__init__(context)
        self.entities_repository = entities_repository

    async def resolve(
        self, identifier: PackageIdentifier
    ) -> ResolvedIdentifier:
        candidates = await self.entities_repository.find_candidates(
            identifier
        )
        resolved = find_best_entity(candidates, identifier)
        if resolved is None:
            raise not_found(identifier)
        return resolved

    async def resolve_many(
        self, identifiers: Sequence[PackageIdentifier]
    ) -> list[ResolvedIdentifier]:
        """Resolve several identifiers with a single prefetch query."""
        if not identifiers:
            return []
        prefetched = await self.entities_repository.find_by_names(
            identifier.name for identifier in identifiers
        )
        results = []
        for identifier in identifiers:
            resolved = find_best_entity(prefetched, identifier)
            if resolved is None:
                raise not_found(identifier)
            results.append(resolved)
        return results
