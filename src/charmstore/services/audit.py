#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

import structlog

from charmstore.context import Context
from charmstore.db.repositories.audit import AuditRepository
from charmstore.models.audit import AuditEntry
from charmstore.services.base import Service

logger = structlog.getLogger(__name__)


class AuditService(Service):
    def __init__(self, context: Context, audit_repository: AuditRepository):
        super().__init__(context)
        self.audit_repository = audit_repository

    async def log(self, entry: AuditEntry) -> None:
        await self.audit_repository.create(entry)
        logger.info(
            "audit",
            user=entry.user,
            op=str(entry.op),
            entity=entry.entity,
            acl=entry.acl.model_dump() if entry.acl else None,
            promulgated=entry.promulgated,
            channels=entry.channels,
        )

    async def list_for_entity(self, entity: str) -> list[AuditEntry]:
        """Return the entries about a user owned URL, oldest first."""
        return await self.audit_repository.list_for_entity(entity)
