# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from datetime import datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel

from charmstore.constants import ADMIN_AUDIT_USER
from charmstore.models.auth import Authorization
from charmstore.models.entities import ACL
from charmstore.models.identifiers import ResolvedIdentifier
from charmstore.utils.date import utcnow


class AuditOperation(StrEnum):
    SET_PERM = "set-perm"
    PROMULGATE = "promulgate"
    UNPROMULGATE = "unpromulgate"
    PUBLISH = "publish"


class AuditEntry(BaseModel):
    time: datetime
    user: str
    op: AuditOperation
    entity: str
    acl: ACL | None = None
    promulgated: bool | None = None
    channels: list[str] | None = None

    @classmethod
    def build(
        cls,
        authorization: Authorization,
        op: AuditOperation,
        entity: ResolvedIdentifier,
        **kwargs,
    ) -> Self:
        user = authorization.username
        if authorization.is_admin and not user:
            user = ADMIN_AUDIT_USER
        return cls(
            time=utcnow(),
            user=user,
            op=op,
            entity=entity.user_owned_url(),
            **kwargs,
        )
