#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    LargeBinary,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

METADATA = MetaData()

# SQLite only autoincrements INTEGER primary keys.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")
JSON_TYPE = JSON().with_variant(JSONB, "postgresql")

# Keep them in alphabetical order!

AuditLogTable = Table(
    "audit_log",
    METADATA,
    Column("id", ID_TYPE, primary_key=True),
    Column("created", DateTime(timezone=True), nullable=False),
    Column("user", String(255), nullable=False),
    Column("op", String(32), nullable=False),
    Column("entity", String(512), nullable=False),
    Column("acl", JSON_TYPE, nullable=True),
    Column("promulgated", Boolean, nullable=True),
    Column("channels", JSON_TYPE, nullable=True),
)

BaseEntityTable = Table(
    "base_entity",
    METADATA,
    Column("id", ID_TYPE, primary_key=True),
    Column("created", DateTime(timezone=True), nullable=False),
    Column("updated", DateTime(timezone=True), nullable=False),
    Column("user", String(255), nullable=False),
    Column("name", String(255), nullable=False),
    Column("promulgated", Boolean, nullable=False, default=False),
    Column("public", Boolean, nullable=False, default=False),
    UniqueConstraint("user", "name"),
)

BaseEntityACLTable = Table(
    "base_entity_acl",
    METADATA,
    Column("id", ID_TYPE, primary_key=True),
    Column(
        "base_entity_id",
        ID_TYPE,
        ForeignKey("base_entity.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("channel", String(16), nullable=False),
    Column("read", JSON_TYPE, nullable=False),
    Column("write", JSON_TYPE, nullable=False),
    UniqueConstraint("base_entity_id", "channel"),
)

EntityTable = Table(
    "entity",
    METADATA,
    Column("id", ID_TYPE, primary_key=True),
    Column("created", DateTime(timezone=True), nullable=False),
    Column("updated", DateTime(timezone=True), nullable=False),
    Column(
        "base_entity_id",
        ID_TYPE,
        ForeignKey("base_entity.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user", String(255), nullable=False),
    Column("name", String(255), nullable=False),
    Column("series", String(64), nullable=False),
    Column("revision", Integer, nullable=False),
    Column("promulgated_revision", Integer, nullable=True),
    Column("development", Boolean, nullable=False, default=False),
    Column("stable", Boolean, nullable=False, default=False),
    Column("terms", JSON_TYPE, nullable=False),
    Column("blob_name", String(255), nullable=True),
    Column("size", BigInteger, nullable=True),
    Column("upload_time", DateTime(timezone=True), nullable=True),
    Column("extra_info", JSON_TYPE, nullable=False),
    UniqueConstraint("user", "series", "name", "revision"),
)

RootKeyTable = Table(
    "rootkey",
    METADATA,
    Column("id", ID_TYPE, primary_key=True),
    Column("created", DateTime(timezone=True), nullable=False),
    Column("expiration", DateTime(timezone=True), nullable=False),
    Column("material", LargeBinary, nullable=False),
)
