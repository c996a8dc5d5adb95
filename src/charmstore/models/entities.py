# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from charmstore.constants import EVERYONE
from charmstore.models.identifiers import (
    Channel,
    CHANNEL_PREFERENCE,
    ResolvedIdentifier,
)


class ACL(BaseModel):
    read: list[str] = Field(default_factory=list)
    write: list[str] = Field(default_factory=list)

    def for_write(self, write: bool) -> list[str]:
        return self.write if write else self.read


class BaseEntity(BaseModel):
    """The owner+name grouping of all the revisions of a package."""

    id: int
    user: str
    name: str
    promulgated: bool = False
    public: bool = False
    acls: dict[Channel, ACL] = Field(default_factory=dict)

    def acl(self, channel: Channel) -> ACL:
        return self.acls.get(channel, ACL())


def default_acls(owner: str) -> dict[Channel, ACL]:
    return {
        channel: ACL(read=[owner], write=[owner]) for channel in Channel
    }


def is_public(acl: ACL) -> bool:
    return EVERYONE in acl.read


class Entity(BaseModel):
    """A single revision of a charm or bundle for a given series."""

    id: int
    base_entity_id: int
    user: str
    name: str
    series: str
    revision: int
    promulgated_revision: int | None = None
    development: bool = False
    stable: bool = False
    terms: list[str] = Field(default_factory=list)
    blob_name: str | None = None
    size: int | None = None
    upload_time: datetime | None = None
    extra_info: dict[str, Any] = Field(default_factory=dict)

    def occupies(self, channel: Channel) -> bool:
        """Every entity is unpublished; publishing adds the other channels."""
        match channel:
            case Channel.STABLE:
                return self.stable
            case Channel.DEVELOPMENT:
                return self.development
            case _:
                return True

    def channels(self) -> list[Channel]:
        return [
            channel for channel in CHANNEL_PREFERENCE if self.occupies(channel)
        ]

    @property
    def current_channel(self) -> Channel:
        return self.channels()[0]

    def resolved(self, channel: Channel | None = None) -> ResolvedIdentifier:
        return ResolvedIdentifier(
            owner=self.user,
            series=self.series,
            name=self.name,
            revision=self.revision,
            promulgated_revision=self.promulgated_revision,
            channel=channel or self.current_channel,
        )
