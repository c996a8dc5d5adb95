# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from pydantic import Field

from charmstoreapi.api.models.base import StoreModel


class PromulgateRequest(StoreModel):
    promulgated: bool


class PublishRequest(StoreModel):
    channels: list[str] = Field(default_factory=list)


class PermRequest(StoreModel):
    read: list[str] = Field(default_factory=list)
    write: list[str] = Field(default_factory=list)
