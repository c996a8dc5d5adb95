# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from datetime import datetime
from typing import Optional

from charmstoreapi.api.models.base import StoreModel


class WhoAmIResponse(StoreModel):
    user: str
    groups: list[str]


class PublishResponse(StoreModel):
    id: str
    promulgated_id: Optional[str] = None
    channels: list[str]


class IdResponse(StoreModel):
    id: str
    user: Optional[str] = None
    series: str
    name: str
    revision: int


class IdNameResponse(StoreModel):
    name: str


class IdUserResponse(StoreModel):
    user: Optional[str] = None


class IdRevisionResponse(StoreModel):
    revision: int


class IdSeriesResponse(StoreModel):
    series: str


class ArchiveSizeResponse(StoreModel):
    size: Optional[int] = None


class ArchiveUploadTimeResponse(StoreModel):
    upload_time: Optional[datetime] = None


class PublishedInfo(StoreModel):
    channel: str


class PublishedResponse(StoreModel):
    info: list[PublishedInfo]


class PromulgatedResponse(StoreModel):
    promulgated: bool


class PermResponse(StoreModel):
    read: list[str]
    write: list[str]
