#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from abc import ABC
from datetime import datetime
from typing import Any, Self

from sqlalchemy.ext.asyncio import AsyncConnection

from charmstore.context import Context
from charmstore.utils.date import utcnow


class CreateOrUpdateResource(dict):
    def get_values(self) -> dict[str, Any]:
        return self

    def set_value(self, key: str, value: Any) -> None:
        self[key] = value


class CreateOrUpdateResourceBuilder(ABC):  # noqa: B024
    """
    Every repository that creates rows provides a builder for them.
    """

    def __init__(self):
        self._request = CreateOrUpdateResource()

    def with_created(self, value: datetime) -> Self:
        self._request.set_value("created", value)
        return self

    def with_updated(self, value: datetime) -> Self:
        self._request.set_value("updated", value)
        return self

    def with_timestamps(self) -> Self:
        now = utcnow()
        return self.with_created(now).with_updated(now)

    def build(self) -> CreateOrUpdateResource:
        return self._request


class BaseRepository(ABC):  # noqa: B024
    def __init__(self, context: Context):
        self.context = context

    @property
    def connection(self) -> AsyncConnection:
        return self.context.get_connection()
