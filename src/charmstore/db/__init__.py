#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from contextlib import asynccontextmanager
from dataclasses import dataclass
import json
from typing import AsyncIterator

from pydantic_core import to_jsonable_python
from sqlalchemy import URL
from sqlalchemy.ext.asyncio import create_async_engine

from charmstore.exceptions.catalog import ServiceUnavailableException
from charmstore.exceptions.constants import TOO_MANY_SESSIONS_VIOLATION_TYPE

POSTGRES_DRIVER = "postgresql+asyncpg"


@dataclass
class DatabaseConfig:
    name: str
    host: str | None = None
    username: str | None = None
    password: str | None = None
    port: int | None = None
    driver: str = POSTGRES_DRIVER

    @property
    def dsn(self) -> URL:
        return URL.create(
            self.driver,
            host=self.host,
            port=self.port,
            database=self.name,
            username=self.username,
            password=self.password,
        )


def custom_json_serializer(*args, **kwargs):
    return json.dumps(*args, default=to_jsonable_python, **kwargs)


class Database:
    def __init__(self, config: DatabaseConfig, echo: bool = False):
        self.config = config
        engine_options = {}
        if config.driver.startswith("postgresql"):
            engine_options = {
                "isolation_level": "REPEATABLE READ",
                "pool_size": 3,
            }
        self.engine = create_async_engine(
            config.dsn,
            echo=echo,
            # Custom json serializer to handle pydantic models
            json_serializer=custom_json_serializer,
            **engine_options,
        )


class SessionLimiter:
    """Bounded pool of storage sessions.

    When every session is in use, acquiring another one fails straight away
    instead of queueing the request.
    """

    def __init__(self, max_sessions: int):
        self.max_sessions = max_sessions
        self._in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    def acquire(self) -> None:
        if self._in_use >= self.max_sessions:
            raise ServiceUnavailableException.with_reason(
                TOO_MANY_SESSIONS_VIOLATION_TYPE, "too many sessions"
            )
        self._in_use += 1

    def release(self) -> None:
        if self._in_use > 0:
            self._in_use -= 1

    @asynccontextmanager
    async def session(self) -> AsyncIterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()
