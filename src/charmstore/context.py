#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

import time
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncConnection


class Context:
    """Request scoped state shared by the services.

    Contexts are recycled through a ContextPool: every field must be cleared
    by `reset` and assigned again by `begin` before the context is reused.
    """

    def __init__(
        self,
        context_id: str | None = None,
        connection: AsyncConnection | None = None,
    ):
        self.context_id: str | None = None
        self._start_timestamp: float = 0.0
        self._connection: AsyncConnection | None = None
        self.begin(context_id)
        self._connection = connection

    def begin(self, context_id: str | None = None) -> None:
        self.context_id = context_id or self._generate_context_id()
        self._start_timestamp = time.time()

    def reset(self) -> None:
        self.context_id = None
        self._start_timestamp = 0.0
        self._connection = None

    def set_connection(self, connection: AsyncConnection):
        self._connection = connection

    def get_connection(self) -> AsyncConnection:
        if not self._connection:
            raise RuntimeError(
                "There is no database connection in this context. This is "
                "likely to be a programming error."
            )
        return self._connection

    def get_elapsed_time_seconds(self) -> float:
        return time.time() - self._start_timestamp

    def _generate_context_id(self) -> str:
        return str(uuid4())


class ContextPool:
    """Free list of Context objects.

    Released contexts are reset before being stored so that nothing from a
    previous request can leak into the next one.
    """

    def __init__(self, max_free: int = 64):
        self.max_free = max_free
        self._free: list[Context] = []

    def acquire(self, context_id: str | None = None) -> Context:
        if self._free:
            context = self._free.pop()
            context.begin(context_id)
            return context
        return Context(context_id=context_id)

    def release(self, context: Context) -> None:
        context.reset()
        if len(self._free) < self.max_free:
            self._free.append(context)

    def __len__(self) -> int:
        return len(self._free)
