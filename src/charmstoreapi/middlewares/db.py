# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import Request, Response
from sqlalchemy.ext.asyncio import AsyncConnection
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from charmstore.db import Database, SessionLimiter
from charmstore.exceptions.catalog import DischargeRequiredException


class TransactionMiddleware(BaseHTTPMiddleware):
    """Run a request in a transaction, handling commit/rollback.

    This makes the database connection available as
    `request.state.context.get_connection()`. The transaction is committed
    when a discharge is required, since the macaroon sent to the client was
    minted with a root key that may have been created by this request.
    """

    def __init__(self, app: ASGIApp, db: Database, limiter: SessionLimiter):
        super().__init__(app)
        self.db = db
        self.limiter = limiter

    @asynccontextmanager
    async def get_connection(self) -> AsyncIterator[AsyncConnection]:
        """Return the connection in a transaction context manager."""
        async with self.limiter.session():
            async with self.db.engine.connect() as conn:
                async with conn.begin():
                    yield conn

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        discharge_required = None
        async with self.get_connection() as conn:
            request.state.context.set_connection(conn)
            try:
                response = await call_next(request)
            except DischargeRequiredException as e:
                discharge_required = e
        if discharge_required is not None:
            raise discharge_required
        return response
