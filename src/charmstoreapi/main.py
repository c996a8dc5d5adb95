# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
import structlog
import uvicorn

from charmstore.blobstore import LocalBlobStore
from charmstore.context import ContextPool
from charmstore.db import Database, SessionLimiter
from charmstore.logging.configure import (
    config_uvicorn_logging,
    configure_logging,
)
from charmstore.services import CacheForServices
from charmstoreapi.api.handlers import APIv5
from charmstoreapi.constants import API_PREFIX
from charmstoreapi.middlewares.context import ContextMiddleware
from charmstoreapi.middlewares.db import TransactionMiddleware
from charmstoreapi.middlewares.exceptions import (
    ExceptionHandlers,
    ExceptionMiddleware,
)
from charmstoreapi.middlewares.services import ServicesMiddleware
from charmstoreapi.settings import Config, read_config

logger = structlog.getLogger()


async def prepare_app(
    config: Config,
    transaction_middleware_class: type = TransactionMiddleware,
    # In the tests the database is created in the fixture, so we need to
    # inject it here as a parameter.
    db: Database | None = None,
    app_title: str = "CharmStore",
    app_name: str = "charmstore",
) -> FastAPI:
    """Create the FastAPI application."""
    if db is None:
        db = Database(config.db, echo=config.debug_queries)

    services_cache = CacheForServices()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await services_cache.close()

    app = FastAPI(
        title=app_title,
        name=app_name,
        openapi_url=f"{API_PREFIX}/openapi.json",
        docs_url=f"{API_PREFIX}/docs",
        lifespan=lifespan,
    )

    # The order here is important: the exception middleware must be the
    # first one being executed (i.e. it must be the last middleware added
    # here), right after the one providing the context.
    app.add_middleware(
        ServicesMiddleware,
        cache=services_cache,
        auth_config=config.auth,
        blobstore=LocalBlobStore(config.blob_dir),
    )
    app.add_middleware(
        transaction_middleware_class,
        db=db,
        limiter=SessionLimiter(config.max_sessions),
    )
    app.add_middleware(ExceptionMiddleware)
    app.add_middleware(ContextMiddleware, pool=ContextPool())

    # Add exception handlers for exceptions that can be thrown outside the
    # middlewares.
    app.add_exception_handler(
        RequestValidationError, ExceptionHandlers.validation_exception_handler
    )

    return app


async def create_app(
    config: Config,
    transaction_middleware_class: type = TransactionMiddleware,
    db: Database | None = None,
) -> FastAPI:
    app = await prepare_app(config, transaction_middleware_class, db)
    APIv5.register(app.router)
    return app


def run(app_config: Config | None = None):
    loop = asyncio.new_event_loop()

    if app_config is None:
        app_config = loop.run_until_complete(read_config())

    configure_logging(
        level=logging.DEBUG if app_config.debug else logging.INFO,
        query_level=(
            logging.DEBUG if app_config.debug_queries else logging.WARNING
        ),
    )
    config_uvicorn_logging(
        logging.DEBUG if app_config.debug_http else logging.INFO
    )

    app = loop.run_until_complete(create_app(config=app_config))
    server_config = uvicorn.Config(
        app,
        loop="asyncio",
        proxy_headers=True,
        host=app_config.server.host,
        port=app_config.server.port,
        uds=app_config.server.socket_path,
        # We configure the logging OUTSIDE the library in order to use our
        # custom json formatter.
        log_config=None,
    )
    server = uvicorn.Server(server_config)
    logger.info(
        "Starting the charm store",
        host=app_config.server.host,
        port=app_config.server.port,
        socket_path=app_config.server.socket_path,
    )
    loop.run_until_complete(server.serve())
