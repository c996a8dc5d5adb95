# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

import pytest

from tests.fixtures.app import (
    api_app,
    api_client,
    transaction_middleware_class,
)
from tests.fixtures.auth import (
    auth_config,
    identity_discharger,
    identity_key,
    mock_aioresponse,
    terms_discharger,
    terms_key,
)
from tests.fixtures.db import blobstore, db, db_connection, services

__all__ = [
    "api_app",
    "api_client",
    "auth_config",
    "blobstore",
    "db",
    "db_connection",
    "identity_discharger",
    "identity_key",
    "mock_aioresponse",
    "services",
    "terms_discharger",
    "terms_key",
    "transaction_middleware_class",
]


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--sqlalchemy-debug",
        help="print out SQLALchemy queries",
        action="store_true",
        default=False,
    )
