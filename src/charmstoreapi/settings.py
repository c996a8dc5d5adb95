# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

import aiofiles
from macaroonbakery import bakery
import structlog
import yaml

from charmstore.auth.config import AuthConfig, build_locator
from charmstore.db import DatabaseConfig, POSTGRES_DRIVER

logger = structlog.getLogger()

CONFIG_PATH_ENV = "CHARMSTORE_CONFIG"
DEFAULT_CONFIG_PATH = "/etc/charmstore/charmd.yaml"
DEFAULT_BLOB_DIR = "/var/lib/charmstore/blobs"
DEFAULT_MAX_SESSIONS = 100

REQUIRED_KEYS = ("database", "auth-username", "auth-password")


class ConfigurationError(Exception):
    """The configuration file cannot be used."""


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    socket_path: str | None = None


@dataclass
class Config:
    db: DatabaseConfig
    auth: AuthConfig
    server: ServerConfig
    blob_dir: Path
    max_sessions: int = DEFAULT_MAX_SESSIONS
    debug: bool = False
    debug_queries: bool = False
    debug_http: bool = False


def config_path() -> Path:
    """Return the path of the configuration file."""
    return Path(os.getenv(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))


def _database_config(data: Any) -> DatabaseConfig:
    if not isinstance(data, dict) or not data.get("name"):
        raise ConfigurationError("database must be a mapping with a name")
    return DatabaseConfig(
        name=str(data["name"]),
        host=data.get("host"),
        port=int(data["port"]) if data.get("port") else None,
        username=data.get("username"),
        password=data.get("password"),
        driver=data.get("driver", POSTGRES_DRIVER),
    )


def _server_config(data: dict[str, Any]) -> ServerConfig:
    server = ServerConfig(socket_path=data.get("socket-path"))
    if addr := data.get("api-addr"):
        host, sep, port = str(addr).rpartition(":")
        if not sep or not port.isdigit():
            raise ConfigurationError(f"invalid api-addr {addr!r}")
        server.host = host or server.host
        server.port = int(port)
    return server


def _public_key(data: dict[str, Any], name: str) -> bakery.PublicKey:
    try:
        return bakery.PublicKey.deserialize(data[name])
    except Exception as e:
        raise ConfigurationError(f"invalid {name}: {e}") from None


def _private_key(data: dict[str, Any], name: str) -> bakery.PrivateKey:
    try:
        return bakery.PrivateKey.deserialize(data[name])
    except Exception as e:
        raise ConfigurationError(f"invalid {name}: {e}") from None


def _auth_config(data: dict[str, Any]) -> AuthConfig:
    public_keys = {}
    for location_key, public_key in (
        ("identity-location", "identity-public-key"),
        ("terms-location", "terms-public-key"),
    ):
        if not data.get(location_key):
            continue
        if not data.get(public_key):
            raise ConfigurationError(
                f"{location_key} requires {public_key} to be set"
            )
        public_keys[data[location_key]] = _public_key(data, public_key)

    if data.get("private-key"):
        key = _private_key(data, "private-key")
    else:
        logger.warning(
            "No private-key configured, macaroons will not survive a restart"
        )
        key = bakery.generate_key()

    agent_key = None
    if data.get("agent-key"):
        agent_key = _private_key(data, "agent-key")

    auth = AuthConfig(
        key=key,
        locator=build_locator(public_keys),
        admin_username=str(data["auth-username"]),
        admin_password=str(data["auth-password"]),
        identity_location=data.get("identity-location"),
        identity_api_url=data.get("identity-api-url"),
        terms_location=data.get("terms-location"),
        agent_username=data.get("agent-username"),
        agent_key=agent_key,
    )
    if location := data.get("location"):
        auth.location = location
    return auth


def parse_config(data: Any) -> Config:
    """Build the configuration from the parsed YAML document.

    Raises ConfigurationError naming every missing required key.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("configuration must be a mapping")
    missing = [key for key in REQUIRED_KEYS if not data.get(key)]
    if missing:
        raise ConfigurationError(
            f"missing fields {', '.join(missing)} in config file"
        )
    username = str(data["auth-username"])
    if ":" in username:
        raise ConfigurationError(
            f"invalid user name {username!r} (contains ':')"
        )

    debug = bool(data.get("debug", False))
    return Config(
        db=_database_config(data["database"]),
        auth=_auth_config(data),
        server=_server_config(data),
        blob_dir=Path(data.get("blob-dir", DEFAULT_BLOB_DIR)),
        max_sessions=int(data.get("max-sessions", DEFAULT_MAX_SESSIONS)),
        debug=debug,
        debug_queries=debug or bool(data.get("debug-queries", False)),
        debug_http=debug or bool(data.get("debug-http", False)),
    )


async def read_config(path: Path | None = None) -> Config:
    if path is None:
        path = config_path()
    try:
        async with aiofiles.open(path, "r") as f:
            content = await f.read()
    except OSError as e:
        raise ConfigurationError(
            f"cannot open config file {path}: {e}"
        ) from None
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"cannot parse {path}: {e}") from None
    return parse_config(data)
