# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from dataclasses import dataclass, field

from macaroonbakery import bakery
from pymacaroons import Macaroon


@dataclass(frozen=True)
class Authorization:
    """The outcome of a successful authorization.

    The zero value grants nothing: it is returned when access was allowed
    without determining who the caller is.
    """

    is_admin: bool = False
    username: str = ""


@dataclass(frozen=True)
class RequestCredentials:
    """What a request presents to be authorized."""

    # The raw value of the Authorization header, if any.
    authorization: str | None = None
    # Each item is a macaroon followed by its bound discharges.
    macaroons: list[list[Macaroon]] = field(default_factory=list)
    bakery_version: int = bakery.LATEST_VERSION
