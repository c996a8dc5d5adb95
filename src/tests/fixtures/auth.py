# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

"""Keys, configuration and in-process dischargers for auth tests.

The identity and terms services are replaced by `Discharger`s that
discharge third party caveats locally with their private key, the same
way the real services would.
"""

from typing import Callable, Iterator

from aioresponses import aioresponses
from macaroonbakery import bakery, checkers
from pymacaroons import Macaroon
import pytest

from charmstore.auth.config import AuthConfig, build_locator
from charmstore.auth.macaroons import encode_macaroons, MACAROONS_HEADER
from charmstore.constants import (
    HAS_AGREED_CONDITION,
    IS_AUTHENTICATED_USER_CONDITION,
    USERNAME_ATTR,
)

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "hunter2"
IDENTITY_LOCATION = "https://identity.example.com"
IDENTITY_API_URL = "https://identity.example.com/api"
TERMS_LOCATION = "https://terms.example.com"


def groups_url(username: str) -> str:
    return f"{IDENTITY_API_URL}/v1/u/{username}/groups"


class ConditionChecker(bakery.ThirdPartyCaveatChecker):
    """Check third party conditions with a plain function.

    The function gets the condition as a string and returns the caveats to
    add to the discharge, or raises ThirdPartyCaveatCheckFailed.
    """

    def __init__(self, check: Callable[[str], list[checkers.Caveat]]):
        self._check = check

    def check_third_party_caveat(self, ctx, info):
        condition = info.condition
        if isinstance(condition, bytes):
            condition = condition.decode("utf-8")
        return self._check(condition)


def authenticated_as(username: str) -> Callable:
    """Identity check declaring `username`."""

    def check(condition: str) -> list[checkers.Caveat]:
        if condition != IS_AUTHENTICATED_USER_CONDITION:
            raise bakery.ThirdPartyCaveatCheckFailed(
                f"unexpected condition {condition!r}"
            )
        return [checkers.declared_caveat(USERNAME_ATTR, username)]

    return check


def agreed_to(*terms: str) -> Callable:
    """Terms check passing when only `terms` are asked for."""

    def check(condition: str) -> list[checkers.Caveat]:
        name, *requested = condition.split()
        if name != HAS_AGREED_CONDITION:
            raise bakery.ThirdPartyCaveatCheckFailed(
                f"unexpected condition {condition!r}"
            )
        missing = set(requested) - set(terms)
        if missing:
            raise bakery.ThirdPartyCaveatCheckFailed(
                f"terms not agreed: {' '.join(sorted(missing))}"
            )
        return []

    return check


class Discharger:
    """A third party service able to discharge caveats addressed to it."""

    def __init__(self, location: str, key: bakery.PrivateKey):
        self.location = location
        self.key = key
        self.conditions: list[str] = []

    def discharge(
        self, cav, payload, check: Callable[[str], list[checkers.Caveat]]
    ) -> bakery.Macaroon:
        def recording_check(condition: str) -> list[checkers.Caveat]:
            self.conditions.append(condition)
            return check(condition)

        return bakery.discharge(
            checkers.AuthContext(),
            cav.caveat_id_bytes,
            payload,
            self.key,
            ConditionChecker(recording_check),
            bakery.ThirdPartyStore(),
        )


def discharge_all(
    macaroon: bakery.Macaroon,
    dischargers: dict[str, tuple[Discharger, Callable]],
) -> list[Macaroon]:
    """Acquire the discharges of every third party caveat of `macaroon`.

    Returns the macaroon slice to present to the store.
    """

    def get_discharge(cav, payload):
        discharger, check = dischargers[cav.location]
        return discharger.discharge(cav, payload, check)

    return bakery.discharge_all(macaroon, get_discharge)


@pytest.fixture
def identity_key() -> bakery.PrivateKey:
    return bakery.generate_key()


@pytest.fixture
def terms_key() -> bakery.PrivateKey:
    return bakery.generate_key()


@pytest.fixture
def auth_config(
    identity_key: bakery.PrivateKey, terms_key: bakery.PrivateKey
) -> AuthConfig:
    return AuthConfig(
        key=bakery.generate_key(),
        locator=build_locator(
            {
                IDENTITY_LOCATION: identity_key.public_key,
                TERMS_LOCATION: terms_key.public_key,
            }
        ),
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
        identity_location=IDENTITY_LOCATION,
        identity_api_url=IDENTITY_API_URL,
        terms_location=TERMS_LOCATION,
    )


@pytest.fixture
def mock_aioresponse() -> Iterator[aioresponses]:
    with aioresponses() as m:
        yield m


@pytest.fixture
def identity_discharger(identity_key: bakery.PrivateKey) -> Discharger:
    return Discharger(IDENTITY_LOCATION, identity_key)


@pytest.fixture
def terms_discharger(terms_key: bakery.PrivateKey) -> Discharger:
    return Discharger(TERMS_LOCATION, terms_key)


def make_macaroon(location: str = "charmstore") -> bakery.Macaroon:
    """A bare macaroon, for code that only passes macaroons around."""
    return bakery.Macaroon(
        root_key=b"root-key",
        id=b"macaroon-id",
        location=location,
        version=bakery.LATEST_VERSION,
        namespace=checkers.Namespace({checkers.STD_NAMESPACE: ""}),
    )


def identified_as(discharger: Discharger, username: str) -> dict:
    """Dischargers map of an identity service recognising `username`."""
    return {discharger.location: (discharger, authenticated_as(username))}


def required_macaroon(response) -> bakery.Macaroon:
    """Return the macaroon of a discharge required HTTP response."""
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Macaroon"
    return bakery.Macaroon.from_dict(response.json()["Info"]["Macaroon"])


def macaroons_header(ms: list[Macaroon]) -> dict[str, str]:
    return {MACAROONS_HEADER: encode_macaroons(ms)}
