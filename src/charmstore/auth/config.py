#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

from dataclasses import dataclass, field
from datetime import timedelta

from macaroonbakery import bakery
from macaroonbakery.httpbakery.agent import Agent, AuthInfo

from charmstore.constants import (
    DEFAULT_MACAROON_EXPIRY,
    DELEGATABLE_MACAROON_EXPIRY,
)


def build_locator(
    public_keys: dict[str, bakery.PublicKey],
) -> bakery.ThirdPartyStore:
    """Return a locator knowing the public key of every discharger."""
    locator = bakery.ThirdPartyStore()
    for location, public_key in public_keys.items():
        locator.add_info(
            location,
            bakery.ThirdPartyInfo(
                public_key=public_key, version=bakery.LATEST_VERSION
            ),
        )
    return locator


@dataclass
class AuthConfig:
    key: bakery.PrivateKey
    locator: bakery.ThirdPartyStore = field(
        default_factory=bakery.ThirdPartyStore
    )
    admin_username: str | None = None
    admin_password: str | None = None
    identity_location: str | None = None
    identity_api_url: str | None = None
    terms_location: str | None = None
    agent_username: str | None = None
    agent_key: bakery.PrivateKey | None = None
    # Location stamped on the macaroons minted by the store.
    location: str = "charmstore"
    macaroon_expiry: timedelta = DEFAULT_MACAROON_EXPIRY
    delegatable_macaroon_expiry: timedelta = DELEGATABLE_MACAROON_EXPIRY

    def identity_auth_info(self) -> AuthInfo | None:
        if not (self.agent_username and self.agent_key):
            return None
        return AuthInfo(
            key=self.agent_key,
            agents=[
                Agent(
                    url=self.identity_api_url or self.identity_location,
                    username=self.agent_username,
                )
            ],
        )
