#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

"""
Async client for the parts of the macaroon bakery HTTP protocol the store
needs to talk to the identity service. Only agent interaction is supported.
"""

import base64
from collections import namedtuple
import ssl
from typing import Awaitable, Callable
from urllib.parse import urljoin

from aiohttp import ClientResponse, ClientSession, CookieJar, TCPConnector
from macaroonbakery import _utils as utils
from macaroonbakery import bakery, httpbakery
from macaroonbakery.bakery._discharge import (
    _EmptyLocator,
    _LocalDischargeChecker,
    discharge,
    emptyContext,
)
from macaroonbakery.httpbakery._client import (
    _add_json_binary_field,
    MAX_DISCHARGE_RETRIES,
)
from macaroonbakery.httpbakery._error import (
    BAKERY_PROTOCOL_HEADER,
    ERR_DISCHARGE_REQUIRED,
    ERR_INTERACTION_REQUIRED,
    Error,
)
from macaroonbakery.httpbakery.agent import AgentInteractor
from macaroonbakery.httpbakery.agent._agent import InteractionInfo
from yarl import URL

from charmstore.auth.macaroons import encode_macaroons
from charmstore.exceptions.catalog import IdentityClientException

_Pending = namedtuple("_Pending", "caveat payload")


async def discharge_all(
    m: bakery.Macaroon,
    get_discharge: Callable[..., Awaitable[bakery.Macaroon]] | None,
    local_key: bakery.PrivateKey | None = None,
):
    """Gather discharges for every third party caveat of `m`.

    Returns the primary macaroon followed by the discharges bound to it.
    Caveats addressed to "local" are discharged with `local_key`.
    """
    primary = m.macaroon
    discharges = [primary]
    pending: list[_Pending] = []

    def collect(macaroon: bakery.Macaroon):
        for cav in macaroon.macaroon.caveats:
            if not cav.location:
                continue
            pending.append(
                _Pending(cav, macaroon.caveat_data.get(cav.caveat_id))
            )

    collect(m)
    while pending:
        cav, payload = pending.pop(0)
        if cav.location == "local":
            if local_key is None:
                raise IdentityClientException(
                    "found local third party caveat but no private key"
                )
            dm = discharge(
                ctx=emptyContext,
                key=local_key,
                checker=_LocalDischargeChecker(),
                caveat=payload,
                id=cav.caveat_id_bytes,
                locator=_EmptyLocator(),
            )
        elif get_discharge is None:
            raise IdentityClientException(
                f"cannot discharge caveat addressed to {cav.location}"
            )
        else:
            dm = await get_discharge(cav, payload)
        discharges.append(primary.prepare_for_request(dm.macaroon))
        collect(dm)
    return discharges


class HttpBakeryAsyncClient:
    """aiohttp based macaroon bakery client.

    Requests answered with a discharge-required error are retried once the
    macaroon has been discharged, up to MAX_DISCHARGE_RETRIES times.
    """

    BAKERY_HEADERS = {BAKERY_PROTOCOL_HEADER: str(bakery.LATEST_VERSION)}

    def __init__(self, interaction_methods=None, key=None):
        # unsafe=True keeps the cookies of hosts given as IP addresses.
        self._session = ClientSession(
            headers=self.BAKERY_HEADERS,
            trust_env=True,
            cookie_jar=CookieJar(unsafe=True),
            connector=TCPConnector(ssl=ssl.create_default_context()),
        )
        self._interaction_methods = interaction_methods or []
        self.key = key

    async def close(self) -> None:
        await self._session.close()

    async def request(self, method, url, **kwargs) -> ClientResponse:
        response = await self._session.request(method, url, **kwargs)
        for _ in range(MAX_DISCHARGE_RETRIES):
            error = await self._discharge_required_error(response)
            if error is None:
                return response
            await self._handle_error(error, str(response.url))
            response = await self._session.request(method, url, **kwargs)
        raise IdentityClientException(
            f"too many ({MAX_DISCHARGE_RETRIES}) discharge requests"
        )

    async def _discharge_required_error(
        self, response: ClientResponse
    ) -> Error | None:
        if response.status != 401 and response.status != 407:
            return None
        if response.headers.get("WWW-Authenticate") != "Macaroon":
            return None
        if response.content_type != "application/json":
            return None
        body = await response.json()
        if body.get("Code") != ERR_DISCHARGE_REQUIRED:
            return None
        return Error.from_dict(body)

    async def _handle_error(self, error: Error, url: str) -> None:
        if error.info is None or error.info.macaroon is None:
            raise IdentityClientException(
                "unable to read info in discharge error response"
            )
        discharges = await discharge_all(
            error.info.macaroon, self.acquire_discharge, self.key
        )
        suffix = error.info.cookie_name_suffix or "auth"
        path = urljoin(url, error.info.macaroon_path or "/")
        self._session.cookie_jar.update_cookies(
            {f"macaroon-{suffix}": encode_macaroons(discharges)},
            response_url=URL(path),
        )

    async def acquire_discharge(self, cav, payload) -> bakery.Macaroon:
        """Obtain a discharge for `cav` from the service at its location."""
        resp = await self._post_discharge(cav, payload, None)
        body = await resp.json(content_type=None)
        if resp.status == 200 and body is not None:
            return bakery.Macaroon.from_dict(body.get("Macaroon"))
        try:
            cause = Error.from_dict(body)
        except (ValueError, AttributeError, TypeError):
            raise IdentityClientException(
                f"unexpected discharge response: [{resp.status}]"
            ) from None
        if cause.code != ERR_INTERACTION_REQUIRED or cause.info is None:
            raise IdentityClientException(cause.message)
        location = cav.location.rstrip("/") + "/"
        token = await self._interact(location, cause)
        resp = await self._post_discharge(cav, payload, token)
        if resp.status != 200:
            raise IdentityClientException(
                f"discharge failed with code {resp.status}"
            )
        body = await resp.json(content_type=None)
        return bakery.Macaroon.from_dict(body.get("Macaroon"))

    async def _post_discharge(self, cav, payload, token) -> ClientResponse:
        data = {}
        _add_json_binary_field(cav.caveat_id_bytes, data, "id")
        if token is not None:
            _add_json_binary_field(token.value, data, "token")
            data["token-kind"] = token.kind
        if payload is not None:
            data["caveat64"] = (
                base64.urlsafe_b64encode(payload).rstrip(b"=").decode("utf-8")
            )
        target = urljoin(cav.location.rstrip("/") + "/", "discharge")
        return await self._session.request("POST", target, data=data)

    async def _interact(self, location: str, error: Error):
        methods = error.info.interaction_methods or {}
        for interactor in self._interaction_methods:
            if interactor.kind() not in methods:
                continue
            token = await interactor.interact(self, location, error)
            if token is None:
                raise IdentityClientException(
                    "interaction method returned an empty token"
                )
            return token
        raise IdentityClientException("no supported interaction method")


class AsyncAgentInteractor(AgentInteractor):
    """Logs in as an agent by proving possession of its private key."""

    async def interact(
        self, client: HttpBakeryAsyncClient, location, interaction_required_err
    ) -> httpbakery.DischargeToken:
        info = interaction_required_err.interaction_method(
            "agent", InteractionInfo
        )
        if not info.login_url:
            raise IdentityClientException(
                "no login-url field found in agent interaction method"
            )
        agent = self._find_agent(location)
        login_url = urljoin(location, info.login_url)
        resp = await client._session.request(
            "GET",
            login_url,
            params={
                "username": agent.username,
                "public-key": str(self._auth_info.key.public_key),
            },
        )
        if resp.status != 200:
            raise IdentityClientException(
                f"cannot acquire agent macaroon: {resp.status}"
            )
        m = (await resp.json()).get("macaroon")
        if m is None:
            raise IdentityClientException("no macaroon in response")
        ms = await discharge_all(
            bakery.Macaroon.from_dict(m), None, self._auth_info.key
        )
        token = bytearray()
        for m in ms:
            token.extend(utils.b64decode(m.serialize()))
        return httpbakery.DischargeToken(kind="agent", value=bytes(token))
