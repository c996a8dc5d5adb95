#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

import json
from urllib.parse import quote

from aiohttp import ClientError
from macaroonbakery.httpbakery.agent import AuthInfo

from charmstore.auth.bakery import AsyncAgentInteractor, HttpBakeryAsyncClient
from charmstore.exceptions.catalog import (
    IdentityApiException,
    IdentityClientException,
    IdentityResponseException,
)


def _error_message(body: str) -> str | None:
    try:
        content = json.loads(body)
    except ValueError:
        return body or None
    if not isinstance(content, dict):
        return None
    # Some servers return "Message" while other "message"
    return content.get("Message") or content.get("message")


class IdentityAsyncClient:
    """Async client of the identity service API."""

    def __init__(self, url: str, auth_info: AuthInfo | None = None):
        self._url = url.rstrip("/")
        interaction_methods = []
        key = None
        if auth_info is not None:
            interaction_methods.append(AsyncAgentInteractor(auth_info))
            key = auth_info.key
        self._client = HttpBakeryAsyncClient(
            interaction_methods=interaction_methods, key=key
        )

    async def get_groups(self, username: str) -> list[str]:
        """Return the groups `username` is a member of."""
        url = f"{self._url}/v1/u/{quote(username, safe='')}/groups"
        try:
            resp = await self._client.request("GET", url)
            body = await resp.text()
        except ClientError as e:
            raise IdentityClientException(str(e)) from e
        if resp.status != 200:
            raise IdentityApiException(resp.status, _error_message(body))
        try:
            content = json.loads(body)
        except ValueError as e:
            raise IdentityResponseException(
                f"cannot decode groups for {username!r}: {e}"
            ) from e
        if not isinstance(content, list) or not all(
            isinstance(group, str) for group in content
        ):
            raise IdentityResponseException(
                f"unexpected groups response for {username!r}: {content!r}"
            )
        return content

    async def close(self) -> None:
        await self._client.close()
