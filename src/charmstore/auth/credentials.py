#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

import base64
import binascii
import hmac


class CredentialsError(ValueError):
    """The Authorization header is not valid HTTP basic auth."""


def parse_basic_credentials(header: str) -> tuple[str, str]:
    """Return the user name and password from an Authorization header.

    The challenge is a base64-encoded "user:password" string, see RFC 2617.
    """
    parts = header.split()
    if len(parts) != 2 or parts[0] != "Basic":
        raise CredentialsError("invalid HTTP auth header")
    try:
        challenge = base64.b64decode(parts[1], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise CredentialsError("invalid HTTP auth encoding") from None
    username, sep, password = challenge.partition(":")
    if not sep:
        raise CredentialsError("invalid HTTP auth contents")
    return username, password


def match_credentials(
    username: str,
    password: str,
    expected_username: str | None,
    expected_password: str | None,
) -> bool:
    # With no superuser configured every basic auth attempt is refused.
    if not expected_username or expected_password is None:
        return False
    username_ok = hmac.compare_digest(
        username.encode("utf-8"), expected_username.encode("utf-8")
    )
    password_ok = hmac.compare_digest(
        password.encode("utf-8"), expected_password.encode("utf-8")
    )
    return username_ok and password_ok
