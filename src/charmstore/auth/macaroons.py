#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

import base64
import json
from typing import Any, Mapping

import macaroonbakery._utils as utils
from pymacaroons import Macaroon

MACAROONS_HEADER = "Macaroons"
MACAROON_COOKIE_PREFIX = "macaroon-"


def decode_macaroons(data: str) -> list[Macaroon] | None:
    """Decode a base64 JSON slice of macaroons, None if it is not one."""
    try:
        objs = json.loads(utils.b64decode(data).decode("utf-8"))
        if not isinstance(objs, list):
            return None
        return [utils.macaroon_from_dict(obj) for obj in objs]
    except (ValueError, TypeError, KeyError, AttributeError):
        return None


def encode_macaroons(macaroons: list[Macaroon]) -> str:
    data = "[" + ",".join(map(utils.macaroon_to_json_string, macaroons)) + "]"
    return base64.urlsafe_b64encode(data.encode("utf-8")).decode("ascii")


def macaroons_from_json(objs: list[Any]) -> list[Macaroon]:
    """Build a macaroon slice from its JSON objects.

    Raises ValueError when an object is not a macaroon.
    """
    if not isinstance(objs, list) or not objs:
        raise ValueError("no macaroons found")
    try:
        return [utils.macaroon_from_dict(obj) for obj in objs]
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        raise ValueError(f"cannot decode macaroons: {e}") from None


def extract_macaroons(
    cookies: Mapping[str, str], headers: Mapping[str, str]
) -> list[list[Macaroon]]:
    """Collect the macaroon slices attached to a request.

    Values that cannot be decoded are ignored.
    """
    candidates = [
        value
        for name, value in cookies.items()
        if name.lower().startswith(MACAROON_COOKIE_PREFIX)
    ]
    if header := headers.get(MACAROONS_HEADER):
        candidates.extend(header.split(","))
    mss = []
    for candidate in candidates:
        if ms := decode_macaroons(candidate.strip()):
            mss.append(ms)
    return mss
