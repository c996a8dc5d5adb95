# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

"""Preference order of the series entities can be published for."""

BUNDLE_SERIES = "bundle"

# When resolving an identifier with no series, entities of the series with
# the highest score win. Unknown series score 0, so they are preferred over
# bundles but not over any supported release.
SERIES_SCORE = {
    BUNDLE_SERIES: -1,
    "quantal": 1,
    "raring": 2,
    "saucy": 3,
    "utopic": 4,
    "vivid": 5,
    "wily": 6,
    "lucid": 1000,
    "precise": 1001,
    "trusty": 1002,
    "xenial": 1003,
    "bionic": 1004,
    "focal": 1005,
    "jammy": 1006,
    "noble": 1007,
}


def series_score(series: str) -> int:
    return SERIES_SCORE.get(series, 0)
