# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from dataclasses import dataclass, replace
from enum import StrEnum
import re
from typing import Self

SCHEMA = "cs"

_USER_RE = re.compile(r"^[a-z0-9][a-zA-Z0-9+.-]+$")
_SERIES_RE = re.compile(r"^[a-z]+([a-z0-9]+)?$")
_NAME_RE = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]*[a-z][a-z0-9]*)*$")
_REVISION_RE = re.compile(r"^(?P<name>.+)-(?P<revision>[0-9]+)$")


class Channel(StrEnum):
    UNPUBLISHED = "unpublished"
    DEVELOPMENT = "development"
    STABLE = "stable"

    @classmethod
    def parse(cls, value: str) -> Self:
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid channel {value!r}") from None


# Channels from the most to the least published one.
CHANNEL_PREFERENCE = (Channel.STABLE, Channel.DEVELOPMENT, Channel.UNPUBLISHED)


@dataclass(frozen=True)
class PackageIdentifier:
    """A possibly partial reference to a charm or bundle.

    With no owner the identifier refers to promulgated entities. With no
    revision it refers to the latest matching one. With no channel the most
    published matching entity is preferred.
    """

    name: str
    owner: str | None = None
    series: str | None = None
    revision: int | None = None
    channel: Channel | None = None

    @classmethod
    def parse(cls, text: str, channel: Channel | None = None) -> Self:
        """Parse identifiers like "cs:~bob/trusty/wordpress-42".

        Raises ValueError when the text is not a valid identifier.
        """
        rest = text
        if ":" in rest:
            schema, rest = rest.split(":", 1)
            if schema != SCHEMA:
                raise ValueError(
                    f"charm or bundle URL has invalid schema: {text!r}"
                )
        parts = rest.split("/")
        owner = None
        if parts[0].startswith("~"):
            owner = parts.pop(0)[1:]
            if not _USER_RE.match(owner):
                raise ValueError(
                    f"charm or bundle URL has invalid user name: {text!r}"
                )
        if len(parts) == 2:
            series = parts[0]
            if not _SERIES_RE.match(series):
                raise ValueError(
                    f"charm or bundle URL has invalid series: {text!r}"
                )
        elif len(parts) == 1:
            series = None
        else:
            raise ValueError(f"charm or bundle URL has invalid form: {text!r}")

        name = parts[-1]
        revision = None
        if match := _REVISION_RE.match(name):
            name = match.group("name")
            revision = int(match.group("revision"))
        if not _NAME_RE.match(name):
            raise ValueError(f"charm or bundle URL has invalid name: {text!r}")
        return cls(
            name=name,
            owner=owner,
            series=series,
            revision=revision,
            channel=channel,
        )

    def with_channel(self, channel: Channel | None) -> Self:
        return replace(self, channel=channel)

    def __str__(self) -> str:
        path = []
        if self.owner:
            path.append(f"~{self.owner}")
        if self.series:
            path.append(self.series)
        name = self.name
        if self.revision is not None:
            name = f"{name}-{self.revision}"
        path.append(name)
        return f"{SCHEMA}:" + "/".join(path)


@dataclass(frozen=True)
class ResolvedIdentifier:
    """A fully qualified identifier of a stored entity.

    Created once per request by the resolver and never modified afterwards.
    """

    owner: str
    series: str
    name: str
    revision: int
    channel: Channel
    promulgated_revision: int | None = None

    def user_owned_url(self) -> str:
        return (
            f"{SCHEMA}:~{self.owner}/{self.series}/{self.name}-{self.revision}"
        )

    def promulgated_url(self) -> str | None:
        if self.promulgated_revision is None:
            return None
        return (
            f"{SCHEMA}:{self.series}/{self.name}-{self.promulgated_revision}"
        )

    def base_url(self) -> str:
        return f"{SCHEMA}:~{self.owner}/{self.name}"

    def preferred_url(self, use_promulgated: bool) -> str:
        """Return the promulgated URL when asked for and available."""
        if use_promulgated and (url := self.promulgated_url()):
            return url
        return self.user_owned_url()

    def with_channel(self, channel: Channel) -> Self:
        return replace(self, channel=channel)

    def __str__(self) -> str:
        return self.user_owned_url()
