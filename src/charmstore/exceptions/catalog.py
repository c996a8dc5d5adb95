# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Self

from macaroonbakery.bakery import Macaroon
from pydantic import BaseModel

from charmstore.exceptions.constants import INVALID_ARGUMENT_VIOLATION_TYPE


class BaseExceptionDetail(BaseModel):
    type: str
    message: str
    field: str | None = None
    location: str | None = None


class BaseException(Exception):
    def __init__(
        self, message: str, details: list[BaseExceptionDetail] | None = None
    ):
        super().__init__(message)
        self.details = details

    @classmethod
    def with_reason(cls, type: str, message: str) -> Self:
        """Build the exception with a single detail describing the reason."""
        return cls(details=[BaseExceptionDetail(type=type, message=message)])

    @property
    def reason(self) -> str | None:
        if not self.details:
            return None
        return self.details[0].message


class BadRequestException(BaseException):
    def __init__(self, details: list[BaseExceptionDetail] | None = None):
        super().__init__(
            "Invalid request. Please check the provided data.", details
        )

    @classmethod
    def build_for_field(cls, field: str, message: str) -> Self:
        return cls(
            details=[
                BaseExceptionDetail(
                    type=INVALID_ARGUMENT_VIOLATION_TYPE,
                    field=field,
                    message=message,
                )
            ]
        )


class NotFoundException(BaseException):
    def __init__(self, details: list[BaseExceptionDetail] | None = None):
        super().__init__("The requested resource was not found.", details)


class UnauthorizedException(BaseException):
    def __init__(self, details: list[BaseExceptionDetail] | None = None):
        super().__init__("Not authenticated.", details)


class ForbiddenException(BaseException):
    def __init__(self, details: list[BaseExceptionDetail] | None = None):
        super().__init__("Forbidden.", details)


class MethodNotAllowedException(BaseException):
    def __init__(self, details: list[BaseExceptionDetail] | None = None):
        super().__init__("Method not allowed.", details)


class ServiceUnavailableException(BaseException):
    def __init__(self, details: list[BaseExceptionDetail] | None = None):
        super().__init__("The service is not available.", details)


class DischargeRequiredException(BaseException):
    def __init__(
        self,
        macaroon: Macaroon,
        details: list[BaseExceptionDetail] | None = None,
    ):
        super().__init__("Macaroon discharge required.", details)
        self.macaroon = macaroon


class IdentityApiException(Exception):
    """The identity service answered with a non-success status."""

    def __init__(self, status: int, message: str | None):
        super().__init__(f"identity service returned {status}: {message}")
        self.status = status
        self.message = message


class IdentityResponseException(Exception):
    """The identity service answered with a body that cannot be understood."""


class IdentityClientException(Exception):
    """The bakery protocol with a remote service could not be completed."""
