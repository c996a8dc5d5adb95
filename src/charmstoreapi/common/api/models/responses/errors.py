# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Optional

from fastapi.encoders import jsonable_encoder
from macaroonbakery import bakery, httpbakery
from pydantic import BaseModel
from starlette.responses import JSONResponse, Response

from charmstore.constants import AUTH_COOKIE_SUFFIX
from charmstore.exceptions.catalog import BaseExceptionDetail


class BaseExceptionDetailResponse(BaseModel):
    type: str
    message: str
    field: Optional[str] = None
    location: Optional[str] = None


class ErrorBodyResponse(BaseModel):
    kind: str = "Error"
    code: int
    message: str
    details: Optional[list[BaseExceptionDetailResponse]] = None


class ValidationErrorBodyResponse(ErrorBodyResponse):
    code: int = 422
    message: str = "Failed to validate the request."


class _ErrorResponse(JSONResponse):
    status_code: int
    message: str

    def __init__(self, details: Optional[list[BaseExceptionDetail]] = None):
        super().__init__(
            status_code=self.status_code,
            content=jsonable_encoder(
                ErrorBodyResponse(
                    code=self.status_code,
                    message=self.message,
                    details=(
                        [
                            BaseExceptionDetailResponse(**d.model_dump())
                            for d in details
                        ]
                        if details
                        else None
                    ),
                )
            ),
        )


class BadRequestResponse(_ErrorResponse):
    status_code = 400
    message = "Bad request."


class UnauthorizedResponse(_ErrorResponse):
    status_code = 401
    message = "Not authenticated."


class ForbiddenResponse(_ErrorResponse):
    status_code = 403
    message = "Forbidden."


class NotFoundResponse(_ErrorResponse):
    status_code = 404
    message = "The requested resource was not found."


class MethodNotAllowedResponse(_ErrorResponse):
    status_code = 405
    message = "Method not allowed."


class ValidationErrorResponse(_ErrorResponse):
    status_code = 422
    message = "Failed to validate the request."


class InternalServerErrorResponse(_ErrorResponse):
    status_code = 500
    message = "Unexpected internal server error."


class ServiceUnavailableErrorResponse(_ErrorResponse):
    status_code = 503
    message = "The service is not available."


class DischargeRequiredErrorResponse(Response):
    """The macaroon bakery envelope asking the client for a discharge.

    The body and the headers are produced by the bakery itself so that any
    bakery client can acquire the discharges and retry the request.
    """

    def __init__(self, macaroon: bakery.Macaroon):
        content, headers = httpbakery.discharge_required_response(
            macaroon, "/", AUTH_COOKIE_SUFFIX, "verification failed"
        )
        super().__init__(
            content=content,
            status_code=401,
            headers=headers,
            media_type="application/json",
        )
