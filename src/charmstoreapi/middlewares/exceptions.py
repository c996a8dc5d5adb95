# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from typing import Any, Awaitable, Callable

from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from charmstore.exceptions.catalog import (
    BadRequestException,
    BaseExceptionDetail,
    DischargeRequiredException,
    ForbiddenException,
    MethodNotAllowedException,
    NotFoundException,
    ServiceUnavailableException,
    UnauthorizedException,
)
from charmstore.logging.security import AUTHN_AUTH_FAILED, AUTHZ_FAIL, SECURITY
from charmstoreapi.common.api.models.responses.errors import (
    BadRequestResponse,
    DischargeRequiredErrorResponse,
    ForbiddenResponse,
    InternalServerErrorResponse,
    MethodNotAllowedResponse,
    NotFoundResponse,
    ServiceUnavailableErrorResponse,
    UnauthorizedResponse,
    ValidationErrorResponse,
)

logger = structlog.getLogger(__name__)


def _build_json_path(loc: list[Any]) -> str:
    elements: list[str] = []
    for elem in loc:
        if isinstance(elem, int) and elements:
            elements.append(f"{elements.pop()}[{elem}]")
        else:
            elements.append(str(elem))
    return ".".join(elements)


class ExceptionHandlers:
    @classmethod
    async def validation_exception_handler(
        cls, request: Request, exc: RequestValidationError
    ):
        """Report every invalid field of the request.

        The first item of the `loc` of each error is where the field was
        looked for (path, query, header, cookie or body), the others are the
        path of the field inside it.
        """
        details: list[BaseExceptionDetail] = []
        for err in exc.errors():
            d = BaseExceptionDetail(
                type=err["type"],
                message=err["msg"],
                location=str(err["loc"][0]),
                field=_build_json_path(err["loc"][1:]),
            )
            if ctx := err.get("ctx", None):
                if msg := ctx.get("reason", None):
                    d.message = msg

            details.append(d)

        return ValidationErrorResponse(details=details)


class ExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        try:
            return await call_next(request)
        except BadRequestException as e:
            logger.debug(e)
            return BadRequestResponse(e.details)
        except UnauthorizedException as e:
            logger.debug(e)
            logger.info(AUTHN_AUTH_FAILED, type=SECURITY, reason=e.reason)
            return UnauthorizedResponse(e.details)
        except DischargeRequiredException as e:
            logger.debug(e)
            return DischargeRequiredErrorResponse(e.macaroon)
        except ForbiddenException as e:
            logger.debug(e)
            logger.warning(AUTHZ_FAIL, type=SECURITY, reason=e.reason)
            return ForbiddenResponse(e.details)
        except NotFoundException as e:
            logger.debug(e)
            return NotFoundResponse(e.details)
        except MethodNotAllowedException as e:
            logger.debug(e)
            return MethodNotAllowedResponse(e.details)
        except ServiceUnavailableException as e:
            logger.error(e)
            return ServiceUnavailableErrorResponse(e.details)
        except Exception as e:
            logger.exception(e)
            return InternalServerErrorResponse()
