"""Domain errors raised by the service layer.

Each error carries a reason code and the HTTP status it maps to, so request
handlers can let them propagate and a single exception handler renders them.
"""
from enum import Enum

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class ReasonCode(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"


class ServiceError(Exception):
    reason: ReasonCode = ReasonCode.INVALID_INPUT
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ServiceError):
    reason = ReasonCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(ServiceError):
    reason = ReasonCode.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class InvalidInputError(ServiceError):
    reason = ReasonCode.INVALID_INPUT
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class ConflictError(ServiceError):
    reason = ReasonCode.CONFLICT
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "reason": exc.reason.value},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
