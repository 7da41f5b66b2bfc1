# app/core/exceptions.py
"""
Domain error taxonomy.

Every error is an HTTPException so services can raise it directly and
FastAPI still knows the status code; the registered handler renders the
body as ErrorResponse with a machine-readable error_code.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.shared.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class DomainError(HTTPException):
    status_code_default = status.HTTP_400_BAD_REQUEST
    error_code = "DOMAIN_ERROR"

    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(status_code=self.status_code_default, detail=detail)
        self.details = details or {}


class NotFoundError(DomainError):
    status_code_default = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class ForbiddenError(DomainError):
    status_code_default = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"


class ConflictError(DomainError):
    status_code_default = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


class InvalidStateError(ConflictError):
    error_code = "INVALID_STATE"


class ValidationError(DomainError):
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"


class ReconciliationRequiredError(DomainError):
    """
    Best-effort acceptance stopped after the application was accepted.

    The bid IS accepted; the remaining steps (rejecting competitors or
    confirming the shipment) did not persist and need repair.
    """
    status_code_default = status.HTTP_202_ACCEPTED
    error_code = "RECONCILIATION_REQUIRED"

    def __init__(self, application_id: int, shipment_id: int, failed_step: str, cause: str):
        super().__init__(
            detail=(
                f"Application {application_id} was accepted but step "
                f"'{failed_step}' failed; shipment {shipment_id} needs reconciliation"
            ),
            details={
                "application_id": application_id,
                "shipment_id": shipment_id,
                "failed_step": failed_step,
                "cause": cause,
            },
        )
        self.application_id = application_id
        self.shipment_id = shipment_id
        self.failed_step = failed_step


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"❌ {exc.error_code} on {request.method} {request.url.path}: {exc.detail}")
    else:
        logger.info(f"⚠️ {exc.error_code} on {request.method} {request.url.path}: {exc.detail}")

    body = ErrorResponse(
        message=str(exc.detail),
        error_code=exc.error_code,
        details=exc.details or None,
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"💥 Unhandled error on {request.method} {request.url.path}: {exc}")
    body = ErrorResponse(message="Internal server error", error_code="INTERNAL_ERROR")
    return JSONResponse(status_code=500, content=jsonable_encoder(body))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
