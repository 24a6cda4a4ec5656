"""Structured error helpers and the domain error taxonomy."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def build_error_payload(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload = {"error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return payload


class AppError(Exception):
    """Application-scoped error for standardized API responses."""

    def __init__(self, status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = build_error_payload(code, message, details)


async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


def raise_app_error(status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Raise an AppError with a standardized error shape."""
    raise AppError(status_code, code, message, details)


# ----------------------------------------------------------------------
# Domain errors
# ----------------------------------------------------------------------


class DomainError(Exception):
    """Base for errors raised by the pipeline and billing core."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "DOMAIN_ERROR"

    def details(self) -> Optional[Dict[str, Any]]:
        return None


class UnknownStageError(DomainError):
    """A stage key is not registered for the organization."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "UNKNOWN_STAGE"

    def __init__(self, stage_key: str):
        super().__init__(f"Unknown pipeline stage: {stage_key!r}")
        self.stage_key = stage_key

    def details(self) -> Optional[Dict[str, Any]]:
        return {"stage": self.stage_key}


class LedgerError(DomainError):
    """Business-rule violation on a credit or points balance."""


class InsufficientCreditsError(LedgerError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "INSUFFICIENT_CREDITS"

    def __init__(self, organization_id: str, credit_type: str, requested: int):
        super().__init__(
            f"Insufficient {credit_type} credits: {requested} requested. Purchase more credits to continue."
        )
        self.organization_id = organization_id
        self.credit_type = credit_type
        self.requested = requested

    def details(self) -> Optional[Dict[str, Any]]:
        return {"credit_type": self.credit_type, "requested": self.requested}


class InsufficientPointsError(LedgerError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "INSUFFICIENT_POINTS"

    def __init__(self, organization_id: str, requested: int):
        super().__init__(f"Insufficient loyalty points: {requested} requested.")
        self.organization_id = organization_id
        self.requested = requested

    def details(self) -> Optional[Dict[str, Any]]:
        return {"requested": self.requested}


class InvalidAmountError(LedgerError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_AMOUNT"

    def __init__(self, amount: Any):
        super().__init__(f"Amount must be a positive integer, got {amount!r}")
        self.amount = amount


class ConfigurationError(DomainError):
    """Persisted data references a tier or credit type missing from static config."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"


class TransientStorageError(DomainError):
    """The persistence layer failed in a way that is safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORAGE_UNAVAILABLE"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, ConfigurationError):
        # Configuration gaps are not actionable for end users.
        logger.error("Configuration error on %s %s: %s", request.method, request.url.path, exc)
        payload = build_error_payload(exc.code, "Something went wrong on our side. Please try again later.")
        return JSONResponse(status_code=exc.status_code, content=payload)

    if isinstance(exc, TransientStorageError):
        logger.warning("Storage unavailable on %s %s: %s", request.method, request.url.path, exc)
        payload = build_error_payload(exc.code, "Storage temporarily unavailable. Please retry.")
        return JSONResponse(status_code=exc.status_code, content=payload)

    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_payload(exc.code, str(exc), exc.details()),
    )
