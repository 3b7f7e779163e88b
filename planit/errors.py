from __future__ import annotations

import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SignatureWorkflowError(Exception):
    """Base exception for contract signature operations."""

    code = "signature_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SignatureWorkflowError):
    """Input or precondition violations. Carries every violation found."""

    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else [message]

    def __str__(self) -> str:
        if len(self.errors) > 1 or self.errors[0] != self.message:
            return f"{self.message}: {'; '.join(self.errors)}"
        return self.message


class InvalidStateError(SignatureWorkflowError):
    """Operation not allowed in the contract's current workflow state."""

    code = "invalid_state"
    status_code = 409


class NotFoundError(SignatureWorkflowError):
    """Referenced contract or field does not exist."""

    code = "not_found"
    status_code = 404


class AuthenticationRequired(SignatureWorkflowError):
    """Signer identity or credential is missing or expired."""

    code = "authentication_required"
    status_code = 401


class InvalidSignatureFormat(SignatureWorkflowError):
    """Captured signature payload is not a usable image."""

    code = "invalid_signature_format"
    status_code = 400


class DecodeError(SignatureWorkflowError):
    """Captured signature payload could not be decoded."""

    code = "decode_error"
    status_code = 400


class UploadFailed(SignatureWorkflowError):
    """Signature storage rejected the upload or could not be reached."""

    code = "upload_failed"
    status_code = 502


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _request_id(request: Request) -> str:
    rid = request.headers.get("x-request-id")
    return rid or uuid.uuid4().hex


def register_error_handlers(app) -> None:
    @app.exception_handler(SignatureWorkflowError)
    async def signature_error_handler(request: Request, exc: SignatureWorkflowError):
        details = exc.errors if isinstance(exc, ValidationError) else None
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, details, _request_id(request)),
            headers=headers,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        code = f"http_{exc.status_code}"
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        details = None if isinstance(exc.detail, str) else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details, _request_id(request)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            error_copy = dict(error)
            error_copy.pop("ctx", None)
            if isinstance(error_copy.get("input"), bytes):
                error_copy["input"] = error_copy["input"].decode("utf-8", errors="replace")
            errors.append(error_copy)
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", errors, _request_id(request)
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )
