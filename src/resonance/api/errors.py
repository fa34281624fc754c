"""Map domain exceptions onto HTTP responses.

Every error body has the shape ``{"error": <reason code>, "detail": <message>}``.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from resonance.domain.errors import (
    AllocationInvariantError,
    CampaignNotFoundError,
    EligibilityRejection,
    InputValidationError,
    NoEligibleCreatorsError,
    NotAParticipantError,
    SettlementError,
    StateConflictError,
    VerifierError,
)

logger = structlog.get_logger()

# Checked in order; the first matching class wins
STATUS_CODES: list[tuple[type[VerifierError], int]] = [
    (InputValidationError, 400),
    (CampaignNotFoundError, 404),
    (NotAParticipantError, 403),
    (EligibilityRejection, 400),
    (StateConflictError, 409),
    (NoEligibleCreatorsError, 400),
    (SettlementError, 502),
    (AllocationInvariantError, 500),
]


def status_code_for(exc: VerifierError) -> int:
    """Return the HTTP status code for a domain error (500 if unmapped)."""
    for exc_type, code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return 500


def error_body(reason: str, detail: object) -> dict[str, object]:
    return {"error": reason, "detail": detail}


def register_error_handlers(app: FastAPI) -> None:
    """Install exception handlers for domain and validation errors on *app*."""

    @app.exception_handler(VerifierError)
    async def handle_verifier_error(request: Request, exc: VerifierError) -> JSONResponse:
        code = status_code_for(exc)
        if code >= 500:
            logger.error("request_failed", reason=exc.reason, error=str(exc), status_code=code)
        else:
            logger.info("request_rejected", reason=exc.reason, error=str(exc), status_code=code)
        return JSONResponse(status_code=code, content=error_body(exc.reason, str(exc)))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=error_body(InputValidationError.reason, jsonable_encoder(exc.errors())),
        )

    @app.exception_handler(ValidationError)
    async def handle_model_validation(request: Request, exc: ValidationError) -> JSONResponse:
        errors = [
            {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()
        ]
        return JSONResponse(
            status_code=400, content=error_body(InputValidationError.reason, errors)
        )
