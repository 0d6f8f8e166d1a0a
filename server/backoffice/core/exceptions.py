"""
Problem Details (RFC 9457) errors for the back-office API.

Every business error is a ``ProblemDetailsException`` subclass that fixes
its HTTP status, title and problem type; call sites only supply the
occurrence-specific detail and extension members. Responses carry
``application/problem+json`` bodies shaped like::

    {"type": ".../problems/duplicate-booking", "title": "Resource Conflict",
     "status": 409, "detail": "...", "code": "DUPLICATE_BOOKING", ...}
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://backoffice.example/problems"
PROBLEM_MEDIA_TYPE = "application/problem+json"


class ProblemDetailsException(HTTPException):
    """Base class for errors rendered as Problem Details."""

    status_code: int = 500
    title: str = "Internal Server Error"
    problem_type: str = "internal-server-error"
    code: Optional[str] = None

    def __init__(
        self,
        detail: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.problem_details: Dict[str, Any] = {
            "type": f"{PROBLEM_BASE_URI}/{self.problem_type}",
            "title": self.title,
            "status": self.status_code,
        }
        if detail:
            self.problem_details["detail"] = detail
        if instance:
            self.problem_details["instance"] = instance
        if self.code:
            self.problem_details["code"] = self.code
            self.problem_details["retryable"] = False
        self.problem_details.update(extensions or {})

        super().__init__(status_code=self.status_code, detail=self.problem_details, headers=headers)


class ValidationError(ProblemDetailsException):
    """A request that is well-formed but breaks a booking or ledger rule."""

    status_code = 400
    title = "Validation Error"
    problem_type = "validation-error"

    def __init__(self, detail: str = "The request data failed validation", errors: Optional[Dict[str, Any]] = None):
        super().__init__(detail=detail, extensions={"errors": errors} if errors else None)


class NotFoundError(ProblemDetailsException):
    """A booking, passenger, agent or partner that does not exist."""

    status_code = 404
    title = "Resource Not Found"
    problem_type = "resource-not-found"

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        detail = f"The requested {resource_type}"
        if resource_id:
            detail += f" with ID '{resource_id}'"
        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id
        super().__init__(detail=f"{detail} could not be found", extensions=extensions)


class ConflictError(ProblemDetailsException):
    """The request conflicts with the current state of a booking or entity."""

    status_code = 409
    title = "Resource Conflict"
    problem_type = "resource-conflict"

    def __init__(self, detail: str, conflicting_resource: Optional[Dict[str, Any]] = None):
        super().__init__(
            detail=detail,
            extensions={"conflicting_resource": conflicting_resource} if conflicting_resource else None,
        )


class DuplicateBookingError(ConflictError):
    """PNR already booked with this status, or a ticket number used on another PNR."""

    problem_type = "duplicate-booking"
    code = "DUPLICATE_BOOKING"

    def __init__(self, detail: str, existing_booking_id: str, pnr: str):
        super().__init__(detail, {"booking_id": existing_booking_id, "pnr": pnr})


class NonBillableParentError(ConflictError):
    """Reissue requested for a booking that was never issued or is deleted."""

    problem_type = "not-reissuable"
    code = "NOT_REISSUABLE"

    def __init__(self, booking_id: str, ticket_status: str):
        super().__init__(
            f"Booking {booking_id} cannot be reissued while its status is {ticket_status}",
            {"booking_id": booking_id, "ticket_status": ticket_status},
        )


class InactiveEntityError(ConflictError):
    """A deleted agent or issuing partner used for new activity."""

    problem_type = "entity-deleted"
    code = "ENTITY_DELETED"

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"{entity_type} {entity_id} has been deleted and cannot be used",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


class IdempotencyMismatchError(ProblemDetailsException):
    """Idempotency-Key reused with a different request body."""

    status_code = 422
    title = "Idempotency Key Mismatch"
    problem_type = "idempotency-key-mismatch"
    code = "IDEMPOTENCY_KEY_MISMATCH"

    def __init__(self, idempotency_key: str, method: str):
        super().__init__(
            detail=f"Idempotency key '{idempotency_key}' was already used for {method} with a different request body",
            extensions={"idempotency_key": idempotency_key, "method": method},
        )


def _problem_response(status_code: int, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=headers, media_type=PROBLEM_MEDIA_TYPE)


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """Render a business error, filling in the request path as the instance."""
    body = {"instance": request.url.path, **exc.problem_details}

    log = logger.warning if exc.status_code >= 409 else logger.info
    log(
        exc.title,
        extra={"path": request.url.path, "status_code": exc.status_code, "code": body.get("code")}
    )

    return _problem_response(exc.status_code, body, exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI body and header validation failures as a 422 problem with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]

    return _problem_response(422, {
        "type": f"{PROBLEM_BASE_URI}/validation-error",
        "title": "Validation Error",
        "status": 422,
        "detail": "The request data failed validation",
        "instance": request.url.path,
        "violations": violations,
    })


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log an unexpected error under a fresh error ID and hide its details from the client."""
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )

    return _problem_response(500, {
        "type": f"{PROBLEM_BASE_URI}/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": request.url.path,
        "error_id": error_id,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    })
