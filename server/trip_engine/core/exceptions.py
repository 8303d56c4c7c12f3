"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

from typing import Any, Dict, List, Optional
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uuid
from datetime import datetime, timezone


PROBLEM_BASE_URI = "https://example.com/problems"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    Every problem carries a machine-readable ``code`` extension and a
    ``retryable`` flag so callers can tell a full trip from a lost race.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        code: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        retryable: bool = False,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            code: Stable machine-readable error code
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
            retryable: Whether repeating the same request may succeed
        """
        self.status_code = status_code
        self.title = title
        self.code = code
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}
        self.retryable = retryable

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
            "code": self.code,
            "retryable": self.retryable,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Exception for business-rule validation errors (non-positive amounts, bad ranges)."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            code="VALIDATION_ERROR",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            code="NOT_FOUND",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        code: str = "CONFLICT",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            code=code,
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not error_id:
            error_id = str(uuid.uuid4())

        extensions = {
            "error_id": error_id,
            "timestamp": _utc_timestamp(),
        }

        super().__init__(
            status_code=500,
            title="Internal Server Error",
            code="INTERNAL_ERROR",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/internal-server-error",
            instance=instance,
            extensions=extensions,
        )


# Business logic exceptions

class CapacityExhaustedError(ProblemDetailsException):
    """Exception when a trip has no available spots left at registration time."""

    def __init__(
        self,
        trip_id: str,
        capacity: Optional[int] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"Trip {trip_id} is full. No spots are available for a new registration."

        extensions: Dict[str, Any] = {"trip_id": trip_id, "available_spots": 0}
        if capacity is not None:
            extensions["capacity"] = capacity

        super().__init__(
            status_code=409,
            title="Trip Full",
            code="FULL",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/trip-full",
            instance=instance,
            extensions=extensions,
        )


class InvalidStateError(ProblemDetailsException):
    """Exception when an operation is illegal for the resource's current state."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        current_state: str,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The {resource_type} '{resource_id}' is {current_state} and cannot be changed this way"

        super().__init__(
            status_code=409,
            title="Invalid State",
            code="INVALID_STATE",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/invalid-state",
            instance=instance,
            extensions={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "current_state": current_state,
            },
        )


class ConcurrencyConflictError(ProblemDetailsException):
    """Exception when an atomic unit kept losing races after bounded internal retries."""

    def __init__(
        self,
        operation: str,
        attempts: int,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"{operation} lost a concurrent update race {attempts} times; retry the request"

        super().__init__(
            status_code=409,
            title="Concurrency Conflict",
            code="CONCURRENCY_CONFLICT",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/concurrency-conflict",
            instance=instance,
            extensions={"operation": operation, "attempts": attempts},
            headers={"Retry-After": "1"},
            retryable=True,
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
        media_type="application/problem+json",
    )


def _violations(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    violations = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        violations.append({
            "field": ".".join(location) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return violations


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body/query validation failures as a 422 problem with field violations."""
    problem_details = {
        "type": f"{PROBLEM_BASE_URI}/request-validation",
        "title": "Unprocessable Request",
        "status": 422,
        "code": "VALIDATION_ERROR",
        "retryable": False,
        "detail": "The request body or parameters failed validation",
        "instance": str(request.url),
        "violations": _violations(exc.errors()),
    }
    return JSONResponse(status_code=422, content=problem_details, media_type="application/problem+json")


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error = InternalServerError(instance=str(request.url))
    return JSONResponse(
        status_code=500,
        content=error.problem_details,
        media_type="application/problem+json",
    )
