"""
Shared error handling for the Graph access layer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Mapping, Optional

from opentelemetry import trace
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ErrorKind(str, Enum):
    """Classified failure kinds for remote provider calls."""
    UNAUTHORIZED = "unauthorized"        # access token rejected, force-refresh once
    THROTTLED = "throttled"              # rate limited, retryable
    UNAVAILABLE = "unavailable"          # upstream outage, retryable
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"  # caller error, never retried
    REAUTH_REQUIRED = "reauth_required"  # refresh token is dead, terminal
    UNKNOWN = "unknown"


_KIND_STATUS_CODES = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.THROTTLED: 429,
    ErrorKind.UNAVAILABLE: 503,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.REAUTH_REQUIRED: 401,
    ErrorKind.UNKNOWN: 502,
}


@dataclass(frozen=True)
class ErrorClassification:
    """Normalized view of a remote failure."""
    kind: ErrorKind
    retryable: bool = False
    wait_hint_seconds: Optional[float] = None
    request_id: Optional[str] = None
    status_code: Optional[int] = None
    code: Optional[str] = None
    message: str = ""

    def to_details(self) -> Dict[str, Any]:
        """Structured fields safe to hand to callers."""
        details: Dict[str, Any] = {"kind": self.kind.value, "retryable": self.retryable}
        if self.wait_hint_seconds is not None:
            details["wait_hint_seconds"] = self.wait_hint_seconds
        if self.request_id:
            details["request_id"] = self.request_id
        if self.status_code is not None:
            details["status_code"] = self.status_code
        if self.code:
            details["provider_code"] = self.code
        return details


class AccessLayerException(Exception):
    """Base exception for access layer services."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ClassifiedError(AccessLayerException):
    """An access layer error that already knows its classification."""

    def __init__(self, code: str, classification: ErrorClassification,
                 details: Optional[Dict[str, Any]] = None):
        self.classification = classification
        merged = classification.to_details()
        merged.update(details or {})
        super().__init__(code, classification.message, merged)
        self.status_code = _KIND_STATUS_CODES[classification.kind]

    @property
    def kind(self) -> ErrorKind:
        return self.classification.kind

    @property
    def retryable(self) -> bool:
        return self.classification.retryable

    @property
    def wait_hint_seconds(self) -> Optional[float]:
        return self.classification.wait_hint_seconds


class ProviderError(ClassifiedError):
    """A remote provider failure surfaced to callers after local recovery."""

    def __init__(self, classification: ErrorClassification, operation: Optional[str] = None):
        details = {"operation": operation} if operation else None
        super().__init__(f"PROVIDER_{classification.kind.name}", classification, details)


class CredentialNotFoundError(ClassifiedError):
    """No credential record is stored for the identity."""

    def __init__(self, message: str = "No credentials stored for identity"):
        super().__init__(
            "CREDENTIAL_NOT_FOUND",
            ErrorClassification(kind=ErrorKind.NOT_FOUND, message=message),
        )


class ReauthRequiredError(ClassifiedError):
    """The refresh credential is unusable; authorization must restart."""

    def __init__(self, message: str = "Refresh token expired or revoked; re-authentication required",
                 request_id: Optional[str] = None, code: Optional[str] = None):
        super().__init__(
            "REAUTH_REQUIRED",
            ErrorClassification(
                kind=ErrorKind.REAUTH_REQUIRED,
                message=message,
                request_id=request_id,
                code=code,
            ),
        )


class TransientRefreshError(ClassifiedError):
    """Token refresh failed for a reason that may clear up later."""

    def __init__(self, cause: ErrorClassification):
        super().__init__(
            "TOKEN_REFRESH_FAILED",
            ErrorClassification(
                kind=cause.kind,
                retryable=cause.retryable,
                wait_hint_seconds=cause.wait_hint_seconds,
                request_id=cause.request_id,
                status_code=cause.status_code,
                code=cause.code,
                message=f"Token refresh failed: {cause.message}" if cause.message else "Token refresh failed",
            ),
        )
        # Surfaces as an upstream problem regardless of the underlying kind
        self.status_code = 503


class RetryBudgetExceededError(ClassifiedError):
    """The cumulative retry time budget would be exceeded by another attempt."""

    def __init__(self, budget: float, attempts: int, last_error: ErrorClassification):
        super().__init__(
            "RETRY_BUDGET_EXCEEDED",
            ErrorClassification(
                kind=last_error.kind,
                retryable=False,
                wait_hint_seconds=last_error.wait_hint_seconds,
                request_id=last_error.request_id,
                status_code=last_error.status_code,
                code=last_error.code,
                message=f"Retry time budget of {budget:.1f}s exhausted after {attempts} attempts",
            ),
            {"budget_seconds": budget, "attempts": attempts},
        )
        self.status_code = 504


class ProviderHTTPError(Exception):
    """Raw HTTP failure returned by a remote provider endpoint.

    Adapters raise subclasses of this; the error classifier turns it into an
    ``ErrorClassification``.
    """

    def __init__(self, status_code: int, message: str = "", *, code: Optional[str] = None,
                 headers: Optional[Mapping[str, str]] = None, body: Any = None):
        self.status_code = status_code
        self.code = code
        self.headers = dict(headers or {})
        self.body = body
        self.message = message or f"HTTP {status_code}"
        super().__init__(self.message)
