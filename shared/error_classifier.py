"""
Classification of heterogeneous remote failures into the access layer taxonomy.

Failures reach the resilience layer in a handful of shapes: our own classified
exceptions, raw provider HTTP errors raised by adapters, httpx exceptions,
timeouts, and plain dict payloads. Each shape is parsed into a ``_RawFailure``
once, and a single decision function maps that to an ``ErrorClassification``.
"""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, Mapping, Optional

import httpx

from shared.errors import ClassifiedError, ErrorClassification, ErrorKind, ProviderHTTPError


DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 503, 504})
DEFAULT_RETRYABLE_ERROR_CODES = frozenset({
    "TooManyRequests",
    "ServiceUnavailable",
    "GatewayTimeout",
    "InternalServerError",
})

# Statuses that decide the kind on their own
_STATUS_KINDS = {
    401: ErrorKind.UNAUTHORIZED,
    404: ErrorKind.NOT_FOUND,
    429: ErrorKind.THROTTLED,
    503: ErrorKind.UNAVAILABLE,
    504: ErrorKind.UNAVAILABLE,
}

# Provider codes, consulted when the status is absent or not decisive.
# Lower-cased for lookup; Graph and the identity platform differ in casing.
_CODE_KINDS = {
    # identity platform (refresh grant)
    "invalid_grant": ErrorKind.REAUTH_REQUIRED,
    "interaction_required": ErrorKind.REAUTH_REQUIRED,
    "consent_required": ErrorKind.REAUTH_REQUIRED,
    "login_required": ErrorKind.REAUTH_REQUIRED,
    "invalid_request": ErrorKind.INVALID_REQUEST,
    "temporarily_unavailable": ErrorKind.UNAVAILABLE,
    # graph
    "invalidauthenticationtoken": ErrorKind.UNAUTHORIZED,
    "toomanyrequests": ErrorKind.THROTTLED,
    "activitylimitreached": ErrorKind.THROTTLED,
    "applicationthrottled": ErrorKind.THROTTLED,
    "serviceunavailable": ErrorKind.UNAVAILABLE,
    "gatewaytimeout": ErrorKind.UNAVAILABLE,
    "internalservererror": ErrorKind.UNAVAILABLE,
    "servicenotavailable": ErrorKind.UNAVAILABLE,
    "erroritemnotfound": ErrorKind.NOT_FOUND,
    "itemnotfound": ErrorKind.NOT_FOUND,
    "resourcenotfound": ErrorKind.NOT_FOUND,
    "request_resourcenotfound": ErrorKind.NOT_FOUND,
    "badrequest": ErrorKind.INVALID_REQUEST,
    "errorinvalidrequest": ErrorKind.INVALID_REQUEST,
    "invalidrequest": ErrorKind.INVALID_REQUEST,
    "errorinvalidproperty": ErrorKind.INVALID_REQUEST,
}

_REQUEST_ID_HEADERS = ("request-id", "client-request-id", "x-ms-request-id")


@dataclass
class _RawFailure:
    status_code: Optional[int] = None
    code: Optional[str] = None
    message: str = ""
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Any = None
    transport: bool = False


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a ``Retry-After`` header into seconds to wait.

    Accepts delta-seconds or an HTTP-date. Dates in the past clamp to zero;
    anything unparseable yields ``None``.
    """
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    try:
        return max(0.0, float(int(value)))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return float(max(0, math.ceil((when - now).total_seconds())))


def _nested_error(body: Any) -> Mapping[str, Any]:
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping):
            return error
    return {}


def _code_from_body(body: Any) -> Optional[str]:
    if not isinstance(body, Mapping):
        return None
    nested = _nested_error(body)
    if nested.get("code"):
        return str(nested["code"])
    # OAuth error responses put the code directly under "error"
    if isinstance(body.get("error"), str):
        return body["error"]
    if body.get("code"):
        return str(body["code"])
    return None


def _message_from_body(body: Any) -> str:
    if not isinstance(body, Mapping):
        return ""
    nested = _nested_error(body)
    return str(
        nested.get("message")
        or body.get("error_description")
        or body.get("message")
        or ""
    )


def _request_id(headers: httpx.Headers, body: Any) -> Optional[str]:
    for name in _REQUEST_ID_HEADERS:
        if headers.get(name):
            return headers[name]
    if isinstance(body, Mapping):
        inner = _nested_error(body).get("innerError") or _nested_error(body).get("innererror")
        if isinstance(inner, Mapping):
            for key in ("request-id", "client-request-id"):
                if inner.get(key):
                    return str(inner[key])
        for key in ("correlation_id", "trace_id"):
            if body.get(key):
                return str(body[key])
    return None


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _parse(raw: Any) -> _RawFailure:
    """Reduce a failure of any known shape to a ``_RawFailure``."""
    if isinstance(raw, ProviderHTTPError):
        return _RawFailure(
            status_code=raw.status_code,
            code=raw.code or _code_from_body(raw.body),
            message=raw.message,
            headers=httpx.Headers(raw.headers),
            body=raw.body,
        )

    if isinstance(raw, httpx.HTTPStatusError):
        body = _response_body(raw.response)
        return _RawFailure(
            status_code=raw.response.status_code,
            code=_code_from_body(body),
            message=_message_from_body(body) or str(raw),
            headers=raw.response.headers,
            body=body,
        )

    if isinstance(raw, (httpx.TimeoutException, asyncio.TimeoutError)):
        return _RawFailure(message=str(raw) or "Request timed out", transport=True)

    if isinstance(raw, httpx.TransportError):
        return _RawFailure(message=str(raw) or type(raw).__name__, transport=True)

    if isinstance(raw, Mapping):
        status = raw.get("status_code", raw.get("statusCode", raw.get("status")))
        headers = raw.get("headers") or {}
        return _RawFailure(
            status_code=int(status) if status is not None else None,
            code=str(raw["code"]) if raw.get("code") else _code_from_body(raw),
            message=str(raw.get("message") or _message_from_body(raw)),
            headers=httpx.Headers(headers),
            body=raw,
        )

    return _RawFailure(message=str(raw))


class ErrorClassifier:
    """Maps raw failures onto ``ErrorKind`` with retry hints."""

    def __init__(self,
                 retryable_status_codes: Iterable[int] = DEFAULT_RETRYABLE_STATUS_CODES,
                 retryable_error_codes: Iterable[str] = DEFAULT_RETRYABLE_ERROR_CODES):
        self.retryable_status_codes = frozenset(retryable_status_codes)
        self.retryable_error_codes = frozenset(retryable_error_codes)

    def classify(self, raw: Any) -> ErrorClassification:
        """Classify a failure: HTTP status first, then provider code, then Unknown."""
        if isinstance(raw, ClassifiedError):
            return raw.classification

        failure = _parse(raw)
        kind = self._kind(failure)

        return ErrorClassification(
            kind=kind,
            retryable=self._is_retryable(failure, kind),
            wait_hint_seconds=parse_retry_after(failure.headers.get("retry-after")),
            request_id=_request_id(failure.headers, failure.body),
            status_code=failure.status_code,
            code=failure.code,
            message=failure.message,
        )

    def _kind(self, failure: _RawFailure) -> ErrorKind:
        if failure.status_code in _STATUS_KINDS:
            return _STATUS_KINDS[failure.status_code]

        if failure.code:
            kind = _CODE_KINDS.get(failure.code.lower())
            if kind is not None:
                return kind

        if failure.transport:
            return ErrorKind.UNAVAILABLE
        if failure.status_code is not None and 400 <= failure.status_code < 500:
            return ErrorKind.INVALID_REQUEST
        return ErrorKind.UNKNOWN

    def _is_retryable(self, failure: _RawFailure, kind: ErrorKind) -> bool:
        if failure.status_code is not None and failure.status_code in self.retryable_status_codes:
            return True
        if failure.code and failure.code in self.retryable_error_codes:
            return True
        # Transport failures carry neither status nor code
        return failure.status_code is None and kind in (ErrorKind.THROTTLED, ErrorKind.UNAVAILABLE)
