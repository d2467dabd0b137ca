"""Map adapter exceptions onto the closed ``ErrorCode`` set.

Order of precedence:

1. ``TransportFailure`` with an explicit code.
2. Known exception types (request building, timeouts, httpx transport and
   HTTP status errors).
3. Keyword tables over the exception message: GitHub not-found phrases
   first, then auth, rate limit, network, timeout, server, validation.
4. A status code written as ``HTTP 502`` or ``status 404`` in the message.
5. ``UNKNOWN``.
"""

from __future__ import annotations

import asyncio
import errno
import re
from typing import Any, Dict, Optional, Tuple

import httpx

from ..errors import RequestBuildError, TransportFailure
from ..schemas.enums import ErrorCode, is_retryable_error_code
from ..schemas.envelope import ResultError

_KEYWORDS: Tuple[Tuple[ErrorCode, Tuple[str, ...]], ...] = (
    (ErrorCode.validation, ("could not resolve to", "unknown flag", "no pull requests found")),
    (
        ErrorCode.auth,
        (
            "unauthorized",
            "authentication",
            "not logged in",
            "gh auth login",
            "bad credentials",
            "forbidden",
            "permission denied",
            "requires authentication",
        ),
    ),
    (ErrorCode.rate_limit, ("rate limit", "ratelimit", "too many requests", "secondary rate")),
    (
        ErrorCode.network,
        (
            "network",
            "connection refused",
            "connection reset",
            "econnreset",
            "econnrefused",
            "enotfound",
            "dns",
            "could not resolve host",
            "socket hang up",
        ),
    ),
    (ErrorCode.timeout, ("timeout", "timed out", "deadline exceeded", "etimedout")),
    (
        ErrorCode.server,
        ("internal server error", "bad gateway", "service unavailable", "gateway timeout"),
    ),
    (
        ErrorCode.validation,
        ("validation", "invalid", "not found", "required"),
    ),
)


_STATUS_IN_MESSAGE = re.compile(r"\b(?:http|status(?:\s+code)?)\s*:?\s*([1-5]\d\d)\b")


def _code_for_status(status: int, rate_limit_exhausted: bool = False) -> Optional[ErrorCode]:
    if status == 401:
        return ErrorCode.auth
    if status == 403:
        return ErrorCode.rate_limit if rate_limit_exhausted else ErrorCode.auth
    if status == 429:
        return ErrorCode.rate_limit
    if status in (400, 404, 422):
        return ErrorCode.validation
    if status >= 500:
        return ErrorCode.server
    return None


def classify_message(message: str) -> ErrorCode:
    text = message.lower()
    for code, keywords in _KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return code
    # status codes count only as "HTTP 502" / "status 404" tokens, never bare digits
    match = _STATUS_IN_MESSAGE.search(text)
    if match:
        return _code_for_status(int(match.group(1))) or ErrorCode.unknown
    return ErrorCode.unknown


def _classify_status(response: httpx.Response) -> ErrorCode:
    exhausted = response.headers.get("x-ratelimit-remaining") == "0"
    code = _code_for_status(response.status_code, exhausted)
    if code is not None:
        return code
    return classify_message(response.reason_phrase or "")


def classify_error(exc: BaseException) -> ResultError:
    """Convert any adapter exception into a ``ResultError``.

    Args:
        exc: The exception raised while building or running a transport request.

    Returns:
        A ``ResultError`` whose ``retryable`` follows the code unless the
        exception carries an explicit override.
    """
    code: ErrorCode
    retryable: Optional[bool] = None
    details: Optional[Dict[str, Any]] = None
    message = str(exc) or type(exc).__name__

    if isinstance(exc, TransportFailure):
        code = exc.code or classify_message(exc.message)
        retryable = exc.retryable
        details = dict(exc.details) if exc.details else None
        message = exc.message
    elif isinstance(exc, RequestBuildError):
        code = ErrorCode.validation
    elif isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        code = ErrorCode.timeout
        message = str(exc) or "Request timed out"
    elif isinstance(exc, httpx.HTTPStatusError):
        code = _classify_status(exc.response)
        details = {"status": exc.response.status_code}
    elif isinstance(exc, httpx.TransportError):
        code = ErrorCode.network
    elif isinstance(exc, FileNotFoundError) or (isinstance(exc, OSError) and exc.errno == errno.ENOENT):
        code = ErrorCode.adapter_unsupported
    else:
        code = classify_message(message)

    if retryable is None:
        retryable = is_retryable_error_code(code)
    return ResultError(code=code, message=message, retryable=retryable, details=details)
