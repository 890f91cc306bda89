"""
Error taxonomy shared by the remote store gateway and the generation chain.

Every failure coming back from Supabase or Gemini is put into one of five
buckets so that callers can decide whether to retry, stop, or tell the user.
"""

from __future__ import annotations

from enum import Enum

import httpx
from google.api_core import exceptions as google_exceptions
from postgrest.exceptions import APIError


class ErrorCategory(str, Enum):
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


_TYPE_MAP = (
    ((google_exceptions.Unauthenticated, google_exceptions.PermissionDenied), ErrorCategory.AUTH),
    ((google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests), ErrorCategory.RATE_LIMIT),
    (
        (
            google_exceptions.ServiceUnavailable,
            google_exceptions.DeadlineExceeded,
            google_exceptions.InternalServerError,
            httpx.TransportError,
        ),
        ErrorCategory.UNAVAILABLE,
    ),
    ((google_exceptions.NotFound,), ErrorCategory.NOT_FOUND),
)

# PostgREST / Postgres codes
_AUTH_CODES = {"42501", "PGRST301", "PGRST302", "401", "403"}
_NOT_FOUND_CODES = {"PGRST116", "404", "22P02"}  # 22P02: malformed uuid, no such row
_RATE_LIMIT_CODES = {"429"}
_UNAVAILABLE_CODES = {"500", "502", "503", "504", "PGRST000", "PGRST001", "PGRST002"}

# Checked in order; the first hit wins.
_KEYWORDS = (
    (ErrorCategory.AUTH, ("api key", "api_key", "permission denied", "unauthorized",
                          "unauthenticated", "forbidden", "jwt", "403", "401")),
    (ErrorCategory.RATE_LIMIT, ("quota", "rate limit", "rate-limit", "resource exhausted",
                                "resource_exhausted", "too many requests", "429")),
    (ErrorCategory.UNAVAILABLE, ("unavailable", "overloaded", "timeout", "timed out", "deadline",
                                 "connection", "503", "502", "500", "internal")),
    (ErrorCategory.NOT_FOUND, ("not found", "not_found", "no rows", "404")),
)


def _category_from_code(code) -> ErrorCategory | None:
    if code is None:
        return None
    code = str(code).strip().upper()
    if code in _AUTH_CODES:
        return ErrorCategory.AUTH
    if code in _NOT_FOUND_CODES:
        return ErrorCategory.NOT_FOUND
    if code in _RATE_LIMIT_CODES:
        return ErrorCategory.RATE_LIMIT
    if code in _UNAVAILABLE_CODES:
        return ErrorCategory.UNAVAILABLE
    return None


def classify_message(message: str) -> ErrorCategory:
    """Keyword-based fallback used when the exception type tells us nothing."""
    s = (message or "").lower()
    for category, needles in _KEYWORDS:
        if any(n in s for n in needles):
            return category
    return ErrorCategory.UNKNOWN


def classify_error(exc: BaseException) -> ErrorCategory:
    category = getattr(exc, "category", None)
    if isinstance(category, ErrorCategory):
        return category

    if isinstance(exc, APIError):
        by_code = _category_from_code(getattr(exc, "code", None))
        if by_code is not None:
            return by_code
        return classify_message(getattr(exc, "message", None) or str(exc))

    for types, category in _TYPE_MAP:
        if isinstance(exc, types):
            return category

    # The Gemini SDK reports a bad key as InvalidArgument("API key not valid")
    return classify_message(str(exc))


def error_message(exc: BaseException) -> str:
    """Best human-readable message from SDK / PostgREST exceptions."""
    msg = getattr(exc, "message", None)
    if isinstance(msg, str) and msg:
        return msg
    return str(exc) or type(exc).__name__
