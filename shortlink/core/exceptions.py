"""
Custom Exceptions

This module defines the error taxonomy of the link service.

Every public error carries a ``kind`` (stable name returned to API
consumers) and the HTTP status the API layer answers with. Cache errors
never appear here: they are absorbed by the cache layer.
"""

import logging
from contextlib import contextmanager
from typing import Optional

logger = logging.getLogger(__name__)


class URLShortenerException(Exception):
    """Base exception for the link service."""
    kind = "Error"
    status_code = 500


class InvalidURLError(URLShortenerException):
    """Raised when a destination URL is malformed or not http(s)."""
    kind = "InvalidURL"
    status_code = 400

    def __init__(self, url: str, reason: str = "Invalid URL format"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class AliasInvalidError(URLShortenerException):
    """Raised when a requested alias breaks the code charset or length rules."""
    kind = "AliasInvalid"
    status_code = 400

    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(
            f"Alias '{alias}' must be 3-20 characters of letters, digits, '-' or '_'"
        )


class AliasTakenError(URLShortenerException):
    """Raised when a requested alias is already used by any link."""
    kind = "AliasTaken"
    status_code = 409

    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(f"Alias '{alias}' is already in use")


class AllocationExhaustedError(URLShortenerException):
    """Raised when every allocation attempt collided with an existing code."""
    kind = "AllocationExhausted"
    status_code = 500

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not allocate a free short code after {attempts} attempts")


class ShortCodeNotFoundError(URLShortenerException):
    """Raised when a short code is unknown or soft-deleted."""
    kind = "NotFound"
    status_code = 404

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code '{short_code}' not found")


class LinkExpiredError(URLShortenerException):
    """Raised when a link's expiry time has passed."""
    kind = "Expired"
    status_code = 410

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code '{short_code}' has expired")


class ServiceUnavailableError(URLShortenerException):
    """Raised when a required service is unavailable."""
    kind = "ServiceUnavailable"
    status_code = 503

    def __init__(self, service_name: str, original_error: Optional[Exception] = None):
        self.service_name = service_name
        self.original_error = original_error
        super().__init__(f"Service '{service_name}' is unavailable")


class DatabaseError(Exception):
    """Raised by durable store implementations when an operation fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class ConflictError(DatabaseError):
    """Raised by ``insert_unique`` when the code or alias is already stored."""

    def __init__(self, code: str, original_error: Optional[Exception] = None):
        self.code = code
        super().__init__(f"code '{code}' already exists", original_error=original_error)


class InvalidBatchError(URLShortenerException):
    """Raised when a batch request is empty or larger than allowed."""
    kind = "InvalidBatch"
    status_code = 400

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        if size == 0:
            message = "Batch must contain at least one URL"
        else:
            message = f"Batch of {size} URLs exceeds the limit of {limit}"
        super().__init__(message)


@contextmanager
def store_unavailable_on_error(operation: str):
    """Re-raise DatabaseError from the wrapped block as ServiceUnavailableError."""
    try:
        yield
    except DatabaseError as e:
        logger.error(f"Durable store failed during {operation}: {e}", exc_info=True)
        raise ServiceUnavailableError("durable_store", original_error=e) from e
