"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.
These functions help prevent security issues and ensure data integrity.

Security Considerations:
- Input validation prevents injection attacks
- Only http(s) destinations are accepted (no javascript:, data:, file:)
- Length limits prevent DoS attacks
"""

import re
from typing import Optional
from urllib.parse import urlparse

MAX_URL_LENGTH = 2048
MIN_CODE_LENGTH = 3
MAX_CODE_LENGTH = 20

_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_DOMAIN_PATTERN = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9][a-z0-9-]{0,61}[a-z0-9]$",
    re.IGNORECASE,
)


def is_valid_code(code: str) -> bool:
    """
    Check a short code or alias against the link code rules.

    Codes are 3-20 characters of letters, digits, '-' and '_'.
    Comparison is case-sensitive, so no normalisation happens here.
    """
    if not code or not isinstance(code, str):
        return False
    if not MIN_CODE_LENGTH <= len(code) <= MAX_CODE_LENGTH:
        return False
    return bool(_CODE_PATTERN.fullmatch(code))


def sanitize_short_code(short_code: str) -> Optional[str]:
    """
    Sanitize and validate short code format.

    Args:
        short_code: The short code to sanitize

    Returns:
        The code unchanged if valid, None otherwise

    Security:
    - Only allows the code charset
    - Prevents path traversal attacks
    - Codes are exact: surrounding whitespace is rejected, not trimmed
    """
    if not short_code or not isinstance(short_code, str):
        return None

    if not is_valid_code(short_code):
        return None

    return short_code


def is_valid_url(url: str) -> bool:
    """
    Validate URL format and security.

    Checks that URL uses http/https and has a host. Prevents javascript:,
    file:, and other dangerous schemes.

    Args:
        url: The URL string to validate

    Returns:
        True if valid and safe, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    if len(url) > MAX_URL_LENGTH:
        return False

    try:
        result = urlparse(url)
    except ValueError:
        return False

    if result.scheme.lower() not in {"http", "https"}:
        return False

    if not result.netloc or not result.hostname:
        return False

    return True


def is_valid_domain(domain: Optional[str]) -> bool:
    """Validate a custom domain (empty means "none")."""
    if not domain:
        return True
    return bool(_DOMAIN_PATTERN.fullmatch(domain))
