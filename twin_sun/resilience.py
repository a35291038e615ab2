"""
Error categorisation for Twin Sun

Forecast fetches are not retried here: the next scheduled tick is the
retry. This module only names what went wrong so failures can be logged
and counted.
"""

import json
import logging
from enum import Enum
from typing import Tuple

import httpx

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Categories of errors for tracking."""
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


def categorize_error(exception: BaseException) -> Tuple[ErrorType, str]:
    """
    Categorize an exception for tracking purposes.

    Returns:
        Tuple of (ErrorType, error_message)
    """
    error_msg = str(exception)[:200]  # Truncate long messages

    if isinstance(exception, httpx.TimeoutException):
        return (ErrorType.TIMEOUT, f"Timeout: {error_msg}")

    elif isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        if status == 429:
            return (ErrorType.RATE_LIMIT, "HTTP 429 Too Many Requests")
        else:
            return (ErrorType.API_ERROR, f"HTTP {status}: {error_msg}")

    elif isinstance(exception, httpx.RequestError):
        return (ErrorType.API_ERROR, f"Request error: {error_msg}")

    elif isinstance(exception, (json.JSONDecodeError, KeyError, ValueError, TypeError, IndexError)):
        return (ErrorType.PARSE_ERROR, f"Parse error: {error_msg}")

    else:
        return (ErrorType.UNKNOWN, error_msg)
