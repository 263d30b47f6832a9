"""
Classification of outbound HTTP failures into retryable and fatal errors.
"""

import logging
import socket
from enum import Enum
from typing import Optional

import requests.exceptions

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Classification of error types."""

    RETRYABLE = "retryable"  # 429, 5xx, timeouts, connection failures
    FATAL = "fatal"  # other 4xx (bad request, auth, validation)
    UNKNOWN = "unknown"


def status_code_of(exception: Exception) -> Optional[int]:
    """HTTP status carried by a ``requests`` error, if any."""
    response = getattr(exception, "response", None)
    return getattr(response, "status_code", None) if response is not None else None


class ErrorClassifier:
    """
    Classifies errors from the PDF service and email provider.

    Features:
    - HTTP status code classification for ``requests.HTTPError``
    - Network error detection
    - Error description generation
    """

    def classify(self, exception: Exception) -> ErrorType:
        """
        Classify an exception into retryable, fatal, or unknown.

        Args:
            exception: The exception to classify

        Returns:
            ErrorType classification
        """
        if isinstance(exception, requests.exceptions.HTTPError):
            status_code = status_code_of(exception)
            if status_code is not None:
                if status_code == 429 or 500 <= status_code < 600:
                    return ErrorType.RETRYABLE
                if 400 <= status_code < 500:
                    return ErrorType.FATAL

        if isinstance(
            exception,
            (
                socket.timeout,
                requests.exceptions.ConnectionError,
                requests.exceptions.Timeout,
            ),
        ):
            return ErrorType.RETRYABLE

        return ErrorType.UNKNOWN

    def is_retryable(self, exception: Exception) -> bool:
        return self.classify(exception) == ErrorType.RETRYABLE

    def get_error_description(self, exception: Exception) -> str:
        """
        Get a human-readable error description.

        Args:
            exception: The exception to describe

        Returns:
            Error description string
        """
        error_type = self.classify(exception)
        status_code = status_code_of(exception)

        if status_code is not None:
            if status_code == 429:
                return f"Rate limit error (HTTP 429) - {error_type.value}"
            if 500 <= status_code < 600:
                return f"Server error (HTTP {status_code}) - {error_type.value}"
            if 400 <= status_code < 500:
                return f"Client error (HTTP {status_code}) - {error_type.value}"

        if isinstance(exception, (socket.timeout, requests.exceptions.Timeout)):
            return f"Network timeout error - {error_type.value}"

        if isinstance(exception, requests.exceptions.ConnectionError):
            return f"Network connection error - {error_type.value}"

        return f"{type(exception).__name__}: {exception} - {error_type.value}"
