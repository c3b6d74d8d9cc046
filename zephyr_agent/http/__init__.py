"""
HTTP transport for the Zephyr API and edge workers.
"""

from .client import ApiClient
from .models import ApplicationConfiguration
from .retry import fetch_with_retries, is_retryable_status

__all__ = [
    "ApiClient",
    "ApplicationConfiguration",
    "fetch_with_retries",
    "is_retryable_status",
]
