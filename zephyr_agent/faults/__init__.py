"""
ZephyrFaults - structured, cataloged errors.

Usage:
    ```python
    from zephyr_agent.faults import ZephyrError, ZeErrors

    raise ZephyrError(ZeErrors.ERR_NO_GIT_INFO, message="not a git repository")
    ```
"""

from .core import Fault, FaultDomain, Severity, DOMAIN_DEFAULTS
from .codes import (
    CATEGORIES,
    DOCS_URL,
    ZeErrorType,
    ZeErrors,
    all_errors,
    from_code,
    get_error,
)
from .errors import ZephyrError, HttpError, format_string, explain

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "DOMAIN_DEFAULTS",
    "CATEGORIES",
    "DOCS_URL",
    "ZeErrorType",
    "ZeErrors",
    "all_errors",
    "from_code",
    "get_error",
    "ZephyrError",
    "HttpError",
    "format_string",
    "explain",
]
