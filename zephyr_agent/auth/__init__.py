"""
Authentication helpers: token lookup and the login polling manager.
"""

from .token import (
    DEFAULT_TOKEN_FILE,
    SECRET_TOKEN_ENV,
    USER_TOKEN_ENV,
    check_auth,
    get_token,
    has_secret_token,
)
from .polling import PollingManager, PollingTimeout

__all__ = [
    "DEFAULT_TOKEN_FILE",
    "SECRET_TOKEN_ENV",
    "USER_TOKEN_ENV",
    "check_auth",
    "get_token",
    "has_secret_token",
    "PollingManager",
    "PollingTimeout",
]
