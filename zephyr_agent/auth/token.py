"""
Token lookup.

Order: ``ZE_SECRET_TOKEN`` (server-to-server), ``ZE_USER_TOKEN``, then the
token persisted by the login flow at ``~/.zephyr/token``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from ..faults import ZephyrError, ZeErrors


logger = logging.getLogger("zephyr_agent.auth")

SECRET_TOKEN_ENV = "ZE_SECRET_TOKEN"
USER_TOKEN_ENV = "ZE_USER_TOKEN"
DEFAULT_TOKEN_FILE = Path.home() / ".zephyr" / "token"


def has_secret_token(env: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if env is None else env
    return bool(env.get(SECRET_TOKEN_ENV, "").strip())


def get_token(
    env: Optional[Mapping[str, str]] = None,
    token_file: Optional[Path] = None,
) -> Optional[str]:
    """Return the first available token, or None."""
    env = os.environ if env is None else env

    for key in (SECRET_TOKEN_ENV, USER_TOKEN_ENV):
        value = env.get(key, "").strip()
        if value:
            return value

    path = token_file or DEFAULT_TOKEN_FILE
    try:
        value = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug(f"Could not read token file {path}: {e}")
        return None
    return value or None


def check_auth(
    env: Optional[Mapping[str, str]] = None,
    token_file: Optional[Path] = None,
) -> str:
    """
    Return the token, raising ERR_AUTH_ERROR when none is available.
    """
    token = get_token(env, token_file)
    if not token:
        raise ZephyrError(
            ZeErrors.ERR_AUTH_ERROR,
            message=f"No token found. Set {USER_TOKEN_ENV} or log in first.",
        )
    return token
