"""
Application identity helpers.

An application is addressed everywhere by its ``application_uid``,
``name.project.org``, each part lower-cased with every character outside
``[a-zA-Z0-9-]`` replaced by ``-``.
"""

from __future__ import annotations

import re
from typing import Tuple

from .faults import ZephyrError, ZeErrors


_DISALLOWED = re.compile(r"[^a-zA-Z0-9-]")


def normalize_part(value: str) -> str:
    return _DISALLOWED.sub("-", value.lower())


def application_uid(org: str, project: str, name: str) -> str:
    """
    Build the application uid.

    >>> application_uid("My_Org!", "My-Project#123", "App Name@2024")
    'app-name-2024.my-project-123.my-org-'
    """
    return ".".join(normalize_part(part) for part in (name, project, org))


def parse_application_uid(uid: str) -> Tuple[str, str, str]:
    """Split ``name.project.org`` into ``(name, project, org)``."""
    parts = uid.split(".") if uid else []
    if len(parts) < 3 or not all(parts):
        raise ZephyrError(ZeErrors.ERR_INVALID_APP_ID, application_uid=uid)
    # the app name may itself contain dots
    name = ".".join(parts[:-2])
    return name, parts[-2], parts[-1]


def create_snapshot_id(app_uid: str, build_id: str, username: str) -> str:
    """
    Snapshot id for one build of one application.

    Pure: the same inputs always give the same id, so retried assembly of
    a build is idempotent.
    """
    return f"{username}_{build_id}.{app_uid}"


def snapshot_version(
    app_version: str,
    build_id: str,
    *,
    username: str,
    branch: str = "",
    is_ci: bool = False,
) -> str:
    """Human readable version string recorded on the snapshot."""
    suffix = branch if is_ci and branch else username
    return f"{app_version}-{suffix}.{build_id}"
