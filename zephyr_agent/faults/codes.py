"""
Error catalog.

Every error the agent raises has a stable code of the form
``ZE{category}{id}``:

- ``ZE`` is constant
- two digits for the category (``10`` build, ``20`` deploy, ...)
- three digits for the id

So a missing snapshot id shows up as ``ZE20022``, and the same code can
be looked up on the documentation site.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional

from .core import FaultDomain


CATEGORIES: Dict[str, str] = {
    "unknown": "00",
    "build": "10",
    "deploy": "20",
    "browser": "30",
    "config": "40",
}

KIND_DOMAINS: Dict[str, FaultDomain] = {
    "unknown": FaultDomain.SYSTEM,
    "build": FaultDomain.CONFIG,
    "deploy": FaultDomain.EFFECT,
    "browser": FaultDomain.IO,
    "config": FaultDomain.CONFIG,
}

DOCS_URL = "https://docs.zephyr-cloud.io/errors"

_CODE_RE = re.compile(r"^ZE(\d{2})(\d{3})$")


@dataclass(frozen=True)
class ZeErrorType:
    """One catalog entry."""

    key: str
    id: str
    kind: str
    message: str

    @property
    def code(self) -> str:
        return f"ZE{CATEGORIES[self.kind]}{self.id}"

    @property
    def domain(self) -> FaultDomain:
        return KIND_DOMAINS[self.kind]

    @property
    def docs_url(self) -> str:
        return f"{DOCS_URL}/{self.code}"


_REGISTRY: Dict[str, ZeErrorType] = {}


def _define(key: str, id: str, kind: str, message: str) -> ZeErrorType:
    entry = ZeErrorType(key=key, id=id, kind=kind, message=message.strip())
    if entry.code in {e.code for e in _REGISTRY.values()}:
        raise ValueError(f"Duplicate error code {entry.code} for {key}")
    _REGISTRY[key] = entry
    return entry


class ZeErrors:
    """Namespace of all known error types."""

    # ── unknown ──────────────────────────────────────────────────────────

    ERR_UNKNOWN = _define("ERR_UNKNOWN", "000", "unknown", "Unknown error: {{ message }}")

    # ── build ────────────────────────────────────────────────────────────

    ERR_PACKAGE_JSON_NOT_FOUND = _define(
        "ERR_PACKAGE_JSON_NOT_FOUND", "010", "build", "package.json not found",
    )
    ERR_PACKAGE_JSON_NOT_VALID = _define(
        "ERR_PACKAGE_JSON_NOT_VALID", "011", "build",
        "Package.json is not in a valid json format.",
    )
    ERR_PACKAGE_JSON_MUST_HAVE_NAME_VERSION = _define(
        "ERR_PACKAGE_JSON_MUST_HAVE_NAME_VERSION", "013", "build",
        "Zephyr needs package.json to have name and version fields to map your "
        "application configuration in deployment. Please ensure these fields "
        "exist in your package.json.",
    )
    ERR_GIT_REMOTE_ORIGIN = _define(
        "ERR_GIT_REMOTE_ORIGIN", "014", "build",
        """
Could not detect a git remote called 'origin'. This is required for Zephyr to work properly.

Please set the git remote origin by running the following command:

    git init
    git remote add origin <url>
""",
    )
    ERR_NO_GIT_USERNAME_EMAIL = _define(
        "ERR_NO_GIT_USERNAME_EMAIL", "015", "build",
        """
Git username or email is not configured:
- please set valid 'git config user.name' and 'git config user.email'
- or provide ZE_USER_TOKEN as environment variable
""",
    )
    ERR_NO_GIT_INFO = _define(
        "ERR_NO_GIT_INFO", "016", "build",
        "Failed to load git information:\n\n{{ message }}",
    )
    ERR_MISSING_APPLICATION_UID = _define(
        "ERR_MISSING_APPLICATION_UID", "017", "build", "`application_uid` missing.",
    )
    ERR_AUTH_ERROR = _define(
        "ERR_AUTH_ERROR", "018", "build",
        """
Failed to authenticate with Zephyr.

Please make sure you have a valid Zephyr account and you are logged in.

{{ message = No token found. }}
""",
    )
    ERR_GET_BUILD_ID = _define(
        "ERR_GET_BUILD_ID", "019", "build",
        """
Could not generate Build ID. Ensure you meet the following requirements:

1. Your Zephyr Account ({{ username }}) has write access to {{ application_uid }}
2. You own the repository or are a collaborator with write access.
3. This repository has commit history and has a proper git remote origin url.
""",
    )
    ERR_INITIALIZE_ZEPHYR_AGENT = _define(
        "ERR_INITIALIZE_ZEPHYR_AGENT", "020", "build", "Could not initialize Zephyr Agent.",
    )
    ERR_INVALID_APP_ID = _define(
        "ERR_INVALID_APP_ID", "024", "build",
        """
Invalid application_uid: {{ application_uid }}. Your application_uid is a combination of:
- git organization name
- git repository name
- name in package.json
""",
    )
    ERR_NO_RESPONSE_FOR_APP_CONFIG = _define(
        "ERR_NO_RESPONSE_FOR_APP_CONFIG", "030", "build",
        "Failed to load application configuration.",
    )
    ERR_GIT_COMMIT_HASH = _define(
        "ERR_GIT_COMMIT_HASH", "036", "build",
        "Failed to get git commit hash. Can you make sure this git repository has commit history?",
    )

    # ── deploy ───────────────────────────────────────────────────────────

    ERR_ASSETS_NOT_FOUND = _define("ERR_ASSETS_NOT_FOUND", "010", "deploy", "Assets not found.")
    ERR_DEPLOY_MISSING_APPLICATION_UID = _define(
        "ERR_DEPLOY_MISSING_APPLICATION_UID", "012", "deploy", "`application_uid` is required.",
    )
    ERR_MISSING_FILE_HASH = _define(
        "ERR_MISSING_FILE_HASH", "013", "deploy", "Missing file hash.",
    )
    ERR_LOAD_APP_CONFIG = _define(
        "ERR_LOAD_APP_CONFIG", "014", "deploy",
        """
Failed to load Application Configuration for {{ application_uid }}.

Try to remove ~/.zephyr folder and try again.
""",
    )
    ERR_FAILED_UPLOAD = _define(
        "ERR_FAILED_UPLOAD", "017", "deploy",
        """
Could not upload {{ type }} to your Edge Provider. This error will affect your
tags and environments and it might fail deployments to custom domains.

Please check your network connection and try again.
""",
    )
    ERR_SNAPSHOT_UPLOADS_NO_RESULTS = _define(
        "ERR_SNAPSHOT_UPLOADS_NO_RESULTS", "019", "deploy", "Snapshot uploads gave no results.",
    )
    ERR_GET_APPLICATION_HASH_LIST = _define(
        "ERR_GET_APPLICATION_HASH_LIST", "020", "deploy", "Failed to get application hash list.",
    )
    ERR_SNAPSHOT_ID_NOT_FOUND = _define(
        "ERR_SNAPSHOT_ID_NOT_FOUND", "022", "deploy", "`snapshot_id` not found.",
    )

    # ── browser ──────────────────────────────────────────────────────────

    ERR_CONVERT_GRAPH_TO_DASHBOARD = _define(
        "ERR_CONVERT_GRAPH_TO_DASHBOARD", "026", "browser",
        "Failed to convert the build graph into dashboard data.",
    )

    # ── config ───────────────────────────────────────────────────────────

    ERR_RESOLVE_REMOTES = _define(
        "ERR_RESOLVE_REMOTES", "001", "config",
        """
Failed to resolve remote dependency: {{ appUid }} version {{ version }}

This could be due to one of the following reasons:
- The remote application '{{ appName }}' has not been built with Zephyr yet
- The specified version '{{ version }}' does not exist
- You don't have access to this application
- The application exists but no environment has been created

Verify you have access to {{ orgName }}/{{ projectName }}/{{ appName }}.
Application UID format: [app_name].[project_name].[org_name]
""",
    )
    ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION = _define(
        "ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION", "003", "config",
        """
Failed to resolve remote application with version {{ version }}

This could be due to one of the following reasons:
- Network error while trying to resolve the dependency
- Zephyr API is temporarily unavailable
- Application naming mismatch in configuration
""",
    )
    ERR_SHARED_PACKAGE = _define(
        "ERR_SHARED_PACKAGE", "004", "config",
        "Were the required packages in Module Federation shared config installed "
        "and included in package.json? Computing shared dependencies failed.",
    )
    ERR_HTTP_ERROR = _define(
        "ERR_HTTP_ERROR", "035", "config",
        """
HTTP request for {{ method }} {{ url }} failed with status code {{ status }}.

Please check your network connection and try again.

{{ content = }}
""",
    )


def all_errors() -> Dict[str, ZeErrorType]:
    """Return a copy of the catalog keyed by ``ERR_*`` name."""
    return dict(_REGISTRY)


def get_error(key: str) -> ZeErrorType:
    return _REGISTRY[key]


def from_code(code: str) -> Optional[ZeErrorType]:
    """
    Parse a ``ZE*****`` code back to its catalog entry.

    Returns None for malformed or unknown codes.
    """
    match = _CODE_RE.match(code.strip().upper())
    if not match:
        return None
    category, id_ = match.groups()
    for entry in _REGISTRY.values():
        if CATEGORIES[entry.kind] == category and entry.id == id_:
            return entry
    return None
