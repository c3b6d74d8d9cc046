"""
Zephyr manifest - the resolved dependency map shipped next to the build.

.. code-block:: json

    {
        "version": "1.0.0",
        "timestamp": "2026-01-01T00:00:00+00:00",
        "dependencies": {
            "shell": {
                "name": "shell",
                "application_uid": "shell.project.org",
                "remote_entry_url": "https://.../remoteEntry.js",
                "default_url": "https://..."
            }
        },
        "zeVars": {"ZE_PUBLIC_API": "https://api.example.com"}
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from ..assets import Asset
from .models import ResolvedDependency


MANIFEST_FILENAME = "zephyr-manifest.json"
MANIFEST_VERSION = "1.0.0"


@dataclass(frozen=True)
class ManifestDependency:
    name: str
    application_uid: str
    remote_entry_url: str
    default_url: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "application_uid": self.application_uid,
            "remote_entry_url": self.remote_entry_url,
            "default_url": self.default_url,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ManifestDependency":
        return cls(
            name=d["name"],
            application_uid=d["application_uid"],
            remote_entry_url=d["remote_entry_url"],
            default_url=d.get("default_url", ""),
        )


class ManifestError(ValueError):
    """Raised when a manifest document is malformed."""
    pass


@dataclass(frozen=True)
class ZephyrManifest:
    version: str = MANIFEST_VERSION
    timestamp: str = ""
    dependencies: Dict[str, ManifestDependency] = field(default_factory=dict)
    zeVars: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "dependencies": {k: v.to_dict() for k, v in self.dependencies.items()},
            "zeVars": dict(self.zeVars),
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ZephyrManifest":
        if not isinstance(d, dict) or not isinstance(d.get("dependencies", {}), dict):
            raise ManifestError("Manifest must be an object with a 'dependencies' object")
        try:
            dependencies = {
                name: ManifestDependency.from_dict(dep)
                for name, dep in d.get("dependencies", {}).items()
            }
        except (KeyError, TypeError) as e:
            raise ManifestError(f"Invalid manifest dependency: {e}") from e
        return cls(
            version=d.get("version", MANIFEST_VERSION),
            timestamp=d.get("timestamp", ""),
            dependencies=dependencies,
            zeVars=dict(d.get("zeVars") or {}),
        )

    @classmethod
    def from_json(cls, text: str) -> "ZephyrManifest":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Manifest is not valid JSON: {e}") from e
        return cls.from_dict(data)


def build_manifest(
    resolved: Iterable[ResolvedDependency],
    ze_vars: Optional[Dict[str, str]] = None,
    *,
    now: Optional[datetime] = None,
) -> ZephyrManifest:
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return ZephyrManifest(
        timestamp=timestamp,
        dependencies={
            dep.name: ManifestDependency(
                name=dep.name,
                application_uid=dep.application_uid,
                remote_entry_url=dep.remote_entry_url,
                default_url=dep.default_url,
            )
            for dep in resolved
        },
        zeVars=dict(ze_vars or {}),
    )


def manifest_asset(manifest: ZephyrManifest) -> Asset:
    """The manifest as a build asset, ready to join the asset map."""
    return Asset.from_content(MANIFEST_FILENAME, manifest.to_json())


def resolve_manifest_url(base: str) -> str:
    """
    URL of the manifest served under ``base``.

    Query strings and fragments are dropped; a URL that already points
    at the manifest is returned unchanged.
    """
    trimmed = base.strip()
    if not trimmed:
        raise ValueError("Empty Zephyr URL")
    if trimmed.endswith(MANIFEST_FILENAME):
        return trimmed

    parts = urlsplit(trimmed)
    if parts.scheme and parts.netloc:
        path = parts.path if parts.path.endswith("/") else parts.path + "/"
        return urlunsplit((parts.scheme, parts.netloc, path + MANIFEST_FILENAME, "", ""))
    return f"{trimmed.rstrip('/')}/{MANIFEST_FILENAME}"
