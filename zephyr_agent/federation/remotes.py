"""
Remote declaration parsing.

Build tools declare remotes in several shapes::

    {"shell": "shell@http://localhost:3000/remoteEntry.js"}   # name -> version/url
    {"ui": {"external": "...", "shareScope": "default"}}    # name -> config object
    ["shell", "ui"]                                           # Nx style names
    [{"shell": "..."}]                                        # nested objects
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..context.package_json import PackageJson
from .models import DeclaredDependency, FederationConfig


logger = logging.getLogger("zephyr_agent.federation")


def _as_version(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def parse_remotes_as_entries(remotes: Any) -> List[Tuple[str, str]]:
    """Flatten any supported remotes shape into ``(name, version)`` pairs."""
    if not remotes:
        return []

    pairs: List[Tuple[str, str]] = []
    if isinstance(remotes, dict):
        for name, value in remotes.items():
            pairs.append((name, _as_version(value)))
        return pairs

    for remote in remotes:
        if isinstance(remote, str):
            pairs.append((remote, remote))
        elif isinstance(remote, (list, tuple)) and len(remote) == 2:
            pairs.append((str(remote[0]), _as_version(remote[1])))
        elif isinstance(remote, dict):
            for name, value in remote.items():
                pairs.append((name, _as_version(value)))
        else:
            logger.debug(f"Ignoring unsupported remote declaration: {remote!r}")
    return pairs


def _looks_like_url(value: str) -> bool:
    return "://" in value or value.startswith("//") or value.startswith("/")


def parse_remote_version(key: str, value: str) -> Tuple[str, Optional[str]]:
    """
    Split a declared version into ``(remote_name, entry_url)``.

    ``"SharedUILib@http://host/remoteEntry.js"`` gives
    ``("SharedUILib", "http://host/remoteEntry.js")``; a bare URL keeps the
    declared ``key`` as name and the whole string as URL; a plain version
    or tag gives ``(key, None)``.
    """
    if "@" in value:
        head, tail = value.split("@", 1)
        if head and _looks_like_url(tail):
            return head, tail
    if _looks_like_url(value):
        return key, value
    return key, None


def is_dependency_pair(dep: Any) -> bool:
    return (
        isinstance(dep, DeclaredDependency)
        and isinstance(dep.name, str)
        and isinstance(dep.version, str)
        and bool(dep.name)
        and bool(dep.version)
    )


def extract_federated_dependency_pairs(
    mf_config: Optional[FederationConfig],
    package_json: Optional[PackageJson] = None,
) -> List[DeclaredDependency]:
    """
    Every remote the application declares, ``zephyr:dependencies`` first.

    A name declared in both places keeps the ``zephyr:dependencies`` entry.
    """
    deps: Dict[str, DeclaredDependency] = {}

    if package_json is not None:
        raw = package_json.raw.get("zephyr:dependencies") or {}
        for name, version in raw.items():
            deps[name] = DeclaredDependency(name=name, version=str(version))

    if mf_config is not None:
        for name, version in parse_remotes_as_entries(mf_config.remotes):
            deps.setdefault(name, DeclaredDependency(name=name, version=version))

    return [dep for dep in deps.values() if is_dependency_pair(dep)]
