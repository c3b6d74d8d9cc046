"""
package.json discovery and parsing.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..faults import ZephyrError, ZeErrors


logger = logging.getLogger("zephyr_agent.context")

ZEPHYR_DEPENDENCIES_KEY = "zephyr:dependencies"
_SEMVER_OPERATORS = re.compile(r"[\^~><=]")


@dataclass(frozen=True)
class ZeDependency:
    """One parsed ``zephyr:dependencies`` entry."""

    version: str
    registry: str
    app_uid: str

    def to_dict(self) -> Dict[str, str]:
        return {"version": self.version, "registry": self.registry, "app_uid": self.app_uid}


@dataclass
class PackageJson:
    name: str
    version: str
    path: Optional[Path] = None
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    optional_dependencies: Dict[str, str] = field(default_factory=dict)
    peer_dependencies: Dict[str, str] = field(default_factory=dict)
    zephyr_dependencies: Dict[str, ZeDependency] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)


def parse_ze_dependency(key: str, value: str) -> ZeDependency:
    """
    Parse one dependency value.

    Accepted forms:
        "^1.0.0"                        npm registry
        "zephyr:remote.project.org"     zephyr, version "latest"
        "zephyr:remote.project.org@v2"  zephyr, explicit tag
        "zephyr:^1.0.0"                 zephyr, semver against ``key``
    """
    if not value.startswith("zephyr:"):
        return ZeDependency(version=value, registry="npm", app_uid=key)

    reference = value[len("zephyr:"):]
    if "@" in reference:
        app_uid, tag = reference.split("@", 1)
        return ZeDependency(version=tag, registry="zephyr", app_uid=app_uid)
    if not _SEMVER_OPERATORS.search(reference):
        return ZeDependency(version="latest", registry="zephyr", app_uid=reference)
    return ZeDependency(version=reference, registry="zephyr", app_uid=key)


def parse_ze_dependencies(deps: Dict[str, str]) -> Dict[str, ZeDependency]:
    return {key: parse_ze_dependency(key, value) for key, value in deps.items()}


def _find_upwards(start: Path, filename: str) -> Optional[Path]:
    current = start
    while True:
        candidate = current / filename
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


class CatalogResolver:
    """
    Resolves pnpm ``catalog:`` version references.

    ``catalog:`` reads the default catalog, ``catalog:<name>`` a named one.
    """

    def __init__(self, workspace: Optional[Dict[str, Any]] = None):
        self.workspace = workspace or {}

    @classmethod
    def discover(cls, start: Path) -> "CatalogResolver":
        path = _find_upwards(start, "pnpm-workspace.yaml")
        if path is None:
            return cls()
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.debug(f"Could not read {path}: {e}")
            return cls()
        return cls(data if isinstance(data, dict) else {})

    def resolve(self, package: str, version: str) -> str:
        if not version.startswith("catalog:"):
            return version
        catalog_name = version[len("catalog:"):].strip() or "default"
        if catalog_name == "default" and isinstance(self.workspace.get("catalog"), dict):
            catalog = self.workspace["catalog"]
        else:
            catalog = (self.workspace.get("catalogs") or {}).get(catalog_name) or {}
        resolved = catalog.get(package)
        if resolved is None:
            logger.debug(f"Catalog reference {version} for {package} not found")
            return version
        return str(resolved)

    def resolve_all(self, deps: Optional[Dict[str, str]]) -> Dict[str, str]:
        return {name: self.resolve(name, str(v)) for name, v in (deps or {}).items()}


def read_package_json(context: Union[str, Path, None] = None) -> PackageJson:
    """
    Find and parse the nearest package.json walking up from ``context``.

    Raises:
        ZephyrError: ERR_PACKAGE_JSON_NOT_FOUND, ERR_PACKAGE_JSON_NOT_VALID
            or ERR_PACKAGE_JSON_MUST_HAVE_NAME_VERSION
    """
    start = Path(context or ".").resolve()
    if start.is_file():
        start = start.parent

    path = _find_upwards(start, "package.json")
    if path is None:
        raise ZephyrError(ZeErrors.ERR_PACKAGE_JSON_NOT_FOUND, data={"context": str(start)})

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ZephyrError(ZeErrors.ERR_PACKAGE_JSON_NOT_VALID, cause=e, data={"path": str(path)})

    if not isinstance(raw, dict):
        raise ZephyrError(ZeErrors.ERR_PACKAGE_JSON_NOT_VALID, data={"path": str(path)})
    if not raw.get("name") or not raw.get("version"):
        raise ZephyrError(
            ZeErrors.ERR_PACKAGE_JSON_MUST_HAVE_NAME_VERSION, data={"path": str(path)}
        )

    catalogs = CatalogResolver.discover(path.parent)
    package = PackageJson(
        name=raw["name"],
        version=raw["version"],
        path=path,
        dependencies=catalogs.resolve_all(raw.get("dependencies")),
        dev_dependencies=catalogs.resolve_all(raw.get("devDependencies")),
        optional_dependencies=catalogs.resolve_all(raw.get("optionalDependencies")),
        peer_dependencies=catalogs.resolve_all(raw.get("peerDependencies")),
        zephyr_dependencies=parse_ze_dependencies(raw.get(ZEPHYR_DEPENDENCIES_KEY) or {}),
        raw=raw,
    )
    logger.debug(f"package.json found at {path}")
    return package
