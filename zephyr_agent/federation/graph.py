"""
Dependency graph of the build: shared overrides, exposed modules and
consumed remotes, in the shape the dashboard expects.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..context.package_json import CatalogResolver, PackageJson
from .models import FederationConfig, ResolvedDependency


logger = logging.getLogger("zephyr_agent.federation")

DEFAULT_VERSION = "0.0.0"

# loadRemote("remote/Component") and import("remote/Component")
_LOAD_REMOTE_RE = re.compile(
    r"""(?:loadRemote|import)\(\s*["']([A-Za-z0-9_@.\-]+)/([^"']+)["']\s*\)"""
)


def _shared_entries(shared: Any) -> List[tuple]:
    """``(name, config)`` for every shape of ``shared``."""
    if not shared:
        return []
    if isinstance(shared, dict):
        return list(shared.items())
    entries = []
    for item in shared:
        if isinstance(item, str):
            entries.append((item, None))
        elif isinstance(item, dict) and "libraryName" in item:
            entries.append((str(item["libraryName"]), item))
    return entries


def shared_library_names(mf_config: FederationConfig) -> List[str]:
    """Names of shared libraries, including Nx ``additionalShared``."""
    names = [name for name, _ in _shared_entries(mf_config.shared)]
    for item in mf_config.additional_shared:
        if isinstance(item, dict) and item.get("libraryName"):
            names.append(str(item["libraryName"]))
    return names


def resolve_shared_version(
    name: str,
    config: Any,
    package_json: Optional[PackageJson],
    catalogs: Optional[CatalogResolver] = None,
) -> str:
    """
    Version pinned for one shared library.

    Preference: ``dependencies``, ``peerDependencies``, the config's
    ``requiredVersion``, a plain string config, then ``0.0.0``.
    """
    catalogs = catalogs or CatalogResolver()
    deps = package_json.dependencies if package_json else {}
    peers = package_json.peer_dependencies if package_json else {}

    if deps.get(name):
        return catalogs.resolve(name, deps[name])
    if peers.get(name):
        return catalogs.resolve(name, peers[name])
    if isinstance(config, dict):
        required = config.get("requiredVersion")
        if isinstance(required, str) and required:
            return catalogs.resolve(name, required)
        return DEFAULT_VERSION
    if isinstance(config, str) and config:
        return catalogs.resolve(name, config)
    return DEFAULT_VERSION


def build_overrides(
    mf_config: Optional[FederationConfig],
    package_json: Optional[PackageJson],
    catalogs: Optional[CatalogResolver] = None,
) -> List[Dict[str, str]]:
    if mf_config is None:
        return []
    overrides = []
    for name, config in _shared_entries(mf_config.shared):
        version = resolve_shared_version(name, config, package_json, catalogs)
        overrides.append({
            "id": name,
            "name": name,
            "version": version,
            "location": name,
            "applicationID": name,
        })
    return sorted(overrides, key=lambda o: o["name"])


def extract_modules_from_exposes(
    mf_config: Optional[FederationConfig],
    application_id: str,
) -> List[Dict[str, Any]]:
    """One module entry per exposed path, requiring every shared library."""
    if mf_config is None or not mf_config.exposes:
        return []

    requires = shared_library_names(mf_config)
    modules = []
    for exposed_path, target in mf_config.exposes.items():
        if isinstance(target, str):
            file = target
        elif isinstance(target, dict) and "import" in target:
            imp = target["import"]
            file = imp[0] if isinstance(imp, list) and imp else str(imp)
        else:
            file = str(target)

        name = exposed_path[2:] if exposed_path.startswith("./") else exposed_path
        modules.append({
            "id": f"{name}:{name}",
            "name": name,
            "applicationID": application_id,
            "requires": list(requires),
            "file": file,
        })
    return modules


def extract_consumes(
    chunks: Mapping[str, str],
    remote_names: Iterable[str],
) -> List[Dict[str, Any]]:
    """
    Scan emitted code for ``loadRemote("remote/Component")`` style calls.

    Only names of declared remotes are recorded. ``chunks`` maps each
    emitted file name to its code.
    """
    known = set(remote_names)
    consumes: Dict[str, Dict[str, Any]] = {}
    for file, code in sorted(chunks.items()):
        for remote, component in _LOAD_REMOTE_RE.findall(code):
            if remote not in known:
                continue
            key = f"{remote}-{component}"
            entry = consumes.setdefault(key, {
                "consumingApplicationID": component,
                "applicationID": remote,
                "name": component,
                "usedIn": [],
            })
            used = {"file": file, "url": file}
            if used not in entry["usedIn"]:
                entry["usedIn"].append(used)
    return list(consumes.values())


def build_consumes(
    resolved: Iterable[ResolvedDependency],
    found: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """
    Consumption entries: everything found in code, plus one entry per
    resolved remote nothing was found for.
    """
    consumes = list(found or [])
    seen = {c["applicationID"] for c in consumes}
    for dep in resolved:
        if dep.name in seen:
            continue
        consumes.append({
            "consumingApplicationID": dep.name,
            "applicationID": dep.application_uid,
            "name": dep.name,
            "usedIn": [],
        })
    return consumes
