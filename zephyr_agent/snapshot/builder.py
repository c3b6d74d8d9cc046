"""
Snapshot assembly.

Pure transforms over inputs already collected by the engine; nothing
here touches the network or the filesystem.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Iterable, List, Optional

from ..assets import AssetsMap
from ..context.package_json import CatalogResolver
from ..faults import ZephyrError, ZeErrors
from ..federation.graph import build_consumes, build_overrides, extract_modules_from_exposes
from ..federation.models import FederationConfig, ResolvedDependency
from ..identity import create_snapshot_id, snapshot_version
from .models import BuildStats, Snapshot, SnapshotAsset, SnapshotContext


INDEX_HTML = "index.html"


def normalize_base_path(base_href: Optional[str]) -> str:
    """
    ``base_href`` without leading ``./`` or ``/`` and trailing ``/``.

    >>> normalize_base_path("/app/")
    'app'
    >>> normalize_base_path("./")
    ''
    """
    if not base_href:
        return ""
    base = base_href.strip().replace("\\", "/")
    while base.startswith("./"):
        base = base[2:]
    base = base.strip("/")
    return "" if base == "." else base


def asset_key(path: str, base: str) -> str:
    if not base or path == INDEX_HTML:
        return path
    return f"{base}/{path}"


def _snapshot_id(ctx: SnapshotContext) -> str:
    return create_snapshot_id(ctx.application_uid, ctx.build_id, ctx.username)


def build_snapshot(
    ctx: SnapshotContext,
    assets_map: AssetsMap,
    mf_config: Optional[FederationConfig] = None,
    *,
    now: Optional[float] = None,
) -> Snapshot:
    """
    Assemble the snapshot for ``assets_map``.

    Asset keys carry the normalized base href, except ``index.html``.
    """
    package_json = ctx.package_json
    git_info = ctx.git_info
    base = normalize_base_path(ctx.base_href)

    assets: Dict[str, SnapshotAsset] = {}
    for asset in assets_map.values():
        key = asset_key(asset.path, base)
        assets[key] = SnapshotAsset(path=key, extname=asset.extname, hash=asset.hash, size=asset.size)

    created_at = int((time.time() if now is None else now) * 1000)

    return Snapshot(
        application_uid=ctx.application_uid,
        version=snapshot_version(
            package_json.version,
            ctx.build_id,
            username=ctx.username,
            branch=git_info.branch,
            is_ci=ctx.is_ci,
        ),
        snapshot_id=_snapshot_id(ctx),
        domain=ctx.app_config.EDGE_URL,
        uid={
            "build": ctx.build_id,
            "app_name": package_json.name,
            "repo": git_info.project,
            "org": git_info.org,
        },
        git=git_info.to_dict(),
        creator={"name": ctx.username, "email": ctx.app_config.email},
        createdAt=created_at,
        mfConfig=mf_config.to_dict() if mf_config else None,
        assets=dict(sorted(assets.items())),
        ze_envs_hash=ctx.ze_envs_hash,
    )


def _raw_dependencies(record: Optional[Dict[str, str]]) -> List[Dict[str, str]]:
    return [{"name": name, "version": version} for name, version in (record or {}).items()]


def build_dash_data(
    ctx: SnapshotContext,
    mf_config: Optional[FederationConfig] = None,
    resolved: Iterable[ResolvedDependency] = (),
    *,
    consumes: Optional[List[Dict[str, Any]]] = None,
    catalogs: Optional[CatalogResolver] = None,
) -> BuildStats:
    """
    Build stats document for the dashboard.

    Raises:
        ZephyrError: ERR_SHARED_PACKAGE when the shared config cannot be
            read, ERR_CONVERT_GRAPH_TO_DASHBOARD for other graph errors
    """
    package_json = ctx.package_json
    resolved = list(resolved)

    if not ctx.build_id:
        raise ZephyrError(
            ZeErrors.ERR_GET_BUILD_ID,
            username=ctx.username,
            application_uid=ctx.application_uid,
        )
    snapshot_id = _snapshot_id(ctx)

    try:
        overrides = build_overrides(mf_config, package_json, catalogs)
    except (AttributeError, TypeError, ValueError) as e:
        raise ZephyrError(ZeErrors.ERR_SHARED_PACKAGE, cause=e) from e

    try:
        modules = extract_modules_from_exposes(mf_config, ctx.application_uid)
        consumes_list = build_consumes(resolved, consumes)
    except (AttributeError, TypeError, ValueError) as e:
        raise ZephyrError(ZeErrors.ERR_CONVERT_GRAPH_TO_DASHBOARD, cause=e) from e

    return BuildStats(
        id=ctx.application_uid,
        name=package_json.name,
        edge={"url": ctx.app_config.EDGE_URL, "delimiter": ctx.app_config.DELIMITER},
        app={
            "name": package_json.name,
            "version": package_json.version,
            "org": ctx.git_info.org,
            "project": ctx.git_info.project,
            "buildId": ctx.build_id,
        },
        version=snapshot_id,
        git=ctx.git_info.to_dict(),
        context={"isCI": ctx.is_ci, "username": ctx.username},
        dependencies=_raw_dependencies(package_json.dependencies),
        devDependencies=_raw_dependencies(package_json.dev_dependencies),
        optionalDependencies=_raw_dependencies(package_json.optional_dependencies),
        peerDependencies=_raw_dependencies(package_json.peer_dependencies),
        overrides=overrides,
        consumes=consumes_list,
        modules=modules,
        remotes=[dep.name for dep in resolved],
        zephyrDependencies={
            name: dep.to_dict() for name, dep in package_json.zephyr_dependencies.items()
        },
        remote=(mf_config.filename if mf_config else None) or "remoteEntry.js",
        ze_envs=dict(ctx.ze_envs) or None,
        ze_envs_hash=ctx.ze_envs_hash,
    )
