"""
Upload orchestration.

A deploy sends, in order:

1. the missing assets (bounded pool) and the snapshot, concurrently,
   to the default edge and to every environment edge
2. the public env vars, when there are any
3. the build stats, to the API

Asset and env failures are collected as warnings. A failed snapshot or
build stats upload fails the deploy.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Set

from ..assets import Asset, AssetsMap, get_missing_assets
from ..config import AgentConfig
from ..faults import ZephyrError, ZeErrors
from ..http.models import ApplicationConfiguration
from ..snapshot import BuildStats, Snapshot
from .pool import Settled, for_each_limit, is_success, settle

if TYPE_CHECKING:
    from ..http import ApiClient


logger = logging.getLogger("zephyr_agent.upload")


@dataclass
class DeployResult:
    """Outcome of one deploy. ``ok`` is False when it finished with warnings."""

    version_url: Optional[str]
    uploaded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    ok: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version_url": self.version_url,
            "uploaded": list(self.uploaded),
            "failed": list(self.failed),
            "warnings": list(self.warnings),
            "ok": self.ok,
        }


def _version_url(response: Mapping[str, Any]) -> Optional[str]:
    body = response.get("value", response) if isinstance(response, Mapping) else {}
    urls = (body or {}).get("urls") or {}
    return urls.get("version")


class UploadOrchestrator:
    """
    Persists a built snapshot and its assets.

    Example:
        orchestrator = UploadOrchestrator(api, config)
        result = await orchestrator.deploy(
            app_config,
            snapshot=snapshot,
            build_stats=stats,
            assets_map=assets_map,
            hash_set=await api.get_hash_list(uid),
        )
    """

    def __init__(self, api_client: "ApiClient", config: Optional[AgentConfig] = None):
        self.api = api_client
        self.config = config or api_client.config

    def _edge_urls(self, app_config: ApplicationConfiguration) -> List[str]:
        return [app_config.EDGE_URL, *app_config.environment_edge_urls()]

    async def upload_assets(
        self,
        app_config: ApplicationConfiguration,
        missing: List[Asset],
        *,
        edge_url: Optional[str] = None,
    ) -> List[Settled]:
        """Upload ``missing``; one ``(error, value)`` per asset, in input order."""
        if not missing:
            logger.info("No assets to upload, skipping...")
            return []

        start = time.monotonic()

        async def _upload(asset: Asset) -> Settled:
            return await settle(
                self.api.upload_file(
                    app_config,
                    path=asset.path,
                    hash=asset.hash,
                    buffer=asset.buffer,
                    mime_type=asset.mime_type,
                    edge_url=edge_url,
                )
            )

        results = await for_each_limit(missing, self.config.upload_concurrency, _upload)

        done = sum(1 for r in results if is_success(r))
        size_kb = sum(a.size for a in missing) / 1024
        elapsed = int((time.monotonic() - start) * 1000)
        logger.info(f"({done}/{len(missing)} assets uploaded in {elapsed}ms, {size_kb:.2f}kb)")
        return results

    async def upload_snapshot(self, app_config: ApplicationConfiguration, snapshot: Snapshot) -> str:
        """
        Upload the snapshot to every edge; returns the version URL from
        the default edge.
        """
        payload = snapshot.to_dict()
        edges = self._edge_urls(app_config)
        results = await asyncio.gather(
            *(settle(self.api.upload_snapshot(app_config, payload, edge_url=url)) for url in edges)
        )

        err, response = results[0]
        if err is not None:
            raise ZephyrError(ZeErrors.ERR_FAILED_UPLOAD, cause=err, type="snapshot") from err
        for url, (env_err, _) in zip(edges[1:], results[1:]):
            if env_err is not None:
                logger.warning(f"✗ Snapshot upload to {url} failed: {env_err}")

        version_url = _version_url(response)
        if not version_url:
            raise ZephyrError(ZeErrors.ERR_SNAPSHOT_UPLOADS_NO_RESULTS, data={"response": response})
        logger.info(f"✓ Snapshot {snapshot.snapshot_id} uploaded")
        return version_url

    async def upload_envs(
        self,
        app_config: ApplicationConfiguration,
        envs: Mapping[str, str],
        *,
        envs_hash: Optional[str] = None,
    ) -> None:
        payload = {
            "application_uid": app_config.application_uid,
            "ze_envs": dict(envs),
            "ze_envs_hash": envs_hash,
        }
        await self.api.upload_envs(app_config, payload)

    async def upload_build_stats(self, build_stats: BuildStats) -> Dict[str, Any]:
        try:
            return await self.api.upload_build_stats(build_stats.to_dict())
        except ZephyrError as e:
            if e.type is ZeErrors.ERR_FAILED_UPLOAD:
                raise
            raise ZephyrError(ZeErrors.ERR_FAILED_UPLOAD, cause=e, type="build stats") from e

    async def deploy(
        self,
        app_config: ApplicationConfiguration,
        *,
        snapshot: Snapshot,
        build_stats: BuildStats,
        assets_map: AssetsMap,
        hash_set: Set[str],
        envs: Optional[Mapping[str, str]] = None,
        envs_hash: Optional[str] = None,
    ) -> DeployResult:
        """
        Run a full deploy.

        Raises:
            ZephyrError: ERR_SNAPSHOT_ID_NOT_FOUND before any upload when
                the snapshot has no id; ERR_FAILED_UPLOAD or
                ERR_SNAPSHOT_UPLOADS_NO_RESULTS when the snapshot or the
                build stats could not be uploaded
        """
        if not snapshot.snapshot_id:
            raise ZephyrError(ZeErrors.ERR_SNAPSHOT_ID_NOT_FOUND)

        missing = get_missing_assets(assets_map, hash_set)
        logger.debug(f"{len(missing)}/{len(assets_map)} assets missing on the edge")

        env_edges = app_config.environment_edge_urls()
        asset_jobs = [self.upload_assets(app_config, missing)]
        asset_jobs += [self.upload_assets(app_config, missing, edge_url=url) for url in env_edges]

        *asset_results, snapshot_result = await asyncio.gather(
            *asset_jobs,
            settle(self.upload_snapshot(app_config, snapshot)),
        )

        result = DeployResult(version_url=None)
        for asset, (err, _) in zip(missing, asset_results[0]):
            if err is None:
                result.uploaded.append(asset.path)
            else:
                result.failed.append(asset.path)
                result.warnings.append(f"Failed to upload {asset.path}: {err}")
        for url, env_results in zip(env_edges, asset_results[1:]):
            failures = [asset.path for asset, (err, _) in zip(missing, env_results) if err is not None]
            if failures:
                result.warnings.append(f"{len(failures)} asset(s) failed to upload to {url}")

        snapshot_err, version_url = snapshot_result
        if snapshot_err is not None:
            raise ZephyrError.wrap(snapshot_err)
        result.version_url = version_url

        if envs:
            err, _ = await settle(self.upload_envs(app_config, envs, envs_hash=envs_hash))
            if err is not None:
                result.warnings.append(f"Failed to upload env vars: {err}")

        await self.upload_build_stats(build_stats)
        logger.info("✓ Build stats uploaded")

        result.ok = not result.warnings
        for warning in result.warnings:
            logger.warning(f"✗ {warning}")
        return result
