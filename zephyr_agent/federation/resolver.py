"""
Remote dependency resolution.

Every declared remote is resolved against the Zephyr API in parallel;
one failing remote never aborts its siblings. Whether unresolved remotes
fail the build is the caller's decision (``fail_on_unresolved_remotes``).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Tuple

import httpx

from ..config import AgentConfig
from ..context.package_json import ZeDependency
from ..faults import ZephyrError, ZeErrors
from ..identity import application_uid as make_application_uid
from .models import DeclaredDependency, FederationConfig, ResolvedDependency
from .remotes import parse_remote_version, parse_remotes_as_entries

if TYPE_CHECKING:
    from ..engine import ZephyrEngine
    from ..http import ApiClient


logger = logging.getLogger("zephyr_agent.federation")


class ResolutionError(ZephyrError):
    """A single remote could not be resolved."""

    def __init__(self, type, *, dependency: DeclaredDependency, **kwargs: Any):
        super().__init__(type, **kwargs)
        self.dependency = dependency


class DependencyResolver:
    """
    Resolves declared remotes to deployed URLs.

    Example:
        resolver = DependencyResolver(api, config)
        resolved, errors = await resolver.resolve_all(deps, org="acme", project="web")
    """

    def __init__(self, api_client: "ApiClient", config: Optional[AgentConfig] = None):
        self.api = api_client
        self.config = config or api_client.config

    def _identity(
        self,
        dep: DeclaredDependency,
        org: str,
        project: str,
        zephyr_dependencies: Optional[Mapping[str, ZeDependency]],
    ) -> Tuple[str, str, str, str]:
        """``(app_name, project, org, version)`` for a declared remote."""
        app_name, *rest = dep.name.split(".")
        project_name = rest[0] if len(rest) > 0 else None
        org_name = rest[1] if len(rest) > 1 else None
        version = dep.version

        ze_dependency = (zephyr_dependencies or {}).get(dep.name)
        if ze_dependency is not None:
            parts = ze_dependency.app_uid.split(".")
            if len(parts) >= 3:
                app_name, project_name, org_name = ".".join(parts[:-2]), parts[-2], parts[-1]
            version = ze_dependency.version or version

        return app_name, project_name or project, org_name or org, version

    async def resolve(
        self,
        dep: DeclaredDependency,
        org: str,
        project: str,
        zephyr_dependencies: Optional[Mapping[str, ZeDependency]] = None,
        target: Optional[str] = None,
        build_context: Optional[str] = None,
    ) -> ResolvedDependency:
        """
        Resolve one remote.

        Raises:
            ResolutionError: ERR_RESOLVE_REMOTES when the API has no
                deployment for it, ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION
                on network or payload failures
        """
        app_name, project_name, org_name, version = self._identity(
            dep, org, project, zephyr_dependencies
        )
        _, explicit_url = parse_remote_version(dep.name, version)
        # an explicit entry URL is not a resolvable version
        lookup_version = "latest" if explicit_url else version
        uid = make_application_uid(org_name, project_name, app_name)
        identity = {
            "appUid": uid,
            "appName": app_name,
            "projectName": project_name,
            "orgName": org_name,
            "version": lookup_version,
        }

        try:
            response = await self.api.resolve_dependency(
                uid,
                lookup_version,
                build_target=target or self.config.target,
                build_context=build_context,
            )
        except httpx.HTTPError as e:
            raise ResolutionError(
                ZeErrors.ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION,
                dependency=dep,
                cause=e,
                data=identity,
                version=lookup_version,
            ) from e

        if response.is_error:
            raise ResolutionError(
                ZeErrors.ERR_RESOLVE_REMOTES,
                dependency=dep,
                data={**identity, "status": response.status_code},
                **identity,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ResolutionError(
                ZeErrors.ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION,
                dependency=dep,
                cause=e,
                data=identity,
                version=lookup_version,
            ) from e

        value = body.get("value") if isinstance(body, dict) else None
        if not isinstance(value, dict):
            raise ResolutionError(ZeErrors.ERR_RESOLVE_REMOTES, dependency=dep, data=identity, **identity)

        try:
            resolved = ResolvedDependency.from_dict(
                {
                    "name": dep.name,
                    "application_uid": uid,
                    **value,
                    "version": dep.version,
                    "platform": value.get("platform") or target or self.config.target,
                }
            )
        except KeyError as e:
            raise ResolutionError(
                ZeErrors.ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION,
                dependency=dep,
                cause=e,
                data=identity,
                version=lookup_version,
            ) from e

        if resolved.name != dep.name:
            resolved = resolved.with_changes(name=dep.name, version=dep.version)

        if explicit_url:
            remote_name, _ = parse_remote_version(dep.name, version)
            resolved = resolved.with_changes(
                remote_entry_url=f"{remote_name}@{explicit_url}"
            )

        if resolved.default_url:
            resolved = await self._with_version_info(resolved)

        logger.debug(f"Resolved {dep.name}@{dep.version} -> {resolved.remote_entry_url}")
        return resolved

    async def _with_version_info(self, resolved: ResolvedDependency) -> ResolvedDependency:
        info = await self.api.get_version_info(resolved.default_url)
        if not info:
            return resolved
        info = info.get("value", info) if isinstance(info.get("value"), dict) else info
        return resolved.with_changes(
            snapshot_id=info.get("snapshot_id") or info.get("snapshotId") or resolved.snapshot_id,
            published_at=info.get("published_at") or info.get("publishedAt") or resolved.published_at,
            version_url=info.get("version_url") or info.get("versionUrl") or resolved.version_url,
        )

    async def _settle(self, dep: DeclaredDependency, **kwargs: Any):
        try:
            return None, await self.resolve(dep, **kwargs)
        except ZephyrError as e:
            return e, None
        except Exception as e:
            # one broken remote never aborts its siblings
            return ResolutionError(
                ZeErrors.ERR_CANNOT_RESOLVE_APP_NAME_WITH_VERSION,
                dependency=dep,
                cause=e,
                version=dep.version,
            ), None

    async def resolve_all(
        self,
        deps: Iterable[DeclaredDependency],
        *,
        org: str,
        project: str,
        zephyr_dependencies: Optional[Mapping[str, ZeDependency]] = None,
        target: Optional[str] = None,
        build_context: Optional[str] = None,
    ) -> Tuple[List[ResolvedDependency], List[ZephyrError]]:
        """
        Resolve every remote concurrently.

        Returns resolved remotes in declaration order plus the errors of
        the ones that failed.
        """
        results = await asyncio.gather(
            *(
                self._settle(
                    dep,
                    org=org,
                    project=project,
                    zephyr_dependencies=zephyr_dependencies,
                    target=target,
                    build_context=build_context,
                )
                for dep in deps
            )
        )
        resolved = [value for err, value in results if err is None]
        errors = [err for err, _ in results if err is not None]
        return resolved, errors

    async def for_engine(
        self,
        engine: "ZephyrEngine",
        deps: Iterable[DeclaredDependency],
    ) -> List[ResolvedDependency]:
        """
        Resolve remotes for a build.

        Unresolved remotes are logged as a warning and skipped, unless
        ``fail_on_unresolved_remotes`` is set, in which case the first
        error is raised.
        """
        resolved, errors = await self.resolve_all(
            deps,
            org=engine.git_info.org,
            project=engine.git_info.project,
            zephyr_dependencies=engine.package_json.zephyr_dependencies,
            target=engine.target,
            build_context=engine.build_context,
        )
        if errors:
            summary = "\n".join(
                f"  ✗ [{e.code}] {e.dependency.name if isinstance(e, ResolutionError) else '?'}"
                for e in errors
            )
            logger.warning(f"{len(errors)} remote(s) could not be resolved:\n{summary}")
            if self.config.fail_on_unresolved_remotes:
                raise errors[0]
        return resolved


def apply_remote_versions(
    resolved: Iterable[ResolvedDependency],
    mf_config: Optional[FederationConfig],
) -> List[ResolvedDependency]:
    """
    Re-apply remote names declared as ``app@version`` in the federation
    config, so the runtime loads the entry under the expected global.
    """
    declared: Dict[str, str] = dict(parse_remotes_as_entries(mf_config.remotes if mf_config else None))
    library_type = mf_config.library_type if mf_config else "module"

    updated: List[ResolvedDependency] = []
    for dep in resolved:
        remote_version = declared.get(dep.name)
        if remote_version is None or "@" in dep.remote_entry_url.split("://")[0]:
            updated.append(dep)
            continue
        v_app = remote_version.split("@", 1)[0] if "@" in remote_version else dep.name
        updated.append(
            dep.with_changes(
                remote_entry_url=f"{v_app}@{dep.remote_entry_url}",
                library_type=library_type,
            )
        )
    return updated
