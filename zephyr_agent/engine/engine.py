"""
Zephyr Engine - lifecycle of one build.

Bundler adapters drive a build through four entry points::

    engine = await ZephyrEngine.create(EngineOptions(context_dir="."))
    await engine.start_new_build()
    await engine.resolve_remote_dependencies(mf_config=mf_config)
    result = await engine.upload_assets(assets_map, mf_config=mf_config)
    await engine.build_finished()

Several hooks of one build tool may race to call any of these. Creation
is single-flight per context directory, and ``start_new_build``,
``resolve_remote_dependencies`` and ``upload_assets`` each perform
their side effects once per engine.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Mapping, Optional, Set

from ..assets import AssetsMap
from ..auth import check_auth, has_secret_token
from ..config import AgentConfig, load_config
from ..context import CIBranchInfo, GitInfo, PackageJson, detect_ci_branch, get_git_info, read_package_json
from ..env_vars import EnvVarSession, ze_envs_hash
from ..faults import ZephyrError, ZeErrors
from ..federation import (
    DeclaredDependency,
    DependencyResolver,
    FederationConfig,
    ResolvedDependency,
    ZephyrManifest,
    apply_remote_versions,
    build_manifest,
    extract_consumes,
    extract_federated_dependency_pairs,
    manifest_asset,
)
from ..http import ApiClient, ApplicationConfiguration
from ..identity import application_uid as make_application_uid, create_snapshot_id
from ..snapshot import BuildStats, SnapshotContext, build_dash_data, build_snapshot
from ..upload import DeployResult, UploadOrchestrator
from .lifecycle import TERMINAL_STATES, EngineEvent, EngineState, EngineStateError, can_transition
from .once import OnceCell, OnceState


logger = logging.getLogger("zephyr_agent.engine")

GitProvider = Callable[..., Awaitable[GitInfo]]
PackageProvider = Callable[[str], PackageJson]


@dataclass
class EngineOptions:
    """
    Inputs of :meth:`ZephyrEngine.create`.

    Every collaborator can be injected; unset ones use the real
    implementation.
    """
    context_dir: str = "."
    builder: str = "webpack"
    config: Optional[AgentConfig] = None
    api_client: Optional[ApiClient] = None
    env: Optional[Mapping[str, str]] = None
    git_provider: Optional[GitProvider] = None
    package_provider: Optional[PackageProvider] = None
    token: Optional[str] = None
    token_file: Optional[Path] = None

    @property
    def key(self) -> str:
        return str(Path(self.context_dir).resolve())


class ZephyrEngine:
    """
    One build of one application.

    Not constructed directly; use :meth:`create`.
    """

    _instances: ClassVar[Dict[str, OnceCell]] = {}

    def __init__(
        self,
        *,
        options: EngineOptions,
        config: AgentConfig,
        env: Mapping[str, str],
        package_json: PackageJson,
        git_info: GitInfo,
        ci: CIBranchInfo,
        application_uid: str,
        api: ApiClient,
        owns_api: bool,
    ):
        self.options = options
        self.builder = options.builder
        self.config = config
        self.env = env
        self.package_json = package_json
        self.git_info = git_info
        self.ci = ci
        self.application_uid = application_uid
        self.api = api
        self._owns_api = owns_api

        self.state = EngineState.CREATED
        self.events: List[EngineEvent] = []
        self.event_handlers: List[Callable[[EngineEvent], None]] = []

        self.env_session = EnvVarSession(prefix=config.env_prefix)
        self.federation_config: Optional[FederationConfig] = None
        self.federated_dependencies: List[ResolvedDependency] = []
        self.resolution_errors: int = 0
        self.build_id: Optional[str] = None
        self.snapshot_id: Optional[str] = None
        self.hash_set: Set[str] = set()
        self.manifest: Optional[ZephyrManifest] = None
        self.deploy_result: Optional[DeployResult] = None

        self._app_config: OnceCell[ApplicationConfiguration] = OnceCell()
        self._build_cell: OnceCell[str] = OnceCell()
        self._resolve_cell: OnceCell[List[ResolvedDependency]] = OnceCell()
        self._upload_cell: OnceCell[DeployResult] = OnceCell()

    # ── Creation ────────────────────────────────────────────────────

    @classmethod
    async def create(cls, options: Optional[EngineOptions] = None) -> "ZephyrEngine":
        """
        Single-flight factory.

        Concurrent and repeated calls for the same context directory share
        one creation and get the same engine, until :meth:`build_finished`.
        A failed creation is shared by its concurrent callers and then
        forgotten, so a later call starts over.
        """
        options = options or EngineOptions()
        key = options.key
        cell = cls._instances.setdefault(key, OnceCell())
        try:
            return await cell.get_or_start(lambda: cls._create(options))
        except Exception:
            if cls._instances.get(key) is cell and cell.state is OnceState.COMPLETED:
                del cls._instances[key]
            raise

    @classmethod
    def clear_instances(cls) -> None:
        cls._instances.clear()

    @classmethod
    async def _create(cls, options: EngineOptions) -> "ZephyrEngine":
        env = dict(os.environ) if options.env is None else options.env
        try:
            config = options.config or load_config(options.context_dir, environ=env)

            package_provider = options.package_provider or read_package_json
            package_json = package_provider(options.context_dir)
            logger.debug(f"✓ package.json: {package_json.name}@{package_json.version}")

            ci = detect_ci_branch(env)
            git_provider = options.git_provider or get_git_info
            git_info = await git_provider(
                options.context_dir,
                has_token=has_secret_token(env),
                env=env,
            )
            logger.debug(f"✓ git: {git_info.org}/{git_info.project} on {git_info.branch or '(detached)'}")

            uid = make_application_uid(git_info.org, git_info.project, package_json.name)

            owns_api = options.api_client is None
            api = options.api_client
            if api is None:
                token = options.token or check_auth(env, options.token_file)
                api = ApiClient(token, config)
            await api.initialize()
        except ZephyrError:
            raise
        except Exception as e:
            raise ZephyrError(ZeErrors.ERR_INITIALIZE_ZEPHYR_AGENT, cause=e) from e

        engine = cls(
            options=options,
            config=config,
            env=env,
            package_json=package_json,
            git_info=git_info,
            ci=ci,
            application_uid=uid,
            api=api,
            owns_api=owns_api,
        )
        logger.info(f"✓ Zephyr engine created for {uid}")
        engine._emit_event(EngineEvent(EngineState.CREATED, uid, "engine created"))
        return engine

    # ── Properties used by collaborators ────────────────────────────

    @property
    def target(self) -> Optional[str]:
        return self.config.target

    @property
    def build_context(self) -> Optional[str]:
        return self.env.get("ZE_BUILD_CONTEXT") or None

    @property
    def is_ci(self) -> bool:
        return self.ci.is_ci

    async def application_configuration(self) -> ApplicationConfiguration:
        """Loaded on first use, then shared."""
        return await self._app_config.get_or_start(
            lambda: self.api.get_application_configuration(self.application_uid)
        )

    # ── Events ──────────────────────────────────────────────────────

    def on_event(self, handler: Callable[[EngineEvent], None]) -> None:
        self.event_handlers.append(handler)

    def _emit_event(self, event: EngineEvent) -> None:
        self.events.append(event)
        for handler in self.event_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler error: {e}")

    def _transition(self, target: EngineState, message: Optional[str] = None) -> None:
        if not can_transition(self.state, target):
            raise EngineStateError(self.state, target)
        self.state = target
        self._emit_event(EngineEvent(target, self.application_uid, message))
        logger.debug(f"{self.application_uid}: {target.value}")

    def _fail(self, error: Exception) -> None:
        if self.state in TERMINAL_STATES:
            return
        self.state = EngineState.ERRORED
        self._emit_event(EngineEvent(EngineState.ERRORED, self.application_uid, str(error), error))
        logger.error(f"✗ {ZephyrError.format(error)}")

    # ── Lifecycle ───────────────────────────────────────────────────

    async def start_new_build(self) -> str:
        """Register a new build; returns its build id. Runs once."""
        return await self._build_cell.get_or_start(self._start_new_build)

    async def _start_new_build(self) -> str:
        if self.state is not EngineState.CREATED:
            raise EngineStateError(self.state, EngineState.BUILD_STARTED)
        try:
            app_config = await self.application_configuration()
            hash_set, build_id = await asyncio.gather(
                self.api.get_hash_list(self.application_uid),
                self.api.get_build_id(app_config),
            )
        except Exception as e:
            self._fail(e)
            raise

        self.hash_set = hash_set
        self.build_id = build_id
        self.snapshot_id = create_snapshot_id(self.application_uid, build_id, app_config.username)
        self._transition(EngineState.BUILD_STARTED, f"build {build_id} started")
        logger.info(f"✓ Build {build_id} started for {self.application_uid}")

        # resolution finished before the build started
        if self._resolve_cell.state is OnceState.COMPLETED and self._resolve_cell.error() is None:
            self._transition(EngineState.DEPENDENCIES_RESOLVED, "remote dependencies resolved")
        return build_id

    async def resolve_remote_dependencies(
        self,
        deps: Optional[List[DeclaredDependency]] = None,
        *,
        mf_config: Optional[FederationConfig] = None,
    ) -> List[ResolvedDependency]:
        """
        Resolve the declared remotes once per build.

        ``deps`` defaults to every remote declared in ``mf_config`` and in
        ``zephyr:dependencies``. Allowed before the build starts; the
        state then moves once the build has started.
        """
        if mf_config is not None:
            self.federation_config = mf_config
        return await self._resolve_cell.get_or_start(lambda: self._resolve(deps))

    async def _resolve(self, deps: Optional[List[DeclaredDependency]]) -> List[ResolvedDependency]:
        if self.state in TERMINAL_STATES:
            raise EngineStateError(self.state, EngineState.DEPENDENCIES_RESOLVED)
        if deps is None:
            deps = extract_federated_dependency_pairs(self.federation_config, self.package_json)

        try:
            resolved = await DependencyResolver(self.api, self.config).for_engine(self, deps)
        except Exception as e:
            self._fail(e)
            raise

        self.resolution_errors = len(deps) - len(resolved)
        self.federated_dependencies = apply_remote_versions(resolved, self.federation_config)
        logger.info(f"✓ Resolved {len(resolved)}/{len(deps)} remote dependencies")

        if self.state is EngineState.BUILD_STARTED:
            self._transition(EngineState.DEPENDENCIES_RESOLVED, "remote dependencies resolved")
        return self.federated_dependencies

    def snapshot_context(self, app_config: ApplicationConfiguration) -> SnapshotContext:
        envs = self.env_session.collect(self.env)
        return SnapshotContext(
            application_uid=self.application_uid,
            app_config=app_config,
            package_json=self.package_json,
            git_info=self.git_info,
            build_id=self.build_id or "",
            is_ci=self.is_ci,
            base_href=self.config.base_href,
            ze_envs=envs,
            ze_envs_hash=ze_envs_hash(self.application_uid, envs),
        )

    async def upload_assets(
        self,
        assets_map: AssetsMap,
        *,
        build_stats: Optional[BuildStats] = None,
        mf_config: Optional[FederationConfig] = None,
        chunks: Optional[Mapping[str, str]] = None,
    ) -> DeployResult:
        """
        Deploy the build. Only the first call uploads; later calls get
        the same result. A resolution still in flight is awaited first.

        ``chunks`` maps emitted file names to code and is scanned for
        consumed remote modules.
        """
        if mf_config is not None:
            self.federation_config = mf_config
        return await self._upload_cell.get_or_start(
            lambda: self._upload(assets_map, build_stats, chunks)
        )

    async def _upload(
        self,
        assets_map: AssetsMap,
        build_stats: Optional[BuildStats],
        chunks: Optional[Mapping[str, str]],
    ) -> DeployResult:
        if self.state not in (EngineState.BUILD_STARTED, EngineState.DEPENDENCIES_RESOLVED):
            raise EngineStateError(self.state, EngineState.ASSETS_UPLOADED)
        if not self.application_uid:
            raise ZephyrError(ZeErrors.ERR_DEPLOY_MISSING_APPLICATION_UID)

        try:
            # remotes still resolving must land in the manifest and build stats
            if self._resolve_cell.state is OnceState.IN_PROGRESS:
                await self._resolve_cell.wait()

            app_config = await self.application_configuration()
            ctx = self.snapshot_context(app_config)

            self.manifest = build_manifest(self.federated_dependencies, ctx.ze_envs)
            manifest = manifest_asset(self.manifest)
            assets = {**assets_map, manifest.hash: manifest}

            mf_config = self.federation_config
            snapshot = build_snapshot(ctx, assets, mf_config)
            if build_stats is None:
                remote_names = [dep.name for dep in self.federated_dependencies]
                consumes = extract_consumes(chunks or {}, remote_names)
                build_stats = build_dash_data(
                    ctx, mf_config, self.federated_dependencies, consumes=consumes
                )

            result = await UploadOrchestrator(self.api, self.config).deploy(
                app_config,
                snapshot=snapshot,
                build_stats=build_stats,
                assets_map=assets,
                hash_set=self.hash_set,
                envs=ctx.ze_envs,
                envs_hash=ctx.ze_envs_hash,
            )
        except Exception as e:
            self._fail(e)
            raise

        self.deploy_result = result
        self._transition(EngineState.ASSETS_UPLOADED, result.version_url)
        if result.ok:
            logger.info(f"✓ Deployed to {result.version_url}")
        else:
            logger.warning(f"Deployed to {result.version_url} with {len(result.warnings)} warning(s)")
        return result

    async def build_finished(self) -> None:
        """Finish the build and release the engine."""
        if self.state not in TERMINAL_STATES:
            self._transition(EngineState.FINISHED, "build finished")
            logger.info(f"✓ Build {self.build_id or ''} finished")

        if self._owns_api:
            await self.api.shutdown()

        key = self.options.key
        cell = self._instances.get(key)
        if cell is not None and cell.state is OnceState.COMPLETED and cell.error() is None and cell.value() is self:
            del self._instances[key]

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "application_uid": self.application_uid,
            "build_id": self.build_id,
            "snapshot_id": self.snapshot_id,
            "remotes": [dep.name for dep in self.federated_dependencies],
            "unresolved_remotes": self.resolution_errors,
            "version_url": self.deploy_result.version_url if self.deploy_result else None,
        }

    def __repr__(self) -> str:
        return f"<ZephyrEngine {self.application_uid} state={self.state.value}>"
