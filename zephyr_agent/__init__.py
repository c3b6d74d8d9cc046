"""
Zephyr Agent - build snapshot and deployment pipeline

Complete integration of:
- Assets: content-addressed build outputs
- Federation: remote resolution, dependency graph and runtime snippets
- Snapshot: deployable description of a build
- Upload: bounded, failure-isolated uploads to the edge
- Engine: single-flight build lifecycle
- Faults: cataloged errors with stable codes
"""

__version__ = "0.1.0"

# ============================================================================
# Core
# ============================================================================

from .config import AgentConfig, ConfigError, ConfigLoader, load_config
from .identity import application_uid, create_snapshot_id, parse_application_uid, snapshot_version

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    HttpError,
    Severity,
    ZeErrors,
    ZeErrorType,
    ZephyrError,
    explain,
)

# ============================================================================
# Build pipeline
# ============================================================================

from .assets import Asset, AssetsMap, assets_from_directory, build_assets_map, get_missing_assets
from .federation import (
    DeclaredDependency,
    DependencyResolver,
    FederationConfig,
    ResolvedDependency,
    RuntimePluginTemplate,
    RuntimeRemoteResolver,
    ZephyrManifest,
    inject_resolved_remotes,
)
from .env_vars import EnvVarSession, rewrite_env_reads, ze_envs_hash
from .snapshot import BuildStats, Snapshot, build_dash_data, build_snapshot
from .upload import DeployResult, UploadOrchestrator, for_each_limit, settle
from .engine import EngineOptions, EngineState, EngineStateError, OnceCell, ZephyrEngine
from .http import ApiClient, ApplicationConfiguration

__all__ = [
    "__version__",
    # Core
    "AgentConfig",
    "ConfigError",
    "ConfigLoader",
    "load_config",
    "application_uid",
    "create_snapshot_id",
    "parse_application_uid",
    "snapshot_version",
    # Faults
    "Fault",
    "FaultDomain",
    "HttpError",
    "Severity",
    "ZeErrors",
    "ZeErrorType",
    "ZephyrError",
    "explain",
    # Pipeline
    "Asset",
    "AssetsMap",
    "assets_from_directory",
    "build_assets_map",
    "get_missing_assets",
    "DeclaredDependency",
    "DependencyResolver",
    "FederationConfig",
    "ResolvedDependency",
    "RuntimePluginTemplate",
    "RuntimeRemoteResolver",
    "ZephyrManifest",
    "inject_resolved_remotes",
    "EnvVarSession",
    "rewrite_env_reads",
    "ze_envs_hash",
    "BuildStats",
    "Snapshot",
    "build_dash_data",
    "build_snapshot",
    "DeployResult",
    "UploadOrchestrator",
    "for_each_limit",
    "settle",
    "EngineOptions",
    "EngineState",
    "EngineStateError",
    "OnceCell",
    "ZephyrEngine",
    "ApiClient",
    "ApplicationConfiguration",
]
