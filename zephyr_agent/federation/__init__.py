"""
Module Federation support: remote parsing, dependency graph, remote
resolution, manifest and runtime snippets.
"""

from .models import DeclaredDependency, FederationConfig, ResolvedDependency
from .remotes import (
    extract_federated_dependency_pairs,
    is_dependency_pair,
    parse_remote_version,
    parse_remotes_as_entries,
)
from .graph import (
    build_consumes,
    build_overrides,
    extract_consumes,
    extract_modules_from_exposes,
    resolve_shared_version,
    shared_library_names,
)
from .manifest import (
    MANIFEST_FILENAME,
    ManifestDependency,
    ManifestError,
    ZephyrManifest,
    build_manifest,
    manifest_asset,
    resolve_manifest_url,
)
from .runtime import (
    REMOTE_MAP_PLACEHOLDER,
    RUNTIME_PLUGIN_NAME,
    RuntimePluginTemplate,
    RuntimeRemoteResolver,
    inject_resolved_remotes,
    remote_map,
)
from .resolver import DependencyResolver, ResolutionError, apply_remote_versions

__all__ = [
    "DeclaredDependency",
    "FederationConfig",
    "ResolvedDependency",
    "extract_federated_dependency_pairs",
    "is_dependency_pair",
    "parse_remote_version",
    "parse_remotes_as_entries",
    "build_consumes",
    "build_overrides",
    "extract_consumes",
    "extract_modules_from_exposes",
    "resolve_shared_version",
    "shared_library_names",
    "MANIFEST_FILENAME",
    "ManifestDependency",
    "ManifestError",
    "ZephyrManifest",
    "build_manifest",
    "manifest_asset",
    "resolve_manifest_url",
    "REMOTE_MAP_PLACEHOLDER",
    "RUNTIME_PLUGIN_NAME",
    "RuntimePluginTemplate",
    "RuntimeRemoteResolver",
    "inject_resolved_remotes",
    "remote_map",
    "DependencyResolver",
    "ResolutionError",
    "apply_remote_versions",
]
