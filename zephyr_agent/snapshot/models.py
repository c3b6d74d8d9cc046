"""
Snapshot and build stats documents.

Both are assembled once per build, never mutated, and serialized with
``to_dict()`` as upload payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..context.git import GitInfo
from ..context.package_json import PackageJson
from ..http.models import ApplicationConfiguration


@dataclass(frozen=True)
class SnapshotContext:
    """Everything about the current build that snapshot assembly reads."""

    application_uid: str
    app_config: ApplicationConfiguration
    package_json: PackageJson
    git_info: GitInfo
    build_id: str
    is_ci: bool = False
    base_href: Optional[str] = None
    ze_envs: Dict[str, str] = field(default_factory=dict)
    ze_envs_hash: Optional[str] = None

    @property
    def username(self) -> str:
        return self.app_config.username


@dataclass(frozen=True)
class SnapshotAsset:
    path: str
    extname: str
    hash: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "extname": self.extname, "hash": self.hash, "size": self.size}


@dataclass(frozen=True)
class Snapshot:
    """Deployable description of one build, sent to every edge."""

    application_uid: str
    version: str
    snapshot_id: str
    domain: str
    uid: Dict[str, str]
    git: Dict[str, Any]
    creator: Dict[str, str]
    createdAt: int
    mfConfig: Optional[Dict[str, Any]]
    assets: Dict[str, SnapshotAsset]
    ze_envs_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "application_uid": self.application_uid,
            "version": self.version,
            "snapshot_id": self.snapshot_id,
            "domain": self.domain,
            "uid": dict(self.uid),
            "git": dict(self.git),
            "creator": dict(self.creator),
            "createdAt": self.createdAt,
            "mfConfig": self.mfConfig,
            "assets": {key: asset.to_dict() for key, asset in self.assets.items()},
        }
        if self.ze_envs_hash:
            data["ze_envs_hash"] = self.ze_envs_hash
        return data


@dataclass(frozen=True)
class BuildStats:
    """Dashboard view of the build: identity, dependencies and federation graph."""

    id: str
    name: str
    edge: Dict[str, str]
    app: Dict[str, Any]
    version: str
    git: Dict[str, Any]
    context: Dict[str, Any]
    dependencies: List[Dict[str, str]] = field(default_factory=list)
    devDependencies: List[Dict[str, str]] = field(default_factory=list)
    optionalDependencies: List[Dict[str, str]] = field(default_factory=list)
    peerDependencies: List[Dict[str, str]] = field(default_factory=list)
    overrides: List[Dict[str, Any]] = field(default_factory=list)
    consumes: List[Dict[str, Any]] = field(default_factory=list)
    modules: List[Dict[str, Any]] = field(default_factory=list)
    remotes: List[str] = field(default_factory=list)
    zephyrDependencies: Dict[str, Dict[str, str]] = field(default_factory=dict)
    remote: str = "remoteEntry.js"
    type: str = "app"
    environment: str = ""
    project: str = ""
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    default: bool = False
    ze_envs: Optional[Dict[str, str]] = None
    ze_envs_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "environment": self.environment,
            "edge": dict(self.edge),
            "app": dict(self.app),
            "version": self.version,
            "git": dict(self.git),
            "context": dict(self.context),
            "dependencies": list(self.dependencies),
            "devDependencies": list(self.devDependencies),
            "optionalDependencies": list(self.optionalDependencies),
            "peerDependencies": list(self.peerDependencies),
            "overrides": list(self.overrides),
            "consumes": list(self.consumes),
            "modules": list(self.modules),
            "remotes": list(self.remotes),
            "tags": list(self.tags),
            "project": self.project,
            "metadata": dict(self.metadata),
            "default": self.default,
            "remote": self.remote,
            "type": self.type,
            "zephyrDependencies": dict(self.zephyrDependencies),
        }
        if self.ze_envs:
            data["ze_envs"] = dict(self.ze_envs)
        if self.ze_envs_hash:
            data["ze_envs_hash"] = self.ze_envs_hash
        return data
