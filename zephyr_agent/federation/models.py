"""
Federation data model.

:class:`FederationConfig` is the build tool's Module Federation plugin
configuration as handed over by an adapter; :class:`ResolvedDependency`
is what one declared remote resolves to.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional, Union


SharedConfig = Union[List[Any], Dict[str, Any], None]


@dataclass(frozen=True)
class DeclaredDependency:
    """A remote as declared by the application: name plus version or URL."""

    name: str
    version: str


@dataclass(frozen=True)
class ResolvedDependency:
    """Result of resolving one declared remote."""

    name: str
    version: str
    application_uid: str
    default_url: str
    remote_entry_url: str
    library_type: str = "module"
    platform: Optional[str] = None
    snapshot_id: Optional[str] = None
    published_at: Optional[int] = None
    version_url: Optional[str] = None

    _OPTIONAL = ("platform", "snapshot_id", "published_at", "version_url")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ResolvedDependency":
        return cls(
            name=d["name"],
            version=d.get("version", ""),
            application_uid=d["application_uid"],
            default_url=d.get("default_url", ""),
            remote_entry_url=d.get("remote_entry_url", ""),
            library_type=d.get("library_type") or "module",
            platform=d.get("platform"),
            snapshot_id=d.get("snapshot_id"),
            published_at=d.get("published_at"),
            version_url=d.get("version_url"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in self._OPTIONAL:
            if data[key] is None:
                del data[key]
        return data

    def with_changes(self, **changes: Any) -> "ResolvedDependency":
        return replace(self, **changes)


@dataclass
class FederationConfig:
    """Module Federation configuration of the application being built."""

    name: Optional[str] = None
    filename: str = "remoteEntry.js"
    exposes: Dict[str, Any] = field(default_factory=dict)
    remotes: Union[Dict[str, Any], List[Any], None] = None
    shared: SharedConfig = None
    additional_shared: List[Any] = field(default_factory=list)
    library_type: str = "module"

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "FederationConfig":
        d = d or {}
        library = d.get("library") or {}
        return cls(
            name=d.get("name"),
            filename=d.get("filename") or "remoteEntry.js",
            exposes=d.get("exposes") or {},
            remotes=d.get("remotes"),
            shared=d.get("shared"),
            additional_shared=d.get("additionalShared") or [],
            library_type=(library.get("type") if isinstance(library, dict) else None) or "module",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Shape recorded as ``mfConfig`` in the snapshot."""
        return {
            "name": self.name,
            "filename": self.filename,
            "exposes": self.exposes,
            "remotes": self.remotes,
            "shared": self.shared,
        }
