"""
Snapshot and build stats assembly.
"""

from .models import BuildStats, Snapshot, SnapshotAsset, SnapshotContext
from .builder import asset_key, build_dash_data, build_snapshot, normalize_base_path

__all__ = [
    "BuildStats",
    "Snapshot",
    "SnapshotAsset",
    "SnapshotContext",
    "asset_key",
    "build_dash_data",
    "build_snapshot",
    "normalize_base_path",
]
