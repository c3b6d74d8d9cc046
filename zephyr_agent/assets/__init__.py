"""
Content-addressed build assets.
"""

from .core import (
    Asset,
    AssetsMap,
    compute_hash,
    guess_mime_type,
    normalize_path,
)
from .builder import (
    assets_from_directory,
    build_assets_map,
    get_missing_assets,
)

__all__ = [
    "Asset",
    "AssetsMap",
    "compute_hash",
    "guess_mime_type",
    "normalize_path",
    "assets_from_directory",
    "build_assets_map",
    "get_missing_assets",
]
