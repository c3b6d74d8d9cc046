"""
Asset map builder.

Turns a build tool's asset records into a content-addressed
:data:`~zephyr_agent.assets.core.AssetsMap`. The build tool adapter
supplies two functions: one extracting the raw bytes of a record (or
``None`` when unreadable) and one classifying it for diagnostics.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Set, Tuple, Union

from ..faults import ZephyrError, ZeErrors
from .core import Asset, AssetsMap, normalize_path


logger = logging.getLogger("zephyr_agent.assets")

ExtractContent = Callable[[Any], Optional[Union[bytes, str]]]
Classify = Callable[[Any], str]


def build_assets_map(
    raw_assets: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]],
    extract_content: ExtractContent,
    classify: Classify,
) -> AssetsMap:
    """
    Build the hash-keyed asset map.

    Args:
        raw_assets: ``{path: record}`` or an iterable of ``(path, record)``
        extract_content: Returns bytes/str for a record, or None
        classify: Returns a short type label for a record

    Byte-identical outputs collapse to one entry. The lexicographically
    smallest path is kept, so the result does not depend on input order.
    """
    items = raw_assets.items() if isinstance(raw_assets, Mapping) else raw_assets
    assets_map: AssetsMap = {}

    for filepath, record in items:
        try:
            content = extract_content(record)
        except Exception as e:
            logger.debug(f"Skipping {filepath}: could not read {classify(record)} asset ({e})")
            continue

        if content is None:
            logger.debug(f"Skipping {filepath}: unknown asset type {classify(record)}")
            continue

        asset = Asset.from_content(filepath, content)
        current = assets_map.get(asset.hash)
        if current is None or asset.path < current.path:
            assets_map[asset.hash] = asset

    return assets_map


def get_missing_assets(assets_map: AssetsMap, hash_set: Set[str]) -> List[Asset]:
    """Assets the edge does not already hold, in path order."""
    for asset in assets_map.values():
        if not asset.hash:
            raise ZephyrError(ZeErrors.ERR_MISSING_FILE_HASH, data={"path": asset.path})
    missing = [asset for h, asset in assets_map.items() if h not in hash_set]
    return sorted(missing, key=lambda a: a.path)


def _walk_directory(root: Path, include_source_maps: bool) -> List[Tuple[str, bytes]]:
    collected: List[Tuple[str, bytes]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            if not include_source_maps and filename.endswith(".map"):
                continue
            full = Path(dirpath) / filename
            rel = normalize_path(os.path.relpath(full, root))
            try:
                collected.append((rel, full.read_bytes()))
            except OSError as e:
                logger.debug(f"Skipping {rel}: {e}")
    return collected


async def assets_from_directory(
    root: Union[str, Path],
    *,
    include_source_maps: bool = True,
) -> AssetsMap:
    """
    Read every file under ``root`` into an asset map.

    File reads run in the default executor.
    """
    root = Path(root)
    if not root.is_dir():
        raise ZephyrError(ZeErrors.ERR_ASSETS_NOT_FOUND, data={"path": str(root)})

    loop = asyncio.get_running_loop()
    files = await loop.run_in_executor(None, _walk_directory, root, include_source_maps)
    if not files:
        raise ZephyrError(ZeErrors.ERR_ASSETS_NOT_FOUND, data={"path": str(root)})

    return build_assets_map(files, lambda content: content, lambda _: "file")
