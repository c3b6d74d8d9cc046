"""
Build context: package.json, git identity and CI detection.
"""

from .ci import CIBranchInfo, detect_ci, detect_ci_branch
from .git import GitCommandError, GitInfo, get_git_info, parse_git_url, run_git
from .package_json import (
    CatalogResolver,
    PackageJson,
    ZeDependency,
    parse_ze_dependencies,
    parse_ze_dependency,
    read_package_json,
)

__all__ = [
    "CIBranchInfo",
    "detect_ci",
    "detect_ci_branch",
    "GitCommandError",
    "GitInfo",
    "get_git_info",
    "parse_git_url",
    "run_git",
    "CatalogResolver",
    "PackageJson",
    "ZeDependency",
    "parse_ze_dependencies",
    "parse_ze_dependency",
    "read_package_json",
]
