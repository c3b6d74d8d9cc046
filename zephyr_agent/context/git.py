"""
Git identity of the build.

The organization and project of the application come from the
``origin`` remote; the creator comes from git config (or, inside CI,
from the author of the last commit, since the configured user there is
often a bot).
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..faults import ZephyrError, ZeErrors
from .ci import detect_ci_branch


logger = logging.getLogger("zephyr_agent.context")

GitRunner = Callable[[Sequence[str], Optional[str]], Awaitable[str]]


class GitCommandError(Exception):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str):
        super().__init__(f"git {' '.join(args)} exited with {returncode}: {stderr.strip()}")
        self.args_ = list(args)
        self.returncode = returncode
        self.stderr = stderr


@dataclass(frozen=True)
class GitInfo:
    name: str
    email: str
    branch: str
    commit: str
    org: str
    project: str
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        """The ``git`` block sent with snapshots and build stats."""
        return {
            "name": self.name,
            "email": self.email,
            "branch": self.branch,
            "commit": self.commit,
            "tags": list(self.tags),
        }


_SCP_LIKE = re.compile(r"^(?:[\w.\-]+@)?(?P<host>[\w.\-]+):(?P<path>(?!//).+)$")


def parse_git_url(url: str) -> Tuple[str, str]:
    """
    Extract ``(owner, repository)`` from a remote URL, lower-cased.

    Handles ``https://host/owner/repo.git``, ``ssh://git@host/owner/repo``
    and scp-like ``git@host:owner/repo.git``. For nested groups
    (GitLab subgroups) the owner is the first path segment.
    """
    url = url.strip()
    if not url:
        raise ZephyrError(ZeErrors.ERR_GIT_REMOTE_ORIGIN)

    if "://" in url:
        path = url.split("://", 1)[1]
        path = path.split("/", 1)[1] if "/" in path else ""
    else:
        match = _SCP_LIKE.match(url)
        path = match.group("path") if match else url

    path = path.split("?", 1)[0].split("#", 1)[0].strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    segments = [s for s in path.split("/") if s]

    # Azure DevOps: org/project/_git/repo
    if "_git" in segments:
        idx = segments.index("_git")
        segments = segments[:max(idx - 1, 1)] + segments[idx + 1:]

    if len(segments) < 2:
        raise ZephyrError(ZeErrors.ERR_GIT_REMOTE_ORIGIN, data={"url": url})

    return segments[0].lower(), segments[-1].lower()


async def run_git(args: Sequence[str], cwd: Optional[str] = None) -> str:
    """Run one git command and return its stripped stdout."""
    proc = await asyncio.create_subprocess_exec(
        "git",
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise GitCommandError(args, proc.returncode, stderr.decode(errors="replace"))
    return stdout.decode(errors="replace").strip()


async def _optional(runner: GitRunner, args: Sequence[str], cwd: Optional[str]) -> str:
    try:
        return await runner(args, cwd)
    except GitCommandError:
        return ""


async def get_git_info(
    cwd: Optional[str] = None,
    *,
    has_token: bool = False,
    env: Optional[Mapping[str, str]] = None,
    runner: GitRunner = run_git,
) -> GitInfo:
    """
    Load the git identity of the repository at ``cwd``.

    Raises:
        ZephyrError: ERR_NO_GIT_INFO when git itself fails,
            ERR_GIT_REMOTE_ORIGIN without an origin remote,
            ERR_NO_GIT_USERNAME_EMAIL without a user and no token,
            ERR_GIT_COMMIT_HASH when HEAD has no commit.
    """
    ci = detect_ci_branch(env)
    automated = ci.is_ci or has_token

    try:
        if automated:
            author = await _optional(runner, ["log", "-1", "--pretty=format:%an|%ae"], cwd)
            name, _, email = author.partition("|")
        else:
            name = await _optional(runner, ["config", "user.name"], cwd)
            email = await _optional(runner, ["config", "user.email"], cwd)
        remote_origin = await _optional(runner, ["config", "--get", "remote.origin.url"], cwd)
        branch = await _optional(runner, ["rev-parse", "--abbrev-ref", "HEAD"], cwd)
        commit = await _optional(runner, ["rev-parse", "HEAD"], cwd)
        tags_out = await _optional(runner, ["tag", "--points-at", "HEAD"], cwd)
    except OSError as e:
        raise ZephyrError(ZeErrors.ERR_NO_GIT_INFO, cause=e, message=str(e))

    name, email = name.strip(), email.strip()
    if not has_token and (not name or not email):
        raise ZephyrError(ZeErrors.ERR_NO_GIT_USERNAME_EMAIL)

    if not remote_origin:
        raise ZephyrError(ZeErrors.ERR_GIT_REMOTE_ORIGIN)
    org, project = parse_git_url(remote_origin)

    if not commit:
        raise ZephyrError(ZeErrors.ERR_GIT_COMMIT_HASH)

    if ci.is_ci and ci.branch:
        branch = ci.branch
    elif branch == "HEAD":
        # detached HEAD outside a known CI
        branch = ""

    info = GitInfo(
        name=name,
        email=email,
        branch=branch,
        commit=commit,
        org=org,
        project=project,
        tags=[t for t in tags_out.splitlines() if t.strip()],
    )
    logger.debug(f"Loaded git info: {info.org}/{info.project}@{info.branch} ({info.commit[:8]})")
    return info
