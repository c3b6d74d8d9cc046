"""
CI platform and branch detection.

Inside CI the checkout is usually a detached HEAD, so the branch is
taken from the provider's environment variables instead of git.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class CIBranchInfo:
    platform: str
    is_ci: bool
    branch: Optional[str] = None
    is_pr: bool = False
    source_branch: Optional[str] = None
    target_branch: Optional[str] = None
    tag: Optional[str] = None


def _strip_ref(ref: Optional[str]) -> Optional[str]:
    """``refs/heads/main`` -> ``main``; other refs are returned unchanged."""
    if not ref:
        return None
    for prefix in ("refs/heads/", "refs/tags/"):
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ref


def _first(env: Mapping[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = env.get(key)
        if value:
            return value
    return None


def detect_ci_branch(env: Optional[Mapping[str, str]] = None) -> CIBranchInfo:
    """
    Detect the CI platform and the branch being built.

    Supports GitHub Actions, GitLab CI, Jenkins, Bitbucket, CircleCI,
    Travis CI, Azure Pipelines, TeamCity, Drone CI and Buildkite, with a
    generic ``CI=true`` fallback.
    """
    env = os.environ if env is None else env

    if env.get("GITHUB_ACTIONS") == "true" or env.get("GITHUB_WORKFLOW"):
        ref = env.get("GITHUB_REF", "")
        return CIBranchInfo(
            platform="GitHub Actions",
            is_ci=True,
            branch=_first(env, "GITHUB_HEAD_REF", "GITHUB_REF_NAME") or _strip_ref(ref),
            is_pr=bool(env.get("GITHUB_HEAD_REF")),
            source_branch=env.get("GITHUB_HEAD_REF") or None,
            target_branch=env.get("GITHUB_BASE_REF") or None,
            tag=env.get("GITHUB_REF_NAME") if ref.startswith("refs/tags/") else None,
        )

    if env.get("GITLAB_CI") == "true" or env.get("CI_SERVER_NAME") == "GitLab":
        return CIBranchInfo(
            platform="GitLab CI",
            is_ci=True,
            branch=_first(
                env,
                "CI_MERGE_REQUEST_SOURCE_BRANCH_NAME",
                "CI_COMMIT_BRANCH",
                "CI_COMMIT_REF_NAME",
            ),
            is_pr=bool(env.get("CI_MERGE_REQUEST_ID")),
            source_branch=env.get("CI_MERGE_REQUEST_SOURCE_BRANCH_NAME") or None,
            target_branch=env.get("CI_MERGE_REQUEST_TARGET_BRANCH_NAME") or None,
            tag=env.get("CI_COMMIT_REF_NAME") if not env.get("CI_COMMIT_BRANCH") else None,
        )

    if env.get("JENKINS_URL") or env.get("JENKINS_HOME"):
        git_branch = env.get("GIT_BRANCH")
        if git_branch and git_branch.startswith("origin/"):
            git_branch = git_branch[len("origin/"):]
        return CIBranchInfo(
            platform="Jenkins",
            is_ci=True,
            branch=_first(env, "CHANGE_BRANCH", "BRANCH_NAME") or git_branch
            or env.get("GIT_LOCAL_BRANCH"),
            is_pr=bool(env.get("CHANGE_ID")),
            source_branch=env.get("CHANGE_BRANCH") or None,
            target_branch=env.get("CHANGE_TARGET") or None,
        )

    if env.get("BITBUCKET_BUILD_NUMBER") or env.get("BITBUCKET_COMMIT"):
        return CIBranchInfo(
            platform="Bitbucket Pipelines",
            is_ci=True,
            branch=_first(env, "BITBUCKET_BRANCH", "BITBUCKET_TAG"),
            is_pr=bool(env.get("BITBUCKET_PR_ID")),
            source_branch=env.get("BITBUCKET_BRANCH") if env.get("BITBUCKET_PR_ID") else None,
            target_branch=env.get("BITBUCKET_PR_DESTINATION_BRANCH") or None,
            tag=env.get("BITBUCKET_TAG") or None,
        )

    if env.get("CIRCLECI") == "true" or env.get("CIRCLE_BUILD_NUM"):
        return CIBranchInfo(
            platform="CircleCI",
            is_ci=True,
            branch=_first(env, "CIRCLE_BRANCH", "CIRCLE_TAG"),
            is_pr=bool(_first(
                env, "CIRCLE_PULL_REQUEST", "CIRCLE_PR_NUMBER", "CIRCLE_PULL_REQUESTS"
            )),
            tag=env.get("CIRCLE_TAG") or None,
        )

    if env.get("TRAVIS") == "true" or (env.get("CI") == "true" and env.get("TRAVIS_BUILD_ID")):
        pr_branch = env.get("TRAVIS_PULL_REQUEST_BRANCH") or None
        return CIBranchInfo(
            platform="Travis CI",
            is_ci=True,
            branch=_first(env, "TRAVIS_PULL_REQUEST_BRANCH", "TRAVIS_BRANCH", "TRAVIS_TAG"),
            is_pr=env.get("TRAVIS_PULL_REQUEST", "false") != "false",
            source_branch=pr_branch,
            target_branch=env.get("TRAVIS_BRANCH") if pr_branch else None,
            tag=env.get("TRAVIS_TAG") or None,
        )

    if env.get("TF_BUILD") == "True":
        pr_source = _strip_ref(env.get("SYSTEM_PULLREQUEST_SOURCEBRANCH"))
        if env.get("BUILD_SOURCEBRANCHNAME") != "merge":
            regular = env.get("BUILD_SOURCEBRANCHNAME") or None
        else:
            regular = _strip_ref(env.get("BUILD_SOURCEBRANCH"))
        return CIBranchInfo(
            platform="Azure Pipelines",
            is_ci=True,
            branch=pr_source or regular,
            is_pr=bool(env.get("SYSTEM_PULLREQUEST_PULLREQUESTID")),
            source_branch=pr_source,
            target_branch=_strip_ref(env.get("SYSTEM_PULLREQUEST_TARGETBRANCH")),
        )

    if env.get("TEAMCITY_VERSION"):
        # TeamCity only exposes the branch when configured to
        branch = _first(env, "GIT_BRANCH", "BRANCH_NAME")
        return CIBranchInfo(
            platform="TeamCity",
            is_ci=True,
            branch=None if branch == "<default>" else branch,
        )

    if env.get("DRONE") == "true" or env.get("DRONE_BRANCH"):
        return CIBranchInfo(
            platform="Drone CI",
            is_ci=True,
            branch=_first(env, "DRONE_SOURCE_BRANCH", "DRONE_BRANCH", "DRONE_COMMIT_BRANCH"),
            is_pr=env.get("DRONE_BUILD_EVENT") == "pull_request",
            source_branch=env.get("DRONE_SOURCE_BRANCH") or None,
            target_branch=env.get("DRONE_TARGET_BRANCH") or None,
            tag=env.get("DRONE_TAG") or None,
        )

    if env.get("BUILDKITE") == "true" or env.get("BUILDKITE_BUILD_ID"):
        pr = env.get("BUILDKITE_PULL_REQUEST")
        return CIBranchInfo(
            platform="Buildkite",
            is_ci=True,
            branch=_first(env, "BUILDKITE_BRANCH", "BUILDKITE_TAG"),
            is_pr=bool(pr) and pr != "false",
            target_branch=env.get("BUILDKITE_PULL_REQUEST_BASE_BRANCH") or None,
            tag=env.get("BUILDKITE_TAG") or None,
        )

    if env.get("CI") == "true" or env.get("CONTINUOUS_INTEGRATION") == "true":
        return CIBranchInfo(platform="Generic CI", is_ci=True)

    return CIBranchInfo(platform="None", is_ci=False)


def detect_ci(env: Optional[Mapping[str, str]] = None) -> bool:
    return detect_ci_branch(env).is_ci
