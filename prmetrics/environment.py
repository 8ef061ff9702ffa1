"""CI environment detection: which provider, which pull request."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from prmetrics.config import PrMetricsConfig
from prmetrics.connectors import AzureReposConnector, GithubGhReposConnector
from prmetrics.connectors.base import RepositoryApi

_GITHUB_PULL_REF_RE = re.compile(r"^refs/pull/(\d+)/merge$")
_BRANCH_PREFIX = "refs/heads/"


class Provider(str, Enum):
    GITHUB = "github"
    AZURE_REPOS = "azure_repos"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class CiEnvironment:
    provider: Provider
    is_pull_request: bool
    target_branch: str | None
    pull_request_id: int | None
    github_repository: str | None = None
    organization_url: str | None = None
    project: str | None = None
    repository_id: str | None = None
    raw_provider: str | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> CiEnvironment:
        env = os.environ if environ is None else environ

        if env.get("GITHUB_ACTIONS") == "true" or env.get("GITHUB_BASE_REF"):
            pull_request_id = None
            match = _GITHUB_PULL_REF_RE.match(env.get("GITHUB_REF", ""))
            if match:
                pull_request_id = int(match.group(1))
            return cls(
                provider=Provider.GITHUB,
                is_pull_request=bool(env.get("GITHUB_BASE_REF")),
                target_branch=env.get("GITHUB_BASE_REF") or None,
                pull_request_id=pull_request_id,
                github_repository=env.get("GITHUB_REPOSITORY") or None,
            )

        raw_provider = env.get("BUILD_REPOSITORY_PROVIDER")
        if raw_provider == "TfsGit":
            provider = Provider.AZURE_REPOS
            raw_id = env.get("SYSTEM_PULLREQUEST_PULLREQUESTID")
        elif raw_provider in {"GitHub", "GitHubEnterprise"}:
            provider = Provider.GITHUB
            raw_id = env.get("SYSTEM_PULLREQUEST_PULLREQUESTNUMBER")
        else:
            provider = Provider.UNSUPPORTED
            raw_id = env.get("SYSTEM_PULLREQUEST_PULLREQUESTID")

        target_branch = env.get("SYSTEM_PULLREQUEST_TARGETBRANCH") or None
        if target_branch is not None and target_branch.startswith(_BRANCH_PREFIX):
            target_branch = target_branch[len(_BRANCH_PREFIX) :]

        return cls(
            provider=provider,
            is_pull_request=env.get("SYSTEM_PULLREQUEST_PULLREQUESTID") is not None,
            target_branch=target_branch,
            pull_request_id=int(raw_id) if raw_id and raw_id.isdecimal() else None,
            github_repository=env.get("BUILD_REPOSITORY_NAME") if provider == Provider.GITHUB else None,
            organization_url=env.get("SYSTEM_TEAMFOUNDATIONCOLLECTIONURI") or None,
            project=env.get("SYSTEM_TEAMPROJECT") or None,
            repository_id=env.get("BUILD_REPOSITORY_ID") or None,
            raw_provider=raw_provider,
        )


def build_repository(
    ci: CiEnvironment,
    config: PrMetricsConfig,
    environ: Mapping[str, str] | None = None,
) -> RepositoryApi:
    env = os.environ if environ is None else environ
    if ci.pull_request_id is None:
        raise ValueError("Could not determine the pull request id from the environment.")

    if ci.provider == Provider.GITHUB:
        if not ci.github_repository:
            raise ValueError("Could not determine the GitHub repository (owner/name) from the environment.")
        return GithubGhReposConnector(
            repo=ci.github_repository,
            pull_request_id=ci.pull_request_id,
            gh_bin=config.github.gh_bin,
            environ=env,
            rate_limit_retries=config.github.rate_limit_retries,
            secondary_backoff_base_seconds=config.github.secondary_backoff_base_seconds,
            rate_limit_max_sleep_seconds=config.github.rate_limit_max_sleep_seconds,
        )

    if ci.provider == Provider.AZURE_REPOS:
        if not (ci.organization_url and ci.project and ci.repository_id):
            raise ValueError("Could not determine the Azure DevOps repository location from the environment.")
        return AzureReposConnector(
            organization_url=ci.organization_url,
            project=ci.project,
            repository_id=ci.repository_id,
            pull_request_id=ci.pull_request_id,
            access_token=env.get("PR_METRICS_ACCESS_TOKEN") or env.get("SYSTEM_ACCESSTOKEN"),
            api_version=config.azure.api_version,
            timeout_seconds=config.azure.timeout_seconds,
        )

    raise ValueError(f"Unsupported repository provider '{ci.raw_provider}'.")
