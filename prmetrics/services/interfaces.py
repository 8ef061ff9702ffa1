"""Service interfaces used by command/runtime orchestration."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from prmetrics.config import PrMetricsConfig
from prmetrics.connectors.base import RepositoryApi
from prmetrics.environment import CiEnvironment
from prmetrics.git import GitInvoker


class EnvironmentLoader(Protocol):
    def __call__(self, environ: Mapping[str, str] | None = None) -> CiEnvironment: ...


class RepositoryFactory(Protocol):
    def __call__(self, ci: CiEnvironment, config: PrMetricsConfig) -> RepositoryApi: ...


class GitFactory(Protocol):
    def __call__(self, repo_path: Path, target_branch: str, pull_request_id: int) -> GitInvoker: ...
