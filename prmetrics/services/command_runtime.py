"""Typed command runtime dependency container."""

from __future__ import annotations

from dataclasses import dataclass

from prmetrics.services.interfaces import EnvironmentLoader, GitFactory, RepositoryFactory


@dataclass(frozen=True)
class CommandRuntime:
    load_environment: EnvironmentLoader
    repository_factory: RepositoryFactory
    git_factory: GitFactory
