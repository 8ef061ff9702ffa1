"""Shared helpers for CLI command modules."""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from prmetrics.config import PrMetricsConfig, deep_merge, inputs_from_environment, load_effective_config
from prmetrics.logging_utils import DebugReplayBuffer
from prmetrics.runner import PullRequestMetricsRun
from prmetrics.services.command_runtime import CommandRuntime

logger = logging.getLogger(__name__)

__all__ = [
    "CommandRuntime",
    "add_common_config_flags",
    "add_github_rate_limit_flags",
    "add_metrics_flags",
    "build_run",
    "load_config",
    "load_yaml_dict",
]


def load_yaml_dict(path: str | None) -> dict | None:
    if not path:
        return None
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def _flag_overrides(args: argparse.Namespace) -> dict[str, Any]:
    metrics: dict[str, Any] = {}
    for field in (
        "base_size",
        "growth_rate",
        "test_factor",
        "always_close_comment",
        "file_matching_patterns",
        "code_file_extensions",
    ):
        value = getattr(args, field, None)
        if value is not None:
            metrics[field] = value

    github: dict[str, Any] = {}
    for flag, field in (
        ("gh_bin", "gh_bin"),
        ("gh_rate_limit_retries", "rate_limit_retries"),
        ("gh_secondary_backoff_seconds", "secondary_backoff_base_seconds"),
        ("gh_rate_limit_max_sleep_seconds", "rate_limit_max_sleep_seconds"),
    ):
        value = getattr(args, flag, None)
        if value is not None:
            github[field] = value

    overrides: dict[str, Any] = {}
    if metrics:
        overrides["metrics"] = metrics
    if github:
        overrides["github"] = github
    return overrides


def load_config(args: argparse.Namespace, environ: Mapping[str, str] | None = None) -> PrMetricsConfig:
    """Layer runner inputs and CLI flags over the runtime override file."""
    runtime_override = load_yaml_dict(getattr(args, "runtime_override", None)) or {}
    runtime_override = deep_merge(runtime_override, inputs_from_environment(os.environ if environ is None else environ))
    runtime_override = deep_merge(runtime_override, _flag_overrides(args))
    return load_effective_config(
        repo_path=args.repo_path,
        org_defaults=load_yaml_dict(args.org_config),
        system_defaults=load_yaml_dict(args.system_config),
        runtime_override=runtime_override,
    )


def build_run(
    args: argparse.Namespace,
    *,
    runtime: CommandRuntime,
    replay: DebugReplayBuffer | None = None,
) -> PullRequestMetricsRun:
    config = load_config(args)
    ci = runtime.load_environment()
    return PullRequestMetricsRun(
        config,
        ci,
        repository_factory=runtime.repository_factory,
        git_factory=runtime.git_factory,
        repo_path=args.repo_path,
        replay=replay,
    )


def add_common_config_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--repo-path", default=".", help="Repository root path")
    cmd.add_argument("--org-config", help="Optional org defaults YAML")
    cmd.add_argument("--system-config", help="Optional system defaults YAML")
    cmd.add_argument("--runtime-override", help="Optional runtime override YAML")


def add_metrics_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--base-size", help="Lines of product code below which a pull request is XS")
    cmd.add_argument("--growth-rate", help="Multiplier between consecutive size thresholds")
    cmd.add_argument("--test-factor", help="Test lines required per product line (0 disables the check)")
    cmd.add_argument(
        "--always-close-comment",
        action="store_const",
        const=True,
        default=None,
        help="Always set the metrics comment thread to closed",
    )
    cmd.add_argument(
        "--file-matching-patterns",
        nargs="+",
        help="Glob patterns for files that count toward the metrics (prefix ! to exclude, !! to re-include)",
    )
    cmd.add_argument("--code-file-extensions", nargs="+", help="Extensions treated as code, e.g. py ts *.cs")


def add_github_rate_limit_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--gh-bin", help="Path/name of gh binary")
    cmd.add_argument(
        "--gh-rate-limit-retries",
        type=int,
        help="Retries per GitHub API call when rate-limited",
    )
    cmd.add_argument(
        "--gh-secondary-backoff-seconds",
        type=float,
        help="Base backoff for secondary limits (exponential per retry)",
    )
    cmd.add_argument(
        "--gh-rate-limit-max-sleep-seconds",
        type=float,
        help="Maximum automatic sleep before surfacing a rate-limit failure",
    )
