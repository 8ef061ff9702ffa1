"""Configuration models and loading for prmetrics."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_BASE_SIZE = 200
DEFAULT_GROWTH_RATE = 2.0
DEFAULT_TEST_FACTOR = 1.0
DEFAULT_FILE_MATCHING_PATTERNS = ["**/*", "!**/package-lock.json"]
DEFAULT_CODE_FILE_EXTENSIONS = frozenset(
    {
        # JavaScript
        "js", "_js", "bones", "cjs", "es", "es6", "frag", "gs", "jake", "jsb", "jscad", "jsfl", "jsm",
        "jss", "jsx", "mjs", "njs", "pac", "sjs", "ssjs", "xsjs", "xsjslib", "epj", "erb",
        # Python
        "py", "cgi", "fcgi", "gyp", "gypi", "lmi", "py3", "pyde", "pyi", "pyp", "pyt", "pyw", "rpy",
        "smk", "spec", "tac", "wsgi", "xpy", "pyx", "pxd", "pxi", "eb", "numpy", "numpyw", "numsc", "pytb",
        # Java
        "java", "jsp",
        # TypeScript
        "ts", "tsx",
        # C#
        "cs", "cake", "csx", "linq",
        # PHP
        "php", "aw", "ctp", "inc", "php3", "php4", "php5", "phps", "phpt",
        # C and C++
        "cpp", "c++", "cc", "cp", "cxx", "h", "h++", "hh", "hpp", "hxx", "inl", "ino", "ipp", "re", "tcc",
        "tpp", "c", "cats", "idc", "cl", "opencl", "upc", "xbm", "xpm", "pm",
        # Shell
        "sh", "bash", "bats", "command", "env", "ksh", "tmux", "tool", "zsh", "fish", "ebuild", "eclass",
        "ps1", "psd1", "psm1", "tcsh", "csh",
        # Ruby
        "rb", "builder", "eye", "gemspec", "god", "jbuilder", "mspec", "pluginspec", "podspec", "prawn",
        "rabl", "rake", "rbi", "rbuild", "rbw", "rbx", "ru", "ruby", "thor", "watchr",
    }
)

# Input name -> config field, resolved from the CI runner's INPUT_* variables.
_ENV_INPUTS: dict[tuple[str, ...], str] = {
    ("base", "size"): "base_size",
    ("growth", "rate"): "growth_rate",
    ("test", "factor"): "test_factor",
    ("always", "close", "comment"): "always_close_comment",
    ("file", "matching", "patterns"): "file_matching_patterns",
    ("code", "file", "extensions"): "code_file_extensions",
}


def _split_lines(value: str) -> list[str]:
    return [line.strip() for line in value.replace("\r\n", "\n").split("\n") if line.strip()]


class MetricsConfig(BaseModel):
    """Classification inputs. Invalid values fall back to their defaults."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    base_size: int = DEFAULT_BASE_SIZE
    growth_rate: float = DEFAULT_GROWTH_RATE
    test_factor: float | None = DEFAULT_TEST_FACTOR
    always_close_comment: bool = False
    file_matching_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_FILE_MATCHING_PATTERNS))
    code_file_extensions: frozenset[str] = DEFAULT_CODE_FILE_EXTENSIONS

    @field_validator("base_size", mode="before")
    @classmethod
    def _normalize_base_size(cls, value: Any) -> int:
        try:
            converted = int(float(value))
        except (TypeError, ValueError, OverflowError):
            converted = 0
        if converted > 0:
            logger.info("Setting base size to %s.", f"{converted:,}")
            return converted
        logger.info("Adjusting base size to the default of %s.", f"{DEFAULT_BASE_SIZE:,}")
        return DEFAULT_BASE_SIZE

    @field_validator("growth_rate", mode="before")
    @classmethod
    def _normalize_growth_rate(cls, value: Any) -> float:
        try:
            converted = float(value)
        except (TypeError, ValueError):
            converted = 0.0
        if converted > 1.0:
            logger.info("Setting growth rate to %s.", converted)
            return converted
        logger.info("Adjusting growth rate to the default of %s.", DEFAULT_GROWTH_RATE)
        return DEFAULT_GROWTH_RATE

    @field_validator("test_factor", mode="before")
    @classmethod
    def _normalize_test_factor(cls, value: Any) -> float | None:
        if value is None:
            logger.info("Disabling the test factor validation.")
            return None
        try:
            converted = float(value)
        except (TypeError, ValueError):
            converted = -1.0
        if converted == 0.0:
            logger.info("Disabling the test factor validation.")
            return None
        if converted > 0.0:
            logger.info("Setting test factor to %s.", converted)
            return converted
        logger.info("Adjusting test factor to the default of %s.", DEFAULT_TEST_FACTOR)
        return DEFAULT_TEST_FACTOR

    @field_validator("always_close_comment", mode="before")
    @classmethod
    def _normalize_always_close_comment(cls, value: Any) -> bool:
        enabled = value is True or (isinstance(value, str) and value.strip().lower() == "true")
        if enabled:
            logger.info("Setting the metrics comment to always be closed.")
        return enabled

    @field_validator("file_matching_patterns", mode="before")
    @classmethod
    def _normalize_file_matching_patterns(cls, value: Any) -> list[str]:
        patterns = _split_lines(value) if isinstance(value, str) else [str(item).strip() for item in value or []]
        patterns = [pattern.replace("\\", "/") for pattern in patterns if pattern]
        if patterns:
            logger.info("Setting file matching patterns to %s.", json.dumps(patterns))
            return patterns
        logger.info("Adjusting file matching patterns to the default of %s.", json.dumps(DEFAULT_FILE_MATCHING_PATTERNS))
        return list(DEFAULT_FILE_MATCHING_PATTERNS)

    @field_validator("code_file_extensions", mode="before")
    @classmethod
    def _normalize_code_file_extensions(cls, value: Any) -> frozenset[str]:
        raw = _split_lines(value) if isinstance(value, str) else [str(item).strip() for item in value or []]
        extensions: set[str] = set()
        for item in raw:
            if item.startswith("*."):
                item = item[2:]
            elif item.startswith("."):
                item = item[1:]
            if item:
                extensions.add(item.lower())
        if extensions:
            logger.info("Setting code file extensions to %s.", json.dumps(sorted(extensions)))
            return frozenset(extensions)
        logger.info("Adjusting code file extensions to the default list.")
        return DEFAULT_CODE_FILE_EXTENSIONS


class GithubConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gh_bin: str = "gh"
    rate_limit_retries: int = 2
    secondary_backoff_base_seconds: float = 5.0
    rate_limit_max_sleep_seconds: float = 90.0


class AzureReposConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_version: str = "7.1"
    timeout_seconds: float = 30.0


class ReconcileConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_workers: int = Field(default=8, ge=1)
    strict_file_paths: bool = False


class PrMetricsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    github: GithubConfig = Field(default_factory=GithubConfig)
    azure: AzureReposConfig = Field(default_factory=AzureReposConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    return data or {}


def inputs_from_environment(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect runner inputs (GitHub ``INPUT_BASE-SIZE`` or Azure ``INPUT_BASESIZE`` style)."""
    env = os.environ if environ is None else environ
    metrics: dict[str, Any] = {}
    for parts, field in _ENV_INPUTS.items():
        for name in ("INPUT_" + "-".join(parts).upper(), "INPUT_" + "".join(parts).upper()):
            value = env.get(name)
            if value is not None and value.strip() != "":
                metrics[field] = value
                break
    if not metrics:
        return {}
    return {"metrics": metrics}


def load_effective_config(
    repo_path: str | Path,
    org_defaults: dict[str, Any] | None = None,
    system_defaults: dict[str, Any] | None = None,
    runtime_override: dict[str, Any] | None = None,
) -> PrMetricsConfig:
    """Load config with precedence runtime > repo .prmetrics.yaml > org > system."""
    repo = Path(repo_path)
    repo_config = _load_yaml(repo / ".prmetrics.yaml")

    merged: dict[str, Any] = {}
    if system_defaults:
        merged = deep_merge(merged, system_defaults)
    if org_defaults:
        merged = deep_merge(merged, org_defaults)
    if repo_config:
        merged = deep_merge(merged, repo_config)
    if runtime_override:
        merged = deep_merge(merged, runtime_override)

    return PrMetricsConfig.model_validate(merged)
