"""Offline analysis command: classify a numstat diff summary without touching a pull request."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from prmetrics.code_metrics import CodeMetrics
from prmetrics.commands.common import CommandRuntime, build_run, load_config
from prmetrics.comments import render_metrics_comment

logger = logging.getLogger(__name__)


def _read_diff(args: argparse.Namespace, *, runtime: CommandRuntime) -> str:
    if args.diff_file == "-":
        return sys.stdin.read()
    if args.diff_file:
        return Path(args.diff_file).read_text()
    return build_run(args, runtime=runtime).git.get_diff_summary()


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    config = load_config(args)
    code_metrics = CodeMetrics.from_diff(_read_diff(args, runtime=runtime), config.metrics)

    if args.format == "json":
        payload = {
            "size": code_metrics.size,
            "size_indicator": code_metrics.size_indicator,
            "is_small": code_metrics.is_small,
            "is_sufficiently_tested": code_metrics.is_sufficiently_tested,
            "metrics": {entry.key: entry.value for entry in code_metrics.metadata()},
            "files_not_requiring_review": code_metrics.files_not_requiring_review,
            "deleted_files_not_requiring_review": code_metrics.deleted_files_not_requiring_review,
        }
        print(json.dumps(payload, indent=2))
    else:
        print(render_metrics_comment(code_metrics, config.metrics))
    return 0
