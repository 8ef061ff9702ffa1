"""CLI parser construction."""

from __future__ import annotations

import argparse

from prmetrics.commands.common import add_common_config_flags, add_github_rate_limit_flags, add_metrics_flags


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pull request size and test metrics")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Classify the current pull request and update it")
    add_common_config_flags(run)
    add_metrics_flags(run)
    add_github_rate_limit_flags(run)

    analyze = sub.add_parser("analyze", help="Classify a git numstat diff summary offline")
    analyze.add_argument("--diff-file", help="numstat summary file, or - for stdin (default: run git)")
    analyze.add_argument("--format", choices=["markdown", "json"], default="markdown", help="Output format")
    add_common_config_flags(analyze)
    add_metrics_flags(analyze)

    plan = sub.add_parser("plan", help="Show the updates a run would make without applying them")
    add_common_config_flags(plan)
    add_metrics_flags(plan)
    add_github_rate_limit_flags(plan)

    return parser
