"""Dry-run command: show the pull request updates a run would make."""

from __future__ import annotations

import argparse
import logging

from prmetrics.commands.common import CommandRuntime, build_run
from prmetrics.pull_request import get_updated_description, get_updated_title

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    metrics_run = build_run(args, runtime=runtime)
    skip_message = metrics_run.should_skip()
    if skip_message is not None:
        logger.warning(skip_message)
        return 0
    stop_message = metrics_run.should_stop()
    if stop_message is not None:
        logger.error(stop_message)
        return 1

    code_metrics = metrics_run.compute_metrics()
    details = metrics_run.repository.get_title_and_description()
    title = get_updated_title(details.title, code_metrics.size_indicator)
    description = get_updated_description(details.description)
    operations = metrics_run.plan_comments(code_metrics)

    print(f"Size: {code_metrics.size_indicator}")
    print(f"Title: {title if title is not None else '(unchanged)'}")
    print(f"Description: {'(placeholder)' if description is not None else '(unchanged)'}")
    print(f"Comment operations: {len(operations)}")
    for operation in operations:
        print(f"- {operation.describe()}")
    return 0
