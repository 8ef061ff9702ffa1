"""CI run command: classify the pull request and update it."""

from __future__ import annotations

import argparse
import logging

from prmetrics.commands.common import CommandRuntime, build_run
from prmetrics.logging_utils import DebugReplayBuffer
from prmetrics.runner import RunOutcome

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    with DebugReplayBuffer() as replay:
        outcome = build_run(args, runtime=runtime, replay=replay).run()
    logger.info("Run finished: %s", outcome.value)
    return 1 if outcome == RunOutcome.FAILED else 0
