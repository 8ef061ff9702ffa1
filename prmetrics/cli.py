"""CLI entrypoint for pull request metrics runs."""

from __future__ import annotations

import logging

from prmetrics.commands import analyze, plan
from prmetrics.commands import run as run_command
from prmetrics.commands.parser import build_parser
from prmetrics.environment import CiEnvironment, build_repository
from prmetrics.git import GitInvoker
from prmetrics.logging_utils import configure_logging
from prmetrics.services.command_runtime import CommandRuntime

logger = logging.getLogger(__name__)

COMMANDS = {
    "run": run_command.run,
    "analyze": analyze.run,
    "plan": plan.run,
}


def default_runtime() -> CommandRuntime:
    return CommandRuntime(
        load_environment=CiEnvironment.from_environ,
        repository_factory=build_repository,
        git_factory=GitInvoker,
    )


def main(argv: list[str] | None = None, *, runtime: CommandRuntime | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args, runtime=runtime or default_runtime())


if __name__ == "__main__":
    raise SystemExit(main())
