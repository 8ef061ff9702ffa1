"""End-to-end orchestration of one pull request metrics run."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path

from prmetrics.code_metrics import CodeMetrics
from prmetrics.comments import metrics_comment_status, read_comment_state, render_metrics_comment
from prmetrics.config import PrMetricsConfig
from prmetrics.connectors.base import RepositoryApi
from prmetrics.environment import CiEnvironment, Provider
from prmetrics.git import GitInvoker
from prmetrics.logging_utils import DebugReplayBuffer
from prmetrics.models import CommentOperation
from prmetrics.pull_request import get_updated_description, get_updated_title
from prmetrics.reconciler import apply_operations, plan_operations
from prmetrics.services.interfaces import GitFactory, RepositoryFactory

logger = logging.getLogger(__name__)


class RunOutcome(str, Enum):
    SKIPPED = "skipped"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


class PullRequestMetricsRun:
    """One CI invocation: classify the diff, then update the pull request to match."""

    def __init__(
        self,
        config: PrMetricsConfig,
        ci: CiEnvironment,
        *,
        repository_factory: RepositoryFactory,
        git_factory: GitFactory = GitInvoker,
        repo_path: str | Path = ".",
        replay: DebugReplayBuffer | None = None,
    ) -> None:
        self.config = config
        self.ci = ci
        self.repo_path = Path(repo_path)
        self._repository_factory = repository_factory
        self._git_factory = git_factory
        self._replay = replay
        self._repository: RepositoryApi | None = None
        self._git: GitInvoker | None = None

    @property
    def repository(self) -> RepositoryApi:
        if self._repository is None:
            self._repository = self._repository_factory(self.ci, self.config)
        return self._repository

    @property
    def git(self) -> GitInvoker:
        if self._git is None:
            if self.ci.target_branch is None or self.ci.pull_request_id is None:
                raise ValueError("The target branch and pull request id are required to compute the diff.")
            self._git = self._git_factory(self.repo_path, self.ci.target_branch, self.ci.pull_request_id)
        return self._git

    def should_skip(self) -> str | None:
        if not self.ci.is_pull_request:
            return "The task was skipped as the build is not a pull request."
        if self.ci.provider == Provider.UNSUPPORTED:
            return f"The task was skipped as the repository provider '{self.ci.raw_provider}' is not supported."
        return None

    def should_stop(self) -> str | None:
        if self.ci.pull_request_id is None:
            return "Could not determine the pull request id."
        if self.ci.target_branch is None:
            return "Could not determine the pull request target branch."
        token_message = self.repository.is_access_token_available()
        if token_message is not None:
            return token_message
        if not self.git.is_git_repo():
            return f"The folder '{self.repo_path}' is not a Git repository. Check out the repository before running."
        if not self.git.is_git_history_available():
            return "The Git history is unavailable. Fetch the full history (fetch-depth: 0) before running."
        return None

    def compute_metrics(self) -> CodeMetrics:
        return CodeMetrics.from_diff(self.git.get_diff_summary(), self.config.metrics)

    def update_details(self, code_metrics: CodeMetrics) -> None:
        details = self.repository.get_title_and_description()
        title = get_updated_title(details.title, code_metrics.size_indicator)
        description = get_updated_description(details.description)
        if title is None and description is None:
            logger.info("Pull request title and description are up to date")
            return
        logger.info("Updating pull request title=%s description=%s", title is not None, description is not None)
        self.repository.set_title_and_description(title, description)

    def plan_comments(self, code_metrics: CodeMetrics) -> list[CommentOperation]:
        state = read_comment_state(
            self.repository.get_comments(),
            code_metrics.files_not_requiring_review,
            code_metrics.deleted_files_not_requiring_review,
            strict=self.config.reconcile.strict_file_paths,
        )
        return plan_operations(
            state,
            render_metrics_comment(code_metrics, self.config.metrics),
            metrics_comment_status(code_metrics, self.config.metrics),
            track_status=self.repository.supports_thread_status,
        )

    def update_comments(self, code_metrics: CodeMetrics) -> int:
        operations = self.plan_comments(code_metrics)
        return apply_operations(operations, self.repository, max_workers=self.config.reconcile.max_workers)

    def update_metadata(self, code_metrics: CodeMetrics) -> None:
        self.repository.add_metadata(code_metrics.metadata())

    def _execute(self) -> RunOutcome:
        skip_message = self.should_skip()
        if skip_message is not None:
            logger.warning(skip_message)
            return RunOutcome.SKIPPED

        stop_message = self.should_stop()
        if stop_message is not None:
            logger.error(stop_message)
            return RunOutcome.FAILED

        code_metrics = self.compute_metrics()
        with ThreadPoolExecutor(max_workers=3) as pool:
            futures = [
                pool.submit(self.update_details, code_metrics),
                pool.submit(self.update_comments, code_metrics),
                pool.submit(self.update_metadata, code_metrics),
            ]
            errors = [error for error in (future.exception() for future in futures) if error is not None]
        for error in errors[1:]:
            logger.error("Additional pull request update failure: %s", error)
        if errors:
            raise errors[0]
        logger.info("Pull request metrics updated: %s", code_metrics.size_indicator)
        return RunOutcome.SUCCEEDED

    def run(self) -> RunOutcome:
        try:
            return self._execute()
        except Exception:
            logger.exception("Pull request metrics run failed")
            if self._replay is not None:
                self._replay.replay()
            return RunOutcome.FAILED
