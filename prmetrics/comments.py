"""Metrics comment rendering and the reading of existing comment threads."""

from __future__ import annotations

import logging

from prmetrics.code_metrics import CodeMetrics
from prmetrics.config import MetricsConfig
from prmetrics.models import CommentData, CommentThreadStatus, FileComment, PullRequestComment, PullRequestCommentsData

logger = logging.getLogger(__name__)

COMMENT_TITLE = "# PR Metrics"
COMMENT_FOOTER = (
    "[Metrics computed by PR Metrics. Add it to your Azure DevOps and GitHub PRs!]"
    "(https://aka.ms/PRMetrics/Comment)"
)
NO_REVIEW_REQUIRED_COMMENT = "❗ **This file doesn't require review.**"
SMALL_PULL_REQUEST_COMMENT = "✔ **Thanks for keeping your pull request small.**"
LARGE_PULL_REQUEST_COMMENT = (
    "❌ **Try to keep pull requests smaller than {threshold} lines of new product code by following the "
    "[Single Responsibility Principle (SRP)](https://aka.ms/PRMetrics/SRP).**"
)
TESTS_SUFFICIENT_COMMENT = "✔ **Thanks for adding tests.**"
TESTS_INSUFFICIENT_COMMENT = "⚠️ **Consider adding additional tests.**"


def format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"


def _metric_row(title: str, value: int, highlight: bool) -> str:
    surround = "**" if highlight else ""
    return f"{surround}{title}{surround}|{surround}{format_number(value)}{surround}\n"


def render_metrics_comment(code_metrics: CodeMetrics, config: MetricsConfig) -> str:
    metrics = code_metrics.metrics
    result = f"{COMMENT_TITLE}\n"
    if code_metrics.is_small:
        result += SMALL_PULL_REQUEST_COMMENT
    else:
        result += LARGE_PULL_REQUEST_COMMENT.format(threshold=format_number(config.base_size * config.growth_rate))
    result += "\n"

    if code_metrics.is_sufficiently_tested is not None:
        result += TESTS_SUFFICIENT_COMMENT if code_metrics.is_sufficiently_tested else TESTS_INSUFFICIENT_COMMENT
        result += "\n"

    result += "||Lines\n"
    result += "-|-:\n"
    result += _metric_row("Product Code", metrics.product_code, False)
    result += _metric_row("Test Code", metrics.test_code, False)
    result += _metric_row("Subtotal", metrics.subtotal, True)
    result += _metric_row("Ignored Code", metrics.ignored_code, False)
    result += _metric_row("Total", metrics.total, True)
    result += "\n"
    result += COMMENT_FOOTER
    return result


def metrics_comment_status(code_metrics: CodeMetrics, config: MetricsConfig) -> CommentThreadStatus:
    if config.always_close_comment:
        return CommentThreadStatus.CLOSED
    if code_metrics.is_small and code_metrics.is_sufficiently_tested in (True, None):
        return CommentThreadStatus.CLOSED
    return CommentThreadStatus.ACTIVE


def _inspect_pull_request_comment(state: PullRequestCommentsData, comment: PullRequestComment) -> None:
    if not comment.content.startswith(f"{COMMENT_TITLE}\n"):
        return
    if state.metrics_comment_thread_id is not None:
        logger.debug("Ignoring duplicate metrics comment thread %s", comment.id)
        return

    state.metrics_comment_thread_id = comment.id
    state.metrics_comment_content = comment.content
    state.metrics_comment_thread_status = comment.status


def _inspect_file_comment(state: PullRequestCommentsData, comment: FileComment, strict: bool) -> None:
    if not comment.content:
        return
    if len(comment.file_name.lstrip("/")) < 1:
        if strict:
            raise ValueError(f"Comment thread {comment.id} has a malformed file path '{comment.file_name}'.")
        logger.debug("Skipping comment thread %s with malformed file path '%s'", comment.id, comment.file_name)
        return
    if comment.content != NO_REVIEW_REQUIRED_COMMENT:
        return

    file_name = comment.file_name.lstrip("/")
    if file_name in state.files_not_requiring_review:
        state.files_not_requiring_review.remove(file_name)
        return
    if file_name in state.deleted_files_not_requiring_review:
        state.deleted_files_not_requiring_review.remove(file_name)
        return

    logger.debug("Comment thread %s on %s is stale", comment.id, file_name)
    state.comment_threads_requiring_deletion.append(comment.id)


def read_comment_state(
    comment_data: CommentData,
    files_not_requiring_review: list[str],
    deleted_files_not_requiring_review: list[str],
    *,
    strict: bool = False,
) -> PullRequestCommentsData:
    """Match existing comment threads against the desired per-file comments.

    The returned lists hold only the files still needing a comment; threads whose file no
    longer needs one are listed for deletion. The input lists are not modified.
    """
    state = PullRequestCommentsData(
        files_not_requiring_review=list(files_not_requiring_review),
        deleted_files_not_requiring_review=list(deleted_files_not_requiring_review),
    )

    for comment in comment_data.pull_request_comments:
        _inspect_pull_request_comment(state, comment)

    for comment in comment_data.file_comments:
        _inspect_file_comment(state, comment, strict)

    return state
