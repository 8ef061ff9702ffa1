"""Convergence of the pull request's comment threads to the desired state."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from prmetrics.comments import NO_REVIEW_REQUIRED_COMMENT
from prmetrics.connectors.base import RepositoryApi
from prmetrics.models import CommentOperation, CommentThreadStatus, OperationKind, PullRequestCommentsData

logger = logging.getLogger(__name__)


class ReconciliationError(RuntimeError):
    def __init__(self, failures: list[tuple[CommentOperation, Exception]]) -> None:
        operation, exc = failures[0]
        super().__init__(f"{len(failures)} comment operation(s) failed; first: {operation.describe()}: {exc}")
        self.failures = failures


def plan_operations(
    state: PullRequestCommentsData,
    content: str,
    status: CommentThreadStatus,
    *,
    track_status: bool = True,
) -> list[CommentOperation]:
    operations: list[CommentOperation] = []

    if state.metrics_comment_thread_id is None:
        operations.append(CommentOperation(kind=OperationKind.CREATE_COMMENT, content=content, status=status))
    else:
        new_content = content if state.metrics_comment_content != content else None
        new_status = status if track_status and state.metrics_comment_thread_status != status else None
        if new_content is not None or new_status is not None:
            operations.append(
                CommentOperation(
                    kind=OperationKind.UPDATE_COMMENT,
                    thread_id=state.metrics_comment_thread_id,
                    content=new_content,
                    status=new_status,
                )
            )

    for file_name in state.files_not_requiring_review:
        operations.append(
            CommentOperation(
                kind=OperationKind.CREATE_COMMENT,
                content=NO_REVIEW_REQUIRED_COMMENT,
                status=CommentThreadStatus.CLOSED,
                file_name=file_name,
            )
        )
    for file_name in state.deleted_files_not_requiring_review:
        operations.append(
            CommentOperation(
                kind=OperationKind.CREATE_COMMENT,
                content=NO_REVIEW_REQUIRED_COMMENT,
                status=CommentThreadStatus.CLOSED,
                file_name=file_name,
                is_file_deleted=True,
            )
        )
    for thread_id in state.comment_threads_requiring_deletion:
        operations.append(CommentOperation(kind=OperationKind.DELETE_COMMENT_THREAD, thread_id=thread_id))

    return operations


def apply_operation(operation: CommentOperation, repository: RepositoryApi) -> None:
    if operation.kind == OperationKind.CREATE_COMMENT:
        repository.create_comment(
            operation.content or "",
            operation.file_name,
            operation.status or CommentThreadStatus.ACTIVE,
            is_file_deleted=operation.is_file_deleted,
        )
    elif operation.kind == OperationKind.UPDATE_COMMENT:
        repository.update_comment(operation.thread_id, operation.content, operation.status)
    elif operation.kind == OperationKind.DELETE_COMMENT_THREAD:
        repository.delete_comment_thread(operation.thread_id)
    else:  # pragma: no cover - exhaustive enum
        raise ValueError(f"Unsupported operation kind: {operation.kind}")


def apply_operations(operations: list[CommentOperation], repository: RepositoryApi, max_workers: int = 8) -> int:
    """Issue every operation concurrently and return how many succeeded.

    Operations are independent, so a failure does not cancel or roll back the others; all
    failures are raised together once every operation has finished.
    """
    if not operations:
        logger.info("Comment threads are up to date")
        return 0

    failures: list[tuple[CommentOperation, Exception]] = []
    succeeded = 0
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(operations)))) as pool:
        futures = {pool.submit(apply_operation, operation, repository): operation for operation in operations}
        for future in as_completed(futures):
            operation = futures[future]
            try:
                future.result()
            except Exception as exc:
                logger.error("Comment operation failed: %s: %s", operation.describe(), exc)
                failures.append((operation, exc))
                continue
            succeeded += 1
            logger.debug("Applied comment operation: %s", operation.describe())

    if failures:
        raise ReconciliationError(failures) from failures[0][1]
    logger.info("Applied %s comment operation(s)", succeeded)
    return succeeded
