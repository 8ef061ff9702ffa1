"""Repository provider interface consumed by the reconciler and the runner."""

from __future__ import annotations

from typing import Protocol

from prmetrics.models import CommentData, CommentThreadStatus, MetadataEntry, PullRequestDetails

ACCESS_ERROR_STATUS_CODES = frozenset({401, 403, 404})


class RepositoryApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, internal_message: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.internal_message = internal_message


class RepositoryApi(Protocol):
    @property
    def supports_thread_status(self) -> bool: ...

    def is_access_token_available(self) -> str | None: ...

    def get_title_and_description(self) -> PullRequestDetails: ...

    def set_title_and_description(self, title: str | None, description: str | None) -> None: ...

    def get_comments(self) -> CommentData: ...

    def create_comment(
        self,
        content: str,
        file_name: str | None,
        status: CommentThreadStatus,
        is_file_deleted: bool = False,
    ) -> None: ...

    def update_comment(self, thread_id: int, content: str | None, status: CommentThreadStatus | None) -> None: ...

    def delete_comment_thread(self, thread_id: int) -> None: ...

    def add_metadata(self, entries: list[MetadataEntry]) -> None: ...
