"""Core Pydantic domain models for prmetrics."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CommentThreadStatus(str, Enum):
    ACTIVE = "active"
    FIXED = "fixed"
    WONT_FIX = "wontFix"
    CLOSED = "closed"
    BY_DESIGN = "byDesign"
    PENDING = "pending"
    UNKNOWN = "unknown"


class FileMetric(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    file_name: str
    lines_added: int = Field(default=0, ge=0)
    lines_deleted: int = Field(default=0, ge=0)


class CodeMetricsData(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    product_code: int = Field(ge=0)
    test_code: int = Field(ge=0)
    ignored_code: int = Field(ge=0)

    @property
    def subtotal(self) -> int:
        return self.product_code + self.test_code

    @property
    def total(self) -> int:
        return self.subtotal + self.ignored_code


class PullRequestComment(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: int
    content: str
    status: CommentThreadStatus = CommentThreadStatus.UNKNOWN


class FileComment(PullRequestComment):
    file_name: str


class CommentData(BaseModel):
    """Provider-agnostic snapshot of the comments currently on a pull request."""

    model_config = ConfigDict(extra="forbid")

    pull_request_comments: list[PullRequestComment] = Field(default_factory=list)
    file_comments: list[FileComment] = Field(default_factory=list)


class PullRequestDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str
    description: str | None = None


class MetadataEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str
    value: str | int | bool


class PullRequestCommentsData(BaseModel):
    """Working set of one reconciliation pass.

    Seeded with the classifier's file lists and mutated while the existing comment threads
    are inspected. Not shared outside the pass that builds it.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    metrics_comment_thread_id: int | None = None
    metrics_comment_thread_status: CommentThreadStatus | None = None
    metrics_comment_content: str | None = None
    files_not_requiring_review: list[str] = Field(default_factory=list)
    deleted_files_not_requiring_review: list[str] = Field(default_factory=list)
    comment_threads_requiring_deletion: list[int] = Field(default_factory=list)


class OperationKind(str, Enum):
    CREATE_COMMENT = "create_comment"
    UPDATE_COMMENT = "update_comment"
    DELETE_COMMENT_THREAD = "delete_comment_thread"


class CommentOperation(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: OperationKind
    thread_id: int | None = None
    content: str | None = None
    status: CommentThreadStatus | None = None
    file_name: str | None = None
    is_file_deleted: bool = False

    def describe(self) -> str:
        if self.kind == OperationKind.DELETE_COMMENT_THREAD:
            return f"delete thread {self.thread_id}"
        if self.kind == OperationKind.UPDATE_COMMENT:
            changed = [name for name, value in (("content", self.content), ("status", self.status)) if value is not None]
            return f"update thread {self.thread_id} ({', '.join(changed)})"
        target = self.file_name if self.file_name is not None else "pull request"
        suffix = " [deleted]" if self.is_file_deleted else ""
        return f"create comment on {target}{suffix}"
