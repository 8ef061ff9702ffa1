"""GitHub repository connector backed by the gh CLI."""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
import threading
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from prmetrics.connectors.base import ACCESS_ERROR_STATUS_CODES, RepositoryApi, RepositoryApiError
from prmetrics.models import (
    CommentData,
    CommentThreadStatus,
    FileComment,
    MetadataEntry,
    PullRequestComment,
    PullRequestDetails,
)

_RATE_LIMIT_RE = re.compile(r"(?:api|secondary) rate limit", re.IGNORECASE)
_HTTP_STATUS_RE = re.compile(r"\(HTTP (\d{3})\)|HTTP (\d{3}):")
_DIFF_TOO_LARGE = "pull_request_review_thread.path diff too large"
_TOKEN_ENV_VARS = ("PR_METRICS_ACCESS_TOKEN", "GH_TOKEN", "GITHUB_TOKEN")
logger = logging.getLogger(__name__)


class GithubPull(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    title: str
    body: str | None = None
    head: dict[str, Any] = Field(default_factory=dict)


class GithubIssueComment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    body: str | None = None


class GithubReviewComment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    body: str = ""
    path: str = ""


class GithubRateLimitError(RepositoryApiError):
    def __init__(
        self,
        message: str,
        *,
        reset_at: datetime | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after_seconds = retry_after_seconds


def _status_code_from_stderr(stderr: str) -> int | None:
    match = _HTTP_STATUS_RE.search(stderr)
    if match is None:
        return None
    return int(match.group(1) or match.group(2))


class GithubGhClient:
    def __init__(
        self,
        repo: str,
        gh_bin: str = "gh",
        *,
        token: str | None = None,
        rate_limit_retries: int = 2,
        secondary_backoff_base_seconds: float = 5.0,
        rate_limit_max_sleep_seconds: float = 90.0,
    ) -> None:
        self.repo = repo
        self.gh_bin = gh_bin
        self.token = token
        self.rate_limit_retries = max(0, rate_limit_retries)
        self.secondary_backoff_base_seconds = max(1.0, secondary_backoff_base_seconds)
        self.rate_limit_max_sleep_seconds = max(1.0, rate_limit_max_sleep_seconds)
        self._rate_limit_lock = threading.Lock()
        self._global_backoff_until = 0.0

    def get_paginated(self, endpoint: str, per_page: int = 100) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            query = f"{endpoint}{'&' if '?' in endpoint else '?'}per_page={per_page}&page={page}"
            payload = self.api_json(query)
            if not isinstance(payload, list) or not payload:
                break
            items.extend(payload)
            if len(payload) < per_page:
                break
            page += 1
        return items

    def _run(self, cmd: list[str], body: dict[str, Any] | None) -> subprocess.CompletedProcess[str]:
        env = None
        if self.token:
            env = {**os.environ, "GH_TOKEN": self.token}
        if body is not None:
            return subprocess.run(
                [*cmd, "--input", "-"],
                input=json.dumps(body),
                text=True,
                capture_output=True,
                check=False,
                env=env,
            )
        return subprocess.run(cmd, text=True, capture_output=True, check=False, env=env)

    def api_json(self, endpoint: str, method: str = "GET", body: dict[str, Any] | None = None) -> Any:
        cmd = [self.gh_bin, "api", f"repos/{self.repo}/{endpoint.lstrip('/')}"]
        cmd.extend(["-X", method])
        cmd.extend(["-H", "Accept: application/vnd.github+json"])
        for attempt in range(self.rate_limit_retries + 1):
            self._wait_for_global_backoff()
            proc = self._run(cmd, body)

            if proc.returncode == 0:
                output = proc.stdout.strip()
                if not output:
                    return None
                return json.loads(output)

            stderr = proc.stderr.strip()
            if not _RATE_LIMIT_RE.search(stderr):
                # gh prints the error response body on stdout.
                detail = "\n".join(part for part in (stderr, proc.stdout.strip()) if part)
                raise RepositoryApiError(
                    f"gh api failed: {method} {endpoint}\n{detail}",
                    status_code=_status_code_from_stderr(stderr),
                    internal_message=detail,
                )

            reset_at = self._core_reset_at()
            retry_after_seconds = self._compute_rate_limit_wait_seconds(reset_at=reset_at, attempt=attempt)
            self._set_global_backoff(retry_after_seconds)
            logger.warning(
                "GitHub rate limit hit for %s (attempt %s/%s). backoff=%.1fs reset_at=%s",
                endpoint,
                attempt + 1,
                self.rate_limit_retries + 1,
                retry_after_seconds,
                reset_at.isoformat() if reset_at else "unknown",
            )
            if attempt < self.rate_limit_retries and retry_after_seconds <= self.rate_limit_max_sleep_seconds:
                continue

            raise GithubRateLimitError(
                f"gh api failed: {method} {endpoint}\n{stderr}",
                reset_at=reset_at,
                retry_after_seconds=retry_after_seconds,
            )
        raise RepositoryApiError(f"gh api failed unexpectedly after retries for endpoint={endpoint}")

    def _wait_for_global_backoff(self) -> None:
        while True:
            with self._rate_limit_lock:
                wait_seconds = self._global_backoff_until - time.monotonic()
            if wait_seconds <= 0:
                return
            time.sleep(wait_seconds)

    def _set_global_backoff(self, wait_seconds: float) -> None:
        target = time.monotonic() + max(0.0, wait_seconds)
        with self._rate_limit_lock:
            self._global_backoff_until = max(self._global_backoff_until, target)

    def _compute_rate_limit_wait_seconds(self, *, reset_at: datetime | None, attempt: int) -> float:
        if reset_at is not None:
            until_reset = (reset_at - datetime.now(UTC)).total_seconds()
            if until_reset > self.rate_limit_max_sleep_seconds:
                return until_reset
            return max(1.0, until_reset + 1.0)
        backoff = self.secondary_backoff_base_seconds * (2**attempt)
        return float(min(self.rate_limit_max_sleep_seconds, max(1.0, backoff)))

    def _core_reset_at(self) -> datetime | None:
        """Reset time of the exhausted REST quota, or None for secondary limits."""
        proc = self._run([self.gh_bin, "api", "rate_limit", "-X", "GET", "-H", "Accept: application/vnd.github+json"], None)
        if proc.returncode != 0 or not proc.stdout.strip():
            return None
        try:
            data = json.loads(proc.stdout)
        except json.JSONDecodeError:
            return None
        core = (data.get("resources") or {}).get("core") or data.get("rate") or {}
        remaining = core.get("remaining")
        reset = core.get("reset")
        if isinstance(remaining, int) and remaining <= 0 and isinstance(reset, int):
            return datetime.fromtimestamp(reset, UTC)
        return None


class GithubGhReposConnector(RepositoryApi):
    """GitHub pull request comments: issue comments for the PR, review comments for files."""

    def __init__(
        self,
        repo: str,
        pull_request_id: int,
        gh_bin: str = "gh",
        *,
        environ: Mapping[str, str] | None = None,
        rate_limit_retries: int = 2,
        secondary_backoff_base_seconds: float = 5.0,
        rate_limit_max_sleep_seconds: float = 90.0,
    ) -> None:
        self.repo = repo
        self.pull_request_id = pull_request_id
        self._environ = os.environ if environ is None else environ
        self.client = GithubGhClient(
            repo=repo,
            gh_bin=gh_bin,
            token=self._environ.get("PR_METRICS_ACCESS_TOKEN"),
            rate_limit_retries=rate_limit_retries,
            secondary_backoff_base_seconds=secondary_backoff_base_seconds,
            rate_limit_max_sleep_seconds=rate_limit_max_sleep_seconds,
        )
        self._commit_id: str | None = None
        self._commit_lock = threading.Lock()

    @property
    def supports_thread_status(self) -> bool:
        return False

    def is_access_token_available(self) -> str | None:
        if any(self._environ.get(name) for name in _TOKEN_ENV_VARS):
            return None
        return "Could not access the GitHub access token. Set PR_METRICS_ACCESS_TOKEN to a token with pull request write access."

    @staticmethod
    def _access_error(exc: RepositoryApiError) -> RepositoryApiError:
        if exc.status_code not in ACCESS_ERROR_STATUS_CODES:
            return exc
        return RepositoryApiError(
            "Could not access the resources. Ensure the GitHub access token has pull request read and write permissions.",
            status_code=exc.status_code,
            internal_message=str(exc),
        )

    def _call(self, endpoint: str, method: str = "GET", body: dict[str, Any] | None = None) -> Any:
        try:
            return self.client.api_json(endpoint, method=method, body=body)
        except RepositoryApiError as exc:
            translated = self._access_error(exc)
            if translated is exc:
                raise
            raise translated from exc

    def _get_pull(self) -> GithubPull:
        return GithubPull.model_validate(self._call(f"pulls/{self.pull_request_id}"))

    def get_title_and_description(self) -> PullRequestDetails:
        pull = self._get_pull()
        return PullRequestDetails(title=pull.title, description=pull.body)

    def set_title_and_description(self, title: str | None, description: str | None) -> None:
        if title is None and description is None:
            return
        body: dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if description is not None:
            body["body"] = description
        self._call(f"pulls/{self.pull_request_id}", method="PATCH", body=body)

    def get_comments(self) -> CommentData:
        try:
            issue_comments = self.client.get_paginated(f"issues/{self.pull_request_id}/comments")
            review_comments = self.client.get_paginated(f"pulls/{self.pull_request_id}/comments")
        except RepositoryApiError as exc:
            translated = self._access_error(exc)
            if translated is exc:
                raise
            raise translated from exc
        result = CommentData()
        for item in issue_comments:
            comment = GithubIssueComment.model_validate(item)
            if comment.body is None:
                continue
            result.pull_request_comments.append(PullRequestComment(id=comment.id, content=comment.body))
        for item in review_comments:
            comment = GithubReviewComment.model_validate(item)
            result.file_comments.append(FileComment(id=comment.id, content=comment.body, file_name=comment.path))
        return result

    def _head_commit_id(self) -> str:
        with self._commit_lock:
            if self._commit_id is None:
                sha = self._get_pull().head.get("sha")
                if not isinstance(sha, str) or not sha:
                    raise RepositoryApiError(f"Pull request {self.pull_request_id} has no head commit.")
                self._commit_id = sha
            return self._commit_id

    def create_comment(
        self,
        content: str,
        file_name: str | None,
        status: CommentThreadStatus,
        is_file_deleted: bool = False,
    ) -> None:
        # GitHub comments carry no thread status.
        _ = status
        if file_name is None:
            self._call(f"issues/{self.pull_request_id}/comments", method="POST", body={"body": content})
            return

        body = {
            "body": content,
            "commit_id": self._head_commit_id(),
            "path": file_name,
            "subject_type": "file",
            "side": "LEFT" if is_file_deleted else "RIGHT",
        }
        try:
            self._call(f"pulls/{self.pull_request_id}/comments", method="POST", body=body)
        except RepositoryApiError as exc:
            if exc.status_code == 422 and _DIFF_TOO_LARGE in str(exc):
                logger.info("GitHub rejected a file comment on %s because the diff is too large; ignoring", file_name)
                return
            raise

    def update_comment(self, thread_id: int, content: str | None, status: CommentThreadStatus | None) -> None:
        _ = status
        if content is None:
            return
        self._call(f"issues/comments/{thread_id}", method="PATCH", body={"body": content})

    def delete_comment_thread(self, thread_id: int) -> None:
        self._call(f"pulls/comments/{thread_id}", method="DELETE")

    def add_metadata(self, entries: list[MetadataEntry]) -> None:
        logger.debug("GitHub has no pull request properties; skipping %s metadata entries", len(entries))
