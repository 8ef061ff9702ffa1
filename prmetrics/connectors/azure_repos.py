"""Azure Repos connector backed by the Azure DevOps REST API."""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
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

logger = logging.getLogger(__name__)

_ACCESS_ERROR_MESSAGE = (
    "Could not access the resources. Ensure the access token has Code read and write, "
    "and Pull Request Threads read and write permissions."
)


class AzureComment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    content: str | None = None


class AzureThreadContext(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_path: str | None = Field(default=None, alias="filePath")


class AzureThread(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    status: str | None = None
    comments: list[AzureComment] = Field(default_factory=list)
    thread_context: AzureThreadContext | None = Field(default=None, alias="threadContext")


def _thread_status(raw: str | None) -> CommentThreadStatus:
    if raw is None:
        return CommentThreadStatus.UNKNOWN
    try:
        return CommentThreadStatus(raw)
    except ValueError:
        logger.debug("Unrecognised thread status '%s'", raw)
        return CommentThreadStatus.UNKNOWN


def convert_threads(threads: list[AzureThread]) -> CommentData:
    """Split raw threads into pull request comments and file comments."""
    result = CommentData()
    for thread in threads:
        if thread.id is None or not thread.comments:
            continue
        content = thread.comments[0].content
        if not content:
            continue

        status = _thread_status(thread.status)
        file_path = thread.thread_context.file_path if thread.thread_context is not None else None
        if file_path is None:
            result.pull_request_comments.append(PullRequestComment(id=thread.id, content=content, status=status))
            continue

        file_name = file_path[1:] if file_path.startswith("/") else file_path
        if not file_name:
            logger.debug("Skipping thread %s with malformed file path '%s'", thread.id, file_path)
            continue
        result.file_comments.append(FileComment(id=thread.id, content=content, status=status, file_name=file_name))
    return result


class AzureReposConnector(RepositoryApi):
    """Pull request threads, details and properties for one Azure Repos pull request."""

    def __init__(
        self,
        organization_url: str,
        project: str,
        repository_id: str,
        pull_request_id: int,
        access_token: str | None,
        *,
        api_version: str = "7.1",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._organization_url = organization_url.rstrip("/")
        self._project = project
        self._repository_id = repository_id
        self._pull_request_id = pull_request_id
        self._access_token = access_token
        self._api_version = api_version
        self._timeout_seconds = timeout_seconds

    @property
    def supports_thread_status(self) -> bool:
        return True

    def is_access_token_available(self) -> str | None:
        if self._access_token:
            return None
        return "Could not access the access token. Set PR_METRICS_ACCESS_TOKEN or expose System.AccessToken to the task."

    def _url(self, suffix: str = "") -> str:
        project = urllib.parse.quote(self._project, safe="")
        repository = urllib.parse.quote(self._repository_id, safe="")
        return (
            f"{self._organization_url}/{project}/_apis/git/repositories/{repository}"
            f"/pullRequests/{self._pull_request_id}{suffix}?api-version={self._api_version}"
        )

    def _request(
        self,
        method: str,
        suffix: str = "",
        payload: Any = None,
        content_type: str = "application/json",
    ) -> Any:
        headers = {"Accept": "application/json"}
        if self._access_token:
            credentials = base64.b64encode(f":{self._access_token}".encode()).decode("ascii")
            headers["Authorization"] = f"Basic {credentials}"
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = content_type

        req = urllib.request.Request(self._url(suffix), data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self._timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            if exc.code in ACCESS_ERROR_STATUS_CODES:
                raise RepositoryApiError(_ACCESS_ERROR_MESSAGE, status_code=exc.code, internal_message=str(exc)) from exc
            raise RepositoryApiError(
                f"Azure Repos request failed: {method} {suffix or '/'}: HTTP {exc.code}",
                status_code=exc.code,
                internal_message=str(exc),
            ) from exc

        if not raw.strip():
            return None
        return json.loads(raw)

    def get_title_and_description(self) -> PullRequestDetails:
        body = self._request("GET")
        if not isinstance(body, dict) or "title" not in body:
            raise RepositoryApiError(f"Pull request {self._pull_request_id} response has no title.")
        return PullRequestDetails(title=body["title"], description=body.get("description"))

    def set_title_and_description(self, title: str | None, description: str | None) -> None:
        if title is None and description is None:
            return
        payload: dict[str, str] = {}
        if title is not None:
            payload["title"] = title
        if description is not None:
            payload["description"] = description
        self._request("PATCH", payload=payload)

    def get_comments(self) -> CommentData:
        body = self._request("GET", "/threads")
        raw_threads = body.get("value", []) if isinstance(body, dict) else []
        return convert_threads([AzureThread.model_validate(item) for item in raw_threads])

    def create_comment(
        self,
        content: str,
        file_name: str | None,
        status: CommentThreadStatus,
        is_file_deleted: bool = False,
    ) -> None:
        thread: dict[str, Any] = {
            "comments": [{"content": content, "parentCommentId": 0, "commentType": 1}],
            "status": status.value,
        }
        if file_name is not None:
            side = "leftFile" if is_file_deleted else "rightFile"
            thread["threadContext"] = {
                "filePath": f"/{file_name}",
                f"{side}Start": {"line": 1, "offset": 1},
                f"{side}End": {"line": 1, "offset": 2},
            }
        self._request("POST", "/threads", payload=thread)

    def update_comment(self, thread_id: int, content: str | None, status: CommentThreadStatus | None) -> None:
        if content is not None:
            self._request("PATCH", f"/threads/{thread_id}/comments/1", payload={"content": content})
        if status is not None:
            self._request("PATCH", f"/threads/{thread_id}", payload={"status": status.value})

    def delete_comment_thread(self, thread_id: int) -> None:
        self._request("DELETE", f"/threads/{thread_id}/comments/1")

    def add_metadata(self, entries: list[MetadataEntry]) -> None:
        if not entries:
            raise ValueError("No metadata was provided.")
        patch = [{"op": "replace", "path": f"/PRMetrics.{entry.key}", "value": entry.value} for entry in entries]
        self._request("PATCH", "/properties", payload=patch, content_type="application/json-patch+json")
