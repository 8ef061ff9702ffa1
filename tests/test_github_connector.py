import json
from datetime import UTC, datetime
from types import SimpleNamespace

import pytest

from prmetrics.connectors.base import RepositoryApiError
from prmetrics.connectors.github_gh import GithubGhClient, GithubGhReposConnector, GithubRateLimitError
from prmetrics.models import CommentThreadStatus, MetadataEntry


class FakeGhClient:
    def __init__(self) -> None:
        self.repo = "openclaw/openclaw"
        self.calls: list[tuple] = []
        self.errors: dict[tuple[str, str], RepositoryApiError] = {}

    def get_paginated(self, endpoint: str, per_page: int = 100):
        self.calls.append((endpoint, "GET", None))
        if endpoint == "issues/12/comments":
            return [
                {"id": 1, "body": "Looks good", "user": {"login": "dev1"}},
                {"id": 2, "body": "# PR Metrics\nbody"},
                {"id": 3, "body": None},
            ]
        if endpoint == "pulls/12/comments":
            return [
                {"id": 40, "body": "❗ **This file doesn't require review.**", "path": "package-lock.json", "line": None},
            ]
        return []

    def api_json(self, endpoint: str, method: str = "GET", body=None):
        self.calls.append((endpoint, method, body))
        error = self.errors.get((endpoint, method))
        if error is not None:
            raise error
        if endpoint == "pulls/12" and method == "GET":
            return {"number": 12, "title": "Fix parser", "body": None, "head": {"sha": "abc123"}}
        return {}


def _connector(fake: FakeGhClient, environ=None) -> GithubGhReposConnector:
    connector = GithubGhReposConnector(
        repo="openclaw/openclaw",
        pull_request_id=12,
        environ=environ if environ is not None else {"PR_METRICS_ACCESS_TOKEN": "token"},
    )
    connector.client = fake
    return connector


def test_github_connector_reads_title_and_description() -> None:
    details = _connector(FakeGhClient()).get_title_and_description()

    assert details.title == "Fix parser"
    assert details.description is None


def test_github_connector_sets_only_provided_fields() -> None:
    fake = FakeGhClient()
    connector = _connector(fake)

    connector.set_title_and_description("XS ◾ Fix parser", None)
    connector.set_title_and_description(None, None)

    assert fake.calls == [("pulls/12", "PATCH", {"title": "XS ◾ Fix parser"})]


def test_github_connector_maps_comments() -> None:
    comments = _connector(FakeGhClient()).get_comments()

    assert [comment.id for comment in comments.pull_request_comments] == [1, 2]
    assert comments.pull_request_comments[1].status == CommentThreadStatus.UNKNOWN
    assert len(comments.file_comments) == 1
    assert comments.file_comments[0].file_name == "package-lock.json"


def test_github_connector_creates_pull_request_comment() -> None:
    fake = FakeGhClient()
    _connector(fake).create_comment("# PR Metrics\nbody", None, CommentThreadStatus.ACTIVE)

    assert fake.calls == [("issues/12/comments", "POST", {"body": "# PR Metrics\nbody"})]


def test_github_connector_creates_file_comment_on_head_commit() -> None:
    fake = FakeGhClient()
    connector = _connector(fake)

    connector.create_comment("no review", "package-lock.json", CommentThreadStatus.CLOSED)
    connector.create_comment("no review", "old.lock", CommentThreadStatus.CLOSED, is_file_deleted=True)

    posts = [call for call in fake.calls if call[1] == "POST"]
    assert posts[0] == (
        "pulls/12/comments",
        "POST",
        {"body": "no review", "commit_id": "abc123", "path": "package-lock.json", "subject_type": "file", "side": "RIGHT"},
    )
    assert posts[1][2]["side"] == "LEFT"
    assert sum(1 for call in fake.calls if call[:2] == ("pulls/12", "GET")) == 1


def test_github_connector_ignores_diff_too_large() -> None:
    fake = FakeGhClient()
    fake.errors[("pulls/12/comments", "POST")] = RepositoryApiError(
        "gh api failed: POST pulls/12/comments\ngh: Validation Failed (HTTP 422)\n"
        '{"message":"Validation Failed","errors":["pull_request_review_thread.path diff too large"]}',
        status_code=422,
    )

    _connector(fake).create_comment("no review", "huge.json", CommentThreadStatus.CLOSED)


def test_github_connector_raises_other_validation_errors() -> None:
    fake = FakeGhClient()
    fake.errors[("pulls/12/comments", "POST")] = RepositoryApiError("gh api failed: unprocessable", status_code=422)

    with pytest.raises(RepositoryApiError):
        _connector(fake).create_comment("no review", "file.json", CommentThreadStatus.CLOSED)


def test_github_connector_maps_access_errors() -> None:
    fake = FakeGhClient()
    fake.errors[("pulls/12", "PATCH")] = RepositoryApiError("gh: Not Found (HTTP 404)", status_code=404)

    with pytest.raises(RepositoryApiError, match="read and write permissions") as exc:
        _connector(fake).set_title_and_description("XS ◾ x", None)
    assert exc.value.status_code == 404
    assert "Not Found" in exc.value.internal_message


def test_github_connector_update_ignores_status_and_delete_uses_review_comments() -> None:
    fake = FakeGhClient()
    connector = _connector(fake)

    connector.update_comment(2, None, CommentThreadStatus.CLOSED)
    connector.update_comment(2, "# PR Metrics\nnew", CommentThreadStatus.CLOSED)
    connector.delete_comment_thread(40)
    connector.add_metadata([MetadataEntry(key="Size", value="XS")])

    assert fake.calls == [
        ("issues/comments/2", "PATCH", {"body": "# PR Metrics\nnew"}),
        ("pulls/comments/40", "DELETE", None),
    ]
    assert connector.supports_thread_status is False


def test_github_connector_token_detection() -> None:
    assert _connector(FakeGhClient(), environ={"GH_TOKEN": "x"}).is_access_token_available() is None
    assert "PR_METRICS_ACCESS_TOKEN" in _connector(FakeGhClient(), environ={}).is_access_token_available()


def test_github_client_passes_body_and_token(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def _fake_run(cmd, text=True, capture_output=True, check=False, input=None, env=None):  # noqa: ANN001,ARG001
        captured["cmd"] = cmd
        captured["input"] = input
        captured["env"] = env
        return SimpleNamespace(returncode=0, stdout='{"id": 9}', stderr="")

    monkeypatch.setattr("subprocess.run", _fake_run)
    client = GithubGhClient(repo="openclaw/openclaw", token="secret")

    assert client.api_json("issues/12/comments", method="POST", body={"body": "hi"}) == {"id": 9}
    assert captured["cmd"][:3] == ["gh", "api", "repos/openclaw/openclaw/issues/12/comments"]
    assert captured["cmd"][-2:] == ["--input", "-"]
    assert json.loads(captured["input"]) == {"body": "hi"}
    assert captured["env"]["GH_TOKEN"] == "secret"


def test_github_client_reports_http_status(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_run(cmd, text=True, capture_output=True, check=False, input=None, env=None):  # noqa: ANN001,ARG001
        return SimpleNamespace(returncode=1, stdout='{"message":"Bad credentials"}', stderr="gh: Bad credentials (HTTP 401)")

    monkeypatch.setattr("subprocess.run", _fake_run)
    client = GithubGhClient(repo="openclaw/openclaw")

    with pytest.raises(RepositoryApiError) as exc:
        client.api_json("pulls/1")
    assert exc.value.status_code == 401
    assert "Bad credentials" in str(exc.value)


def test_github_client_paginates(monkeypatch: pytest.MonkeyPatch) -> None:
    pages = {1: [{"id": index} for index in range(2)], 2: [{"id": 2}]}

    def _fake_run(cmd, text=True, capture_output=True, check=False, input=None, env=None):  # noqa: ANN001,ARG001
        page = int(cmd[2].rsplit("page=", 1)[1])
        return SimpleNamespace(returncode=0, stdout=json.dumps(pages.get(page, [])), stderr="")

    monkeypatch.setattr("subprocess.run", _fake_run)
    client = GithubGhClient(repo="openclaw/openclaw")

    assert client.get_paginated("issues/1/comments", per_page=2) == [{"id": 0}, {"id": 1}, {"id": 2}]


def test_github_client_raises_rate_limit_error_with_reset(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"api": 0, "rate_limit": 0}

    def _fake_run(cmd, text=True, capture_output=True, check=False, input=None, env=None):  # noqa: ANN001,ARG001
        endpoint = cmd[2]
        if endpoint.endswith("/pulls/1"):
            calls["api"] += 1
            return SimpleNamespace(
                returncode=1,
                stdout="",
                stderr="gh: API rate limit exceeded for user ID 1 (HTTP 403)",
            )
        calls["rate_limit"] += 1
        return SimpleNamespace(
            returncode=0,
            stdout='{"resources":{"core":{"remaining":0,"reset":1700000000}}}',
            stderr="",
        )

    monkeypatch.setattr("subprocess.run", _fake_run)
    client = GithubGhClient(repo="openclaw/openclaw", rate_limit_retries=0, rate_limit_max_sleep_seconds=10.0)
    with pytest.raises(GithubRateLimitError) as exc:
        client.api_json("pulls/1")
    assert exc.value.reset_at == datetime.fromtimestamp(1700000000, UTC)
    assert calls == {"api": 1, "rate_limit": 1}


def test_github_client_retries_and_succeeds_after_secondary_rate_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"api": 0, "rate_limit": 0}

    def _fake_run(cmd, text=True, capture_output=True, check=False, input=None, env=None):  # noqa: ANN001,ARG001
        endpoint = cmd[2]
        if endpoint.endswith("/pulls/1"):
            calls["api"] += 1
            if calls["api"] == 1:
                return SimpleNamespace(returncode=1, stdout="", stderr="gh: secondary rate limit. please wait")
            return SimpleNamespace(returncode=0, stdout='{"number":1}', stderr="")
        calls["rate_limit"] += 1
        return SimpleNamespace(returncode=1, stdout="", stderr="gh: unavailable")

    monkeypatch.setattr("subprocess.run", _fake_run)
    monkeypatch.setattr("time.sleep", lambda _seconds: None)
    client = GithubGhClient(repo="openclaw/openclaw", rate_limit_retries=2, secondary_backoff_base_seconds=1.0)

    assert client.api_json("pulls/1") == {"number": 1}
    assert calls == {"api": 2, "rate_limit": 1}
