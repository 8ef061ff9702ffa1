import pytest

from prmetrics.code_metrics import CodeMetrics
from prmetrics.comments import (
    COMMENT_FOOTER,
    NO_REVIEW_REQUIRED_COMMENT,
    format_number,
    metrics_comment_status,
    read_comment_state,
    render_metrics_comment,
)
from prmetrics.config import MetricsConfig
from prmetrics.models import CommentData, CommentThreadStatus, FileComment, PullRequestComment


def test_render_small_tested_comment() -> None:
    config = MetricsConfig()
    code_metrics = CodeMetrics.from_diff("10\t0\tapp.ts\n12\t0\tapp.test.ts\n3\t0\tREADME.md", config)

    assert render_metrics_comment(code_metrics, config) == (
        "# PR Metrics\n"
        "✔ **Thanks for keeping your pull request small.**\n"
        "✔ **Thanks for adding tests.**\n"
        "||Lines\n"
        "-|-:\n"
        "Product Code|10\n"
        "Test Code|12\n"
        "**Subtotal**|**22**\n"
        "Ignored Code|3\n"
        "**Total**|**25**\n"
        "\n" + COMMENT_FOOTER
    )


def test_render_large_untested_comment_uses_thousands_separators() -> None:
    config = MetricsConfig(base_size=1000, growth_rate=1.5)
    code_metrics = CodeMetrics.from_diff("2500\t0\tapp.ts", config)
    comment = render_metrics_comment(code_metrics, config)

    assert "❌ **Try to keep pull requests smaller than 1,500 lines of new product code" in comment
    assert "⚠️ **Consider adding additional tests.**" in comment
    assert "Product Code|2,500\n" in comment


def test_render_omits_test_line_when_disabled() -> None:
    config = MetricsConfig(test_factor=0)
    comment = render_metrics_comment(CodeMetrics.from_diff("10\t0\tapp.ts", config), config)

    assert "Thanks for adding tests" not in comment
    assert "Consider adding additional tests" not in comment
    assert comment.splitlines()[2] == "||Lines"


def test_format_number() -> None:
    assert format_number(1234567) == "1,234,567"
    assert format_number(400.0) == "400"
    assert format_number(1.5) == "1.5"


@pytest.mark.parametrize(
    ("diff", "overrides", "expected"),
    [
        ("10\t0\tapp.ts\n10\t0\tapp.test.ts", {}, CommentThreadStatus.CLOSED),
        ("10\t0\tapp.ts", {}, CommentThreadStatus.ACTIVE),
        ("10\t0\tapp.ts", {"test_factor": 0}, CommentThreadStatus.CLOSED),
        ("900\t0\tapp.ts\n900\t0\tapp.test.ts", {}, CommentThreadStatus.ACTIVE),
        ("900\t0\tapp.ts", {"always_close_comment": True}, CommentThreadStatus.CLOSED),
    ],
)
def test_metrics_comment_status(diff: str, overrides: dict, expected: CommentThreadStatus) -> None:
    config = MetricsConfig(**overrides)

    assert metrics_comment_status(CodeMetrics.from_diff(diff, config), config) == expected


def test_read_comment_state_finds_metrics_comment() -> None:
    comment_data = CommentData(
        pull_request_comments=[
            PullRequestComment(id=1, content="LGTM"),
            PullRequestComment(id=2, content="# PR Metrics\nold", status=CommentThreadStatus.ACTIVE),
            PullRequestComment(id=3, content="# PR Metrics\nduplicate"),
            PullRequestComment(id=4, content="# PR Metrics"),
        ]
    )
    state = read_comment_state(comment_data, [], [])

    assert state.metrics_comment_thread_id == 2
    assert state.metrics_comment_content == "# PR Metrics\nold"
    assert state.metrics_comment_thread_status == CommentThreadStatus.ACTIVE


def test_read_comment_state_matches_existing_file_comments() -> None:
    comment_data = CommentData(
        file_comments=[
            FileComment(id=10, content=NO_REVIEW_REQUIRED_COMMENT, file_name="/package-lock.json"),
            FileComment(id=11, content=NO_REVIEW_REQUIRED_COMMENT, file_name="web/yarn.lock"),
            FileComment(id=12, content="Please rename", file_name="src/app.ts"),
        ]
    )
    files = ["package-lock.json", "dist/bundle.js"]
    deleted = ["web/yarn.lock"]

    state = read_comment_state(comment_data, files, deleted)

    assert state.files_not_requiring_review == ["dist/bundle.js"]
    assert state.deleted_files_not_requiring_review == []
    assert state.comment_threads_requiring_deletion == []
    assert files == ["package-lock.json", "dist/bundle.js"]
    assert deleted == ["web/yarn.lock"]


def test_read_comment_state_marks_stale_comment_for_deletion() -> None:
    comment_data = CommentData(
        file_comments=[FileComment(id=20, content=NO_REVIEW_REQUIRED_COMMENT, file_name="old/generated.js")]
    )

    state = read_comment_state(comment_data, ["package-lock.json"], [])

    assert state.comment_threads_requiring_deletion == [20]
    assert state.files_not_requiring_review == ["package-lock.json"]


def test_read_comment_state_skips_malformed_entries() -> None:
    comment_data = CommentData(
        file_comments=[
            FileComment(id=30, content="", file_name="a.js"),
            FileComment(id=31, content=NO_REVIEW_REQUIRED_COMMENT, file_name="/"),
            FileComment(id=32, content=NO_REVIEW_REQUIRED_COMMENT, file_name=""),
        ]
    )

    state = read_comment_state(comment_data, ["a.js"], [])

    assert state.files_not_requiring_review == ["a.js"]
    assert state.comment_threads_requiring_deletion == []


def test_read_comment_state_strict_rejects_malformed_paths() -> None:
    comment_data = CommentData(
        file_comments=[FileComment(id=31, content=NO_REVIEW_REQUIRED_COMMENT, file_name="/")]
    )

    with pytest.raises(ValueError, match="malformed file path"):
        read_comment_state(comment_data, [], [], strict=True)
