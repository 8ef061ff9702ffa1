"""Parsing of ``git diff --numstat`` summaries into per-file metrics."""

from __future__ import annotations

import logging
import re

from prmetrics.models import FileMetric

logger = logging.getLogger(__name__)

_BRACE_RENAME_RE = re.compile(r"\{([^{}]*?) => ([^{}]*)\}")
_WHOLE_RENAME_RE = re.compile(r"^.*? => ")
_BINARY_MARKER = "-"
_COUNT_RE = re.compile(r"[0-9]+")


class DiffParseError(ValueError):
    pass


def normalize_renamed_path(path_spec: str) -> str:
    """Collapse git rename syntax to the final path.

    ``src/{old => new}/a.ts`` becomes ``src/new/a.ts`` and ``a.ts => b.ts`` becomes ``b.ts``.
    """
    result = _BRACE_RENAME_RE.sub(lambda match: match.group(2), path_spec)
    if result != path_spec:
        # "{old => }" leaves an empty segment behind.
        result = result.replace("//", "/")
    return _WHOLE_RENAME_RE.sub("", result, count=1)


def _parse_line_count(token: str, line: str, category: str) -> int:
    if token == _BINARY_MARKER:
        return 0
    if not _COUNT_RE.fullmatch(token):
        raise DiffParseError(f"Could not parse {category} lines '{token}' from line '{line}'.")
    return int(token)


def parse_diff_summary(diff_summary: str) -> list[FileMetric]:
    if not diff_summary.strip():
        raise DiffParseError("The Git diff summary is empty.")

    records: list[FileMetric] = []
    for raw_line in diff_summary.strip("\r\n").split("\n"):
        line = raw_line.rstrip("\r")
        elements = line.split("\t")
        if len(elements) != 3:
            raise DiffParseError(
                f"The number of elements '{len(elements)}' in '{line}' did not match the expected 3."
            )

        added, deleted, path_spec = elements
        records.append(
            FileMetric(
                file_name=normalize_renamed_path(path_spec),
                lines_added=_parse_line_count(added, line, "added"),
                lines_deleted=_parse_line_count(deleted, line, "deleted"),
            )
        )

    logger.debug("Parsed %s file records from the diff summary", len(records))
    return records
