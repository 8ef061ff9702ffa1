"""Glob matching for file inclusion patterns.

Patterns follow the usual globstar conventions: ``**`` spans any number of directories,
``*`` and ``?`` stay within one path segment, ``[...]`` is a character class and ``{a,b}``
expands to alternatives. Dot files are matched like any other file. A pattern prefixed
with ``!`` excludes matches and ``!!`` re-includes files excluded by a ``!`` pattern.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache

logger = logging.getLogger(__name__)

_NEGATION = "!"
_DOUBLE_NEGATION = "!!"


def expand_braces(pattern: str) -> list[str]:
    start = pattern.find("{")
    while start != -1:
        depth = 0
        for index in range(start, len(pattern)):
            char = pattern[index]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    body = pattern[start + 1 : index]
                    options = _split_top_level(body)
                    if len(options) < 2:
                        break
                    prefix, suffix = pattern[:start], pattern[index + 1 :]
                    expanded: list[str] = []
                    for option in options:
                        expanded.extend(expand_braces(prefix + option + suffix))
                    return expanded
        start = pattern.find("{", start + 1)
    return [pattern]


def _split_top_level(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current = ""
    for char in body:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        current += char
    parts.append(current)
    return parts


def _translate_class(segment: str, start: int) -> tuple[str, int] | None:
    """Translate the ``[...]`` class opening at ``start``; None when it never closes."""
    position = start + 1
    negated = segment[position : position + 1] in ("!", "^")
    if negated:
        position += 1
    body_start = position
    # A ']' directly after the opening bracket is a member, not the terminator.
    if segment[position : position + 1] == "]":
        position += 1
    close = segment.find("]", position)
    if close == -1:
        return None

    body = segment[body_start:close]
    members: list[str] = []
    index = 0
    while index < len(body):
        if index + 2 < len(body) and body[index + 1] == "-":
            low, high = body[index], body[index + 2]
            # Reversed ranges contribute nothing.
            if low <= high:
                members.append(f"{re.escape(low)}-{re.escape(high)}")
            index += 3
            continue
        members.append(re.escape(body[index]))
        index += 1

    if not members:
        return ("[^/]" if negated else "(?!)"), close
    return ("[^/" if negated else "[") + "".join(members) + "]", close


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    index = 0
    while index < len(segment):
        char = segment[index]
        if char == "*":
            while index + 1 < len(segment) and segment[index + 1] == "*":
                index += 1
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            translated = _translate_class(segment, index)
            if translated is None:
                out.append(re.escape(char))
            else:
                regex, index = translated
                out.append(regex)
        else:
            out.append(re.escape(char))
        index += 1
    return "".join(out)


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    alternatives: list[str] = []
    for expanded in expand_braces(pattern):
        if expanded.startswith("./"):
            expanded = expanded[2:]
        segments = expanded.split("/")
        regex = ""
        for position, segment in enumerate(segments):
            is_last = position == len(segments) - 1
            if segment == "**":
                regex += ".*" if is_last else "(?:[^/]*/)*"
                continue
            regex += _translate_segment(segment)
            if not is_last:
                regex += "/"
        alternatives.append(regex)
    try:
        return re.compile("(?:" + "|".join(alternatives) + ")")
    except re.error:
        logger.warning("Treating file matching pattern %r as literal text as it could not be compiled.", pattern)
        return re.compile(re.escape(pattern))


def glob_match(path: str, pattern: str) -> bool:
    return compile_glob(pattern).fullmatch(path) is not None


@dataclass(frozen=True)
class FileMatcher:
    positive: list[str] = field(default_factory=list)
    negative: list[str] = field(default_factory=list)
    double_negative: list[str] = field(default_factory=list)

    @classmethod
    def from_patterns(cls, patterns: list[str]) -> FileMatcher:
        positive: list[str] = []
        negative: list[str] = []
        double_negative: list[str] = []
        for pattern in patterns:
            if pattern.startswith(_DOUBLE_NEGATION):
                double_negative.append(pattern[len(_DOUBLE_NEGATION) :])
            elif pattern.startswith(_NEGATION):
                negative.append(pattern[len(_NEGATION) :])
            else:
                positive.append(pattern)
        return cls(positive=positive, negative=negative, double_negative=double_negative)

    def matches(self, path: str) -> bool:
        if not any(glob_match(path, pattern) for pattern in self.positive):
            return False
        if not any(glob_match(path, pattern) for pattern in self.negative):
            return True
        return any(glob_match(path, pattern) for pattern in self.double_negative)
