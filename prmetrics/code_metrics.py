"""File classification and size bucketing for a pull request diff."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from prmetrics.config import MetricsConfig
from prmetrics.diff_parser import parse_diff_summary
from prmetrics.globbing import FileMatcher
from prmetrics.models import CodeMetricsData, FileMetric, MetadataEntry

logger = logging.getLogger(__name__)

SIZE_LABELS = ("XS", "S", "M", "L", "XL")
SMALL_SIZE_LABELS = frozenset({"XS", "S"})
TESTS_SUFFICIENT_GLYPH = "✔"
TESTS_INSUFFICIENT_GLYPH = "⚠️"


class FileCategory(str, Enum):
    PRODUCT = "product"
    TEST = "test"
    IGNORED = "ignored"
    NOT_REQUIRING_REVIEW = "not_requiring_review"
    DELETED_NOT_REQUIRING_REVIEW = "deleted_not_requiring_review"


def file_extension(file_name: str) -> str:
    index = file_name.rfind(".")
    if index == -1:
        return ""
    return file_name[index + 1 :].lower()


def is_test_file(file_name: str) -> bool:
    return "test" in file_name.lower()


def size_label(product_code: int, base_size: float, growth_rate: float) -> str:
    if product_code < base_size:
        return SIZE_LABELS[0]

    index = 1
    threshold = base_size * growth_rate
    while product_code >= threshold:
        threshold *= growth_rate
        index += 1

    if index < len(SIZE_LABELS):
        return SIZE_LABELS[index]
    return f"{index - 3}XL"


def size_indicator(label: str, is_sufficiently_tested: bool | None) -> str:
    if is_sufficiently_tested is None:
        return label
    return label + (TESTS_SUFFICIENT_GLYPH if is_sufficiently_tested else TESTS_INSUFFICIENT_GLYPH)


@dataclass(frozen=True)
class CodeMetrics:
    """Classification result for one run."""

    metrics: CodeMetricsData
    size: str
    is_small: bool
    is_sufficiently_tested: bool | None
    files_not_requiring_review: list[str] = field(default_factory=list)
    deleted_files_not_requiring_review: list[str] = field(default_factory=list)
    categories: dict[str, FileCategory] = field(default_factory=dict)

    @property
    def size_indicator(self) -> str:
        return size_indicator(self.size, self.is_sufficiently_tested)

    @classmethod
    def from_diff(cls, diff_summary: str, config: MetricsConfig) -> CodeMetrics:
        return cls.from_file_metrics(parse_diff_summary(diff_summary), config)

    @classmethod
    def from_file_metrics(cls, records: list[FileMetric], config: MetricsConfig) -> CodeMetrics:
        matcher = FileMatcher.from_patterns(config.file_matching_patterns)
        product_code = 0
        test_code = 0
        ignored_code = 0
        files_not_requiring_review: list[str] = []
        deleted_files_not_requiring_review: list[str] = []
        categories: dict[str, FileCategory] = {}

        for record in records:
            is_valid_pattern = matcher.matches(record.file_name)
            is_valid_extension = file_extension(record.file_name) in config.code_file_extensions

            if is_valid_pattern and is_valid_extension:
                if is_test_file(record.file_name):
                    category = FileCategory.TEST
                    test_code += record.lines_added
                else:
                    category = FileCategory.PRODUCT
                    product_code += record.lines_added
            elif is_valid_pattern:
                category = FileCategory.IGNORED
                ignored_code += record.lines_added
            elif record.lines_added > 0:
                category = FileCategory.NOT_REQUIRING_REVIEW
                ignored_code += record.lines_added
                files_not_requiring_review.append(record.file_name)
            else:
                category = FileCategory.DELETED_NOT_REQUIRING_REVIEW
                deleted_files_not_requiring_review.append(record.file_name)

            categories[record.file_name] = category
            logger.debug("%s file: %s (%s lines)", category.value, record.file_name, record.lines_added)

        metrics = CodeMetricsData(product_code=product_code, test_code=test_code, ignored_code=ignored_code)
        tested: bool | None = None
        if config.test_factor is not None:
            tested = metrics.test_code >= metrics.product_code * config.test_factor

        label = size_label(metrics.product_code, config.base_size, config.growth_rate)
        logger.info(
            "Code metrics: size=%s product=%s test=%s ignored=%s sufficiently_tested=%s",
            label,
            metrics.product_code,
            metrics.test_code,
            metrics.ignored_code,
            tested,
        )
        return cls(
            metrics=metrics,
            size=label,
            is_small=metrics.product_code < config.base_size * config.growth_rate,
            is_sufficiently_tested=tested,
            files_not_requiring_review=files_not_requiring_review,
            deleted_files_not_requiring_review=deleted_files_not_requiring_review,
            categories=categories,
        )

    def metadata(self) -> list[MetadataEntry]:
        entries = [
            MetadataEntry(key="Size", value=self.size),
            MetadataEntry(key="ProductCode", value=self.metrics.product_code),
            MetadataEntry(key="TestCode", value=self.metrics.test_code),
            MetadataEntry(key="Subtotal", value=self.metrics.subtotal),
            MetadataEntry(key="IgnoredCode", value=self.metrics.ignored_code),
            MetadataEntry(key="Total", value=self.metrics.total),
        ]
        if self.is_sufficiently_tested is not None:
            entries.append(MetadataEntry(key="TestCoverage", value=self.is_sufficiently_tested))
        return entries
