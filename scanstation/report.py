"""ReportAggregator — approximate summary and rendering of the scan report.

The finding count is a case-insensitive keyword count over the raw tool
output, not a parsed count: the scanners' text formats are not uniformly
machine-readable, and the report wording ("approximately N references")
depends on this staying an approximation.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

import structlog

from scanstation.models import ReportSection, ScanReport, ScanSummary

log = structlog.get_logger("scanstation.report")

DEFAULT_KEYWORD = "vulnerability"
NO_ISSUES_HIGHLIGHT = "No obvious vulnerabilities were detected in the scan."
SEE_FULL_REPORT = "(See full report for complete details)"

CONTEXT_BEFORE = 1
CONTEXT_AFTER = 2
HIGHLIGHT_LINE_BUDGET = 20
MAX_HIGHLIGHTS = 10

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

REPORT_TITLE = "Python Dependency Scan Report"
HEADER_RULE = "=" * 39  # fixed width, independent of the title timestamp


class ReportAggregator:
    """Derive a ScanSummary from a completed ScanReport."""

    def __init__(
        self,
        keyword: str = DEFAULT_KEYWORD,
        context_before: int = CONTEXT_BEFORE,
        context_after: int = CONTEXT_AFTER,
        line_budget: int = HIGHLIGHT_LINE_BUDGET,
        max_highlights: int = MAX_HIGHLIGHTS,
    ) -> None:
        if not keyword:
            raise ValueError("keyword must not be empty")
        self.keyword = keyword
        self.context_before = context_before
        self.context_after = context_after
        self.line_budget = line_budget
        self.max_highlights = max_highlights
        self._pattern = re.compile(re.escape(keyword), re.IGNORECASE)

    def summarize(self, report: ScanReport) -> ScanSummary:
        text = report.text()
        count = len(self._pattern.findall(text))
        if count == 0:
            highlights: tuple[str, ...] = (NO_ISSUES_HIGHLIGHT,)
        else:
            highlights = tuple(self._highlights(text.splitlines()))
        log.info("report.summarized", keyword=self.keyword, count=count, highlights=len(highlights))
        return ScanSummary(approximate_finding_count=count, highlights=highlights)

    def _highlights(self, lines: list[str]) -> list[str]:
        """Keyword-adjacent line windows, overlapping windows merged (like ``grep -B -A``)."""
        windows: list[list[int]] = []
        for i, line in enumerate(lines):
            if not self._pattern.search(line):
                continue
            lo = max(0, i - self.context_before)
            hi = min(len(lines) - 1, i + self.context_after)
            if windows and lo <= windows[-1][1] + 1:
                windows[-1][1] = max(windows[-1][1], hi)
            else:
                windows.append([lo, hi])

        highlights: list[str] = []
        budget = self.line_budget
        for lo, hi in windows:
            if budget <= 0 or len(highlights) >= self.max_highlights:
                break
            chunk = lines[lo : hi + 1][:budget]
            budget -= len(chunk)
            highlights.append("\n".join(chunk))
        return highlights

    def summary_sections(
        self,
        summary: ScanSummary,
        timestamp: datetime,
        repository_url: str = "",
    ) -> list[ReportSection]:
        """Trailing report sections: summary header, findings count, highlights."""
        sections = [
            ReportSection(
                title="SUMMARY",
                body=(
                    f"Timestamp: {timestamp.strftime(TIMESTAMP_FORMAT)}\n"
                    f"Repository: {repository_url or 'Not available'}"
                ),
            ),
            ReportSection(
                title="VULNERABILITY FINDINGS",
                body=(
                    f"Found approximately {summary.approximate_finding_count} references "
                    f"to {self.keyword_plural} in the scan report."
                ),
            ),
        ]
        if summary.approximate_finding_count > 0:
            body = "\n--\n".join(summary.highlights)
            sections.append(
                ReportSection(title="VULNERABILITY HIGHLIGHTS", body=f"{body}\n\n{SEE_FULL_REPORT}")
            )
        else:
            sections.append(ReportSection(title="NO FINDINGS", body=summary.highlights[0]))
        return sections

    @property
    def keyword_plural(self) -> str:
        if self.keyword.lower().endswith("y"):
            return self.keyword[:-1] + "ies"
        return self.keyword + "s"


def render_report(report: ScanReport) -> str:
    """Plain-text rendering: first section is the header, the rest are ``## TITLE ##`` blocks."""
    sections = report.sections
    if not sections:
        return ""
    head, *rest = sections
    parts = [head.title, HEADER_RULE]
    if head.body:
        parts.append(head.body)
    for section in rest:
        parts.append(f"\n## {section.title} ##\n{section.body}")
    return "\n".join(parts).rstrip("\n") + "\n"


def write_report(report: ScanReport, path: Path) -> Path:
    path.write_text(render_report(report), encoding="utf-8")
    log.info("report.written", path=str(path), sections=len(report))
    return path


def write_count_file(path: Path, count: int) -> Path:
    path.write_text(f"{count}\n", encoding="utf-8")
    return path


def read_count_file(path: Path) -> int:
    """Read the transient finding-count file; a missing or garbled file counts as 0."""
    try:
        return int(path.read_text(encoding="utf-8").strip() or "0")
    except (OSError, ValueError):
        log.warning("report.count_file_unreadable", path=str(path))
        return 0
