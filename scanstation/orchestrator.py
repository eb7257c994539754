"""Scan orchestrator — fixed-order multi-manifest, multi-tool dependency scan.

Stage order:
    1. Header section with a timestamp
    2. For each known manifest (requirements.txt, then pyproject.toml):
       manifest section (or a single "not found" section), then one section
       per configured scanner
    3. Installed-package snapshot, then every scanner against the installed
       environment
    4. Summary sections from the ReportAggregator

The layout does not depend on which tools succeed. Only an
EnvironmentSetupError stops a run early.
"""

from __future__ import annotations

import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable

import structlog

from scanstation.manifests import MANIFEST_FILES, ManifestResolver, write_side_file
from scanstation.models import (
    ManifestKind,
    ProjectManifest,
    ScanReport,
    ScanSummary,
    ScanTarget,
    ToolInvocation,
)
from scanstation.report import REPORT_TITLE, TIMESTAMP_FORMAT, ReportAggregator
from scanstation.tools.base import ExternalTool
from scanstation.tools.pip_freeze import PipFreeze
from scanstation.tools.runner import ToolRunner

log = structlog.get_logger("scanstation.orchestrator")
ISSUES_SENTINEL = "{tool} scan completed with issues"


def section_body(tool: ExternalTool, invocation: ToolInvocation) -> str:
    """Tool output, plus the sentinel line when the tool exited non-zero."""
    body = invocation.stdout.rstrip("\n")
    if invocation.completed_with_issues:
        sentinel = ISSUES_SENTINEL.format(tool=tool.display_name)
        body = f"{body}\n\n{sentinel}" if body else sentinel
    return body


class ScanOrchestrator:
    """Run every configured scanner against every manifest, then the installed environment."""

    def __init__(
        self,
        runner: ToolRunner,
        scanners: list[ExternalTool],
        resolver: ManifestResolver | None = None,
        aggregator: ReportAggregator | None = None,
        snapshot_tool: ExternalTool | None = None,
        clock: Callable[[], datetime] = datetime.now,
        on_invocation: Callable[[ToolInvocation], None] | None = None,
    ) -> None:
        self.runner = runner
        self.scanners = scanners
        self.resolver = resolver or ManifestResolver()
        self.aggregator = aggregator or ReportAggregator()
        self.snapshot_tool = snapshot_tool or PipFreeze()
        self.clock = clock
        self.on_invocation = on_invocation
        self.report: ScanReport | None = None
        self.summary: ScanSummary | None = None

    def run_all(self, project_root: Path, repository_url: str = "") -> ScanReport:
        """Full scan of *project_root*; returns the completed, read-only report.

        ``self.report`` exposes the report while the run is in progress, so a
        caller can still write out the sections produced before an abort.
        """
        report = ScanReport()
        self.report = report  # expose last run's report for callers
        self.summary = None

        try:
            report.append(f"{REPORT_TITLE} - {self.clock().strftime(TIMESTAMP_FORMAT)}", "")

            # Side files are run-scoped and never written into the project root.
            with tempfile.TemporaryDirectory(prefix="scanstation-") as workdir:
                for filename in MANIFEST_FILES:
                    manifest = self.resolver.resolve_one(project_root, filename)
                    if manifest is None:
                        report.append(f"{filename.upper()} NOT FOUND", f"No {filename} found")
                        continue
                    self._scan_manifest(report, manifest, Path(workdir))

            self._scan_installed(report)

            summary = self.aggregator.summarize(report)
            self.summary = summary
            report.extend(
                self.aggregator.summary_sections(summary, self.clock(), repository_url)
            )
            log.info(
                "orchestrator.completed",
                sections=len(report),
                approximate_findings=summary.approximate_finding_count,
            )
        finally:
            report.freeze()
        return report

    def _scan_manifest(self, report: ScanReport, manifest: ProjectManifest, workdir: Path) -> None:
        filename = manifest.filename
        content = manifest.raw_content.rstrip("\n")
        body = f"Content of {filename}:\n{content}"
        if manifest.notes:
            body += "\n\n" + "\n".join(manifest.notes)
        report.append(f"{filename.upper()} FOUND", body)

        scan_file = write_side_file(manifest, workdir)
        if scan_file is None:
            log.info("orchestrator.manifest_skipped", manifest=filename, reason="no packages")
            return

        target = ScanTarget(
            requirements_file=scan_file,
            manifest_kind=manifest.kind,
            label=filename,
        )
        if manifest.kind is ManifestKind.REQUIREMENTS_TXT:
            title = "SCANNING WITH {tool}"
        else:
            title = "SCANNING EXTRACTED DEPENDENCIES WITH {tool}"
        for scanner in self.scanners:
            self._run_tool(report, scanner, target, title.format(tool=scanner.name.upper()))

    def _scan_installed(self, report: ScanReport) -> None:
        target = ScanTarget.installed()
        snapshot = self._invoke(self.snapshot_tool, target)
        report.append(
            "SCANNING ALL INSTALLED PACKAGES",
            "Installed packages:\n" + section_body(self.snapshot_tool, snapshot),
        )
        for scanner in self.scanners:
            self._run_tool(
                report, scanner, target, f"SCANNING INSTALLED PACKAGES WITH {scanner.name.upper()}"
            )

    def _run_tool(
        self, report: ScanReport, tool: ExternalTool, target: ScanTarget, title: str
    ) -> ToolInvocation:
        invocation = self._invoke(tool, target)
        if invocation.completed_with_issues:
            log.info(
                "orchestrator.tool_reported_issues",
                tool=tool.name,
                target=target.label,
                exit_status=invocation.exit_status,
            )
        report.append(title, section_body(tool, invocation))
        return invocation

    def _invoke(self, tool: ExternalTool, target: ScanTarget) -> ToolInvocation:
        invocation = self.runner.run(tool, target)
        if self.on_invocation is not None:
            self.on_invocation(invocation)
        return invocation
