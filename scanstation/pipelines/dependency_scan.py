"""Dependency-scan pipeline — checkout, disposable scan environment, scan, report, notify.

Phases:
    1. checkout     — clone or reuse the workspace, read the remote URL
    2. environment  — fresh venv with the scanners installed
    3. scan         — ScanOrchestrator over manifests and installed packages
    4. report       — report file, finding-count file

Archival, notification and cleanup run on every path, including failures.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from scanstation.collaborators import (
    LocalArchiver,
    SourceCheckout,
    VenvProvisioner,
    checkout_source,
)
from scanstation.config import DependencyScanConfig
from scanstation.exceptions import ReportError, ScanStationError
from scanstation.models import (
    BuildContext,
    PipelineOutcome,
    PipelineStatus,
    ScanReport,
    ScanSummary,
)
from scanstation.notification import Mailer, NotificationDispatcher, render_dependency_scan
from scanstation.notification.template import EmailMessage
from scanstation.orchestrator import ScanOrchestrator
from scanstation.core.logging import pipeline_context
from scanstation.progress import DEPENDENCY_SCAN_PHASES, ProgressTracker
from scanstation.report import ReportAggregator, read_count_file, write_count_file, write_report
from scanstation.tools import ToolRunner, build_scanners

log = structlog.get_logger("scanstation.pipeline")

COUNT_FILE_NAME = "vuln_count.txt"
ARCHIVE_DIR_NAME = "scan-artifacts"


class DependencyScanPipeline:
    def __init__(
        self,
        config: DependencyScanConfig,
        context: BuildContext | None = None,
        mailer: Mailer | None = None,
        provisioner: VenvProvisioner | None = None,
        archiver: LocalArchiver | None = None,
    ) -> None:
        self.config = config
        self.context = context or BuildContext()
        self.workspace = self.context.workspace or Path.cwd()
        self.dispatcher = NotificationDispatcher(mailer or Mailer(), self._render)
        self._provisioner = provisioner
        self.archiver = archiver or LocalArchiver(self.workspace / ARCHIVE_DIR_NAME)
        self.progress = ProgressTracker(DEPENDENCY_SCAN_PHASES)
        self.orchestrator: ScanOrchestrator | None = None
        self.report_path: Path | None = None

    async def run(self) -> PipelineOutcome:
        with pipeline_context(
            "deps", project=self.config.project_name, build_url=self.context.build_url
        ):
            return await self._run()

    async def _run(self) -> PipelineOutcome:
        cfg = self.config
        progress = ProgressTracker(DEPENDENCY_SCAN_PHASES)
        self.progress = progress  # expose last run's progress for callers
        outcome = PipelineOutcome(
            status=PipelineStatus.FAILURE,
            report_name=cfg.report_name,
            project_name=cfg.project_name,
        )
        source: SourceCheckout | None = None
        provisioner: VenvProvisioner | None = None
        count_path: Path | None = None
        phase = "checkout"

        try:
            progress.start_phase(phase)
            source = await checkout_source(self.workspace, cfg.repo_url, cfg.branch)
            outcome.repository_url = source.repository_url
            if not outcome.project_name:
                outcome.project_name = source.root.name
            self.report_path = source.root / cfg.report_name
            count_path = source.root / COUNT_FILE_NAME
            progress.complete_phase(phase, detail=str(source.root))

            phase = "environment"
            progress.start_phase(phase)
            provisioner = self._provisioner or VenvProvisioner(
                source.root / cfg.venv_dir, python_executable=cfg.python_executable
            )
            bin_dir = provisioner.provision()
            progress.complete_phase(phase, detail=str(bin_dir))

            phase = "scan"
            progress.start_phase(phase)
            runner = ToolRunner(cwd=source.root, bin_dir=bin_dir, timeout=cfg.tool_timeout_seconds)
            self.orchestrator = ScanOrchestrator(
                runner,
                build_scanners(cfg.scanners),
                aggregator=ReportAggregator(keyword=cfg.finding_keyword),
                on_invocation=progress.record_tool,
            )
            report = self.orchestrator.run_all(source.root, source.repository_url)
            summary = self.orchestrator.summary
            progress.complete_phase(phase, detail=f"sections={len(report)}")

            phase = "report"
            progress.start_phase(phase)
            self._write_outputs(report, count_path, summary.approximate_finding_count)
            outcome.summary = ScanSummary(
                approximate_finding_count=read_count_file(count_path),
                highlights=summary.highlights,
            )
            progress.complete_phase(phase, detail=f"findings={outcome.finding_count}")

            outcome.status = PipelineStatus.SUCCESS
            log.info(
                "pipeline.deps_completed",
                report=str(self.report_path),
                approximate_findings=outcome.finding_count,
            )

        except ScanStationError as e:
            outcome.status = PipelineStatus.FAILURE
            outcome.error_message = str(e)
            progress.fail_phase(phase, str(e))
            log.error("pipeline.deps_failed", phase=phase, error=str(e))
            self._write_partial_report()

        finally:
            try:
                self._archive(outcome)
            except OSError:
                log.warning("pipeline.archive_failed", exc_info=True)
            await self.dispatcher.notify(outcome, cfg.email_recipients)
            if provisioner is not None:
                provisioner.remove()
            if count_path is not None:
                count_path.unlink(missing_ok=True)

        return outcome

    def _write_outputs(self, report: ScanReport, count_path: Path, count: int) -> None:
        try:
            write_report(report, self.report_path)
            write_count_file(count_path, count)
        except OSError as e:
            raise ReportError(f"cannot write scan report {self.report_path}: {e}") from e

    def _write_partial_report(self) -> None:
        """Sections gathered before an abort still make it to the report file."""
        if self.orchestrator is None or self.report_path is None:
            return
        report = self.orchestrator.report
        if report is None or len(report) == 0:
            return
        try:
            write_report(report, self.report_path)
        except OSError:
            log.warning("pipeline.partial_report_failed", path=str(self.report_path), exc_info=True)

    def _archive(self, outcome: PipelineOutcome) -> None:
        if self.report_path is None:
            return
        archived = self.archiver.archive(self.report_path)
        if archived is None:
            return
        if self.context.build_url:
            build_url = self.context.build_url
            if not build_url.endswith("/"):
                build_url += "/"
            outcome.report_location = f"{build_url}artifact/{self.config.report_name}"
        else:
            outcome.report_location = str(archived)

    def _render(self, outcome: PipelineOutcome) -> EmailMessage:
        return render_dependency_scan(outcome, self.report_path)
