"""Static-analysis pipeline — SonarQube analysis of a python or react checkout.

Phases:
    1. checkout      — clone or reuse the workspace, read the remote URL
    2. install/tests — react profile only; install failure aborts, test failure does not
    3. analysis      — sonar-scanner with structured ``-D`` properties
    4. quality_gate  — bounded wait with a direct-query fallback (optional)

The HTML notification and workspace cleanup run on every path.
"""

from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import structlog

from scanstation.collaborators import SourceCheckout, checkout_source, run_project_command
from scanstation.config import SonarAnalysisConfig
from scanstation.exceptions import AnalysisError, ScanStationError
from scanstation.models import (
    BuildContext,
    PipelineOutcome,
    PipelineStatus,
    QualityGateResult,
)
from scanstation.notification import Mailer, NotificationDispatcher, render_sonar_analysis
from scanstation.notification.template import EmailMessage
from scanstation.core.logging import pipeline_context
from scanstation.progress import ProgressTracker, sonar_analysis_phases
from scanstation.quality_gate import QualityGateChecker, QualityGateSignal, SonarTaskSignal
from scanstation.sonar_client import SonarClient
from scanstation.tools import SonarScanner, ToolRunner

log = structlog.get_logger("scanstation.pipeline")

SCANNER_WORK_DIR = ".scannerwork"
REPORT_TASK_FILE = "report-task.txt"
ANALYSIS_TIMEOUT = 3600  # seconds


class SonarAnalysisPipeline:
    def __init__(
        self,
        config: SonarAnalysisConfig,
        context: BuildContext | None = None,
        mailer: Mailer | None = None,
        sonar_client: SonarClient | None = None,
        gate_signal: QualityGateSignal | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.context = context or BuildContext()
        self.workspace = self.context.workspace or Path.cwd()
        self.dispatcher = NotificationDispatcher(mailer or Mailer(), self._render)
        self._client = sonar_client
        self._gate_signal = gate_signal
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.progress = ProgressTracker(sonar_analysis_phases(config.language))

    async def run(self) -> PipelineOutcome:
        with pipeline_context(
            "sonar", project=self.config.project_key, build_url=self.context.build_url
        ):
            return await self._run()

    async def _run(self) -> PipelineOutcome:
        cfg = self.config
        progress = ProgressTracker(sonar_analysis_phases(cfg.language))
        self.progress = progress  # expose last run's progress for callers
        outcome = PipelineOutcome(
            status=PipelineStatus.FAILURE,
            project_name=cfg.project_name,
            quality_gate=QualityGateResult.not_run(),
        )
        owns_client = self._client is None
        client = self._client or SonarClient(cfg.sonar_url, token=self.context.sonar_token or None)
        source: SourceCheckout | None = None
        phase = "checkout"

        try:
            progress.start_phase(phase)
            source = await checkout_source(self.workspace, cfg.repo_url, cfg.branch)
            outcome.repository_url = source.repository_url
            progress.complete_phase(phase, detail=str(source.root))

            if cfg.language == "react":
                phase = "install"
                if cfg.install_command:
                    progress.start_phase(phase)
                    self._install(source.root)
                    progress.complete_phase(phase)
                else:
                    progress.skip_phase(phase, "no install command configured")

                phase = "tests"
                if cfg.test_command:
                    progress.start_phase(phase)
                    self._test(source.root, progress)
                else:
                    progress.skip_phase(phase, "no test command configured")

            phase = "analysis"
            progress.start_phase(phase)
            self._analyze(source, progress)
            outcome.report_location = cfg.dashboard_url
            progress.complete_phase(phase, detail=cfg.dashboard_url)

            phase = "quality_gate"
            if cfg.quality_gate_enabled:
                progress.start_phase(phase)
                gate = await self._check_gate(client, source.root)
                outcome.quality_gate = gate
                progress.complete_phase(
                    phase, detail=f"{gate.status.value} via {gate.source.value}"
                )
                if not gate.passed and cfg.abort_on_quality_gate_failure:
                    outcome.error_message = gate.detail or f"Quality Gate {gate.status.value}"
                    log.error("pipeline.quality_gate_failed", status=gate.status.value)
                    return outcome
            else:
                progress.skip_phase(phase, "quality gate disabled")

            outcome.status = PipelineStatus.SUCCESS
            log.info(
                "pipeline.sonar_completed",
                project_key=cfg.project_key,
                quality_gate=outcome.quality_gate.status.value,
            )

        except ScanStationError as e:
            outcome.status = PipelineStatus.FAILURE
            outcome.error_message = str(e)
            progress.fail_phase(phase, str(e))
            log.error("pipeline.sonar_failed", phase=phase, error=str(e))

        finally:
            await self.dispatcher.notify(outcome, cfg.notify_email)
            if cfg.clean_workspace and source is not None:
                self._clean(source)
            if owns_client:
                await client.close()

        return outcome

    def _install(self, root: Path) -> None:
        result = run_project_command(self.config.install_command, root)
        if not result.ok:
            log.error(
                "pipeline.install_failed",
                exit_status=result.exit_status,
                output=result.output[-2000:],
            )
            raise AnalysisError(
                f"Dependency installation failed (exit {result.exit_status}): {result.command}"
            )

    def _test(self, root: Path, progress: ProgressTracker) -> None:
        result = run_project_command(self.config.test_command, root)
        if result.ok:
            progress.complete_phase("tests")
            return
        # analysis still runs on test failures; coverage may just be partial
        log.warning("pipeline.tests_failed", exit_status=result.exit_status)
        progress.fail_phase("tests", f"exit {result.exit_status}")

    def _analyze(self, source: SourceCheckout, progress: ProgressTracker) -> None:
        scanner = SonarScanner(self.config, homepage=source.repository_url)
        runner = ToolRunner(cwd=source.root, timeout=ANALYSIS_TIMEOUT)
        invocation = runner.run(scanner)
        progress.record_tool(invocation)
        if invocation.exit_status != 0:
            log.error(
                "pipeline.analysis_failed",
                exit_status=invocation.exit_status,
                output=invocation.stdout[-2000:],
            )
            raise AnalysisError(f"SonarQube analysis failed (exit {invocation.exit_status})")

    async def _check_gate(self, client: SonarClient, root: Path) -> QualityGateResult:
        signal = self._gate_signal or SonarTaskSignal(
            client, root / SCANNER_WORK_DIR / REPORT_TASK_FILE
        )
        checker = QualityGateChecker(
            signal,
            client,
            project_key=self.config.project_key,
            timeout_seconds=self.config.quality_gate_timeout_minutes * 60,
        )
        return await checker.check()

    def _clean(self, source: SourceCheckout) -> None:
        target = source.root if source.cloned else source.root / SCANNER_WORK_DIR
        if target.exists():
            shutil.rmtree(target, ignore_errors=True)
            log.info("pipeline.workspace_cleaned", path=str(target))

    def _render(self, outcome: PipelineOutcome) -> EmailMessage:
        return render_sonar_analysis(outcome, build_url=self.context.build_url, now=self._clock())
