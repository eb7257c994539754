"""QualityGateChecker — bounded wait on the gate signal with a direct-query fallback.

    NOT_RUN -> WAITING -> OK | FAILED | ERROR | TIMEOUT

The primary channel (the analysis's compute-engine task) is awaited for at
most the configured timeout. On timeout or channel error the checker issues
one synchronous status query and classifies the response, so a run always
ends in a terminal gate state instead of hanging.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Protocol

import httpx
import structlog

from scanstation.exceptions import QualityGateError
from scanstation.models import QualityGateResult, QualityGateSource, QualityGateStatus
from scanstation.sonar_client import SonarClient

log = structlog.get_logger("scanstation.quality_gate")

# Success marker in the raw status response when it is not parseable JSON
_OK_MARKER_RE = re.compile(r'"status"\s*:\s*"OK"')

_TASK_TERMINAL = {"SUCCESS", "FAILED", "CANCELED"}


class QualityGateSignal(Protocol):
    """Primary channel: resolves to the gate status reported for this analysis."""

    async def wait(self) -> str: ...


class SonarTaskSignal:
    """Follow the compute-engine task the scanner recorded in ``report-task.txt``."""

    def __init__(
        self,
        client: SonarClient,
        report_task_file: Path,
        poll_interval: float = 5.0,
    ) -> None:
        self._client = client
        self._report_task_file = report_task_file
        self._poll_interval = poll_interval

    def task_id(self) -> str:
        try:
            content = self._report_task_file.read_text(encoding="utf-8")
        except OSError as e:
            raise QualityGateError(f"cannot read {self._report_task_file}: {e}") from e
        for line in content.splitlines():
            key, _, value = line.partition("=")
            if key.strip() == "ceTaskId" and value.strip():
                return value.strip()
        raise QualityGateError(f"no ceTaskId in {self._report_task_file}")

    async def wait(self) -> str:
        task_id = self.task_id()
        try:
            while True:
                task = await self._client.get_task(task_id)
                status = task.get("status", "")
                if status in _TASK_TERMINAL:
                    break
                log.debug("quality_gate.task_pending", task_id=task_id, status=status)
                await asyncio.sleep(self._poll_interval)

            if status != "SUCCESS":
                raise QualityGateError(f"analysis task {task_id} ended with status {status}")
            analysis_id = task.get("analysisId")
            if not analysis_id:
                raise QualityGateError(f"analysis task {task_id} has no analysisId")
            return await self._client.get_analysis_gate_status(analysis_id)
        except (httpx.HTTPError, ValueError) as e:
            raise QualityGateError(f"quality gate channel error: {e}") from e


def classify_status_response(text: str) -> QualityGateStatus:
    """OK when the project's gate status is OK, FAILED otherwise."""
    try:
        data = json.loads(text)
    except ValueError:
        return QualityGateStatus.OK if _OK_MARKER_RE.search(text) else QualityGateStatus.FAILED
    project_status = data.get("projectStatus") if isinstance(data, dict) else None
    status = project_status.get("status") if isinstance(project_status, dict) else None
    return QualityGateStatus.OK if status == "OK" else QualityGateStatus.FAILED


class QualityGateChecker:
    def __init__(
        self,
        signal: QualityGateSignal,
        client: SonarClient,
        project_key: str,
        timeout_seconds: float,
        enabled: bool = True,
    ) -> None:
        self._signal = signal
        self._client = client
        self._project_key = project_key
        self._timeout = timeout_seconds
        self._enabled = enabled
        self.state = QualityGateStatus.NOT_RUN
        self.waiting = False

    async def check(self) -> QualityGateResult:
        if not self._enabled:
            return QualityGateResult.not_run()

        self.waiting = True
        try:
            status = await asyncio.wait_for(self._signal.wait(), timeout=self._timeout)
        except asyncio.TimeoutError:
            log.warning("quality_gate.timeout", timeout=self._timeout)
            return await self._fallback(QualityGateStatus.TIMEOUT, "primary channel timed out")
        except QualityGateError as e:
            log.warning("quality_gate.channel_error", error=str(e))
            return await self._fallback(QualityGateStatus.ERROR, str(e))
        finally:
            self.waiting = False

        if status == "OK":
            return self._finish(QualityGateResult(QualityGateStatus.OK, QualityGateSource.PRIMARY))
        log.info("quality_gate.failed", status=status)
        return self._finish(
            QualityGateResult(
                QualityGateStatus.FAILED,
                QualityGateSource.PRIMARY,
                detail=f"Quality Gate failed with status: {status}",
            )
        )

    async def _fallback(self, unreachable: QualityGateStatus, reason: str) -> QualityGateResult:
        """One direct status query; *unreachable* is the verdict if it fails too."""
        log.info("quality_gate.fallback", project_key=self._project_key, reason=reason)
        try:
            text = await self._client.get_project_status_text(self._project_key)
        except httpx.HTTPError as e:
            log.error("quality_gate.fallback_failed", error=str(e))
            return self._finish(
                QualityGateResult(
                    unreachable,
                    QualityGateSource.FALLBACK_API,
                    detail=f"{reason}; status query failed: {e}",
                )
            )

        log.info("quality_gate.fallback_response", response=text[:500])
        status = classify_status_response(text)
        detail = "" if status is QualityGateStatus.OK else "Quality Gate failed (via API)"
        return self._finish(QualityGateResult(status, QualityGateSource.FALLBACK_API, detail))

    def _finish(self, result: QualityGateResult) -> QualityGateResult:
        self.state = result.status
        return result
