"""Pipeline phase tracking.

Each pipeline declares its phase plan up front. Phases a run never reaches
stay ``pending`` in the summary, so a failed run shows where it stopped.
Tool invocations made while a phase is running are timed against that phase.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Sequence

import structlog

from scanstation.models import ToolInvocation

log = structlog.get_logger("scanstation.progress")

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
SKIPPED = "skipped"

DEPENDENCY_SCAN_PHASES = ("checkout", "environment", "scan", "report")


def sonar_analysis_phases(language: str) -> tuple[str, ...]:
    """Phase plan of the static-analysis pipeline for a language profile."""
    if language == "react":
        return ("checkout", "install", "tests", "analysis", "quality_gate")
    return ("checkout", "analysis", "quality_gate")


@dataclass(frozen=True)
class ToolTiming:
    tool: str
    exit_status: int
    duration: float
    timed_out: bool = False


@dataclass
class PhaseProgress:
    phase: str
    status: str = PENDING
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None
    tools: list[ToolTiming] = field(default_factory=list)

    @property
    def duration(self) -> float | None:
        if self.start_time is not None and self.end_time is not None:
            return round(self.end_time - self.start_time, 2)
        return None


class ProgressTracker:
    """Status and timing of one pipeline run, phase by phase.

    With a *plan*, only the planned phases exist and they keep plan order;
    starting any other phase is a programming error. Without one, phases are
    added as they start.
    """

    def __init__(self, plan: Sequence[str] = ()) -> None:
        self.plan = tuple(plan)
        self.phases = [PhaseProgress(phase=name) for name in self.plan]
        self._by_name = {p.phase: p for p in self.phases}
        self._current: PhaseProgress | None = None

    @property
    def current(self) -> PhaseProgress | None:
        """The running phase, if any."""
        if self._current is not None and self._current.status == RUNNING:
            return self._current
        return None

    @property
    def unreached(self) -> list[str]:
        return [p.phase for p in self.phases if p.status == PENDING]

    def start_phase(self, phase: str) -> None:
        p = self._phase(phase)
        p.status = RUNNING
        p.start_time = time.monotonic()
        p.end_time = None
        self._current = p
        log.debug("progress.phase_started", phase=phase)

    def complete_phase(self, phase: str, detail: str = "") -> None:
        p = self._running(phase)
        if p is None:
            return
        p.status = COMPLETED
        p.end_time = time.monotonic()
        p.detail = detail
        log.info("progress.phase_completed", phase=phase, duration=p.duration, detail=detail)

    def fail_phase(self, phase: str, error: str) -> None:
        p = self._running(phase)
        if p is None:
            return
        p.status = FAILED
        p.end_time = time.monotonic()
        p.error = error
        log.warning("progress.phase_failed", phase=phase, duration=p.duration, error=error)

    def skip_phase(self, phase: str, reason: str) -> None:
        p = self._phase(phase)
        p.status = SKIPPED
        p.detail = reason
        log.info("progress.phase_skipped", phase=phase, reason=reason)

    def record_tool(self, invocation: ToolInvocation) -> None:
        """Time *invocation* against the running phase."""
        p = self.current
        if p is None:
            log.debug("progress.tool_outside_phase", tool=invocation.tool_name)
            return
        p.tools.append(
            ToolTiming(
                tool=invocation.tool_name,
                exit_status=invocation.exit_status,
                duration=round(invocation.duration_elapsed, 2),
                timed_out=invocation.timed_out,
            )
        )

    def get_summary(self) -> dict[str, Any]:
        total_duration = sum(p.duration or 0 for p in self.phases)
        return {
            "phases": [
                {
                    "phase": p.phase,
                    "status": p.status,
                    "duration": p.duration,
                    "detail": p.detail,
                    "error": p.error,
                    "tools": [asdict(t) for t in p.tools],
                }
                for p in self.phases
            ],
            "total_duration": round(total_duration, 2),
            "unreached": self.unreached,
        }

    def _phase(self, phase: str) -> PhaseProgress:
        p = self._by_name.get(phase)
        if p is not None:
            return p
        if self.plan:
            raise ValueError(f"phase {phase!r} is not part of this pipeline: {list(self.plan)}")
        p = PhaseProgress(phase=phase)
        self.phases.append(p)
        self._by_name[phase] = p
        return p

    def _running(self, phase: str) -> PhaseProgress | None:
        p = self._by_name.get(phase)
        if p is None or p.status != RUNNING:
            log.debug("progress.phase_not_running", phase=phase)
            return None
        return p
