"""Email template rendering for pipeline result notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from scanstation.models import PipelineOutcome, PipelineStatus, QualityGateStatus

# CSS status classes used by the HTML template
SUCCESS_CLASS = "success"
WARNING_CLASS = "warning"
FAILURE_CLASS = "failure"

NOT_AVAILABLE = "Not available"


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    body: str
    subtype: str = "plain"
    attachments: tuple[Path, ...] = field(default_factory=tuple)


def render_dependency_scan(
    outcome: PipelineOutcome, report_path: Path | None = None
) -> EmailMessage:
    """Plain-text result mail for the dependency scan; the report is attached when present."""
    status = outcome.status.value
    lines = [f"Python dependency scan completed with result: {status}"]
    if outcome.summary is not None:
        lines.append(
            f"Found approximately {outcome.finding_count} references to vulnerabilities."
        )
    if outcome.error_message:
        lines.append(f"Error: {outcome.error_message}")
    location = outcome.report_location or NOT_AVAILABLE
    lines.append(f"\nSee the report for details: {location}")

    attachments: tuple[Path, ...] = ()
    if report_path is not None and report_path.is_file():
        attachments = (report_path,)
    return EmailMessage(
        subject=f"Python Dependency Scan Results - {status}",
        body="\n".join(lines),
        subtype="plain",
        attachments=attachments,
    )


def build_status_class(status: PipelineStatus) -> str:
    return SUCCESS_CLASS if status is PipelineStatus.SUCCESS else FAILURE_CLASS


def gate_status_class(status: QualityGateStatus) -> str:
    if status is QualityGateStatus.OK:
        return SUCCESS_CLASS
    if status is QualityGateStatus.NOT_RUN:
        return WARNING_CLASS
    return FAILURE_CLASS


def render_sonar_analysis(
    outcome: PipelineOutcome,
    build_url: str = "",
    now: datetime | None = None,
) -> EmailMessage:
    """HTML result mail for a SonarQube analysis run."""
    now = now or datetime.now(timezone.utc)
    status = outcome.status.value
    gate = outcome.quality_gate.status if outcome.quality_gate else QualityGateStatus.NOT_RUN
    project = outcome.project_name
    repo_name = repository_display_name(outcome.repository_url)
    report_href = outcome.report_location or build_url

    build_link = (
        f'<a href="{_esc(build_url)}">{_esc(build_url)}</a>' if build_url else NOT_AVAILABLE
    )
    report_link = (
        f'<a href="{_esc(report_href)}">View Detailed Report</a>' if report_href else NOT_AVAILABLE
    )
    error_row = ""
    if outcome.error_message:
        error_row = f"""
  <tr><th>Error</th><td class="{FAILURE_CLASS}">{_esc(outcome.error_message)}</td></tr>"""

    html_body = f"""\
<html>
<head>
<style>
  body {{ font-family: Arial, sans-serif; }}
  .header {{ background-color: #f2f2f2; padding: 10px; border-bottom: 1px solid #ddd; }}
  .{SUCCESS_CLASS} {{ color: green; }}
  .{FAILURE_CLASS} {{ color: red; }}
  .{WARNING_CLASS} {{ color: orange; }}
  .container {{ padding: 15px; }}
  table {{ border-collapse: collapse; width: 100%; }}
  table, th, td {{ border: 1px solid #ddd; }}
  th, td {{ padding: 8px; text-align: left; }}
  th {{ background-color: #f2f2f2; }}
</style>
</head>
<body>
<div class="header"><h1>SonarQube Analysis Results</h1></div>
<div class="container">
<table>
  <tr><th>Project</th><td>{_esc(project)}</td></tr>
  <tr><th>Repository</th><td>{_esc(repo_name)}</td></tr>
  <tr><th>Build Status</th><td class="{build_status_class(outcome.status)}">{status}</td></tr>
  <tr><th>Quality Gate Status</th><td class="{gate_status_class(gate)}">{_esc(gate.value)}</td></tr>
  <tr><th>Date &amp; Time (UTC)</th><td>{now.strftime("%Y-%m-%d %H:%M:%S")}</td></tr>
  <tr><th>Build URL</th><td>{build_link}</td></tr>
  <tr><th>SonarQube Report</th><td>{report_link}</td></tr>{error_row}
</table>
</div>
</body>
</html>"""

    return EmailMessage(
        subject=f"{status}: SonarQube Analysis for {project}",
        body=html_body,
        subtype="html",
    )


def repository_display_name(repo_url: str) -> str:
    """``org/repo`` from a clone URL; the input unchanged when it has no such shape.

    Handles:
      - https://github.com/org/repo(.git)
      - git@github.com:org/repo.git
    """
    url = repo_url.strip().rstrip("/")
    if not url or url == NOT_AVAILABLE:
        return NOT_AVAILABLE
    if url.endswith(".git"):
        url = url[:-4]

    if url.startswith("git@"):
        path = url.partition(":")[2]
        parts = path.split("/")
        if len(parts) == 2 and all(parts):
            return f"{parts[0]}/{parts[1]}"
        return repo_url

    parts = url.split("/")
    if len(parts) >= 2 and parts[-2] and parts[-1]:
        return f"{parts[-2]}/{parts[-1]}"
    return repo_url


def _esc(text: str) -> str:
    """Minimal HTML escaping."""
    return (
        text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")
    )
