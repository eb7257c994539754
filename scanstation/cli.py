"""CLI entry point: z-scan."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any

import click

from scanstation.config import DependencyScanConfig, SonarAnalysisConfig
from scanstation.core.logging import setup_logging
from scanstation.models import BuildContext, PipelineOutcome
from scanstation.progress import ProgressTracker

_DEPS_CONFIG_TEMPLATE: dict[str, Any] = {
    "report_name": "dependency_scan_report.txt",
    "venv_dir": "venv",
    "email_recipients": [],
    "project_name": "",
    "repo_url": "",
    "branch": "main",
    "scanners": ["pip-audit", "safety"],
    "tool_timeout_seconds": 900,
}

_SONAR_CONFIG_TEMPLATE: dict[str, Any] = {
    "project_key": "my-project",
    "project_name": "My Project",
    "language": "python",
    "sonar_url": "http://localhost:9000",
    "repo_url": "",
    "branch": "main",
    "quality_gate_enabled": True,
    "quality_gate_timeout_minutes": 5,
    "abort_on_quality_gate_failure": True,
    "clean_workspace": False,
    "notify_email": [],
    "coverage": False,
}

_STATUS_ICONS = {
    "completed": "+",
    "failed": "!",
    "skipped": "-",
    "running": "~",
    "pending": ".",
}


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """Z-Scan-Station: CI dependency scanning and SonarQube analysis."""
    try:
        setup_logging("DEBUG" if verbose else None)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@main.command("create-config")
@click.option("-o", "--output", default="scan-config.json", help="Output file path")
@click.option(
    "--kind",
    type=click.Choice(["deps", "sonar"]),
    default="deps",
    show_default=True,
    help="Which pipeline the config is for",
)
def create_config(output: str, kind: str) -> None:
    """Generate a pipeline config template JSON file."""
    template = _DEPS_CONFIG_TEMPLATE if kind == "deps" else _SONAR_CONFIG_TEMPLATE
    Path(output).write_text(json.dumps(template, indent=2) + "\n")
    click.echo(f"Config template written to {output}")
    click.echo(f"Edit the file, then run: z-scan {kind} --config {output}")


@main.command("deps")
@click.argument(
    "project_root", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option("--config", "config_file", type=click.Path(exists=True), help="JSON config file")
@click.option("--report-name", default=None, help="Report file name")
@click.option("--venv-dir", default=None, help="Scan environment directory")
@click.option("--email", multiple=True, help="Notification recipient (repeatable)")
def deps(
    project_root: Path,
    config_file: str | None,
    report_name: str | None,
    venv_dir: str | None,
    email: tuple[str, ...],
) -> None:
    """Scan a Python project's dependencies for known vulnerabilities."""
    from scanstation.pipelines import DependencyScanPipeline

    overrides = {
        "report_name": report_name,
        "venv_dir": venv_dir,
        "email_recipients": list(email) or None,
    }
    config = _load_config(DependencyScanConfig, config_file, overrides)

    pipeline = DependencyScanPipeline(config, _build_context(project_root))
    outcome = asyncio.run(pipeline.run())

    click.echo(f"\nDependency scan {outcome.status.value}:")
    click.echo(f"  Report: {outcome.report_location or 'Not available'}")
    click.echo(f"  Approximate findings: {outcome.finding_count}")
    _finish(outcome, pipeline.progress)


@main.command("sonar")
@click.argument(
    "project_root", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option(
    "--config", "config_file", required=True, type=click.Path(exists=True), help="JSON config file"
)
@click.option("--project-key", default=None, help="SonarQube project key")
@click.option("--language", type=click.Choice(["python", "react"]), default=None)
@click.option(
    "--quality-gate/--no-quality-gate", default=None, help="Wait for the quality gate result"
)
def sonar(
    project_root: Path,
    config_file: str,
    project_key: str | None,
    language: str | None,
    quality_gate: bool | None,
) -> None:
    """Run a SonarQube analysis and check its quality gate."""
    from scanstation.pipelines import SonarAnalysisPipeline

    overrides = {
        "project_key": project_key,
        "language": language,
        "quality_gate_enabled": quality_gate,
    }
    config = _load_config(SonarAnalysisConfig, config_file, overrides)

    pipeline = SonarAnalysisPipeline(config, _build_context(project_root))
    outcome = asyncio.run(pipeline.run())

    gate = outcome.quality_gate.status.value if outcome.quality_gate else "Not Run"
    click.echo(f"\nSonarQube analysis {outcome.status.value}:")
    click.echo(f"  Dashboard: {outcome.report_location or 'Not available'}")
    click.echo(f"  Quality gate: {gate}")
    _finish(outcome, pipeline.progress)


def _load_config(model: Any, config_file: str | None, overrides: dict[str, Any]) -> Any:
    try:
        if config_file:
            return model.from_file(config_file, **overrides)
        return model(**{k: v for k, v in overrides.items() if v is not None})
    except (OSError, ValueError) as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)


def _build_context(project_root: Path) -> BuildContext:
    """CI-host state is read here and nowhere else."""
    return BuildContext(
        build_url=os.environ.get("BUILD_URL", ""),
        workspace=project_root.resolve(),
        sonar_token=os.environ.get("SONAR_TOKEN", ""),
    )


def _finish(outcome: PipelineOutcome, progress: ProgressTracker) -> None:
    if outcome.error_message:
        click.echo(f"  Error: {outcome.error_message}", err=True)

    summary = progress.get_summary()
    click.echo(f"\nPipeline summary (total: {summary['total_duration']}s):")
    for p in summary["phases"]:
        status_icon = _STATUS_ICONS.get(p["status"], "?")
        duration = f" ({p['duration']}s)" if p["duration"] else ""
        detail = f" - {p['detail']}" if p["detail"] else ""
        click.echo(f"  [{status_icon}] {p['phase']}{duration}{detail}")
        for t in p["tools"]:
            timed_out = ", timed out" if t["timed_out"] else ""
            click.echo(
                f"        {t['tool']}: exit {t['exit_status']}"
                f" ({t['duration']}s{timed_out})"
            )

    sys.exit(0 if outcome.successful else 1)


if __name__ == "__main__":
    main()
