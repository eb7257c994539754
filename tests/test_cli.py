"""Tests for CLI commands — pipelines are mocked, no external tools needed."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from scanstation.cli import main
from scanstation.config import DependencyScanConfig, SonarAnalysisConfig
from scanstation.models import (
    ManifestKind,
    PipelineOutcome,
    PipelineStatus,
    QualityGateResult,
    QualityGateStatus,
    ScanSummary,
    ToolInvocation,
)
from scanstation.progress import DEPENDENCY_SCAN_PHASES, ProgressTracker


def _fake_pipeline_cls(outcome: PipelineOutcome) -> MagicMock:
    progress = ProgressTracker(DEPENDENCY_SCAN_PHASES)
    progress.start_phase("scan")
    progress.record_tool(
        ToolInvocation("pip-audit", ManifestKind.REQUIREMENTS_TXT, 1, "", 0.25)
    )
    progress.complete_phase("scan", detail="sections=11")
    instance = MagicMock()
    instance.run = AsyncMock(return_value=outcome)
    instance.progress = progress
    return MagicMock(return_value=instance)


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch("scanstation.cli.setup_logging") as setup:
        yield setup


# ── create-config ──


class TestCreateConfig:
    def test_deps_template(self, tmp_path):
        out = tmp_path / "deps.json"
        result = CliRunner().invoke(main, ["create-config", "-o", str(out)])
        assert result.exit_code == 0
        assert "z-scan deps --config" in result.output
        DependencyScanConfig.model_validate(json.loads(out.read_text()))

    def test_sonar_template(self, tmp_path):
        out = tmp_path / "sonar.json"
        result = CliRunner().invoke(main, ["create-config", "-o", str(out), "--kind", "sonar"])
        assert result.exit_code == 0
        cfg = SonarAnalysisConfig.model_validate(json.loads(out.read_text()))
        assert cfg.quality_gate_enabled is True

    def test_unknown_kind(self, tmp_path):
        result = CliRunner().invoke(main, ["create-config", "--kind", "trivy"])
        assert result.exit_code != 0


# ── deps ──


class TestDeps:
    def test_success(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BUILD_URL", "http://ci/job/3/")
        outcome = PipelineOutcome(
            status=PipelineStatus.SUCCESS,
            report_location="http://ci/job/3/artifact/r.txt",
            summary=ScanSummary(0, ("none",)),
        )
        pipeline_cls = _fake_pipeline_cls(outcome)
        with patch("scanstation.pipelines.DependencyScanPipeline", pipeline_cls):
            result = CliRunner().invoke(
                main,
                ["deps", str(tmp_path), "--report-name", "r.txt", "--email", "a@x.com"],
            )

        assert result.exit_code == 0, result.output
        assert "Dependency scan SUCCESS" in result.output
        assert "Report: http://ci/job/3/artifact/r.txt" in result.output
        assert "[+] scan" in result.output
        assert "pip-audit: exit 1 (0.25s)" in result.output
        assert "[.] report" in result.output

        config, context = pipeline_cls.call_args[0]
        assert config.report_name == "r.txt"
        assert config.email_recipients == ["a@x.com"]
        assert context.build_url == "http://ci/job/3/"
        assert context.workspace == tmp_path.resolve()

    def test_failure_exit_code(self, tmp_path):
        outcome = PipelineOutcome(status=PipelineStatus.FAILURE, error_message="pip missing")
        with patch("scanstation.pipelines.DependencyScanPipeline", _fake_pipeline_cls(outcome)):
            result = CliRunner().invoke(main, ["deps", str(tmp_path)])
        assert result.exit_code == 1
        assert "pip missing" in result.output

    def test_config_file(self, tmp_path):
        cfg = tmp_path / "deps.json"
        cfg.write_text(json.dumps({"venv_dir": "scan-env", "report_name": "file.txt"}))
        outcome = PipelineOutcome(status=PipelineStatus.SUCCESS)
        pipeline_cls = _fake_pipeline_cls(outcome)
        with patch("scanstation.pipelines.DependencyScanPipeline", pipeline_cls):
            result = CliRunner().invoke(
                main, ["deps", str(tmp_path), "--config", str(cfg), "--venv-dir", "cli-env"]
            )
        assert result.exit_code == 0, result.output
        config = pipeline_cls.call_args[0][0]
        assert config.venv_dir == "cli-env"
        assert config.report_name == "file.txt"

    def test_invalid_config(self, tmp_path):
        cfg = tmp_path / "deps.json"
        cfg.write_text(json.dumps({"reportName": "x.txt"}))
        result = CliRunner().invoke(main, ["deps", str(tmp_path), "--config", str(cfg)])
        assert result.exit_code == 1
        assert "invalid configuration" in result.output

    def test_missing_project_root(self, tmp_path):
        result = CliRunner().invoke(main, ["deps", str(tmp_path / "nope")])
        assert result.exit_code == 2


# ── sonar ──


class TestSonar:
    def _config(self, tmp_path):
        cfg = tmp_path / "sonar.json"
        cfg.write_text(json.dumps({"project_key": "demo", "quality_gate_enabled": True}))
        return cfg

    def test_config_required(self, tmp_path):
        result = CliRunner().invoke(main, ["sonar", str(tmp_path)])
        assert result.exit_code == 2

    def test_overrides_and_token(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SONAR_TOKEN", "squ_secret")
        outcome = PipelineOutcome(
            status=PipelineStatus.SUCCESS,
            report_location="http://localhost:9000/dashboard?id=other",
            quality_gate=QualityGateResult.not_run(),
        )
        pipeline_cls = _fake_pipeline_cls(outcome)
        with patch("scanstation.pipelines.SonarAnalysisPipeline", pipeline_cls):
            result = CliRunner().invoke(
                main,
                [
                    "sonar",
                    str(tmp_path),
                    "--config",
                    str(self._config(tmp_path)),
                    "--project-key",
                    "other",
                    "--language",
                    "react",
                    "--no-quality-gate",
                ],
            )

        assert result.exit_code == 0, result.output
        assert "Quality gate: Not Run" in result.output
        config, context = pipeline_cls.call_args[0]
        assert config.project_key == "other"
        assert config.language == "react"
        assert config.quality_gate_enabled is False
        assert context.sonar_token == "squ_secret"
        assert "squ_secret" not in repr(context)

    def test_gate_failure_exit_code(self, tmp_path):
        outcome = PipelineOutcome(
            status=PipelineStatus.FAILURE,
            quality_gate=QualityGateResult(QualityGateStatus.FAILED),
            error_message="Quality Gate failed with status: ERROR",
        )
        with patch("scanstation.pipelines.SonarAnalysisPipeline", _fake_pipeline_cls(outcome)):
            result = CliRunner().invoke(
                main, ["sonar", str(tmp_path), "--config", str(self._config(tmp_path))]
            )
        assert result.exit_code == 1
        assert "Quality gate: FAILED" in result.output


class TestVerbose:
    def test_verbose_sets_debug(self, tmp_path, _no_logging_setup):
        CliRunner().invoke(main, ["-v", "create-config", "-o", str(tmp_path / "c.json")])
        _no_logging_setup.assert_called_once_with("DEBUG")

    def test_default_level(self, tmp_path, _no_logging_setup):
        CliRunner().invoke(main, ["create-config", "-o", str(tmp_path / "c.json")])
        _no_logging_setup.assert_called_once_with(None)

    def test_bad_log_format_is_a_usage_error(self, tmp_path, _no_logging_setup):
        _no_logging_setup.side_effect = ValueError("unknown log format 'xml'")
        result = CliRunner().invoke(main, ["create-config", "-o", str(tmp_path / "c.json")])
        assert result.exit_code == 1
        assert "unknown log format 'xml'" in result.output
        assert not (tmp_path / "c.json").exists()
