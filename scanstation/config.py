"""Pipeline configuration — immutable, validated once at construction.

Every recognized option is declared here with its default. Unknown keys are
rejected, and a static-analysis run without a project key cannot be built.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# SonarQube project keys: letters, digits, '-', '_', '.', ':' with at least one non-digit
_PROJECT_KEY_RE = re.compile(r"^(?=.*[^0-9])[A-Za-z0-9_\-.:]+$")

_DEFAULT_EXCLUSIONS: dict[str, list[str]] = {
    "python": [
        "**/venv/**",
        "**/migrations/**",
        "**/*.pyc",
        "**/__pycache__/**",
        "**/tests/**",
        "setup.py",
    ],
    "react": [
        "**/node_modules/**",
        "**/*.spec.js",
        "**/*.spec.jsx",
        "**/*.spec.ts",
        "**/*.spec.tsx",
        "**/coverage/**",
        "**/build/**",
        "**/dist/**",
    ],
}

_DEFAULT_COVERAGE_PATH: dict[str, str] = {
    "python": "coverage.xml",
    "react": "coverage/lcov.info",
}

KNOWN_SCANNERS = ("pip-audit", "safety")


def _split_list(v: Any) -> Any:
    """Accept ``"a,b"`` as well as ``["a", "b"]``; drop blanks."""
    if v is None:
        return []
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    if isinstance(v, (list, tuple)):
        return [str(item).strip() for item in v if str(item).strip()]
    return v


def _reject_control_chars(v: str) -> str:
    if any(ch in v for ch in ("\n", "\r", "\x00")):
        raise ValueError("value must not contain newlines or NUL bytes")
    return v


class _FrozenConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> _FrozenConfig:
        """Load a JSON config file; CLI overrides (non-None) are merged on top."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{path}: config must be a JSON object")
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)


class DependencyScanConfig(_FrozenConfig):
    """Options of the dependency-scan pipeline."""

    report_name: str = "dependency_scan_report.txt"
    venv_dir: str = "venv"
    email_recipients: list[str] = Field(default_factory=list)
    project_name: str = ""
    repo_url: str = ""
    branch: str = "main"
    scanners: list[str] = Field(default_factory=lambda: list(KNOWN_SCANNERS))
    tool_timeout_seconds: float = Field(default=900, gt=0)
    finding_keyword: str = "vulnerability"
    python_executable: str = "python3"

    @field_validator("email_recipients", "scanners", mode="before")
    @classmethod
    def _split(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("scanners")
    @classmethod
    def _known_scanners(cls, v: list[str]) -> list[str]:
        unknown = [s for s in v if s not in KNOWN_SCANNERS]
        if unknown:
            raise ValueError(f"unknown scanner(s) {unknown}; supported: {list(KNOWN_SCANNERS)}")
        return v

    @field_validator("report_name")
    @classmethod
    def _bare_file_name(cls, v: str) -> str:
        v = v.strip()
        if not v or Path(v).name != v or v in (".", ".."):
            raise ValueError("must be a bare file name, written to the project root")
        return _reject_control_chars(v)

    @field_validator("venv_dir")
    @classmethod
    def _relative_path(cls, v: str) -> str:
        v = v.strip()
        if not v or Path(v).is_absolute() or ".." in Path(v).parts:
            raise ValueError("must be a non-empty path relative to the project root")
        return _reject_control_chars(v)

    @field_validator("finding_keyword")
    @classmethod
    def _non_empty_keyword(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("finding_keyword must not be empty")
        return v.strip()


class SonarAnalysisConfig(_FrozenConfig):
    """Options of the static-analysis pipeline."""

    project_key: str
    project_name: str = ""
    language: Literal["python", "react"] = "python"
    sonar_url: str = "http://localhost:9000"
    repo_url: str = ""
    branch: str = "main"
    scanner_home: str = ""
    quality_gate_enabled: bool = False
    quality_gate_timeout_minutes: float = Field(default=5, gt=0)
    abort_on_quality_gate_failure: bool = True
    clean_workspace: bool = True
    notify_email: list[str] = Field(default_factory=list)
    python_version: str = "3"
    exclusions: list[str] = Field(default_factory=list)
    coverage: bool = False
    coverage_path: str = ""
    typescript: bool = False
    install_command: str = "npm install"
    test_command: str = "npm test"

    @model_validator(mode="before")
    @classmethod
    def _language_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        language = data.get("language") or "python"
        if not data.get("exclusions") and language in _DEFAULT_EXCLUSIONS:
            data["exclusions"] = list(_DEFAULT_EXCLUSIONS[language])
        if not data.get("coverage_path") and language in _DEFAULT_COVERAGE_PATH:
            data["coverage_path"] = _DEFAULT_COVERAGE_PATH[language]
        return data

    @field_validator("notify_email", "exclusions", mode="before")
    @classmethod
    def _split(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("project_key")
    @classmethod
    def _valid_project_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project key is required")
        if not _PROJECT_KEY_RE.match(v):
            raise ValueError(f"invalid SonarQube project key: {v!r}")
        return v

    @field_validator(
        "project_name", "sonar_url", "repo_url", "branch", "python_version", "coverage_path"
    )
    @classmethod
    def _single_line(cls, v: str) -> str:
        return _reject_control_chars(v.strip())

    @field_validator("exclusions")
    @classmethod
    def _single_line_globs(cls, v: list[str]) -> list[str]:
        for glob in v:
            _reject_control_chars(glob)
        return v

    @field_validator("sonar_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("sonar_url must be an http(s) URL")
        return v.rstrip("/")

    @model_validator(mode="after")
    def _default_project_name(self) -> SonarAnalysisConfig:
        if not self.project_name:
            # frozen model: bypass __setattr__ for the derived default
            object.__setattr__(self, "project_name", self.project_key)
        return self

    @property
    def dashboard_url(self) -> str:
        return f"{self.sonar_url}/dashboard?id={self.project_key}"
