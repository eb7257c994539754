"""Data models shared by the scan orchestration core and the pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ManifestKind(Enum):
    """Dependency manifest dialect a package list was extracted from."""

    REQUIREMENTS_TXT = "requirements-txt"
    PEP621 = "pep621"
    POETRY = "poetry"
    DIRECT_TABLE = "direct-table"
    UNRECOGNIZED = "unrecognized"  # project metadata present, no schema matched


@dataclass(frozen=True)
class PackageRef:
    """A dependency declared in a manifest."""

    name: str
    raw_line: str


@dataclass(frozen=True)
class ProjectManifest:
    """A manifest found in the project root, with its extracted packages.

    ``notes`` are the extraction log lines reported alongside the raw
    content; ``error`` holds the parse error text when the file could not
    be read as structured data.
    """

    kind: ManifestKind
    source_path: Path
    packages: tuple[PackageRef, ...]
    raw_content: str = ""
    notes: tuple[str, ...] = ()
    error: str | None = None

    @property
    def filename(self) -> str:
        return self.source_path.name


@dataclass(frozen=True)
class ScanTarget:
    """What a scanner runs against.

    ``requirements_file`` is None for "no specific input", i.e. scan the
    packages currently installed in the provisioned environment.
    """

    requirements_file: Path | None = None
    manifest_kind: ManifestKind | None = None
    label: str = "installed packages"

    @classmethod
    def installed(cls) -> ScanTarget:
        return cls()

    @property
    def is_installed_environment(self) -> bool:
        return self.requirements_file is None


@dataclass
class ToolInvocation:
    """Result of running one external tool against one target.

    A non-zero ``exit_status`` is data, not an error: most scanners exit
    non-zero when they find something.
    """

    tool_name: str
    manifest_kind: ManifestKind | None
    exit_status: int
    stdout: str
    duration_elapsed: float
    timed_out: bool = False

    @property
    def completed_with_issues(self) -> bool:
        return self.exit_status != 0


@dataclass(frozen=True)
class ReportSection:
    title: str
    body: str


class ScanReport:
    """Append-only ordered sequence of report sections.

    Owned by the orchestrator while a run is in progress; ``freeze()`` makes
    it read-only once the run completes.
    """

    def __init__(self) -> None:
        self._sections: list[ReportSection] = []
        self._frozen = False

    def append(self, title: str, body: str) -> ReportSection:
        if self._frozen:
            raise RuntimeError("ScanReport is read-only once the run has completed")
        section = ReportSection(title=title, body=body)
        self._sections.append(section)
        return section

    def extend(self, sections: list[ReportSection]) -> None:
        for section in sections:
            self.append(section.title, section.body)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def sections(self) -> tuple[ReportSection, ...]:
        return tuple(self._sections)

    @property
    def titles(self) -> list[str]:
        return [s.title for s in self._sections]

    def text(self) -> str:
        """Concatenated section bodies, the input of the summary heuristics."""
        return "\n".join(s.body for s in self._sections)

    def __len__(self) -> int:
        return len(self._sections)


@dataclass(frozen=True)
class ScanSummary:
    approximate_finding_count: int
    highlights: tuple[str, ...]

    def __post_init__(self) -> None:
        if self.approximate_finding_count < 0:
            raise ValueError("approximate_finding_count must be >= 0")


class PipelineStatus(Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class QualityGateStatus(Enum):
    OK = "OK"
    FAILED = "FAILED"
    ERROR = "ERROR"
    TIMEOUT = "TIMEOUT"
    NOT_RUN = "Not Run"


class QualityGateSource(Enum):
    PRIMARY = "primary"
    FALLBACK_API = "fallback-api"


@dataclass(frozen=True)
class QualityGateResult:
    status: QualityGateStatus
    source: QualityGateSource = QualityGateSource.PRIMARY
    detail: str = ""

    @property
    def passed(self) -> bool:
        return self.status is QualityGateStatus.OK

    @classmethod
    def not_run(cls) -> QualityGateResult:
        return cls(status=QualityGateStatus.NOT_RUN)


@dataclass
class PipelineOutcome:
    """Final result record returned to the CI host and the notifier."""

    status: PipelineStatus
    report_location: str = ""
    report_name: str = ""
    summary: ScanSummary | None = None
    error_message: str | None = None
    quality_gate: QualityGateResult | None = None
    repository_url: str = ""
    project_name: str = ""

    @property
    def successful(self) -> bool:
        return self.status is PipelineStatus.SUCCESS

    @property
    def finding_count(self) -> int:
        return self.summary.approximate_finding_count if self.summary else 0


@dataclass(frozen=True)
class BuildContext:
    """CI-host state handed to the pipelines explicitly."""

    build_url: str = ""
    workspace: Path | None = None
    sonar_token: str = field(default="", repr=False)
