"""Z-Scan-Station: CI multi-tool scan orchestration and aggregation."""

__version__ = "0.1.0"

from scanstation.manifests import ManifestResolver
from scanstation.models import (
    ManifestKind,
    PackageRef,
    PipelineOutcome,
    PipelineStatus,
    ProjectManifest,
    QualityGateResult,
    QualityGateStatus,
    ScanReport,
    ScanSummary,
    ToolInvocation,
)
from scanstation.notification import NotificationDispatcher
from scanstation.orchestrator import ScanOrchestrator
from scanstation.pipelines import DependencyScanPipeline, SonarAnalysisPipeline
from scanstation.quality_gate import QualityGateChecker
from scanstation.report import ReportAggregator
from scanstation.tools import ToolRunner

__all__ = [
    "DependencyScanPipeline",
    "ManifestKind",
    "ManifestResolver",
    "NotificationDispatcher",
    "PackageRef",
    "PipelineOutcome",
    "PipelineStatus",
    "ProjectManifest",
    "QualityGateChecker",
    "QualityGateResult",
    "QualityGateStatus",
    "ReportAggregator",
    "ScanOrchestrator",
    "ScanReport",
    "ScanSummary",
    "SonarAnalysisPipeline",
    "ToolInvocation",
    "ToolRunner",
]
