"""CI pipelines built on the scan core."""

from scanstation.pipelines.dependency_scan import DependencyScanPipeline
from scanstation.pipelines.sonar_analysis import SonarAnalysisPipeline

__all__ = ["DependencyScanPipeline", "SonarAnalysisPipeline"]
