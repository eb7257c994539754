"""sonar-scanner — SonarQube static analysis, one ``-D`` property per argument."""

from __future__ import annotations

from pathlib import Path

from scanstation.config import SonarAnalysisConfig
from scanstation.models import ScanTarget
from scanstation.tools.base import ExternalTool


class SonarScanner(ExternalTool):
    """Runs an analysis of the checkout; the scan target is always the source tree."""

    def __init__(self, config: SonarAnalysisConfig, homepage: str = "") -> None:
        self._config = config
        self._homepage = homepage or "Not available"
        if config.scanner_home:
            self.executable = str(Path(config.scanner_home) / "bin" / "sonar-scanner")
        else:
            self.executable = "sonar-scanner"

    @property
    def name(self) -> str:
        return "sonar-scanner"

    @property
    def display_name(self) -> str:
        return "SonarQube"

    def properties(self) -> dict[str, str]:
        """Analysis properties in the order they are passed to the scanner."""
        cfg = self._config
        props: dict[str, str] = {
            "sonar.projectKey": cfg.project_key,
            "sonar.projectName": cfg.project_name,
            "sonar.sources": ".",
            "sonar.sourceEncoding": "UTF-8",
            "sonar.host.url": cfg.sonar_url,
        }
        if cfg.language == "python":
            props["sonar.python.version"] = cfg.python_version
        props["sonar.exclusions"] = ",".join(cfg.exclusions)
        props["sonar.links.homepage"] = self._homepage

        if cfg.language == "react" and cfg.typescript:
            props["sonar.typescript.lcov.reportPaths"] = cfg.coverage_path
            props["sonar.typescript.tsconfigPath"] = "tsconfig.json"
        if cfg.coverage:
            if cfg.language == "python":
                props["sonar.python.coverage.reportPaths"] = cfg.coverage_path
            else:
                props["sonar.javascript.lcov.reportPaths"] = cfg.coverage_path
        return props

    def build_args(self, target: ScanTarget) -> list[str]:
        args = []
        for key, value in self.properties().items():
            if "\n" in value or "\r" in value:
                raise ValueError(f"{key}: property values must be single-line")
            args.append(f"-D{key}={value}")
        return args
