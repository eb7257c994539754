"""External tools and the runner that executes them."""

from scanstation.tools.base import ExternalTool
from scanstation.tools.pip_audit import PipAudit
from scanstation.tools.pip_freeze import PipFreeze
from scanstation.tools.runner import ToolRunner
from scanstation.tools.safety import Safety
from scanstation.tools.sonar_scanner import SonarScanner

SCANNER_FACTORIES: dict[str, type[ExternalTool]] = {
    "pip-audit": PipAudit,
    "safety": Safety,
}


def build_scanners(names: list[str]) -> list[ExternalTool]:
    """Instantiate the dependency scanners selected in the configuration, in order."""
    return [SCANNER_FACTORIES[name]() for name in names]


__all__ = [
    "ExternalTool",
    "PipAudit",
    "PipFreeze",
    "SCANNER_FACTORIES",
    "Safety",
    "SonarScanner",
    "ToolRunner",
    "build_scanners",
]
