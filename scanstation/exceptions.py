"""Custom exceptions for Z-Scan-Station."""


class ScanStationError(Exception):
    """Base exception for all scan station errors."""


class EnvironmentSetupError(ScanStationError):
    """Raised when the execution environment cannot be provisioned or is incomplete.

    This is the only failure class that aborts a scan run: it means the
    environment is broken, not that a scanner found something.
    """


class ToolNotFoundError(EnvironmentSetupError):
    """Raised when a scanner binary is absent or not executable."""

    def __init__(self, tool_name: str, detail: str = ""):
        self.tool_name = tool_name
        message = f"Required tool '{tool_name}' is not available"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CheckoutError(EnvironmentSetupError):
    """Raised when the source checkout fails."""


class AnalysisError(ScanStationError):
    """Raised when the static analysis itself (or its install step) fails."""


class QualityGateError(ScanStationError):
    """Raised by a quality gate signal channel when it cannot deliver a verdict."""


class ReportError(ScanStationError):
    """Raised when the report or the finding-count file cannot be written."""
