"""ToolRunner — execute one external tool against one target, never raising on exit status."""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from pathlib import Path

import structlog

from scanstation.exceptions import ToolNotFoundError
from scanstation.models import ScanTarget, ToolInvocation
from scanstation.tools.base import ExternalTool

log = structlog.get_logger("scanstation.tools")

DEFAULT_TOOL_TIMEOUT = 900  # seconds; scanners resolve dependencies over the network


class ToolRunner:
    """Run external tools inside a provisioned environment.

    ``bin_dir`` is the environment's executable directory (e.g.
    ``venv/bin``); it is searched before ``PATH`` and prepended to the
    child's ``PATH``, the equivalent of activating the environment.
    """

    def __init__(
        self,
        cwd: Path,
        bin_dir: Path | None = None,
        timeout: float = DEFAULT_TOOL_TIMEOUT,
    ) -> None:
        self.cwd = cwd
        self.bin_dir = bin_dir
        self.timeout = timeout

    def resolve_executable(self, tool: ExternalTool) -> str:
        """Absolute path of *tool*'s binary, or ToolNotFoundError."""
        exe = tool.executable
        if os.path.isabs(exe):
            if not os.path.isfile(exe):
                raise ToolNotFoundError(tool.name, f"{exe} does not exist")
            if not os.access(exe, os.X_OK):
                raise ToolNotFoundError(tool.name, f"{exe} is not executable")
            return exe

        found = shutil.which(exe, path=self._search_path())
        if found is None:
            raise ToolNotFoundError(tool.name, f"'{exe}' not found in the scan environment")
        return found

    def run(self, tool: ExternalTool, target: ScanTarget | None = None) -> ToolInvocation:
        """Run *tool* against *target* and capture combined stdout/stderr.

        A non-zero exit status is recorded on the returned invocation. Only
        a missing or unexecutable binary raises (ToolNotFoundError).
        """
        target = target or ScanTarget.installed()
        cmd = tool.command(target)
        cmd[0] = self.resolve_executable(tool)

        log.info("tools.run", tool=tool.name, target=target.label, cmd=cmd)
        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                env=self._child_env(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ToolNotFoundError(tool.name, str(e)) from e
        except subprocess.TimeoutExpired as e:
            elapsed = round(time.monotonic() - start, 2)
            partial = e.output or ""
            if isinstance(partial, bytes):
                partial = partial.decode("utf-8", errors="replace")
            log.warning("tools.timeout", tool=tool.name, target=target.label, timeout=self.timeout)
            return ToolInvocation(
                tool_name=tool.name,
                manifest_kind=target.manifest_kind,
                exit_status=-1,
                stdout=f"{partial}\n{tool.display_name} timed out after {self.timeout}s",
                duration_elapsed=elapsed,
                timed_out=True,
            )

        elapsed = round(time.monotonic() - start, 2)
        log.info(
            "tools.finished",
            tool=tool.name,
            target=target.label,
            exit_status=result.returncode,
            duration=elapsed,
        )
        return ToolInvocation(
            tool_name=tool.name,
            manifest_kind=target.manifest_kind,
            exit_status=result.returncode,
            stdout=result.stdout or "",
            duration_elapsed=elapsed,
        )

    def _search_path(self) -> str:
        path = os.environ.get("PATH", os.defpath)
        if self.bin_dir is not None:
            return f"{self.bin_dir}{os.pathsep}{path}"
        return path

    def _child_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["PATH"] = self._search_path()
        if self.bin_dir is not None:
            env["VIRTUAL_ENV"] = str(self.bin_dir.parent)
            env.pop("PYTHONHOME", None)
        return env
