"""Pipeline collaborators — source checkout, scan environment, archival, project commands."""

from __future__ import annotations

import asyncio
import shlex
import shutil
import subprocess
import uuid
from dataclasses import dataclass
from pathlib import Path

import structlog

from scanstation.exceptions import CheckoutError, EnvironmentSetupError

log = structlog.get_logger("scanstation.collaborators")

REMOTE_URL_UNAVAILABLE = "Not available"
PROVISION_TIMEOUT = 900  # seconds
SCANNER_PACKAGES = ("pip-audit", "safety")


# ── checkout ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SourceCheckout:
    root: Path
    repository_url: str
    cloned: bool = False


async def checkout_source(workspace: Path, repo_url: str = "", branch: str = "") -> SourceCheckout:
    """Clone *repo_url* at *branch* under *workspace*, or use *workspace* as the checkout.

    Raises ``CheckoutError`` when the clone fails.
    """
    if not repo_url:
        if not workspace.is_dir():
            raise CheckoutError(f"workspace {workspace} does not exist")
        return SourceCheckout(root=workspace, repository_url=await remote_url(workspace))

    workspace.mkdir(parents=True, exist_ok=True)
    target = workspace / f"repo-{uuid.uuid4().hex[:8]}"
    clone_cmd = ["git", "clone", "--single-branch"]
    if branch:
        clone_cmd += ["--branch", branch]
    clone_cmd += ["--", repo_url, str(target)]
    log.info("checkout.clone", repo_url=repo_url, branch=branch, target=str(target))
    await _run_git(clone_cmd)
    return SourceCheckout(root=target, repository_url=await remote_url(target), cloned=True)


async def remote_url(root: Path) -> str:
    """``remote.origin.url`` of the checkout at *root*, or ``Not available``."""
    try:
        out = await _run_git(["git", "-C", str(root), "config", "--get", "remote.origin.url"])
    except CheckoutError:
        return REMOTE_URL_UNAVAILABLE
    return out.strip() or REMOTE_URL_UNAVAILABLE


async def _run_git(cmd: list[str]) -> str:
    """Run a git command, raising CheckoutError on failure."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CheckoutError(f"cannot run git: {e}") from e
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip()
        raise CheckoutError(f"git command failed (exit {proc.returncode}): {detail}")
    return stdout.decode(errors="replace")


# ── scan environment ──────────────────────────────────────────────────────


class VenvProvisioner:
    """Disposable virtual environment holding the scanners.

    The environment is created fresh for every run and removed afterwards,
    so scanner versions never leak between builds.
    """

    def __init__(
        self,
        venv_dir: Path,
        python_executable: str = "python3",
        packages: tuple[str, ...] = SCANNER_PACKAGES,
        timeout: float = PROVISION_TIMEOUT,
    ) -> None:
        self.venv_dir = venv_dir
        self.python_executable = python_executable
        self.packages = packages
        self.timeout = timeout

    @property
    def bin_dir(self) -> Path:
        return self.venv_dir / "bin"

    def provision(self) -> Path:
        """Create the venv and install the scanners; returns ``bin_dir``."""
        log.info("environment.provision", venv=str(self.venv_dir), packages=list(self.packages))
        self._run([self.python_executable, "-m", "venv", str(self.venv_dir)])
        pip = str(self.bin_dir / "pip")
        self._run([pip, "install", "--upgrade", "pip"])
        self._run([pip, "install", *self.packages])
        return self.bin_dir

    def remove(self) -> None:
        if self.venv_dir.exists():
            shutil.rmtree(self.venv_dir, ignore_errors=True)
            log.debug("environment.removed", venv=str(self.venv_dir))

    def _run(self, cmd: list[str]) -> None:
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, errors="replace", timeout=self.timeout
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise EnvironmentSetupError(f"environment setup failed: {' '.join(cmd)}: {e}") from e
        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip().splitlines()[-1:] or [""]
            raise EnvironmentSetupError(
                f"environment setup failed (exit {result.returncode}): {' '.join(cmd)}: {detail[0]}"
            )


# ── archival ──────────────────────────────────────────────────────────────


class LocalArchiver:
    """Copy build artifacts into an archive directory."""

    def __init__(self, archive_dir: Path) -> None:
        self.archive_dir = archive_dir

    def archive(self, path: Path) -> Path | None:
        """Archived copy of *path*; None when there is nothing to archive."""
        if not path.is_file():
            log.info("archive.nothing_to_archive", path=str(path))
            return None
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        dest = self.archive_dir / path.name
        if dest.resolve() != path.resolve():
            shutil.copy2(path, dest)
        log.info("archive.stored", path=str(dest))
        return dest


# ── project commands ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class CommandResult:
    command: str
    exit_status: int
    output: str

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def run_project_command(
    command: str, cwd: Path, timeout: float = PROVISION_TIMEOUT
) -> CommandResult:
    """Run a configured project command (``npm install``, ``npm test``) without a shell."""
    args = shlex.split(command)
    if not args:
        raise ValueError("empty command")
    log.info("command.run", cmd=args, cwd=str(cwd))
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except OSError as e:
        return CommandResult(command=command, exit_status=127, output=str(e))
    except subprocess.TimeoutExpired:
        return CommandResult(command=command, exit_status=-1, output=f"timed out after {timeout}s")
    return CommandResult(command=command, exit_status=result.returncode, output=result.stdout or "")
