"""ManifestResolver — discover manifests in a project root, in fixed priority."""

from __future__ import annotations

from pathlib import Path

import structlog

# Ensure parsers are registered before any resolution runs.
import scanstation.manifests.parsers  # noqa: F401
from scanstation.manifests.registry import PARSER_REGISTRY, parsers_in_priority_order
from scanstation.models import ManifestKind, ProjectManifest

log = structlog.get_logger("scanstation.manifests")

SIDE_FILE_SUFFIX = "_deps.txt"


def _manifest_files() -> tuple[str, ...]:
    return tuple(p.filename for p in parsers_in_priority_order())


MANIFEST_FILES = _manifest_files()


class ManifestResolver:
    """Find the known manifests in a project root and extract their packages."""

    def resolve(self, project_root: Path) -> list[ProjectManifest]:
        """All present manifests, requirements-style first."""
        manifests: list[ProjectManifest] = []
        for filename in MANIFEST_FILES:
            manifest = self.resolve_one(project_root, filename)
            if manifest is not None:
                manifests.append(manifest)
        return manifests

    def resolve_one(self, project_root: Path, filename: str) -> ProjectManifest | None:
        """Parse *filename* under *project_root*; None when the file is absent."""
        parser = PARSER_REGISTRY.get(filename)
        if parser is None:
            raise KeyError(f"no manifest parser registered for {filename!r}")

        path = project_root / filename
        if not path.is_file():
            log.info("manifests.not_found", manifest=filename)
            return None

        content = path.read_text(encoding="utf-8", errors="replace")
        manifest = parser.parse(path, content)
        log.info(
            "manifests.resolved",
            manifest=filename,
            kind=manifest.kind.value,
            packages=len(manifest.packages),
            error=manifest.error,
        )
        return manifest


def write_side_file(manifest: ProjectManifest, workdir: Path) -> Path | None:
    """Write the extracted package list as a requirements-style file for the scanners.

    Requirements files are scanned in place, so no side file is needed for
    them. The side file lives in *workdir* (run-scoped), never in the
    project root. Returns None when there is nothing to scan.
    """
    if manifest.kind is ManifestKind.REQUIREMENTS_TXT:
        return manifest.source_path
    if not manifest.packages:
        return None

    side_file = workdir / f"{manifest.source_path.stem}{SIDE_FILE_SUFFIX}"
    side_file.write_text(
        "".join(f"{ref.raw_line}\n" for ref in manifest.packages), encoding="utf-8"
    )
    return side_file
