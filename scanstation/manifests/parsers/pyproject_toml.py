"""Parser for Python pyproject.toml project metadata.

Three dependency schemas are tried in order and the first one that yields
packages wins:

1. ``[project].dependencies`` (PEP 621) — a list of requirement strings
2. ``[tool.poetry.dependencies]`` — a table keyed by package name
3. a top-level ``[dependencies]`` table — keyed by package name

The implicit runtime entry ``python`` is never reported as a package.
A file that cannot be parsed yields zero packages and carries the error
text; it never raises.
"""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Any, Callable

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from scanstation.manifests.registry import register_parser
from scanstation.models import ManifestKind, PackageRef, ProjectManifest

# PEP 508 simplified: name followed by optional extras and version specifiers
_PEP508_NAME_RE = re.compile(r"^\s*([A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?)")

_RUNTIME_ENTRY = "python"


def _is_runtime(name: str) -> bool:
    return name.strip().lower() == _RUNTIME_ENTRY


def _pep621(data: dict[str, Any]) -> list[PackageRef]:
    project = data.get("project")
    if not isinstance(project, dict):
        return []
    entries = project.get("dependencies")
    if not isinstance(entries, list):
        return []

    refs: list[PackageRef] = []
    for entry in entries:
        if not isinstance(entry, str) or not entry.strip():
            continue
        m = _PEP508_NAME_RE.match(entry)
        name = m.group(1) if m else entry.strip()
        if _is_runtime(name):
            continue
        refs.append(PackageRef(name=name, raw_line=entry.strip()))
    return refs


def _table_keys(table: Any) -> list[PackageRef]:
    if not isinstance(table, dict):
        return []
    return [PackageRef(name=key, raw_line=key) for key in table if not _is_runtime(key)]


def _poetry(data: dict[str, Any]) -> list[PackageRef]:
    tool = data.get("tool")
    if not isinstance(tool, dict):
        return []
    poetry = tool.get("poetry")
    if not isinstance(poetry, dict):
        return []
    return _table_keys(poetry.get("dependencies"))


def _direct(data: dict[str, Any]) -> list[PackageRef]:
    return _table_keys(data.get("dependencies"))


# (kind, report note, extractor) in priority order
_SCHEMAS: list[tuple[ManifestKind, str, Callable[[dict[str, Any]], list[PackageRef]]]] = [
    (ManifestKind.PEP621, "Found PEP 621 dependencies", _pep621),
    (ManifestKind.POETRY, "Found Poetry dependencies", _poetry),
    (ManifestKind.DIRECT_TABLE, "Found direct dependencies", _direct),
]


class PyprojectTomlParser:
    filename = "pyproject.toml"
    priority = 20

    def parse(self, file_path: Path, content: str) -> ProjectManifest:
        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            message = f"Error processing {self.filename}: {e}"
            return ProjectManifest(
                kind=ManifestKind.UNRECOGNIZED,
                source_path=file_path,
                packages=(),
                raw_content=content,
                notes=(message,),
                error=message,
            )

        for kind, note, extract in _SCHEMAS:
            refs = extract(data)
            if refs:
                names = [ref.raw_line for ref in refs]
                return ProjectManifest(
                    kind=kind,
                    source_path=file_path,
                    packages=tuple(refs),
                    raw_content=content,
                    notes=(note, f"Dependencies extracted: {names}"),
                )

        return ProjectManifest(
            kind=ManifestKind.UNRECOGNIZED,
            source_path=file_path,
            packages=(),
            raw_content=content,
            notes=(f"No dependencies found in {self.filename}",),
        )


register_parser(PyprojectTomlParser())
