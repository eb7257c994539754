"""Parser for pip requirements.txt files."""

from __future__ import annotations

import re
from pathlib import Path

from scanstation.manifests.registry import register_parser
from scanstation.models import ManifestKind, PackageRef, ProjectManifest

# Leading distribution name; whatever follows is left to the scanners to validate
_NAME_RE = re.compile(r"^([A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?)")


class RequirementsTxtParser:
    filename = "requirements.txt"
    priority = 10

    def parse(self, file_path: Path, content: str) -> ProjectManifest:
        packages: list[PackageRef] = []

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            m = _NAME_RE.match(line)
            name = m.group(1) if m else line
            packages.append(PackageRef(name=name, raw_line=raw_line))

        return ProjectManifest(
            kind=ManifestKind.REQUIREMENTS_TXT,
            source_path=file_path,
            packages=tuple(packages),
            raw_content=content,
        )


register_parser(RequirementsTxtParser())
