"""Parser registry — map manifest file names to parsers in priority order."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from scanstation.models import ProjectManifest


@runtime_checkable
class ManifestParser(Protocol):
    """Interface that every manifest parser must satisfy."""

    filename: str
    priority: int  # lower runs first

    def parse(self, file_path: Path, content: str) -> ProjectManifest: ...


PARSER_REGISTRY: dict[str, ManifestParser] = {}


def register_parser(parser: ManifestParser) -> None:
    """Register a parser instance by the manifest file name it handles."""
    PARSER_REGISTRY[parser.filename] = parser


def parsers_in_priority_order() -> list[ManifestParser]:
    return sorted(PARSER_REGISTRY.values(), key=lambda p: p.priority)
