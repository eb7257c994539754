"""Manifest parsers — auto-registered on import."""

from scanstation.manifests.parsers import (
    pyproject_toml,  # noqa: F401
    requirements_txt,  # noqa: F401
)
