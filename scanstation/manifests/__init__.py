"""Manifest resolver — find dependency manifests and extract scanner input."""

from scanstation.manifests.resolver import MANIFEST_FILES, ManifestResolver, write_side_file

__all__ = ["MANIFEST_FILES", "ManifestResolver", "write_side_file"]
