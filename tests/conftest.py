"""Shared pytest fixtures for Z-Scan-Station tests."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    """Stand-in for a provisioned environment's ``bin`` directory."""
    path = tmp_path / "venv" / "bin"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_script(bin_dir: Path):
    """Factory: write an executable ``/bin/sh`` script into ``bin_dir``."""

    def _make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text(f"#!/bin/sh\n{body}\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root
