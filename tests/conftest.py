"""Shared test fixtures for merkdir."""

import io
from pathlib import Path

import pytest

from merkdir.config.models import MerkdirConfig
from merkdir.merkle.hashing import create_leaf


def make_leaf(name: str, data: bytes, nonce: bytes | None = None):
    """Leaf with a deterministic nonce derived from the name unless given."""
    if nonce is None:
        nonce = name.encode().ljust(16, b"\x00")[:16]
    return create_leaf(name, io.BytesIO(data), nonce)


@pytest.fixture
def leaf_factory():
    """Build n leaves named f0..f{n-1} with content b"content-<i>"."""

    def _make(n: int):
        data = [f"content-{i}".encode() for i in range(n)]
        leaves = [make_leaf(f"f{i}", d) for i, d in enumerate(data)]
        return leaves, data

    return _make


@pytest.fixture
def sample_config():
    return MerkdirConfig()


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A small directory tree to hash."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "src").mkdir()
    (root / "src" / "main.py").write_text("print('hi')")
    (root / "src" / "util.py").write_text("def helper(): pass")
    (root / "README.md").write_text("# Readme")
    return root
