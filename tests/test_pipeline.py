"""Tests for the concurrent hashing pipeline."""

from __future__ import annotations

import io
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from merkdir.merkle import pipeline
from merkdir.merkle.hashing import create_leaf, hash_leaf
from merkdir.merkle.models import IOFailure, RandomnessFailure
from merkdir.merkle.pipeline import default_workers, hash_files


def _files(root: Path, n: int) -> list[str]:
    names = []
    for i in range(n):
        name = f"file{i:03d}.txt"
        (root / name).write_bytes(f"data-{i}".encode() * (i + 1))
        names.append(name)
    return names


def test_default_workers_is_positive():
    assert default_workers() >= 2


def test_empty_input(tmp_path: Path):
    assert hash_files(tmp_path, []) == []


@pytest.mark.parametrize("workers", [1, 2, 8, 64])
def test_leaves_match_input_order(tmp_path: Path, workers):
    names = _files(tmp_path, 20)
    leaves = hash_files(tmp_path, names, workers=workers)
    assert [leaf.name for leaf in leaves] == names
    for leaf, name in zip(leaves, names):
        data = (tmp_path / name).read_bytes()
        assert leaf.hash == hash_leaf(io.BytesIO(data), leaf.nonce)


def test_order_kept_when_workers_finish_out_of_order(tmp_path: Path):
    """Earlier files take longer, so later ones finish first."""
    names = _files(tmp_path, 6)

    def slow_create_leaf(name, stream, nonce=None, **kwargs):
        time.sleep(0.02 * (6 - int(name[4:7])))
        return create_leaf(name, stream, nonce, **kwargs)

    with patch.object(pipeline, "create_leaf", side_effect=slow_create_leaf):
        leaves = hash_files(tmp_path, names, workers=6)
    assert [leaf.name for leaf in leaves] == names


def test_every_leaf_gets_its_own_nonce(tmp_path: Path):
    names = _files(tmp_path, 10)
    nonces = {leaf.nonce for leaf in hash_files(tmp_path, names, workers=4)}
    assert len(nonces) == 10


def test_on_read_sees_every_byte(tmp_path: Path):
    names = _files(tmp_path, 8)
    total = sum((tmp_path / n).stat().st_size for n in names)
    seen: list[int] = []
    hash_files(tmp_path, names, workers=1, chunk_size=7, on_read=seen.append)
    assert sum(seen) == total


def test_missing_file_aborts(tmp_path: Path):
    names = _files(tmp_path, 5)
    names.insert(2, "gone.txt")
    with pytest.raises(IOFailure) as exc_info:
        hash_files(tmp_path, names, workers=3)
    assert exc_info.value.path == "gone.txt"


def test_randomness_failure_propagates(tmp_path: Path):
    names = _files(tmp_path, 4)
    with patch(
        "merkdir.merkle.hashing.generate_nonce",
        side_effect=RandomnessFailure("no entropy"),
    ):
        with pytest.raises(RandomnessFailure):
            hash_files(tmp_path, names, workers=2)


def test_unexpected_error_does_not_hang(tmp_path: Path):
    names = _files(tmp_path, 4)
    with patch.object(pipeline, "create_leaf", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError, match="boom"):
            hash_files(tmp_path, names, workers=2)
