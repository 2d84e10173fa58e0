"""Tests for MerkleTree: building over a directory, lookup and drift."""

from __future__ import annotations

import io
from datetime import datetime, timezone
from pathlib import Path

import pytest

from merkdir.merkle import (
    EMPTY_TREE,
    FileNotInTree,
    IOFailure,
    MerkleTree,
    verify_inclusion,
)
from merkdir.merkle.builder import build_tree
from merkdir.merkle.hashing import create_leaf
from merkdir.merkle.models import EmptyTree, Internal


# ── Build ────────────────────────────────────────────────────────────


def test_build_records_walk_order(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    assert tree.files == {"README.md": 0, "src/main.py": 1, "src/util.py": 2}
    assert tree.size == 3
    assert tree.path == str(sample_project.resolve())
    assert isinstance(tree.root, Internal)


def test_build_created_at_is_utc_seconds(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    assert tree.created_at.tzinfo == timezone.utc
    assert tree.created_at.microsecond == 0


def test_build_empty_directory(tmp_path: Path):
    tree = MerkleTree.build(tmp_path)
    assert tree.size == 0
    assert isinstance(tree.root, EmptyTree)
    assert tree.root_hash == EMPTY_TREE.hash


def test_build_twice_gives_different_roots(sample_project: Path):
    """Fresh nonces on every build hide content from the root hash."""
    assert MerkleTree.build(sample_project).root_hash != MerkleTree.build(sample_project).root_hash


def test_build_with_ignore_patterns(sample_project: Path):
    tree = MerkleTree.build(sample_project, ["src"])
    assert tree.files == {"README.md": 0}


def test_build_callbacks(sample_project: Path):
    scans = []
    reads: list[int] = []
    MerkleTree.build(sample_project, on_scan=scans.append, on_read=reads.append)
    assert len(scans) == 1
    assert scans[0].total_size == sum(reads)


def test_build_missing_directory(tmp_path: Path):
    with pytest.raises(IOFailure):
        MerkleTree.build(tmp_path / "missing")


def test_repr(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    assert "size=3" in repr(tree)
    assert tree.root_hash.hex() in repr(tree)


# ── Lookup and proofs ────────────────────────────────────────────────


def test_leaf_lookup(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    for name in tree.files:
        assert tree.leaf(name).name == name


def test_unknown_file(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    with pytest.raises(FileNotInTree):
        tree.leaf_index("nope.txt")
    with pytest.raises(FileNotInTree):
        tree.inclusion_proof("nope.txt")


def test_inclusion_proof_verifies(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    for name, index in tree.files.items():
        proof = tree.inclusion_proof(name)
        assert proof.leaf_index == index
        assert proof.tree_size == tree.size
        data = (sample_project / name).read_bytes()
        assert verify_inclusion(proof, io.BytesIO(data), tree.root_hash)


# ── Re-verification ──────────────────────────────────────────────────


def test_verify_file_unchanged(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    assert tree.verify_file("src/main.py")


def test_verify_file_changed(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    (sample_project / "src" / "main.py").write_text("print('bye')")
    assert not tree.verify_file("src/main.py")


def test_verify_file_deleted(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    (sample_project / "README.md").unlink()
    with pytest.raises(IOFailure) as exc_info:
        tree.verify_file("README.md")
    assert exc_info.value.path == "README.md"


def test_check_drift_clean(sample_project: Path):
    report = MerkleTree.build(sample_project).check_drift()
    assert report.clean
    assert report.changed == ()
    assert report.missing == ()


def test_check_drift_changed_and_missing(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    (sample_project / "src" / "util.py").write_text("changed")
    (sample_project / "README.md").unlink()
    report = tree.check_drift()
    assert not report.clean
    assert report.changed == ("src/util.py",)
    assert report.missing == ("README.md",)


def test_new_files_are_not_drift(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    (sample_project / "extra.txt").write_text("new")
    assert tree.check_drift().clean


# ── Persistence ──────────────────────────────────────────────────────


def test_save_load_round_trip(sample_project: Path, tmp_path: Path):
    tree = MerkleTree.build(sample_project)
    target = tmp_path / "tree.merk"
    tree.save(target)
    loaded = MerkleTree.load(target)
    assert loaded == tree
    assert loaded.verify_file("src/util.py")


def test_loaded_tree_proofs_match(sample_project: Path):
    tree = MerkleTree.build(sample_project)
    loaded = MerkleTree.from_bytes(tree.to_bytes())
    assert loaded.inclusion_proof("src/main.py") == tree.inclusion_proof("src/main.py")


# ── Path confinement ─────────────────────────────────────────────────


def _forged_tree(root: Path, name: str, data: bytes) -> MerkleTree:
    leaf = create_leaf(name, io.BytesIO(data), bytes(16))
    return MerkleTree(
        path=str(root),
        files={name: 0},
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        root=build_tree([leaf]),
    )


@pytest.mark.parametrize("name", ["../secret.txt", "src/../../secret.txt"])
def test_names_outside_root_are_not_read(sample_project: Path, name):
    secret = sample_project.parent / "secret.txt"
    secret.write_bytes(b"do not read")
    tree = _forged_tree(sample_project, name, b"do not read")
    with pytest.raises(FileNotInTree):
        tree.verify_file(name)
    with pytest.raises(FileNotInTree):
        tree.check_drift()


def test_absolute_name_is_not_read(sample_project: Path):
    tree = _forged_tree(sample_project, "/etc/hostname", b"")
    with pytest.raises(FileNotInTree):
        tree.verify_file("/etc/hostname")


def test_dotted_name_inside_root_still_verifies(sample_project: Path):
    data = (sample_project / "README.md").read_bytes()
    tree = _forged_tree(sample_project, "src/../README.md", data)
    assert tree.verify_file("src/../README.md")
