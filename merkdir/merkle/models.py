"""Data models and error kinds for the Merkle tree subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union


class MerkleError(Exception):
    """Base class for every error raised by the Merkle core."""


class IOFailure(MerkleError):
    """A byte stream could not be opened or fully read."""

    def __init__(self, path: str | None, cause: Exception) -> None:
        self.path = path
        where = f" {path}" if path else ""
        super().__init__(f"read failed{where}: {cause}")
        self.__cause__ = cause


class RandomnessFailure(MerkleError):
    """The entropy source failed while generating a nonce."""


class IndexOutOfRange(MerkleError, IndexError):
    """A leaf index is not smaller than the claimed tree size."""


class TreeSizeMismatch(MerkleError):
    """The claimed tree size does not match the shape of the tree walked."""


class ProofSizeMismatch(MerkleError):
    """The audit path length does not fit the claimed (index, size) pair."""


class InvalidContainer(MerkleError, ValueError):
    """A persisted file has a bad header or an undecodable payload."""


class FileNotInTree(MerkleError, LookupError):
    """The requested relative path is not recorded in the tree."""


@dataclass(frozen=True)
class Leaf:
    """A hashed file. ``name`` is the relative path inside the source directory."""

    name: str
    nonce: bytes
    hash: bytes = field(repr=False)


@dataclass(frozen=True)
class Internal:
    """Combination of two subtrees; exclusively owns both children."""

    left: Node = field(repr=False)
    right: Node = field(repr=False)
    hash: bytes = field(repr=False)


@dataclass(frozen=True)
class EmptyTree:
    """Root of a tree with zero leaves."""

    hash: bytes = field(repr=False)


Node = Union[Leaf, Internal, EmptyTree]


@dataclass(frozen=True)
class InclusionProof:
    """Self-contained audit path for one leaf.

    ``proof`` holds sibling hashes in bottom-to-top order. The verifier never
    sees the tree, so the proven leaf's nonce travels with the proof.
    """

    leaf_index: int
    tree_size: int
    nonce: bytes
    proof: tuple[bytes, ...] = ()

    def to_bytes(self) -> bytes:
        from merkdir.merkle.codec import dump_proof

        return dump_proof(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> InclusionProof:
        from merkdir.merkle.codec import load_proof

        return load_proof(data)

    def save(self, path: Path) -> None:
        """Write the proof container to *path*."""
        Path(path).write_bytes(self.to_bytes())

    @classmethod
    def load(cls, path: Path) -> InclusionProof:
        """Read a proof container from *path*."""
        return cls.from_bytes(Path(path).read_bytes())


@dataclass(frozen=True)
class DriftReport:
    """Result of re-hashing every file recorded in a tree."""

    changed: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()

    @property
    def clean(self) -> bool:
        return not (self.changed or self.missing)
