"""Merkle tree subsystem: directory fingerprints and inclusion proofs."""

from merkdir.merkle.builder import EMPTY_TREE, build_tree, flp2
from merkdir.merkle.hashing import (
    HASH_SIZE,
    NONCE_SIZE,
    create_leaf,
    hash_children,
    hash_leaf,
)
from merkdir.merkle.models import (
    DriftReport,
    EmptyTree,
    FileNotInTree,
    InclusionProof,
    IndexOutOfRange,
    Internal,
    InvalidContainer,
    IOFailure,
    Leaf,
    MerkleError,
    Node,
    ProofSizeMismatch,
    RandomnessFailure,
    TreeSizeMismatch,
)
from merkdir.merkle.proof import (
    generate_proof,
    locate_leaf,
    verify_inclusion,
    verify_proof,
)
from merkdir.merkle.tree import MerkleTree

__all__ = [
    "EMPTY_TREE",
    "HASH_SIZE",
    "NONCE_SIZE",
    "DriftReport",
    "EmptyTree",
    "FileNotInTree",
    "IOFailure",
    "InclusionProof",
    "IndexOutOfRange",
    "Internal",
    "InvalidContainer",
    "Leaf",
    "MerkleError",
    "MerkleTree",
    "Node",
    "ProofSizeMismatch",
    "RandomnessFailure",
    "TreeSizeMismatch",
    "build_tree",
    "create_leaf",
    "flp2",
    "generate_proof",
    "hash_children",
    "hash_leaf",
    "locate_leaf",
    "verify_inclusion",
    "verify_proof",
]
