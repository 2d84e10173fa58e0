"""Inclusion proofs: generation, leaf lookup and verification.

Generation walks the tree from the root using the same power-of-two split
as the builder (RFC 9162 section 2.1.3.1). Verification never touches the
tree; it folds the audit path upward from the recomputed leaf hash
(RFC 9162 section 2.1.3.2).

Verification returns a candidate root. Whether that root is the one the
caller trusts is the caller's decision; see ``verify_inclusion``.
"""

from __future__ import annotations

import hmac
from collections.abc import Callable, Sequence
from typing import BinaryIO

from merkdir.merkle.builder import flp2
from merkdir.merkle.hashing import CHUNK_SIZE, hash_children, hash_leaf
from merkdir.merkle.models import (
    InclusionProof,
    IndexOutOfRange,
    Internal,
    Leaf,
    Node,
    ProofSizeMismatch,
    TreeSizeMismatch,
)


def _descend(root: Node, n: int, m: int) -> tuple[Leaf, list[bytes]]:
    """Walk to leaf *m* of a tree believed to hold *n* leaves.

    Returns the leaf and the sibling hashes met on the way, bottom-to-top.
    """
    if m < 0 or m >= n:
        raise IndexOutOfRange(f"leaf index {m} is impossible for tree size {n}")

    node = root
    siblings: list[bytes] = []
    while n > 1:
        if not isinstance(node, Internal):
            raise TreeSizeMismatch(f"given number of leaves ({n}) is incorrect")
        k = flp2(n)
        if m < k:
            # Target is in the left subtree, which holds exactly k leaves.
            siblings.append(node.right.hash)
            node, n = node.left, k
        else:
            siblings.append(node.left.hash)
            node, n, m = node.right, n - k, m - k

    if not isinstance(node, Leaf):
        raise TreeSizeMismatch("walk ended on a non-leaf node")
    siblings.reverse()
    return node, siblings


def generate_proof(root: Node, n: int, m: int) -> InclusionProof:
    """Build the inclusion proof for leaf *m* of a tree with *n* leaves.

    Raises ``IndexOutOfRange`` when ``m >= n`` and ``TreeSizeMismatch`` when
    *n* does not describe the shape of *root*.
    """
    leaf, path = _descend(root, n, m)
    return InclusionProof(leaf_index=m, tree_size=n, nonce=leaf.nonce, proof=tuple(path))


def locate_leaf(root: Node, n: int, m: int) -> Leaf:
    """Return leaf *m* of a tree with *n* leaves. Errors as ``generate_proof``."""
    leaf, _ = _descend(root, n, m)
    return leaf


def sibling_sides(leaf_index: int, tree_size: int, length: int) -> list[bool]:
    """For each step of an audit path of *length* hashes, whether the sibling
    sits on the left.

    This is the index bookkeeping of RFC 9162 section 2.1.3.2, run without
    hashing. Raises ``ProofSizeMismatch`` when *length* does not fit the
    (leaf_index, tree_size) pair.
    """
    if leaf_index < 0 or leaf_index >= tree_size:
        raise IndexOutOfRange(
            f"leaf index {leaf_index} is impossible for tree size {tree_size}"
        )

    fn = leaf_index
    sn = tree_size - 1
    sides: list[bool] = []
    for _ in range(length):
        if sn == 0:
            raise ProofSizeMismatch("proof is longer than the tree allows")
        if fn & 1 or fn == sn:
            sides.append(True)
            # Skip levels where this position had no sibling.
            while not fn & 1 and fn != 0:
                fn >>= 1
                sn >>= 1
        else:
            sides.append(False)
        fn >>= 1
        sn >>= 1

    if sn != 0:
        raise ProofSizeMismatch("proof is shorter than the tree requires")
    return sides


def fold_audit_path(
    leaf_hash: bytes, leaf_index: int, tree_size: int, path: Sequence[bytes]
) -> bytes:
    """Recompute a root hash from a leaf hash and its audit path."""
    r = leaf_hash
    for p, on_left in zip(path, sibling_sides(leaf_index, tree_size, len(path))):
        r = hash_children(p, r) if on_left else hash_children(r, p)
    return r


def verify_proof(
    proof: InclusionProof,
    stream: BinaryIO,
    *,
    chunk_size: int = CHUNK_SIZE,
    on_read: Callable[[int], None] | None = None,
) -> bytes:
    """Return the candidate root for *proof* and the leaf content in *stream*.

    A mismatch against the expected root is not an error; only a proof that
    cannot be folded at all raises.
    """
    if proof.leaf_index < 0 or proof.leaf_index >= proof.tree_size:
        raise IndexOutOfRange(
            f"leaf index {proof.leaf_index} is impossible for tree size {proof.tree_size}"
        )
    leaf_hash = hash_leaf(stream, proof.nonce, chunk_size=chunk_size, on_read=on_read)
    return fold_audit_path(leaf_hash, proof.leaf_index, proof.tree_size, proof.proof)


def verify_inclusion(proof: InclusionProof, stream: BinaryIO, expected_root: bytes) -> bool:
    """True when *stream* and *proof* reproduce *expected_root*."""
    return hmac.compare_digest(verify_proof(proof, stream), expected_root)
