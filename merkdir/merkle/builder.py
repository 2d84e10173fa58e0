"""Tree construction over an ordered leaf sequence (RFC 9162 section 2.1.1)."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from merkdir.merkle.hashing import EMPTY_HASH, hash_children
from merkdir.merkle.models import EmptyTree, Internal, Leaf, Node

logger = logging.getLogger(__name__)

EMPTY_TREE = EmptyTree(hash=EMPTY_HASH)


def flp2(n: int) -> int:
    """Largest power of two strictly less than *n* (``n >= 2``)."""
    if n < 2:
        raise ValueError(f"flp2 is undefined for n < 2, got {n}")
    return 1 << ((n - 1).bit_length() - 1)


def build_tree(leaves: Sequence[Leaf]) -> Node:
    """Combine *leaves* into a single root, in the order given.

    The left subtree always holds the largest power of two strictly below
    the leaf count; a single leaf is promoted as-is.
    """
    root = _build(leaves, 0, len(leaves))
    logger.debug("Built tree of %d leaves, root %s", len(leaves), root.hash.hex())
    return root


def _build(leaves: Sequence[Leaf], start: int, end: int) -> Node:
    n = end - start
    if n == 0:
        return EMPTY_TREE
    if n == 1:
        return leaves[start]
    k = flp2(n)
    left = _build(leaves, start, start + k)
    right = _build(leaves, start + k, end)
    return Internal(left=left, right=right, hash=hash_children(left.hash, right.hash))
