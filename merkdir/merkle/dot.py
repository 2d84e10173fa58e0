"""Render a tree in the DOT language, for graphviz."""

from __future__ import annotations

from typing import TextIO

from merkdir.merkle.models import Internal, Leaf, Node


def _label(node: Node) -> str:
    # Leaves are named by file, everything else by a short hash prefix.
    if isinstance(node, Leaf):
        return node.name
    return node.hash[:3].hex()


def _edges(node: Node, out: TextIO) -> None:
    if not isinstance(node, Internal):
        return
    for child in (node.left, node.right):
        out.write(f'"{_label(node)}" -> "{_label(child)}"\n')
        _edges(child, out)


def dot_graph(root: Node, out: TextIO) -> None:
    """Write a complete digraph for the tree under *root* to *out*."""
    out.write(f'digraph "{root.hash.hex()}" {{\n')
    _edges(root, out)
    out.write("}\n")
