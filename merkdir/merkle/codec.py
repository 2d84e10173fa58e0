"""On-disk container format for trees and inclusion proofs.

Layout: the magic bytes ``merkdir``, one version byte, then a single CBOR
item. Field names match the files written by the Go ``merkdir`` tool, and
optional node fields are omitted so a node's shape can be read back from
which keys are present.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import cbor2

from merkdir.merkle.models import (
    EmptyTree,
    InclusionProof,
    Internal,
    InvalidContainer,
    Leaf,
    Node,
)

if TYPE_CHECKING:
    from merkdir.merkle.tree import MerkleTree

MAGIC = b"merkdir"
# Version 0 is reserved as invalid.
VERSION = 1
HEADER = MAGIC + bytes([VERSION])


# ------------------------------------------------------------------
# Nodes
# ------------------------------------------------------------------


def encode_node(node: Node) -> dict[str, Any]:
    if isinstance(node, Internal):
        return {
            "Hash": node.hash,
            "Left": encode_node(node.left),
            "Right": encode_node(node.right),
        }
    if isinstance(node, Leaf):
        return {"Hash": node.hash, "Name": node.name, "Nonce": node.nonce}
    return {"Hash": node.hash}


def decode_node(obj: Any, root: bool = True) -> Node:
    """Decode a node; the empty-tree shape is only accepted when *root* is set."""
    if not isinstance(obj, dict) or not isinstance(obj.get("Hash"), bytes):
        raise InvalidContainer("node without a hash")
    keys = set(obj) - {"Hash"}
    if keys == {"Left", "Right"}:
        return Internal(
            left=decode_node(obj["Left"], root=False),
            right=decode_node(obj["Right"], root=False),
            hash=obj["Hash"],
        )
    if keys == {"Name", "Nonce"}:
        name, nonce = obj["Name"], obj["Nonce"]
        if not isinstance(name, str) or not isinstance(nonce, bytes):
            raise InvalidContainer("malformed leaf node")
        return Leaf(name=name, nonce=nonce, hash=obj["Hash"])
    if not keys:
        if not root:
            raise InvalidContainer("empty-tree node below the root")
        return EmptyTree(hash=obj["Hash"])
    raise InvalidContainer(f"node has an invalid field set: {sorted(keys)}")


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


def _decode_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidContainer(f"bad creation time: {value!r}") from e
    if isinstance(value, str):
        try:
            return _decode_time(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError as e:
            raise InvalidContainer(f"bad creation time: {value!r}") from e
    raise InvalidContainer(f"bad creation time: {value!r}")


def encode_tree(tree: MerkleTree) -> dict[str, Any]:
    files = dict(sorted(tree.files.items(), key=lambda kv: kv[1]))
    return {
        "Path": tree.path,
        "Files": files,
        "CreatedAt": int(tree.created_at.timestamp()),
        "Root": encode_node(tree.root),
    }


def decode_tree(obj: Any) -> MerkleTree:
    from merkdir.merkle.tree import MerkleTree

    if not isinstance(obj, dict) or not {"Path", "Files", "CreatedAt", "Root"} <= set(obj):
        raise InvalidContainer("payload is not a tree record")
    files = obj["Files"]
    if not isinstance(files, dict) or not all(
        isinstance(k, str) and isinstance(v, int) for k, v in files.items()
    ):
        raise InvalidContainer("malformed file index")
    if not isinstance(obj["Path"], str):
        raise InvalidContainer("malformed source path")
    root = decode_node(obj["Root"])
    if isinstance(root, EmptyTree) != (not files):
        raise InvalidContainer("root shape does not match the file index")
    return MerkleTree(
        path=obj["Path"],
        files=dict(files),
        created_at=_decode_time(obj["CreatedAt"]),
        root=root,
    )


def encode_proof(proof: InclusionProof) -> dict[str, Any]:
    return {
        "LeafIndex": proof.leaf_index,
        "TreeSize": proof.tree_size,
        "Nonce": proof.nonce,
        "Proof": list(proof.proof),
    }


def decode_proof(obj: Any) -> InclusionProof:
    if not isinstance(obj, dict) or not {"LeafIndex", "TreeSize", "Nonce"} <= set(obj):
        raise InvalidContainer("payload is not an inclusion proof record")
    path = obj.get("Proof") or []
    if not isinstance(path, list) or not all(isinstance(p, bytes) for p in path):
        raise InvalidContainer("malformed audit path")
    leaf_index, tree_size = obj["LeafIndex"], obj["TreeSize"]
    if not isinstance(leaf_index, int) or not isinstance(tree_size, int):
        raise InvalidContainer("malformed leaf index or tree size")
    nonce = obj["Nonce"]
    if nonce is None:
        nonce = b""
    elif not isinstance(nonce, bytes):
        raise InvalidContainer("malformed nonce")
    return InclusionProof(
        leaf_index=leaf_index,
        tree_size=tree_size,
        nonce=nonce,
        proof=tuple(path),
    )


# ------------------------------------------------------------------
# Container
# ------------------------------------------------------------------


def pack(payload: dict[str, Any]) -> bytes:
    return HEADER + cbor2.dumps(payload)


def unpack(data: bytes) -> Any:
    """Check the header and decode the CBOR payload."""
    if len(data) < len(HEADER) or data[: len(MAGIC)] != MAGIC:
        raise InvalidContainer("invalid file header")
    version = data[len(MAGIC)]
    if version != VERSION:
        raise InvalidContainer(f"unsupported file version {version}")
    try:
        return cbor2.loads(data[len(HEADER):])
    except cbor2.CBORDecodeError as e:
        raise InvalidContainer(f"could not decode payload: {e}") from e


def dump_tree(tree: MerkleTree) -> bytes:
    return pack(encode_tree(tree))


def load_tree(data: bytes) -> MerkleTree:
    return decode_tree(unpack(data))


def dump_proof(proof: InclusionProof) -> bytes:
    return pack(encode_proof(proof))


def load_proof(data: bytes) -> InclusionProof:
    return decode_proof(unpack(data))
