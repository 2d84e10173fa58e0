"""Leaf and internal-node hashing.

The tree follows Certificate Transparency (RFC 9162 section 2.1) with BLAKE3
in place of SHA-256 and a random nonce mixed into every leaf, so a leaf hash
does not reveal the plain content hash of a well-known file.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from typing import BinaryIO

import blake3

from merkdir.merkle.models import IOFailure, Leaf, RandomnessFailure

HASH_SIZE = 32  # 256 bits
NONCE_SIZE = 16  # 128 bits
CHUNK_SIZE = 1 << 20

LEAF_PREFIX = b"\x00"
NODE_PREFIX = b"\x01"

EMPTY_HASH: bytes = blake3.blake3(b"").digest(length=HASH_SIZE)


def generate_nonce() -> bytes:
    """Return NONCE_SIZE bytes from the OS CSPRNG."""
    try:
        return secrets.token_bytes(NONCE_SIZE)
    except (OSError, NotImplementedError) as e:
        raise RandomnessFailure(f"could not generate nonce: {e}") from e


def hash_leaf(
    stream: BinaryIO,
    nonce: bytes,
    *,
    chunk_size: int = CHUNK_SIZE,
    on_read: Callable[[int], None] | None = None,
    name: str | None = None,
) -> bytes:
    """Hash ``0x00 || nonce || stream contents``.

    The stream is consumed in chunks until EOF. *on_read* is called with the
    size of every chunk, which lets callers drive a progress bar.
    """
    hasher = blake3.blake3()
    hasher.update(LEAF_PREFIX)
    hasher.update(nonce)
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            hasher.update(chunk)
            if on_read is not None:
                on_read(len(chunk))
    except OSError as e:
        raise IOFailure(name, e) from e
    return hasher.digest(length=HASH_SIZE)


def hash_children(left: bytes, right: bytes) -> bytes:
    """Hash ``0x01 || left || right``."""
    hasher = blake3.blake3()
    hasher.update(NODE_PREFIX)
    hasher.update(left)
    hasher.update(right)
    return hasher.digest(length=HASH_SIZE)


def create_leaf(
    name: str,
    stream: BinaryIO,
    nonce: bytes | None = None,
    *,
    chunk_size: int = CHUNK_SIZE,
    on_read: Callable[[int], None] | None = None,
) -> Leaf:
    """Hash *stream* into a leaf node named *name*.

    A fresh random nonce is generated when none is given. Raises
    ``RandomnessFailure`` or ``IOFailure``.
    """
    if nonce is None:
        nonce = generate_nonce()
    digest = hash_leaf(stream, nonce, chunk_size=chunk_size, on_read=on_read, name=name)
    return Leaf(name=name, nonce=nonce, hash=digest)
