"""merkdir: Merkle tree fingerprints of directories, with inclusion proofs."""

__version__ = "0.1.0"
