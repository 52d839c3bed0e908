"""
File fingerprinting: SHA-256 digests for integrity and dedup checks.
"""

import hashlib

_CHUNK = 8192


def compute_bytes_hash(data: bytes, algorithm: str = "sha256") -> str:
    """Hex digest of an in-memory buffer."""
    return hashlib.new(algorithm, data).hexdigest()


def compute_file_hash(filepath: str, algorithm: str = "sha256") -> str:
    """Hex digest of a file on disk, read in chunks."""
    h = hashlib.new(algorithm)
    with open(filepath, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()
