"""Hashing utilities for content deduplication.

Digests are taken over the raw bytes, so only byte-identical uploads collide.
The same worksheet photographed twice, or re-saved with a different JPEG
quality, produces a different digest and is extracted again.
"""

import hashlib
from pathlib import Path
from typing import Union

_CHUNK_SIZE = 1024 * 1024


def hash_bytes(data: bytes) -> str:
    """SHA256 hex digest of raw image bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Union[str, Path]) -> str:
    """SHA256 hex digest of a file on disk, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
