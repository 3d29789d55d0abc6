"""Content hashing — the SHA-256 fingerprint a proof is built on.

Files are hashed as raw bytes: the file is its own canonical form.
Structured data (rights payloads, audit events) is hashed in canonical
JSON form: sorted keys, Unicode preserved, UTF-8 encoded, so the same
data always produces the same digest regardless of key ordering.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

CHUNK_SIZE = 1024 * 1024


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    """Compute the SHA-256 hex digest of a file, streaming in chunks."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def canonical_json(data: Any) -> bytes:
    return json.dumps(data, sort_keys=True, ensure_ascii=False).encode("utf-8")


def canonical_hash(data: Any) -> str:
    """SHA-256 of the canonical JSON encoding of data."""
    return hashlib.sha256(canonical_json(data)).hexdigest()
