"""Anchoring — binds a file hash to a transaction reference as proof of time.

An anchor records that a given SHA-256 digest was registered for a
creation at a given moment, together with the transaction hash and
block number that witness it.

Submitting real transactions is outside this package. The anchorer is a
pluggable callable; the default one simulates the anchor, producing a
transaction hash derived from the file hash, the public id and the
anchoring time. Simulated anchors are flagged as such on the record.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from proofy.errors import AnchorError

DEFAULT_EXPLORER_BASE_URL = "https://polygonscan.com/tx/"
DEFAULT_CHAIN = "polygon"
SIMULATED_BLOCK_BASE = 65_000_000
SIMULATED_BLOCK_SPAN = 1_000_000


@dataclass(frozen=True)
class AnchorRecord:
    """A record of a successful anchor."""
    sha256_hash: str
    public_id: str
    tx_hash: str
    block_number: int
    chain: str
    timestamp_utc: str
    explorer_url: str
    simulated: bool = False


# (file_hash, public_id, project_type) -> AnchorRecord; raises AnchorError
Anchorer = Callable[[str, str, str], AnchorRecord]


def hash_to_bytes32(digest: str) -> bytes:
    """Convert a SHA-256 hex digest (optionally 0x-prefixed) to 32 raw bytes."""
    clean = digest[2:] if digest.startswith("0x") else digest
    if len(clean) != 64:
        raise AnchorError(f"Invalid hash length: expected 64 chars, got {len(clean)}")
    try:
        return bytes.fromhex(clean)
    except ValueError as e:
        raise AnchorError(f"Invalid hash: {e}") from e


def explorer_url(tx_hash: str, base_url: str = DEFAULT_EXPLORER_BASE_URL) -> str:
    return f"{base_url}{tx_hash}"


def simulate_anchor(
    file_hash: str,
    public_id: str,
    project_type: str = "",
    now: Optional[datetime] = None,
    explorer_base_url: str = DEFAULT_EXPLORER_BASE_URL,
) -> AnchorRecord:
    """Produce a simulated anchor for development and testing.

    Deterministic for a fixed ``now``: the transaction hash is the
    SHA-256 of file hash, public id and timestamp, and the block number
    is derived from that transaction hash.
    """
    hash_to_bytes32(file_hash)
    if now is None:
        now = datetime.now(timezone.utc)
    ts = now.strftime("%Y-%m-%dT%H:%M:%SZ")

    seed = f"{file_hash}{public_id}{ts}".encode("utf-8")
    tx_hash = "0x" + hashlib.sha256(seed).hexdigest()
    block_number = SIMULATED_BLOCK_BASE + int(tx_hash[2:10], 16) % SIMULATED_BLOCK_SPAN

    return AnchorRecord(
        sha256_hash=file_hash,
        public_id=public_id,
        tx_hash=tx_hash,
        block_number=block_number,
        chain=DEFAULT_CHAIN,
        timestamp_utc=ts,
        explorer_url=explorer_url(tx_hash, explorer_base_url),
        simulated=True,
    )


def simulated_anchorer(explorer_base_url: str = DEFAULT_EXPLORER_BASE_URL) -> Anchorer:
    """Anchorer that simulates every anchor against the given explorer."""
    def _anchor(file_hash: str, public_id: str, project_type: str) -> AnchorRecord:
        return simulate_anchor(
            file_hash, public_id, project_type, explorer_base_url=explorer_base_url
        )
    return _anchor
