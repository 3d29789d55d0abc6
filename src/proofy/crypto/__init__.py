"""Hashing and anchoring primitives."""

from proofy.crypto.anchor import AnchorRecord, simulate_anchor
from proofy.crypto.hashing import canonical_hash, sha256_file

__all__ = ["AnchorRecord", "canonical_hash", "sha256_file", "simulate_anchor"]
