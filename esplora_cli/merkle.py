"""Merkle tree helpers for Bitcoin transaction commitments.

All functions here operate on hashes in *internal* byte order, i.e. the order
in which they appear inside consensus-serialized data. Explorer APIs and block
explorers display the same hashes byte-reversed; callers convert with
:func:`from_display_hex` / :func:`to_display_hex` at the edges.
"""

from __future__ import annotations

import hashlib
from typing import List, Sequence, Tuple

from .errors import BadEncodingError


def hash256(data: bytes) -> bytes:
    """Return Bitcoin's double SHA-256 digest of *data*."""

    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def from_display_hex(value: str) -> bytes:
    """Convert a displayed (byte-reversed) hash into internal byte order."""

    return bytes.fromhex(value)[::-1]


def to_display_hex(value: bytes) -> str:
    return value[::-1].hex()


def merkle_root(leaves: Sequence[bytes]) -> bytes:
    """Compute the merkle root of *leaves*.

    Odd levels duplicate their last node, matching the consensus rule used
    for block headers.
    """

    if not leaves:
        raise ValueError("cannot compute the merkle root of an empty list")
    level = list(leaves)
    while len(level) > 1:
        if len(level) % 2:
            level.append(level[-1])
        level = [hash256(level[i] + level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


def root_from_branch(leaf: bytes, branch: Sequence[bytes], position: int) -> bytes:
    """Fold *branch* into *leaf* and return the resulting root.

    At level ``i`` the sibling sits on the left when bit ``i`` of *position*
    is set, and on the right otherwise.
    """

    current = leaf
    for level, sibling in enumerate(branch):
        if (position >> level) & 1:
            current = hash256(sibling + current)
        else:
            current = hash256(current + sibling)
    return current


def _tree_width(total: int, height: int) -> int:
    return (total + (1 << height) - 1) >> height


def extract_partial_tree(
    total_transactions: int, hashes: Sequence[bytes], flags: bytes
) -> Tuple[bytes, List[Tuple[int, bytes]]]:
    """Walk a BIP37 partial merkle tree.

    Returns the computed root and the ``(position, txid)`` pairs flagged as
    matches. Any structural inconsistency raises :class:`BadEncodingError`.
    """

    if total_transactions == 0:
        raise BadEncodingError("partial merkle tree has zero transactions")
    if len(hashes) > total_transactions:
        raise BadEncodingError("partial merkle tree has more hashes than transactions")
    bits = [(flags[i // 8] >> (i % 8)) & 1 for i in range(len(flags) * 8)]
    if len(bits) < len(hashes):
        raise BadEncodingError("partial merkle tree has fewer flag bits than hashes")

    height = 0
    while _tree_width(total_transactions, height) > 1:
        height += 1

    matches: List[Tuple[int, bytes]] = []
    bits_used = 0
    hashes_used = 0

    def traverse(level: int, position: int) -> bytes:
        nonlocal bits_used, hashes_used
        if bits_used >= len(bits):
            raise BadEncodingError("partial merkle tree overflowed its flag bits")
        parent_of_match = bits[bits_used]
        bits_used += 1
        if level == 0 or not parent_of_match:
            if hashes_used >= len(hashes):
                raise BadEncodingError("partial merkle tree overflowed its hash list")
            node = hashes[hashes_used]
            hashes_used += 1
            if level == 0 and parent_of_match:
                matches.append((position, node))
            return node
        left = traverse(level - 1, position * 2)
        if position * 2 + 1 < _tree_width(total_transactions, level - 1):
            right = traverse(level - 1, position * 2 + 1)
            # identical siblings would let two different trees share a root
            if right == left:
                raise BadEncodingError("partial merkle tree has duplicate sibling hashes")
        else:
            right = left
        return hash256(left + right)

    root = traverse(height, 0)
    if (bits_used + 7) // 8 != len(flags):
        raise BadEncodingError("partial merkle tree did not consume all flag bytes")
    if hashes_used != len(hashes):
        raise BadEncodingError("partial merkle tree did not consume all hashes")
    return root, matches
