"""Domain models returned by the Esplora client.

Every value is a frozen dataclass holding tuples rather than lists, so a
decoded object can be shared freely between callers and threads. Hashes are
kept as lowercase hex strings in the byte-reversed order explorers display;
the codec converts them to internal order when serializing.

Optional confirmation data is represented by ``None``. An unconfirmed
transaction never carries a zero height or time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .merkle import (
    extract_partial_tree,
    from_display_hex,
    hash256,
    merkle_root,
    root_from_branch,
    to_display_hex,
)

ZERO_HASH = "00" * 32
COINBASE_INDEX = 0xFFFFFFFF
WITNESS_SCALE_FACTOR = 4

FeeEstimates = Dict[int, float]


@dataclass(frozen=True)
class TransactionStatus:
    """Confirmation state of a transaction."""

    confirmed: bool
    block_height: Optional[int] = None
    block_hash: Optional[str] = None
    block_time: Optional[int] = None

    def __post_init__(self) -> None:
        details = (self.block_height, self.block_hash, self.block_time)
        if self.confirmed and any(value is None for value in details):
            raise ValueError("confirmed status requires block_height, block_hash and block_time")
        if not self.confirmed and any(value is not None for value in details):
            raise ValueError("unconfirmed status cannot carry block details")


@dataclass(frozen=True)
class TxIn:
    previous_txid: str
    previous_index: int
    script_sig: bytes
    sequence: int
    witness: Tuple[bytes, ...] = ()

    @property
    def is_coinbase(self) -> bool:
        return self.previous_txid == ZERO_HASH and self.previous_index == COINBASE_INDEX


@dataclass(frozen=True)
class TxOut:
    value: int
    script_pubkey: bytes


@dataclass(frozen=True)
class Transaction:
    version: int
    lock_time: int
    inputs: Tuple[TxIn, ...]
    outputs: Tuple[TxOut, ...]
    status: Optional[TransactionStatus] = field(default=None, compare=False)

    @property
    def has_witness(self) -> bool:
        return any(txin.witness for txin in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        from .codec import encode_transaction

        return encode_transaction(self, include_witness=include_witness)

    @property
    def txid(self) -> str:
        return to_display_hex(hash256(self.serialize(include_witness=False)))

    @property
    def wtxid(self) -> str:
        return to_display_hex(hash256(self.serialize()))

    @property
    def size(self) -> int:
        return len(self.serialize())

    @property
    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        return base_size * (WITNESS_SCALE_FACTOR - 1) + self.size

    @property
    def vsize(self) -> int:
        return -(-self.weight // WITNESS_SCALE_FACTOR)


@dataclass(frozen=True)
class TransactionInfo:
    """JSON summary of a transaction as served by ``/tx/{txid}``."""

    txid: str
    transaction: Transaction
    size: int
    weight: int
    fee: Optional[int] = None

    @property
    def status(self) -> Optional[TransactionStatus]:
        return self.transaction.status


@dataclass(frozen=True)
class BlockHeader:
    version: int
    previous_block_hash: str
    merkle_root: str
    timestamp: int
    bits: int
    nonce: int

    def serialize(self) -> bytes:
        from .codec import encode_block_header

        return encode_block_header(self)

    @property
    def block_hash(self) -> str:
        return to_display_hex(hash256(self.serialize()))


@dataclass(frozen=True)
class Block:
    header: BlockHeader
    transactions: Tuple[Transaction, ...]

    @property
    def block_hash(self) -> str:
        return self.header.block_hash

    @property
    def txids(self) -> Tuple[str, ...]:
        return tuple(tx.txid for tx in self.transactions)

    def compute_merkle_root(self) -> str:
        leaves = [from_display_hex(txid) for txid in self.txids]
        return to_display_hex(merkle_root(leaves))

    def check_merkle_root(self) -> bool:
        return self.compute_merkle_root() == self.header.merkle_root


@dataclass(frozen=True)
class BlockStatus:
    in_best_chain: bool
    height: Optional[int] = None
    next_best: Optional[str] = None


@dataclass(frozen=True)
class BlockSummary:
    """Snapshot of a block as listed by ``/blocks``."""

    block_hash: str
    height: int
    header: BlockHeader
    tx_count: int
    size: int
    weight: int
    median_time: Optional[int] = None


@dataclass(frozen=True)
class MerkleProof:
    """Electrum-style inclusion proof served by ``/tx/{txid}/merkle-proof``."""

    block_height: int
    merkle: Tuple[str, ...]
    pos: int

    def compute_root(self, txid: str) -> str:
        branch = [from_display_hex(sibling) for sibling in self.merkle]
        return to_display_hex(root_from_branch(from_display_hex(txid), branch, self.pos))

    def verify(self, txid: str, header: BlockHeader) -> bool:
        return self.compute_root(txid) == header.merkle_root


@dataclass(frozen=True)
class MerkleBlock:
    """BIP37 merkle block served by ``/tx/{txid}/merkleblock-proof``."""

    header: BlockHeader
    total_transactions: int
    hashes: Tuple[str, ...]
    flags: bytes

    def extract_matches(self) -> Tuple[str, Tuple[str, ...]]:
        """Return the computed merkle root and the matched txids, in tree order."""

        root, matches = extract_partial_tree(
            self.total_transactions,
            [from_display_hex(value) for value in self.hashes],
            self.flags,
        )
        return to_display_hex(root), tuple(to_display_hex(txid) for _, txid in matches)

    def verify(self, txid: str) -> bool:
        root, matched = self.extract_matches()
        return root == self.header.merkle_root and txid in matched


@dataclass(frozen=True)
class OutputStatus:
    spent: bool
    txid: Optional[str] = None
    vin: Optional[int] = None
    status: Optional[TransactionStatus] = None


@dataclass(frozen=True)
class Tip:
    height: int
    block_hash: str
