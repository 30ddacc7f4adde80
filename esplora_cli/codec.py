"""Consensus serialization of transactions, headers, blocks and merkle blocks.

Decoding is strict: a structure must consume its input exactly. Running out
of bytes raises :class:`TruncatedError`, leftover bytes raise
:class:`TrailingBytesError` and rule violations (non-canonical compact sizes,
unknown witness flags, invalid hex) raise :class:`BadEncodingError`.
"""

from __future__ import annotations

import logging
import re
from typing import List

from .errors import BadEncodingError, TrailingBytesError, TruncatedError
from .model import Block, BlockHeader, MerkleBlock, Transaction, TxIn, TxOut

logger = logging.getLogger(__name__)

MAX_COMPACT_SIZE = 0xFFFFFFFFFFFFFFFF
SEGWIT_MARKER = 0x00
SEGWIT_FLAG = 0x01

# smallest possible encodings, used to reject absurd element counts early
_MIN_TXIN_SIZE = 32 + 4 + 1 + 4
_MIN_TXOUT_SIZE = 8 + 1
_MIN_TX_SIZE = 4 + 1 + 1 + 4

_HEX_RE = re.compile(r"[0-9a-fA-F]*")


class ByteReader:
    """Cursor over an immutable byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def peek(self, size: int = 1) -> bytes:
        return self._data[self._offset : self._offset + size]

    def read(self, size: int, field: str) -> bytes:
        if size > self.remaining:
            raise TruncatedError(field, size, self.remaining)
        chunk = self._data[self._offset : self._offset + size]
        self._offset += size
        return chunk

    def read_uint(self, size: int, field: str) -> int:
        return int.from_bytes(self.read(size, field), "little")

    def read_int(self, size: int, field: str) -> int:
        return int.from_bytes(self.read(size, field), "little", signed=True)

    def read_hash(self, field: str) -> str:
        return self.read(32, field)[::-1].hex()

    def read_compact_size(self, field: str) -> int:
        prefix = self.read_uint(1, field)
        if prefix < 0xFD:
            return prefix
        if prefix == 0xFD:
            value, minimum = self.read_uint(2, field), 0xFD
        elif prefix == 0xFE:
            value, minimum = self.read_uint(4, field), 0x10000
        else:
            value, minimum = self.read_uint(8, field), 0x100000000
        if value < minimum:
            raise BadEncodingError(f"non-canonical compact size for {field}")
        return value

    def read_count(self, field: str, item_size: int) -> int:
        count = self.read_compact_size(field)
        if count * item_size > self.remaining:
            raise TruncatedError(field, count * item_size, self.remaining)
        return count

    def read_var_bytes(self, field: str) -> bytes:
        size = self.read_compact_size(field)
        return self.read(size, field)

    def finish(self, structure: str) -> None:
        if self.remaining:
            raise TrailingBytesError(structure, self.remaining)


def encode_compact_size(value: int) -> bytes:
    """Serialize *value* using the smallest compact-size class."""

    if value < 0 or value > MAX_COMPACT_SIZE:
        raise ValueError(f"compact size out of range: {value}")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def decode_compact_size(data: bytes) -> int:
    reader = ByteReader(data)
    value = reader.read_compact_size("compact size")
    reader.finish("compact size")
    return value


def _var_bytes(data: bytes) -> bytes:
    return encode_compact_size(len(data)) + data


def _hash_bytes(value: str) -> bytes:
    return bytes.fromhex(value)[::-1]


def bytes_from_hex(text: str | bytes, field: str = "hex") -> bytes:
    """Decode hex text, tolerating surrounding whitespace."""

    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError as exc:
            raise BadEncodingError(f"{field} is not ASCII hex text") from exc
    cleaned = text.strip()
    if not _HEX_RE.fullmatch(cleaned):
        raise BadEncodingError(f"{field} is not valid hex")
    if len(cleaned) % 2:
        raise BadEncodingError(f"{field} has an odd number of hex digits")
    return bytes.fromhex(cleaned)


# Transactions --------------------------------------------------------------


def _read_transaction(reader: ByteReader) -> Transaction:
    version = reader.read_int(4, "version")
    segwit = reader.peek(1) == bytes([SEGWIT_MARKER])
    if segwit:
        reader.read(1, "segwit marker")
        flag = reader.read_uint(1, "segwit flag")
        if flag != SEGWIT_FLAG:
            raise BadEncodingError(f"unknown transaction flag 0x{flag:02x}")

    input_count = reader.read_count("input count", _MIN_TXIN_SIZE)
    raw_inputs = []
    for index in range(input_count):
        previous_txid = reader.read_hash(f"vin[{index}].txid")
        previous_index = reader.read_uint(4, f"vin[{index}].vout")
        script_sig = reader.read_var_bytes(f"vin[{index}].script_sig")
        sequence = reader.read_uint(4, f"vin[{index}].sequence")
        raw_inputs.append((previous_txid, previous_index, script_sig, sequence))

    output_count = reader.read_count("output count", _MIN_TXOUT_SIZE)
    outputs: List[TxOut] = []
    for index in range(output_count):
        value = reader.read_int(8, f"vout[{index}].value")
        if value < 0:
            raise BadEncodingError(f"vout[{index}].value is negative")
        script_pubkey = reader.read_var_bytes(f"vout[{index}].script_pubkey")
        outputs.append(TxOut(value=value, script_pubkey=script_pubkey))

    witnesses: List[tuple] = [()] * input_count
    if segwit:
        for index in range(input_count):
            item_count = reader.read_count(f"vin[{index}].witness", 1)
            witnesses[index] = tuple(
                reader.read_var_bytes(f"vin[{index}].witness[{item}]")
                for item in range(item_count)
            )
        if not any(witnesses):
            raise BadEncodingError("superfluous witness record")

    lock_time = reader.read_uint(4, "lock_time")
    inputs = tuple(
        TxIn(
            previous_txid=previous_txid,
            previous_index=previous_index,
            script_sig=script_sig,
            sequence=sequence,
            witness=witness,
        )
        for (previous_txid, previous_index, script_sig, sequence), witness in zip(
            raw_inputs, witnesses
        )
    )
    return Transaction(
        version=version, lock_time=lock_time, inputs=inputs, outputs=tuple(outputs)
    )


def decode_transaction(data: bytes) -> Transaction:
    reader = ByteReader(data)
    transaction = _read_transaction(reader)
    reader.finish("transaction")
    return transaction


def encode_transaction(transaction: Transaction, include_witness: bool = True) -> bytes:
    """Serialize *transaction*.

    The segregated-witness layout is used only when *include_witness* is set
    and at least one input carries a witness, so legacy transactions round-trip
    unchanged.
    """

    segwit = include_witness and transaction.has_witness
    parts = [transaction.version.to_bytes(4, "little", signed=True)]
    if segwit:
        parts.append(bytes([SEGWIT_MARKER, SEGWIT_FLAG]))
    parts.append(encode_compact_size(len(transaction.inputs)))
    for txin in transaction.inputs:
        parts.append(_hash_bytes(txin.previous_txid))
        parts.append(txin.previous_index.to_bytes(4, "little"))
        parts.append(_var_bytes(txin.script_sig))
        parts.append(txin.sequence.to_bytes(4, "little"))
    parts.append(encode_compact_size(len(transaction.outputs)))
    for txout in transaction.outputs:
        parts.append(txout.value.to_bytes(8, "little", signed=True))
        parts.append(_var_bytes(txout.script_pubkey))
    if segwit:
        for txin in transaction.inputs:
            parts.append(encode_compact_size(len(txin.witness)))
            parts.extend(_var_bytes(item) for item in txin.witness)
    parts.append(transaction.lock_time.to_bytes(4, "little"))
    return b"".join(parts)


# Headers and blocks --------------------------------------------------------


def _read_block_header(reader: ByteReader) -> BlockHeader:
    return BlockHeader(
        version=reader.read_int(4, "header.version"),
        previous_block_hash=reader.read_hash("header.previous_block_hash"),
        merkle_root=reader.read_hash("header.merkle_root"),
        timestamp=reader.read_uint(4, "header.timestamp"),
        bits=reader.read_uint(4, "header.bits"),
        nonce=reader.read_uint(4, "header.nonce"),
    )


def decode_block_header(data: bytes) -> BlockHeader:
    reader = ByteReader(data)
    header = _read_block_header(reader)
    reader.finish("block header")
    return header


def encode_block_header(header: BlockHeader) -> bytes:
    return b"".join(
        (
            header.version.to_bytes(4, "little", signed=True),
            _hash_bytes(header.previous_block_hash),
            _hash_bytes(header.merkle_root),
            header.timestamp.to_bytes(4, "little"),
            header.bits.to_bytes(4, "little"),
            header.nonce.to_bytes(4, "little"),
        )
    )


def decode_block(data: bytes) -> Block:
    reader = ByteReader(data)
    header = _read_block_header(reader)
    tx_count = reader.read_count("transaction count", _MIN_TX_SIZE)
    transactions = tuple(_read_transaction(reader) for _ in range(tx_count))
    reader.finish("block")
    logger.debug("Decoded block %s with %d transactions", header.block_hash, tx_count)
    return Block(header=header, transactions=transactions)


def encode_block(block: Block) -> bytes:
    parts = [encode_block_header(block.header), encode_compact_size(len(block.transactions))]
    parts.extend(encode_transaction(tx) for tx in block.transactions)
    return b"".join(parts)


# Merkle blocks ------------------------------------------------------------


def decode_merkle_block(data: bytes) -> MerkleBlock:
    reader = ByteReader(data)
    header = _read_block_header(reader)
    total = reader.read_uint(4, "total_transactions")
    hash_count = reader.read_count("hash count", 32)
    hashes = tuple(reader.read_hash(f"hashes[{index}]") for index in range(hash_count))
    flags = reader.read_var_bytes("flags")
    reader.finish("merkle block")
    return MerkleBlock(header=header, total_transactions=total, hashes=hashes, flags=flags)


def encode_merkle_block(merkle_block: MerkleBlock) -> bytes:
    parts = [
        encode_block_header(merkle_block.header),
        merkle_block.total_transactions.to_bytes(4, "little"),
        encode_compact_size(len(merkle_block.hashes)),
    ]
    parts.extend(_hash_bytes(value) for value in merkle_block.hashes)
    parts.append(_var_bytes(merkle_block.flags))
    return b"".join(parts)


def encode_broadcast_payload(raw: bytes | str | Transaction) -> str:
    """Return the hex body posted to ``/tx``.

    Hex text is only checked for being hex; deeper validation is left to the
    server.
    """

    if isinstance(raw, Transaction):
        return encode_transaction(raw).hex()
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).hex()
    return bytes_from_hex(raw, "transaction hex").hex()

