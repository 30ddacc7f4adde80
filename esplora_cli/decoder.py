"""Decode Esplora response bodies into typed domain values.

Each endpoint declares a :class:`ResponseShape`: how the body is encoded and
which domain value it carries. JSON bodies are checked field by field, so a
malformed server answer fails with :class:`InvalidResponseError` naming the
offending field (``vin[0].txid``, ``status.block_height`` ...) instead of a
bare ``KeyError``. Binary and hex bodies are handed to :mod:`esplora_cli.codec`.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Tuple

from .codec import (
    bytes_from_hex,
    decode_block,
    decode_block_header,
    decode_merkle_block,
    decode_transaction,
)
from .errors import InvalidResponseError
from .model import (
    COINBASE_INDEX,
    ZERO_HASH,
    BlockHeader,
    BlockStatus,
    BlockSummary,
    FeeEstimates,
    MerkleProof,
    OutputStatus,
    Transaction,
    TransactionInfo,
    TransactionStatus,
    TxIn,
    TxOut,
)

logger = logging.getLogger(__name__)

UINT32_MAX = 0xFFFFFFFF
INT64_MAX = 2**63 - 1
_HASH_RE = re.compile(r"[0-9a-fA-F]{64}")
_INTEGER_RE = re.compile(r"[0-9]+")
_HEX_RE = re.compile(r"(?:[0-9a-fA-F]{2})*")


class Encoding(str, Enum):
    JSON_OBJECT = "json-object"
    JSON_ARRAY = "json-array"
    PLAIN_TEXT = "plain-text"
    RAW_BINARY = "raw-binary"
    HEX_TEXT = "hex-text"


@dataclass(frozen=True)
class ResponseShape:
    """Body encoding plus the kind of value it carries."""

    encoding: Encoding
    kind: str

    def __str__(self) -> str:
        return f"{self.encoding.value}:{self.kind}"


# Field helpers -------------------------------------------------------------


def _path(parent: str, name: str) -> str:
    return f"{parent}.{name}" if parent else name


def _require(obj: Mapping[str, Any], name: str, parent: str = "") -> Any:
    if name not in obj or obj[name] is None:
        raise InvalidResponseError(_path(parent, name), "missing")
    return obj[name]


def _optional(obj: Mapping[str, Any], name: str) -> Any:
    return obj.get(name)


def _as_object(value: Any, field: str) -> Mapping[str, Any]:
    if not isinstance(value, dict):
        raise InvalidResponseError(field, "expected a JSON object")
    return value


def _as_list(value: Any, field: str) -> List[Any]:
    if not isinstance(value, list):
        raise InvalidResponseError(field, "expected a JSON array")
    return value


def _as_bool(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidResponseError(field, f"expected a boolean, got {value!r}")
    return value


def _as_int(value: Any, field: str, minimum: int = 0, maximum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidResponseError(field, f"expected an integer, got {value!r}")
    if value < minimum:
        raise InvalidResponseError(field, f"{value} is below {minimum}")
    if maximum is not None and value > maximum:
        raise InvalidResponseError(field, f"{value} exceeds {maximum}")
    return value


def _as_float(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidResponseError(field, f"expected a number, got {value!r}")
    return float(value)


def _as_hash(value: Any, field: str) -> str:
    if not isinstance(value, str) or not _HASH_RE.fullmatch(value):
        raise InvalidResponseError(field, "expected a 32-byte hex hash")
    return value.lower()


def _as_hex(value: Any, field: str) -> bytes:
    if not isinstance(value, str):
        raise InvalidResponseError(field, "expected a hex string")
    if not _HEX_RE.fullmatch(value):
        raise InvalidResponseError(field, "invalid hex")
    return bytes.fromhex(value)


def _as_version(value: Any, field: str) -> int:
    version = _as_int(value, field, minimum=-(2**31), maximum=UINT32_MAX)
    # versions are signed on the wire; some servers print them unsigned
    if version >= 2**31:
        version -= 2**32
    return version


def _check_unconfirmed_fields(obj: Mapping[str, Any], parent: str, names: tuple) -> None:
    for name in names:
        if obj.get(name) is not None:
            raise InvalidResponseError(_path(parent, name), "present on an unconfirmed entry")


# JSON schemas --------------------------------------------------------------


def decode_transaction_status(value: Any, parent: str = "") -> TransactionStatus:
    obj = _as_object(value, parent or "body")
    confirmed = _as_bool(_require(obj, "confirmed", parent), _path(parent, "confirmed"))
    if not confirmed:
        _check_unconfirmed_fields(obj, parent, ("block_height", "block_hash", "block_time"))
        return TransactionStatus(confirmed=False)
    return TransactionStatus(
        confirmed=True,
        block_height=_as_int(
            _require(obj, "block_height", parent), _path(parent, "block_height")
        ),
        block_hash=_as_hash(_require(obj, "block_hash", parent), _path(parent, "block_hash")),
        block_time=_as_int(_require(obj, "block_time", parent), _path(parent, "block_time")),
    )


def _decode_vin(value: Any, parent: str) -> TxIn:
    obj = _as_object(value, parent)
    previous_txid = _as_hash(_require(obj, "txid", parent), _path(parent, "txid"))
    previous_index = _as_int(
        _require(obj, "vout", parent), _path(parent, "vout"), maximum=UINT32_MAX
    )
    is_coinbase = obj.get("is_coinbase")
    if is_coinbase is not None:
        # coinbase inputs have no previous output to point at
        expected = previous_txid == ZERO_HASH and previous_index == COINBASE_INDEX
        if _as_bool(is_coinbase, _path(parent, "is_coinbase")) != expected:
            raise InvalidResponseError(
                _path(parent, "vout"), "previous output does not match is_coinbase"
            )
    witness_items = _optional(obj, "witness") or []
    witness_path = _path(parent, "witness")
    witness = tuple(
        _as_hex(item, f"{witness_path}[{index}]")
        for index, item in enumerate(_as_list(witness_items, witness_path))
    )
    return TxIn(
        previous_txid=previous_txid,
        previous_index=previous_index,
        script_sig=_as_hex(_require(obj, "scriptsig", parent), _path(parent, "scriptsig")),
        sequence=_as_int(
            _require(obj, "sequence", parent), _path(parent, "sequence"), maximum=UINT32_MAX
        ),
        witness=witness,
    )


def _decode_vout(value: Any, parent: str) -> TxOut:
    obj = _as_object(value, parent)
    return TxOut(
        value=_as_int(
            _require(obj, "value", parent), _path(parent, "value"), maximum=INT64_MAX
        ),
        script_pubkey=_as_hex(
            _require(obj, "scriptpubkey", parent), _path(parent, "scriptpubkey")
        ),
    )


def decode_transaction_info(value: Any, parent: str = "") -> TransactionInfo:
    obj = _as_object(value, parent or "body")
    txid = _as_hash(_require(obj, "txid", parent), _path(parent, "txid"))
    version = _as_version(_require(obj, "version", parent), _path(parent, "version"))
    vin_path = _path(parent, "vin")
    vout_path = _path(parent, "vout")
    inputs = tuple(
        _decode_vin(item, f"{vin_path}[{index}]")
        for index, item in enumerate(_as_list(_require(obj, "vin", parent), vin_path))
    )
    outputs = tuple(
        _decode_vout(item, f"{vout_path}[{index}]")
        for index, item in enumerate(_as_list(_require(obj, "vout", parent), vout_path))
    )
    status = None
    if obj.get("status") is not None:
        status = decode_transaction_status(obj["status"], _path(parent, "status"))
    transaction = Transaction(
        version=version,
        lock_time=_as_int(
            _require(obj, "locktime", parent), _path(parent, "locktime"), maximum=UINT32_MAX
        ),
        inputs=inputs,
        outputs=outputs,
        status=status,
    )
    if transaction.txid != txid:
        raise InvalidResponseError(
            _path(parent, "txid"), f"does not match the decoded transaction ({transaction.txid})"
        )
    fee = obj.get("fee")
    return TransactionInfo(
        txid=txid,
        transaction=transaction,
        size=_as_int(_require(obj, "size", parent), _path(parent, "size")),
        weight=_as_int(_require(obj, "weight", parent), _path(parent, "weight")),
        fee=None if fee is None else _as_int(fee, _path(parent, "fee")),
    )


def decode_block_status(value: Any, parent: str = "") -> BlockStatus:
    obj = _as_object(value, parent or "body")
    in_best_chain = _as_bool(
        _require(obj, "in_best_chain", parent), _path(parent, "in_best_chain")
    )
    height = obj.get("height")
    next_best = obj.get("next_best")
    return BlockStatus(
        in_best_chain=in_best_chain,
        height=None if height is None else _as_int(height, _path(parent, "height")),
        next_best=None if next_best is None else _as_hash(next_best, _path(parent, "next_best")),
    )


def decode_block_summary(value: Any, parent: str = "") -> BlockSummary:
    obj = _as_object(value, parent or "body")
    previous = obj.get("previousblockhash")
    header = BlockHeader(
        version=_as_version(_require(obj, "version", parent), _path(parent, "version")),
        # the genesis block has no parent; its header commits to zeros
        previous_block_hash=ZERO_HASH
        if previous is None
        else _as_hash(previous, _path(parent, "previousblockhash")),
        merkle_root=_as_hash(_require(obj, "merkle_root", parent), _path(parent, "merkle_root")),
        timestamp=_as_int(
            _require(obj, "timestamp", parent), _path(parent, "timestamp"), maximum=UINT32_MAX
        ),
        bits=_as_int(_require(obj, "bits", parent), _path(parent, "bits"), maximum=UINT32_MAX),
        nonce=_as_int(_require(obj, "nonce", parent), _path(parent, "nonce"), maximum=UINT32_MAX),
    )
    block_hash = _as_hash(_require(obj, "id", parent), _path(parent, "id"))
    if header.block_hash != block_hash:
        raise InvalidResponseError(
            _path(parent, "id"), f"does not match the header hash ({header.block_hash})"
        )
    median_time = obj.get("mediantime")
    return BlockSummary(
        block_hash=block_hash,
        height=_as_int(_require(obj, "height", parent), _path(parent, "height")),
        header=header,
        tx_count=_as_int(_require(obj, "tx_count", parent), _path(parent, "tx_count")),
        size=_as_int(_require(obj, "size", parent), _path(parent, "size")),
        weight=_as_int(_require(obj, "weight", parent), _path(parent, "weight")),
        median_time=None
        if median_time is None
        else _as_int(median_time, _path(parent, "mediantime")),
    )


def decode_merkle_proof(value: Any, parent: str = "") -> MerkleProof:
    obj = _as_object(value, parent or "body")
    merkle_path = _path(parent, "merkle")
    siblings = tuple(
        _as_hash(item, f"{merkle_path}[{index}]")
        for index, item in enumerate(_as_list(_require(obj, "merkle", parent), merkle_path))
    )
    pos = _as_int(_require(obj, "pos", parent), _path(parent, "pos"))
    if pos >> len(siblings):
        raise InvalidResponseError(
            _path(parent, "pos"), f"position {pos} does not fit a tree of depth {len(siblings)}"
        )
    return MerkleProof(
        block_height=_as_int(
            _require(obj, "block_height", parent), _path(parent, "block_height")
        ),
        merkle=siblings,
        pos=pos,
    )


def decode_output_status(value: Any, parent: str = "") -> OutputStatus:
    obj = _as_object(value, parent or "body")
    spent = _as_bool(_require(obj, "spent", parent), _path(parent, "spent"))
    if not spent:
        _check_unconfirmed_fields(obj, parent, ("txid", "vin", "status"))
        return OutputStatus(spent=False)
    return OutputStatus(
        spent=True,
        txid=_as_hash(_require(obj, "txid", parent), _path(parent, "txid")),
        vin=_as_int(_require(obj, "vin", parent), _path(parent, "vin"), maximum=UINT32_MAX),
        status=decode_transaction_status(
            _require(obj, "status", parent), _path(parent, "status")
        ),
    )


def decode_fee_estimates(value: Any, parent: str = "") -> FeeEstimates:
    obj = _as_object(value, parent or "body")
    estimates: FeeEstimates = {}
    for key, rate in obj.items():
        field = _path(parent, key)
        if not _INTEGER_RE.fullmatch(key) or key != str(int(key)) or int(key) < 1:
            raise InvalidResponseError(field, "confirmation target must be a positive integer")
        fee_rate = _as_float(rate, field)
        if not math.isfinite(fee_rate):
            raise InvalidResponseError(field, "fee rate is not finite")
        if fee_rate < 0:
            raise InvalidResponseError(field, "fee rate is negative")
        estimates[int(key)] = fee_rate
    return estimates


# Plain text ----------------------------------------------------------------


def _text(body: bytes) -> str:
    try:
        return body.decode("ascii").strip()
    except UnicodeDecodeError as exc:
        raise InvalidResponseError("body", "expected ASCII text") from exc


def parse_integer(body: bytes) -> int:
    text = _text(body)
    if not _INTEGER_RE.fullmatch(text):
        raise InvalidResponseError("body", f"expected an integer, got {text!r}")
    return int(text)


def parse_hash(body: bytes) -> str:
    return _as_hash(_text(body), "body")


# Dispatch ------------------------------------------------------------------

JSON_DECODERS: Dict[str, Callable[[Any, str], Any]] = {
    "transaction_info": decode_transaction_info,
    "transaction_status": decode_transaction_status,
    "block_status": decode_block_status,
    "block_summary": decode_block_summary,
    "merkle_proof": decode_merkle_proof,
    "output_status": decode_output_status,
    "fee_estimates": decode_fee_estimates,
}

TEXT_PARSERS: Dict[str, Callable[[bytes], Any]] = {
    "integer": parse_integer,
    "hash": parse_hash,
}

BINARY_DECODERS: Dict[str, Callable[[bytes], Any]] = {
    "transaction": decode_transaction,
    "block": decode_block,
    "block_header": decode_block_header,
    "merkle_block": decode_merkle_block,
}


def _unique_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    obj: Dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise InvalidResponseError(key, "repeated key")
        obj[key] = value
    return obj


def _load_json(body: bytes) -> Any:
    try:
        return json.loads(body, object_pairs_hook=_unique_keys)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidResponseError("body", f"not valid JSON: {exc}") from exc


def _lookup(table: Mapping[str, Any], shape: ResponseShape) -> Any:
    try:
        return table[shape.kind]
    except KeyError:
        raise ValueError(f"unsupported response shape {shape}") from None


def decode_response(shape: ResponseShape, body: bytes) -> Any:
    """Decode *body* according to *shape*.

    Raises :class:`InvalidResponseError` for JSON and text bodies that do not
    match their schema, and :class:`DecodeError` subclasses for binary and hex
    bodies.
    """

    logger.debug("Decoding %d byte body as %s", len(body), shape)
    encoding = shape.encoding
    if encoding is Encoding.JSON_OBJECT:
        decoder = _lookup(JSON_DECODERS, shape)
        return decoder(_as_object(_load_json(body), "body"), "")
    if encoding is Encoding.JSON_ARRAY:
        decoder = _lookup(JSON_DECODERS, shape)
        items = _as_list(_load_json(body), "body")
        return [decoder(item, f"[{index}]") for index, item in enumerate(items)]
    if encoding is Encoding.PLAIN_TEXT:
        return _lookup(TEXT_PARSERS, shape)(body)
    if encoding is Encoding.RAW_BINARY:
        return _lookup(BINARY_DECODERS, shape)(body)
    if encoding is Encoding.HEX_TEXT:
        decoder = _lookup(BINARY_DECODERS, shape)
        return decoder(bytes_from_hex(body, "body"))
    raise ValueError(f"unsupported response encoding {encoding!r}")  # pragma: no cover
