"""Typed client for Esplora-style block explorer APIs.

Each public method is a thin composition: look the operation up in the
endpoint catalog, build the request, send it through the injected transport
and decode the body. The client keeps no per-call state, so a single instance
may be shared between threads. Nothing is cached and nothing is retried.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Any, Iterator, List, Optional, Tuple

from .codec import encode_broadcast_payload
from .config import DEFAULT_BASE_URL, EsploraConfig, load_esplora_config, normalize_base_url
from .decoder import decode_response
from .endpoints import build_request
from .errors import InvalidResponseError, RemoteError
from .model import (
    Block,
    BlockHeader,
    BlockStatus,
    BlockSummary,
    FeeEstimates,
    MerkleBlock,
    MerkleProof,
    OutputStatus,
    Tip,
    Transaction,
    TransactionInfo,
    TransactionStatus,
)
from .transport import RequestsTransport, Transport

logger = logging.getLogger(__name__)

_SCRIPT_HASH_RE = re.compile(r"[0-9a-fA-F]{64}")
_ERROR_BODY_LOG_LIMIT = 200


def script_hash(script_pubkey: bytes) -> str:
    """Return the Esplora scripthash (single SHA-256, not reversed) of a script."""

    return hashlib.sha256(script_pubkey).hexdigest()


def _history_target(target: str | bytes) -> Tuple[str, str]:
    """Classify *target* as ``("scripthash", hash)`` or ``("address", address)``."""

    if isinstance(target, (bytes, bytearray)):
        return "scripthash", script_hash(bytes(target))
    if _SCRIPT_HASH_RE.fullmatch(target):
        return "scripthash", target.lower()
    return "address", target


class ScriptHashHistory:
    """Lazy, restartable view over the confirmed history of a script.

    Iterating fetches one page at a time and continues from the last txid of
    the previous page until the server returns an empty page. Every new
    iteration starts again from the newest transaction. Items come out in the
    server's order (newest first for Esplora); page sizes are whatever the
    server chooses.
    """

    def __init__(self, client: "EsploraClient", target: str | bytes) -> None:
        self._client = client
        self.target = target

    def __iter__(self) -> Iterator[TransactionInfo]:
        last_seen: Optional[str] = None
        while True:
            page = self._client.get_confirmed_script_hash_txs(self.target, last_seen)
            if not page:
                return
            yield from page
            next_seen = page[-1].txid
            if next_seen == last_seen:
                raise InvalidResponseError(
                    "body", f"history page after {last_seen} did not advance"
                )
            last_seen = next_seen


class EsploraClient:
    """Read chain state from (and broadcast to) an Esplora server."""

    def __init__(
        self, base_url: str = DEFAULT_BASE_URL, transport: Transport | None = None
    ) -> None:
        self.base_url = normalize_base_url(base_url)
        self._transport = transport if transport is not None else RequestsTransport()

    @classmethod
    def from_config(
        cls, config: EsploraConfig | None = None, transport: Transport | None = None
    ) -> "EsploraClient":
        """Instantiate a client from explicit config or environment/config file."""

        config = config if config is not None else load_esplora_config()
        return cls(config.base_url, transport=transport)

    def call(self, operation: str, **params: Any) -> Any:
        """Run one catalog operation end to end and return the decoded value."""

        request = build_request(operation, self.base_url, **params)
        logger.debug("Esplora %s %s", request.method, request.url)
        response = self._transport.send(request.method, request.url, request.body)
        if not response.ok:
            body_text = response.text.strip()
            logger.warning(
                "Esplora %s returned HTTP %s: %s",
                operation,
                response.status,
                body_text[:_ERROR_BODY_LOG_LIMIT],
            )
            raise RemoteError(response.status, body_text)
        return decode_response(request.shape, response.body)

    # Transactions ---------------------------------------------------------

    def get_transaction(self, txid: str) -> Transaction:
        """Fetch and decode the consensus serialization of *txid*."""

        return self.call("tx_raw", txid=txid)

    def get_tx_info(self, txid: str) -> TransactionInfo:
        """Fetch the JSON summary of *txid*, including its confirmation status."""

        return self.call("tx_info", txid=txid)

    def get_transaction_status(self, txid: str) -> TransactionStatus:
        return self.call("tx_status", txid=txid)

    def get_transaction_at_block_index(self, block_hash: str, index: int) -> str:
        """Return the txid at position *index* of the block."""

        return self.call("block_txid", block_hash=block_hash, index=index)

    def get_merkle_proof(self, txid: str) -> MerkleProof:
        return self.call("tx_merkle_proof", txid=txid)

    def get_merkle_block_proof(self, txid: str) -> MerkleBlock:
        return self.call("tx_merkleblock_proof", txid=txid)

    def get_output_status(self, txid: str, vout: int) -> OutputStatus:
        return self.call("tx_outspend", txid=txid, vout=vout)

    def broadcast_transaction(self, raw: bytes | str | Transaction) -> str:
        """Post a raw transaction and return the txid reported by the server.

        *raw* may be bytes, hex text or a :class:`Transaction`. Validation is
        left to the server; rejections surface as :class:`RemoteError`.
        """

        txid = self.call("broadcast", tx_hex=encode_broadcast_payload(raw))
        logger.info("Broadcasted transaction %s", txid)
        return txid

    # Blocks ---------------------------------------------------------------

    def get_block_header(self, block_hash: str) -> BlockHeader:
        return self.call("block_header", block_hash=block_hash)

    def get_block_status(self, block_hash: str) -> BlockStatus:
        return self.call("block_status", block_hash=block_hash)

    def get_block(self, block_hash: str) -> Block:
        return self.call("block_raw", block_hash=block_hash)

    def get_block_hash(self, height: int) -> str:
        return self.call("block_hash_at_height", height=height)

    def get_height(self) -> int:
        return self.call("tip_height")

    def get_tip_hash(self) -> str:
        return self.call("tip_hash")

    def get_tip(self) -> Tip:
        """Return the best block hash and height.

        The two values come from separate requests, so a block found in
        between can make them disagree by one.
        """

        block_hash = self.get_tip_hash()
        height = self.get_height()
        return Tip(height=height, block_hash=block_hash)

    def get_recent_blocks(self, height: int | None = None) -> List[BlockSummary]:
        """Return recent block summaries, newest first.

        The number of summaries per call is decided by the server.
        """

        if height is None:
            return self.call("blocks")
        return self.call("blocks_at_height", height=height)

    # Fees -----------------------------------------------------------------

    def get_fee_estimates(self) -> FeeEstimates:
        """Return fee rates in sat/vB keyed by confirmation target in blocks."""

        return self.call("fee_estimates")

    # Script history -------------------------------------------------------

    def get_script_hash_txs(
        self, target: str | bytes, last_seen: str | None = None
    ) -> List[TransactionInfo]:
        """Return transactions touching a scripthash, script or address.

        Without *last_seen* the server returns its mempool entries followed by
        the newest confirmed page. With *last_seen* it returns the confirmed
        page that follows that txid.
        """

        if last_seen is not None:
            return self.get_confirmed_script_hash_txs(target, last_seen)
        kind, value = _history_target(target)
        if kind == "scripthash":
            return self.call("scripthash_txs", script_hash=value)
        return self.call("address_txs", address=value)

    def get_confirmed_script_hash_txs(
        self, target: str | bytes, last_seen: str | None = None
    ) -> List[TransactionInfo]:
        """Return one page of confirmed history, continuing after *last_seen*."""

        kind, value = _history_target(target)
        if kind == "scripthash":
            if last_seen is None:
                return self.call("scripthash_txs_chain", script_hash=value)
            return self.call("scripthash_txs_chain_after", script_hash=value, last_seen=last_seen)
        if last_seen is None:
            return self.call("address_txs_chain", address=value)
        return self.call("address_txs_chain_after", address=value, last_seen=last_seen)

    def get_script_hash_history(self, target: str | bytes) -> ScriptHashHistory:
        return ScriptHashHistory(self, target)
