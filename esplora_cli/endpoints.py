"""Static catalog of Esplora REST endpoints.

Every logical operation maps to exactly one :class:`Endpoint`: the HTTP
method, a path template with ``{named}`` placeholders, an optional body
template and the :class:`ResponseShape` of the answer. Optional path segments
(``/blocks[/{height}]``) are modelled as two separate operations.
"""

from __future__ import annotations

from dataclasses import dataclass
from string import Formatter
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple
from urllib.parse import quote

from .decoder import Encoding, ResponseShape
from .errors import MissingParameterError, UnknownOperationError

JSON_OBJECT = Encoding.JSON_OBJECT
JSON_ARRAY = Encoding.JSON_ARRAY
PLAIN_TEXT = Encoding.PLAIN_TEXT
RAW_BINARY = Encoding.RAW_BINARY
HEX_TEXT = Encoding.HEX_TEXT


def _placeholders(template: str | None) -> Tuple[str, ...]:
    if not template:
        return ()
    return tuple(name for _, name, _, _ in Formatter().parse(template) if name)


@dataclass(frozen=True)
class Endpoint:
    operation: str
    method: str
    path: str
    shape: ResponseShape
    body: Optional[str] = None

    @property
    def parameters(self) -> Tuple[str, ...]:
        names = _placeholders(self.path) + _placeholders(self.body)
        return tuple(dict.fromkeys(names))


@dataclass(frozen=True)
class Request:
    operation: str
    method: str
    url: str
    shape: ResponseShape
    body: Optional[bytes] = None


def _endpoint(
    operation: str,
    path: str,
    encoding: Encoding,
    kind: str,
    method: str = "GET",
    body: str | None = None,
) -> Endpoint:
    return Endpoint(
        operation=operation,
        method=method,
        path=path,
        shape=ResponseShape(encoding, kind),
        body=body,
    )


_CATALOG = (
    _endpoint("tx_raw", "/tx/{txid}/raw", RAW_BINARY, "transaction"),
    _endpoint("tx_info", "/tx/{txid}", JSON_OBJECT, "transaction_info"),
    _endpoint("tx_status", "/tx/{txid}/status", JSON_OBJECT, "transaction_status"),
    _endpoint("tx_merkle_proof", "/tx/{txid}/merkle-proof", JSON_OBJECT, "merkle_proof"),
    _endpoint("tx_merkleblock_proof", "/tx/{txid}/merkleblock-proof", HEX_TEXT, "merkle_block"),
    _endpoint("tx_outspend", "/tx/{txid}/outspend/{vout}", JSON_OBJECT, "output_status"),
    _endpoint("broadcast", "/tx", PLAIN_TEXT, "hash", method="POST", body="{tx_hex}"),
    _endpoint("block_txid", "/block/{block_hash}/txid/{index}", PLAIN_TEXT, "hash"),
    _endpoint("block_header", "/block/{block_hash}/header", HEX_TEXT, "block_header"),
    _endpoint("block_status", "/block/{block_hash}/status", JSON_OBJECT, "block_status"),
    _endpoint("block_raw", "/block/{block_hash}/raw", RAW_BINARY, "block"),
    _endpoint("block_hash_at_height", "/block-height/{height}", PLAIN_TEXT, "hash"),
    _endpoint("tip_hash", "/blocks/tip/hash", PLAIN_TEXT, "hash"),
    _endpoint("tip_height", "/blocks/tip/height", PLAIN_TEXT, "integer"),
    _endpoint("blocks", "/blocks", JSON_ARRAY, "block_summary"),
    _endpoint("blocks_at_height", "/blocks/{height}", JSON_ARRAY, "block_summary"),
    _endpoint("fee_estimates", "/fee-estimates", JSON_OBJECT, "fee_estimates"),
    _endpoint(
        "scripthash_txs", "/scripthash/{script_hash}/txs", JSON_ARRAY, "transaction_info"
    ),
    _endpoint(
        "scripthash_txs_chain",
        "/scripthash/{script_hash}/txs/chain",
        JSON_ARRAY,
        "transaction_info",
    ),
    _endpoint(
        "scripthash_txs_chain_after",
        "/scripthash/{script_hash}/txs/chain/{last_seen}",
        JSON_ARRAY,
        "transaction_info",
    ),
    _endpoint("address_txs", "/address/{address}/txs", JSON_ARRAY, "transaction_info"),
    _endpoint(
        "address_txs_chain", "/address/{address}/txs/chain", JSON_ARRAY, "transaction_info"
    ),
    _endpoint(
        "address_txs_chain_after",
        "/address/{address}/txs/chain/{last_seen}",
        JSON_ARRAY,
        "transaction_info",
    ),
)

ENDPOINTS: Mapping[str, Endpoint] = MappingProxyType(
    {endpoint.operation: endpoint for endpoint in _CATALOG}
)


def get_endpoint(operation: str) -> Endpoint:
    try:
        return ENDPOINTS[operation]
    except KeyError:
        raise UnknownOperationError(operation) from None


def _substitute(
    endpoint: Endpoint, template: str, params: Mapping[str, Any], *, escape: bool
) -> str:
    values = {}
    for name in _placeholders(template):
        value = params.get(name)
        if value is None or value == "":
            raise MissingParameterError(endpoint.operation, name)
        text = str(value)
        values[name] = quote(text, safe="") if escape else text
    return template.format(**values)


def build_request(operation: str, base_url: str, **params: Any) -> Request:
    """Build the request for *operation* against *base_url*.

    Every placeholder must be supplied; a missing or empty value raises
    :class:`MissingParameterError` before anything touches the network.
    """

    endpoint = get_endpoint(operation)
    path = _substitute(endpoint, endpoint.path, params, escape=True)
    body = None
    if endpoint.body is not None:
        body = _substitute(endpoint, endpoint.body, params, escape=False).encode("utf-8")
    return Request(
        operation=operation,
        method=endpoint.method,
        url=f"{base_url}{path}",
        shape=endpoint.shape,
        body=body,
    )
