"""Typed client and command line tool for Esplora block explorer APIs."""

from .client import EsploraClient, ScriptHashHistory, script_hash
from .codec import (
    decode_block,
    decode_block_header,
    decode_compact_size,
    decode_merkle_block,
    decode_transaction,
    encode_block,
    encode_block_header,
    encode_compact_size,
    encode_merkle_block,
    encode_transaction,
)
from .config import ConfigurationError, EsploraConfig, load_esplora_config
from .errors import (
    BadEncodingError,
    ConstructionError,
    DecodeError,
    EsploraError,
    InvalidResponseError,
    MissingParameterError,
    RemoteError,
    ResponseError,
    TrailingBytesError,
    TransportError,
    TruncatedError,
    UnknownOperationError,
)
from .model import (
    Block,
    BlockHeader,
    BlockStatus,
    BlockSummary,
    MerkleBlock,
    MerkleProof,
    OutputStatus,
    Tip,
    Transaction,
    TransactionInfo,
    TransactionStatus,
    TxIn,
    TxOut,
)
from .transport import HTTPResponse, RequestsTransport

__version__ = "0.1.0"

__all__ = [
    "EsploraClient",
    "ScriptHashHistory",
    "script_hash",
    "EsploraConfig",
    "load_esplora_config",
    "HTTPResponse",
    "RequestsTransport",
    "decode_block",
    "decode_block_header",
    "decode_compact_size",
    "decode_merkle_block",
    "decode_transaction",
    "encode_block",
    "encode_block_header",
    "encode_compact_size",
    "encode_merkle_block",
    "encode_transaction",
    "Block",
    "BlockHeader",
    "BlockStatus",
    "BlockSummary",
    "MerkleBlock",
    "MerkleProof",
    "OutputStatus",
    "Tip",
    "Transaction",
    "TransactionInfo",
    "TransactionStatus",
    "TxIn",
    "TxOut",
    "EsploraError",
    "ConfigurationError",
    "TransportError",
    "ResponseError",
    "RemoteError",
    "InvalidResponseError",
    "DecodeError",
    "TruncatedError",
    "TrailingBytesError",
    "BadEncodingError",
    "ConstructionError",
    "MissingParameterError",
    "UnknownOperationError",
]
