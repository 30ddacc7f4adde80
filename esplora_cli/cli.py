"""Command line interface for the Esplora client.

Each subcommand maps to exactly one :class:`EsploraClient` call and prints
the result. Transactions are printed as serialized hex, block and history
listings as one txid per line, and everything else as indented JSON.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from typing import Any, Callable, Dict, Sequence

from .client import EsploraClient
from .codec import encode_transaction
from .config import load_esplora_config, set_default_config_path
from .errors import EsploraError
from .transport import DEFAULT_TIMEOUT, RequestsTransport

logger = logging.getLogger(__name__)


class CLIError(EsploraError):
    """Raised when CLI arguments are invalid."""


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            item.name: _to_jsonable(getattr(value, item.name))
            for item in dataclasses.fields(value)
        }
    if isinstance(value, dict):
        return {str(key): _to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return value


def _print_json(value: Any) -> None:
    print(json.dumps(_to_jsonable(value), indent=2))


def _non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Esplora block explorer CLI")
    parser.add_argument(
        "-n",
        "--network",
        default=None,
        help="Esplora base URL (default: ESPLORA_URL, ~/.esplora.yaml, or https://blockstream.info/api)",
    )
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"HTTP timeout in seconds (default: {DEFAULT_TIMEOUT:g})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add(name: str, alias: str, help_text: str) -> argparse.ArgumentParser:
        subparser = subparsers.add_parser(name, aliases=[alias], help=help_text)
        subparser.set_defaults(canonical_command=name)
        return subparser

    add("get-tx", "gettx", "Get transaction by id").add_argument("txid")
    add("get-tx-info", "gettxinfo", "Get info of a transaction").add_argument("txid")

    at_index = add("get-tx-at-block-index", "gettxatblockindex", "Get transaction at block index")
    at_index.add_argument("hash")
    at_index.add_argument("index", type=_non_negative_int)

    add("get-tx-status", "gettxstatus", "Get transaction status by id").add_argument("txid")
    add("get-header", "getheader", "Get block header by block hash").add_argument("hash")
    add("get-block-status", "getblockstatus", "Get block status by block hash").add_argument(
        "hash"
    )
    add("get-block", "getblock", "Get block by block hash").add_argument("hash")
    add("get-merkle-proof", "getmerkleproof", "Get transaction merkle proof by tx id").add_argument(
        "txid"
    )
    add(
        "get-merkle-block", "getmerkleblock", "Get transaction merkle block inclusion proof by id"
    ).add_argument("txid")

    output_status = add(
        "get-output-status", "getoutputstatus", "Get output spending status by tx id and output index"
    )
    output_status.add_argument("txid")
    output_status.add_argument("index", type=_non_negative_int)

    add("broadcast", "broadcast-tx", "Broadcast a raw transaction given as hex").add_argument(
        "tx_hex"
    )
    add("get-tip", "gettip", "Get best block hash and height")
    add("get-block-hash", "getblockhash", "Get block hash at height").add_argument(
        "height", type=_non_negative_int
    )
    add("get-fee-estimates", "getfeeestimates", "Get fee estimates by confirmation target in sat/vB")

    history = add(
        "get-script-hash-txs",
        "getscripthashtxs",
        "Get confirmed transaction history for an address or scripthash",
    )
    history.add_argument("address", help="Address or 64-hex scripthash")
    history.add_argument("last_seen", nargs="?", default=None, help="Continue after this txid")
    history.add_argument(
        "--all", action="store_true", help="Follow pages until the full confirmed history is listed"
    )

    blocks = add(
        "get-blocks",
        "getblocks",
        "Get recent block summaries at the tip or at height (count is backend dependent)",
    )
    blocks.add_argument("-s", "--height", type=_non_negative_int, default=None)

    return parser


def cmd_get_tx(client: EsploraClient, args: argparse.Namespace) -> None:
    tx = client.get_transaction(args.txid)
    print(encode_transaction(tx).hex())


def cmd_get_tx_info(client: EsploraClient, args: argparse.Namespace) -> None:
    _print_json(client.get_tx_info(args.txid))


def cmd_get_tx_at_block_index(client: EsploraClient, args: argparse.Namespace) -> None:
    print(client.get_transaction_at_block_index(args.hash, args.index))


def cmd_get_tx_status(client: EsploraClient, args: argparse.Namespace) -> None:
    _print_json(client.get_transaction_status(args.txid))


def cmd_get_header(client: EsploraClient, args: argparse.Namespace) -> None:
    _print_json(client.get_block_header(args.hash))


def cmd_get_block_status(client: EsploraClient, args: argparse.Namespace) -> None:
    _print_json(client.get_block_status(args.hash))


def cmd_get_block(client: EsploraClient, args: argparse.Namespace) -> None:
    block = client.get_block(args.hash)
    for txid in block.txids:
        print(txid)


def cmd_get_merkle_proof(client: EsploraClient, args: argparse.Namespace) -> None:
    _print_json(client.get_merkle_proof(args.txid))


def cmd_get_merkle_block(client: EsploraClient, args: argparse.Namespace) -> None:
    merkle_block = client.get_merkle_block_proof(args.txid)
    root, matched = merkle_block.extract_matches()
    payload = _to_jsonable(merkle_block)
    payload["computed_merkle_root"] = root
    payload["matched_txids"] = list(matched)
    print(json.dumps(payload, indent=2))


def cmd_get_output_status(client: EsploraClient, args: argparse.Namespace) -> None:
    _print_json(client.get_output_status(args.txid, args.index))


def cmd_broadcast(client: EsploraClient, args: argparse.Namespace) -> None:
    print(client.broadcast_transaction(args.tx_hex))


def cmd_get_tip(client: EsploraClient, args: argparse.Namespace) -> None:
    _print_json(client.get_tip())


def cmd_get_block_hash(client: EsploraClient, args: argparse.Namespace) -> None:
    print(client.get_block_hash(args.height))


def cmd_get_fee_estimates(client: EsploraClient, args: argparse.Namespace) -> None:
    estimates = client.get_fee_estimates()
    _print_json(dict(sorted(estimates.items())))


def cmd_get_script_hash_txs(client: EsploraClient, args: argparse.Namespace) -> None:
    if args.all:
        if args.last_seen is not None:
            raise CLIError("--all lists the full history and cannot be combined with last_seen")
        txs = client.get_script_hash_history(args.address)
    else:
        txs = client.get_script_hash_txs(args.address, args.last_seen)
    for tx in txs:
        print(tx.txid)


def cmd_get_blocks(client: EsploraClient, args: argparse.Namespace) -> None:
    _print_json(client.get_recent_blocks(args.height))


COMMANDS: Dict[str, Callable[[EsploraClient, argparse.Namespace], None]] = {
    "get-tx": cmd_get_tx,
    "get-tx-info": cmd_get_tx_info,
    "get-tx-at-block-index": cmd_get_tx_at_block_index,
    "get-tx-status": cmd_get_tx_status,
    "get-header": cmd_get_header,
    "get-block-status": cmd_get_block_status,
    "get-block": cmd_get_block,
    "get-merkle-proof": cmd_get_merkle_proof,
    "get-merkle-block": cmd_get_merkle_block,
    "get-output-status": cmd_get_output_status,
    "broadcast": cmd_broadcast,
    "get-tip": cmd_get_tip,
    "get-block-hash": cmd_get_block_hash,
    "get-fee-estimates": cmd_get_fee_estimates,
    "get-script-hash-txs": cmd_get_script_hash_txs,
    "get-blocks": cmd_get_blocks,
}


def _build_client(args: argparse.Namespace) -> EsploraClient:
    if args.config:
        set_default_config_path(args.config)
    overrides = {"url": args.network} if args.network else None
    config = load_esplora_config(overrides=overrides)
    return EsploraClient.from_config(config, transport=RequestsTransport(timeout=args.timeout))


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    command = getattr(args, "canonical_command", args.command)
    try:
        handler = COMMANDS.get(command)
        if handler is None:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
        client = _build_client(args)
        handler(client, args)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        parser.exit(130)
    except EsploraError as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
