from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest

from esplora_cli.client import EsploraClient
from esplora_cli.transport import HTTPResponse

BASE_URL = "https://example.test/api"

# Bitcoin genesis block: header and its single coinbase transaction.
GENESIS_HEADER_HEX = (
    "0100000000000000000000000000000000000000000000000000000000000000000000003ba3edfd"
    "7a7b12b27ac72c3e67768f617fc81bc3888a51323a9fb8aa4b1e5e4a29ab5f49ffff001d1dac2b7c"
)
GENESIS_HASH = "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"
GENESIS_COINBASE_HEX = (
    "01000000010000000000000000000000000000000000000000000000000000000000000000ffffffff"
    "4d04ffff001d0104455468652054696d65732030332f4a616e2f32303039204368616e63656c6c6f72"
    "206f6e206272696e6b206f66207365636f6e64206261696c6f757420666f722062616e6b73ffffffff"
    "0100f2052a01000000434104678afdb0fe5548271967f1a67130b7105cd6a828e03909a67962e0ea1f"
    "61deb649f6bc3f4cef38c4f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac00000000"
)
GENESIS_COINBASE_TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"

# Block 100000: header and the txids of its four transactions.
BLOCK_100000_HEADER_HEX = (
    "0100000050120119172a610421a6c3011dd330d9df07b63616c2cc1f1cd00200000000006657a925"
    "2aacd5c0b2940996ecff952228c3067cc38d4885efb5a4ac4247e9f337221b4d4c86041b0f2b5710"
)
BLOCK_100000_HASH = "000000000003ba27aa200b1cecaad478d2b00432346c3f1f3986da1afd33e506"
BLOCK_100000_MERKLE_ROOT = "f3e94742aca4b5ef85488dc37c06c3282295ffec960994b2c0d5ac2a25a95766"
BLOCK_100000_TXIDS = (
    "8c14f0db3df150123e6f3dbbf30f8b955a8249b62ac1d1ff16284aefa3d06d87",
    "fff2525b8931402dd09222c50775608f75787bd2b87e56995a7bdd30f79702c4",
    "6359f0868171b1d194cbee1af2f16ea598ae8fad666d9b012c8ed2b79a236ec4",
    "e9a66845e05d5abc0ad04ec80f774a7e585c6e8db975962d069a522137b80c1d",
)

# Synthetic version 2 transaction spending output 1 of BLOCK_100000_TXIDS[2]
# into a P2WPKH output, in legacy and segregated-witness form.
SEGWIT_SCRIPT_PUBKEY_HEX = "0014" + "11" * 20
LEGACY_TX_HEX = (
    "0200000001c46e239ab7d28e2c019b6d66ad8fae98a56ef1f21aeecb94d1b1718186f05963010000"
    "0000fdffffff01a086010000000000160014111111111111111111111111111111111111111100000000"
)
SEGWIT_TX_HEX = (
    "02000000000101c46e239ab7d28e2c019b6d66ad8fae98a56ef1f21aeecb94d1b1718186f0596301"
    "00000000fdffffff01a0860100000000001600141111111111111111111111111111111111111111"
    "020301020302040500000000"
)
SEGWIT_TXID = "7fee930dbe9933d1d5cf6ea40df3e1a19711ecc6d780fd9b6d40d4626014e0bc"
SEGWIT_WTXID = "58d1d44259b8fb55975524569bd5dbb2605ab72c3b59ac823177c69f0d620e00"


def segwit_tx_json(status: Optional[dict] = None) -> dict:
    """Esplora's ``/tx/{txid}`` rendering of SEGWIT_TX_HEX."""

    return {
        "txid": SEGWIT_TXID,
        "version": 2,
        "locktime": 0,
        "vin": [
            {
                "txid": BLOCK_100000_TXIDS[2],
                "vout": 1,
                "prevout": None,
                "scriptsig": "",
                "scriptsig_asm": "",
                "witness": ["010203", "0405"],
                "is_coinbase": False,
                "sequence": 4294967293,
            }
        ],
        "vout": [
            {
                "scriptpubkey": SEGWIT_SCRIPT_PUBKEY_HEX,
                "scriptpubkey_asm": "OP_0 OP_PUSHBYTES_20 " + "11" * 20,
                "scriptpubkey_type": "v0_p2wpkh",
                "value": 100000,
            }
        ],
        "size": 92,
        "weight": 338,
        "fee": 500,
        "status": status if status is not None else {"confirmed": False},
    }


class StubTransport:
    """Serves canned responses keyed by ``(method, url)`` and records requests."""

    def __init__(self, routes: Dict[Tuple[str, str], HTTPResponse]) -> None:
        self.routes = routes
        self.requests: List[Tuple[str, str, Optional[bytes]]] = []

    def send(self, method: str, url: str, body: Optional[bytes] = None) -> HTTPResponse:
        self.requests.append((method, url, body))
        try:
            return self.routes[(method, url)]
        except KeyError:
            return HTTPResponse(status=404, body=b"not found")


def ok(body: str | bytes) -> HTTPResponse:
    return HTTPResponse(status=200, body=body.encode() if isinstance(body, str) else body)


@pytest.fixture
def make_client():
    def factory(routes: Dict[Tuple[str, str], HTTPResponse]) -> Tuple[EsploraClient, StubTransport]:
        transport = StubTransport(routes)
        return EsploraClient(BASE_URL, transport=transport), transport

    return factory
