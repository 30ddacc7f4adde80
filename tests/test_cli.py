from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import (
    BASE_URL,
    BLOCK_100000_HASH,
    BLOCK_100000_HEADER_HEX,
    BLOCK_100000_MERKLE_ROOT,
    BLOCK_100000_TXIDS,
    GENESIS_COINBASE_HEX,
    GENESIS_COINBASE_TXID,
    GENESIS_HASH,
    GENESIS_HEADER_HEX,
    SEGWIT_TX_HEX,
    SEGWIT_TXID,
    StubTransport,
    ok,
    segwit_tx_json,
)
from esplora_cli import cli
from esplora_cli.client import EsploraClient
from esplora_cli.transport import HTTPResponse


@pytest.fixture
def routes(monkeypatch: pytest.MonkeyPatch) -> dict:
    table: dict = {}

    def fake_build_client(args) -> EsploraClient:
        return EsploraClient(BASE_URL, transport=StubTransport(table))

    monkeypatch.setattr(cli, "_build_client", fake_build_client)
    return table


def test_get_tip_prints_json(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    routes[("GET", f"{BASE_URL}/blocks/tip/hash")] = ok(BLOCK_100000_HASH)
    routes[("GET", f"{BASE_URL}/blocks/tip/height")] = ok("800000")

    cli.main(["get-tip"])

    assert json.loads(capsys.readouterr().out) == {
        "height": 800000,
        "block_hash": BLOCK_100000_HASH,
    }


def test_short_alias_runs_same_command(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    routes[("GET", f"{BASE_URL}/block-height/0")] = ok(GENESIS_HASH)

    cli.main(["getblockhash", "0"])

    assert capsys.readouterr().out.strip() == GENESIS_HASH


def test_get_tx_prints_serialized_hex(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    routes[("GET", f"{BASE_URL}/tx/{SEGWIT_TXID}/raw")] = ok(bytes.fromhex(SEGWIT_TX_HEX))

    cli.main(["get-tx", SEGWIT_TXID])

    assert capsys.readouterr().out.strip() == SEGWIT_TX_HEX


def test_get_tx_info_prints_hex_scripts(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    routes[("GET", f"{BASE_URL}/tx/{SEGWIT_TXID}")] = ok(json.dumps(segwit_tx_json()))

    cli.main(["get-tx-info", SEGWIT_TXID])

    payload = json.loads(capsys.readouterr().out)
    assert payload["txid"] == SEGWIT_TXID
    assert payload["transaction"]["inputs"][0]["witness"] == ["010203", "0405"]
    assert payload["transaction"]["status"] == {
        "confirmed": False,
        "block_height": None,
        "block_hash": None,
        "block_time": None,
    }


def test_get_block_lists_txids(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    routes[("GET", f"{BASE_URL}/block/{GENESIS_HASH}/raw")] = ok(
        bytes.fromhex(GENESIS_HEADER_HEX + "01" + GENESIS_COINBASE_HEX)
    )

    cli.main(["getblock", GENESIS_HASH])

    assert capsys.readouterr().out.split() == [GENESIS_COINBASE_TXID]


def test_fee_estimates_sorted_by_target(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    routes[("GET", f"{BASE_URL}/fee-estimates")] = ok('{"144":1.0,"1":45.2,"6":12.1}')

    cli.main(["get-fee-estimates"])

    assert list(json.loads(capsys.readouterr().out)) == ["1", "6", "144"]


def test_script_hash_history_follows_pages(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    chain = f"{BASE_URL}/address/bc1qexample/txs/chain"
    routes[("GET", chain)] = ok(json.dumps([segwit_tx_json()]))
    routes[("GET", f"{chain}/{SEGWIT_TXID}")] = ok("[]")

    cli.main(["get-script-hash-txs", "bc1qexample", "--all"])

    assert capsys.readouterr().out.split() == [SEGWIT_TXID]


def test_all_with_last_seen_is_an_error(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["get-script-hash-txs", "bc1qexample", SEGWIT_TXID, "--all"])

    assert excinfo.value.code == 1
    assert "--all" in capsys.readouterr().err


def test_remote_rejection_exits_with_error(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    routes[("POST", f"{BASE_URL}/tx")] = HTTPResponse(
        status=400, body=b"bad-txns-inputs-missingorspent"
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["broadcast", SEGWIT_TX_HEX])

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert err.startswith("error: HTTP 400")
    assert "bad-txns-inputs-missingorspent" in err


def test_negative_index_is_rejected_by_parser(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["get-output-status", SEGWIT_TXID, "-1"])

    assert excinfo.value.code == 2


def test_build_client_prefers_network_flag(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("esplora_cli.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr("esplora_cli.config._CONFIG_PATH_OVERRIDE", None)
    monkeypatch.setenv("ESPLORA_URL", "https://env.example/api")
    args = cli.build_parser().parse_args(["-n", f"{BASE_URL}/", "--timeout", "5", "get-tip"])

    client = cli._build_client(args)

    assert client.base_url == BASE_URL


def test_build_client_reads_config_flag(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "esplora.yaml"
    config_path.write_text("esplora:\n  url: http://localhost:3002\n")
    monkeypatch.setattr("esplora_cli.config._CONFIG_PATH_OVERRIDE", None)
    monkeypatch.delenv("ESPLORA_URL", raising=False)
    monkeypatch.delenv("ESPLORA_API_URL", raising=False)
    args = cli.build_parser().parse_args(["--config", str(config_path), "get-tip"])

    assert cli._build_client(args).base_url == "http://localhost:3002"


def test_get_merkle_block_reports_matches(routes: dict, capsys: pytest.CaptureFixture[str]) -> None:
    node_ab = "ccdafb73d8dcd0173d5d5c3c9a0770d0b3953db889dab99ef05b1907518cb815"
    tx_c, tx_d = BLOCK_100000_TXIDS[2], BLOCK_100000_TXIDS[3]
    body = (
        BLOCK_100000_HEADER_HEX
        + "04000000"
        + "03"
        + "".join(bytes.fromhex(value)[::-1].hex() for value in (node_ab, tx_c, tx_d))
        + "010d"
    )
    routes[("GET", f"{BASE_URL}/tx/{tx_c}/merkleblock-proof")] = ok(body)

    cli.main(["get-merkle-block", tx_c])

    payload = json.loads(capsys.readouterr().out)
    assert payload["computed_merkle_root"] == BLOCK_100000_MERKLE_ROOT
    assert payload["matched_txids"] == [tx_c]
    assert payload["total_transactions"] == 4
