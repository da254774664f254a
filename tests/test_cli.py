"""Tests for the gated offer CLI — proves commands dispatch and report
results through exit codes."""

import json
import logging

import pytest
from eth_account import Account

from gatedoffer.cli import DEFAULT_CONFIG, build_parser, main
from gatedoffer.config import DATA_DIR_ENV, SIGNER_KEY_ENV

KEY = "0x" + "4c" * 32
SIGNER = Account.from_key(KEY).address
ALICE = "0x1000000000000000000000000000000000000001"
BOB = "0x1000000000000000000000000000000000000002"
T0 = 1_700_000_000


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(SIGNER_KEY_ENV, raising=False)
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)
    yield
    # main() binds the console handler to the captured stderr
    logging.getLogger("gatedoffer").handlers.clear()


def _output(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


@pytest.fixture
def entries(tmp_path):
    path = tmp_path / "discounts.json"
    path.write_text(json.dumps({ALICE: 1000, BOB: 2500}))
    return path


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"
        assert args.config == DEFAULT_CONFIG

    def test_sign_proof_command(self) -> None:
        args = build_parser().parse_args([
            "sign-proof", "--user", ALICE, "--activity-type", "HOLD_X_TOKENS",
            "--timestamp", str(T0),
        ])
        assert args.command == "sign-proof"
        assert args.activity_type == "HOLD_X_TOKENS"
        assert args.timestamp == T0
        assert args.key is None

    def test_verify_discount_multiple_siblings(self) -> None:
        args = build_parser().parse_args([
            "verify-discount", "--root", "0x00", "--user", ALICE,
            "--rate", "1000", "--proof", "0x01", "0x02",
        ])
        assert args.proof == ["0x01", "0x02"]


class TestCLIExecution:
    def test_no_command_shows_help(self, capsys) -> None:
        assert main([]) == 0

    def test_status_runs(self, capsys) -> None:
        assert main(["status"]) == 0
        data = _output(capsys)
        assert data["default_fee"]["fee_bps"] == 250
        assert "HOLD_X_TOKENS" in data["activity_types"]
        assert ["BUY_X_TOKENS", "NFT_MINT"] in data["valid_combinations"]
        assert data["events_recorded"] == 0

    def test_status_missing_config(self, tmp_path, capsys) -> None:
        assert main(["--config", str(tmp_path), "status"]) == 1

    def test_sign_then_verify(self, capsys) -> None:
        assert main([
            "sign-proof", "--user", ALICE, "--activity-type", "HOLD_X_TOKENS",
            "--timestamp", str(T0), "--key", KEY,
        ]) == 0
        proof = _output(capsys)["proof"]

        assert main([
            "verify-proof", "--user", ALICE, "--activity-type", "HOLD_X_TOKENS",
            "--proof", proof, "--signer", SIGNER, "--validity", "3600",
            "--now", str(T0 + 3600),
        ]) == 0
        assert _output(capsys) == {"valid": True, "reason": None}

    def test_verify_expired(self, capsys) -> None:
        main([
            "sign-proof", "--user", ALICE, "--activity-type", "HOLD_X_TOKENS",
            "--timestamp", str(T0), "--key", KEY,
        ])
        proof = _output(capsys)["proof"]
        assert main([
            "verify-proof", "--user", ALICE, "--activity-type", "HOLD_X_TOKENS",
            "--proof", proof, "--signer", SIGNER, "--validity", "3600",
            "--now", str(T0 + 3601),
        ]) == 1
        assert _output(capsys)["reason"] == "PROOF_EXPIRED"

    def test_sign_key_from_env(self, monkeypatch, capsys) -> None:
        monkeypatch.setenv(SIGNER_KEY_ENV, KEY)
        assert main([
            "sign-proof", "--user", ALICE, "--activity-type", "BUY_X_TOKENS",
            "--timestamp", str(T0),
        ]) == 0
        assert _output(capsys)["timestamp"] == T0

    def test_sign_without_key_fails(self, capsys) -> None:
        assert main([
            "sign-proof", "--user", ALICE, "--activity-type", "HOLD_X_TOKENS",
        ]) == 1

    def test_discount_tree_and_proof(self, entries, capsys) -> None:
        assert main(["discount-tree", "--entries", str(entries)]) == 0
        tree = _output(capsys)
        assert tree["entries"] == 2

        assert main(["discount-proof", "--entries", str(entries), "--user", BOB]) == 0
        proof = _output(capsys)
        assert proof["rate"] == 2500
        assert proof["root"] == tree["root"]

        assert main([
            "verify-discount", "--root", tree["root"], "--user", BOB,
            "--rate", "2500", "--proof", *proof["proof"],
        ]) == 0
        assert _output(capsys) == {"valid": True}

    def test_verify_discount_wrong_rate(self, entries, capsys) -> None:
        main(["discount-proof", "--entries", str(entries), "--user", ALICE])
        proof = _output(capsys)
        assert main([
            "verify-discount", "--root", proof["root"], "--user", ALICE,
            "--rate", "5000", "--proof", *proof["proof"],
        ]) == 1

    def test_discount_proof_unknown_user(self, entries, capsys) -> None:
        stranger = "0x1000000000000000000000000000000000000009"
        assert main(["discount-proof", "--entries", str(entries), "--user", stranger]) == 1

    def test_discount_entries_must_be_object(self, tmp_path, capsys) -> None:
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([[ALICE, 1000]]))
        assert main(["discount-tree", "--entries", str(path)]) == 1
