import json
from unittest.mock import MagicMock

import pytest

from x402_paylinks import cli
from x402_paylinks.core.client import VerificationOutcome
from x402_paylinks.core.verification import Verdict

from .conftest import RECEIVER, TX_A


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / ".env"
    path.write_text("X402_SERVICE_URL=http://svc/api\n")
    return str(path)


def test_set_requires_key_value(env_file):
    with pytest.raises(SystemExit):
        cli.run_cli(["--env-file", env_file, "--set", "NOEQUALS", "status", "REQ-1"])


def test_invalid_configuration_exits_with_error(env_file):
    assert cli.run_cli(["--env-file", env_file, "--set", "X402_STORE_BACKEND=redis", "status", "REQ-1"]) == 1


def test_remote_verify_needs_request_id(env_file):
    assert cli.run_cli(["--env-file", env_file, "verify", TX_A]) == 2


def test_remote_verify_reports_outcome(env_file, monkeypatch, capsys):
    client = MagicMock()
    client.base_url = "http://svc/api"
    client.verify.return_value = VerificationOutcome(
        success=True, status_code=200, reason=None, retryable=False, raw={"success": True}
    )
    monkeypatch.setattr(cli, "PaymentLinksClient", lambda config, session: client)

    code = cli.run_cli(["--env-file", env_file, "verify", TX_A, "--request-id", "REQ-ABCDEFGHI"])

    assert code == 0
    client.verify.assert_called_once_with("REQ-ABCDEFGHI", TX_A)
    assert json.loads(capsys.readouterr().out) == {"success": True}


def test_local_verify_needs_expectations(env_file):
    assert cli.run_cli(["--env-file", env_file, "verify", TX_A, "--local", "--token", "ETH"]) == 2


def test_local_verify_uses_engine(env_file, monkeypatch, capsys):
    verdict = Verdict(valid=True, tx_hash=TX_A, receiver=RECEIVER.lower(), block_number=7, token_type="ETH")

    async def fake_run(config, tx_hash, amount, args):
        assert str(amount) == "0.5"
        assert args.network is None
        return verdict

    monkeypatch.setattr(cli, "_run_local_verification", fake_run)

    code = cli.run_cli(
        [
            "--env-file",
            env_file,
            "verify",
            TX_A,
            "--local",
            "--token",
            "ETH",
            "--amount",
            "0.5",
            "--receiver",
            RECEIVER,
        ]
    )

    assert code == 0
    assert json.loads(capsys.readouterr().out)["blockNumber"] == 7
