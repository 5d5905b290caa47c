import logging

import pytest

from conftest import TEST_KEY
from pharos_names import cli
from pharos_names.attempt import AttemptResult
from pharos_names.config import load_settings
from pharos_names.log import setup_logging
from pharos_names.orchestrator import BatchOutcome, WalletOutcome

CONTROLLER = "0x51be1ef20a1fd5179419738fc71d95a8b6f8a175"


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    logger = logging.getLogger("pharos_names")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


def test_parser_reads_count_and_options():
    args = cli.build_parser().parse_args(["25", "--keys-file", "keys.txt", "--log-level", "DEBUG"])
    assert args.count == 25
    assert args.keys_file == "keys.txt"
    assert args.log_level == "DEBUG"
    assert cli.build_parser().parse_args([]).count is None


def test_configuration_error_exits_with_one(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ("RPC_URL", "CONTROLLER", "PRIVATE_KEYS"):
        monkeypatch.delenv(key, raising=False)
    assert cli.main(["--env-file", str(tmp_path / "absent.env")]) == 1


def test_successful_run_prints_summary(monkeypatch, capsys):
    settings = load_settings(
        environ={"RPC_URL": "http://localhost:8545", "CONTROLLER": CONTROLLER, "PRIVATE_KEYS": TEST_KEY},
        attempts=3,
    )
    seen = {}

    def fake_load_settings(env_file=None, keys_file=None, attempts=None):
        seen["attempts"] = attempts
        return settings

    async def fake_run_batch(loaded):
        address = loaded.wallets[0].address
        return BatchOutcome(wallets=[WalletOutcome(address, [AttemptResult.registered(0, "ab3x7k", "0xr1")])])

    monkeypatch.setattr(cli, "load_settings", fake_load_settings)
    monkeypatch.setattr(cli, "run_batch", fake_run_batch)

    assert cli.main(["3"]) == 0
    out = capsys.readouterr().out
    assert seen["attempts"] == 3
    assert "Registration Summary" in out
    assert "Total: registered 1, skipped 0, failed 0, wallet errors 0" in out


def test_log_level_is_case_insensitive():
    assert cli.build_parser().parse_args(["--log-level", "warning"]).log_level == "WARNING"


def test_unknown_log_level_is_rejected_by_the_parser(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.build_parser().parse_args(["--log-level", "foo"])
    assert exc.value.code == 2
    assert "invalid choice" in capsys.readouterr().err


def test_setup_logging_closes_replaced_handlers(tmp_path):
    logger = setup_logging("INFO", str(tmp_path / "first.log"))
    first = [h for h in logger.handlers if isinstance(h, logging.FileHandler)][0]

    setup_logging("INFO", str(tmp_path / "second.log"))

    assert first not in logger.handlers
    assert first.stream is None
