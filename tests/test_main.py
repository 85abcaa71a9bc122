"""
Test the command line entry point.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nftgate.config import AppConfig
from nftgate.core.aggregator import ResultAggregator
from nftgate.exceptions import AllProvidersFailedError
from nftgate.main import main, parse_arguments, run_verify
from tests.factories import WALLET, NFTRecordFactory


def stub_service(result=None, error=None):
    service = MagicMock()
    service.verify_wallet = AsyncMock(return_value=result, side_effect=error)
    service.close = AsyncMock()
    return service


class TestParseArguments:

    def test_verify(self):
        args = parse_arguments(["verify", WALLET, "--refresh"])
        assert args.command == "verify"
        assert args.wallet == WALLET
        assert args.refresh is True
        assert args.indent == 2

    def test_serve(self):
        args = parse_arguments(["--log-level", "DEBUG", "serve", "--port", "9000"])
        assert args.command == "serve"
        assert args.port == 9000
        assert args.host is None
        assert args.log_level == "DEBUG"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])


class TestRunVerify:

    @pytest.mark.asyncio
    async def test_prints_result(self, collections, capsys):
        result = ResultAggregator(collections).aggregate(WALLET, [NFTRecordFactory(token_id="1")], [])
        service = stub_service(result)

        with patch("nftgate.main.build_verification_service", return_value=service):
            code = await run_verify(AppConfig(), WALLET, refresh=True)

        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["accessLevel"] == "COLLECTOR"
        service.verify_wallet.assert_awaited_once_with(WALLET, force_refresh=True)
        service.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_goes_to_stderr(self, capsys):
        service = stub_service(error=AllProvidersFailedError(WALLET, {"ALCHEMY": "down"}))

        with patch("nftgate.main.build_verification_service", return_value=service):
            code = await run_verify(AppConfig(), WALLET)

        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert json.loads(captured.err)["error"]["retryable"] is True
        service.close.assert_awaited_once()


def test_main_dispatches_verify():
    with patch("nftgate.main.run_verify", new=AsyncMock(return_value=0)) as run, \
            patch("nftgate.main.setup_logging"):
        assert main(["verify", WALLET]) == 0

    run.assert_awaited_once()
    assert run.await_args.args[1] == WALLET
