"""
Test first-success-wins ownership resolution across providers.
"""

import pytest

from nftgate.core.models import OwnershipContext, VerificationSource
from nftgate.core.resolver import PrimaryOwnershipResolver
from nftgate.exceptions import AllProvidersFailedError, ProviderTimeoutError
from tests.factories import ANIMUS, CLONEX, STRANGER, WALLET, NFTRecordFactory


@pytest.fixture
def allowlist(collections):
    return collections.contracts


class TestPrimaryOwnershipResolver:

    @pytest.mark.asyncio
    async def test_primary_success_short_circuits(self, make_adapter, rate_limiter, allowlist):
        alchemy = make_adapter("ALCHEMY", 1, [NFTRecordFactory(token_id="1")])
        moralis = make_adapter("MORALIS", 2, [NFTRecordFactory(token_id="2")])
        resolver = PrimaryOwnershipResolver([moralis, alchemy], rate_limiter, allowlist)

        resolution = await resolver.resolve(WALLET)

        assert resolution.provider == "ALCHEMY"
        assert [r.token_id for r in resolution.records] == ["1"]
        assert not resolution.used_fallback
        moralis.fetch_owned_nfts.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_after_provider_error(self, make_adapter, provider_down, rate_limiter, allowlist):
        """Provider A returns 503, provider B answers with two CloneX tokens."""
        alchemy = make_adapter("ALCHEMY", 1, error=provider_down("ALCHEMY"))
        moralis = make_adapter(
            "MORALIS", 2,
            [NFTRecordFactory(token_id="11", verification_source=VerificationSource.ALCHEMY),
             NFTRecordFactory(token_id="12")],
        )
        resolver = PrimaryOwnershipResolver([alchemy, moralis], rate_limiter, allowlist)

        resolution = await resolver.resolve(WALLET)

        assert resolution.provider == "MORALIS"
        assert {r.verification_source for r in resolution.records} == {VerificationSource.MORALIS}
        assert {r.ownership_context for r in resolution.records} == {OwnershipContext.DIRECT}
        assert [a.outcome for a in resolution.attempts] == ["failed", "success"]
        assert resolution.attempts[1].record_count == 2
        assert resolution.used_fallback

    @pytest.mark.asyncio
    async def test_all_providers_failed(self, make_adapter, provider_down, rate_limiter, allowlist):
        adapters = [
            make_adapter("ALCHEMY", 1, error=provider_down("ALCHEMY")),
            make_adapter("MORALIS", 2, error=ProviderTimeoutError("MORALIS", 15)),
            make_adapter("ETHERSCAN", 3, error=provider_down("ETHERSCAN")),
        ]
        resolver = PrimaryOwnershipResolver(adapters, rate_limiter, allowlist)

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await resolver.resolve(WALLET)

        assert set(exc_info.value.failures) == {"ALCHEMY", "MORALIS", "ETHERSCAN"}
        assert "timed out" in exc_info.value.failures["MORALIS"]

    @pytest.mark.asyncio
    async def test_rate_limited_provider_is_skipped(self, make_adapter, rate_limiter, allowlist):
        for _ in range(5):
            rate_limiter.record_request("ALCHEMY")
        alchemy = make_adapter("ALCHEMY", 1, [NFTRecordFactory()])
        moralis = make_adapter("MORALIS", 2, [NFTRecordFactory()])
        resolver = PrimaryOwnershipResolver([alchemy, moralis], rate_limiter, allowlist)

        resolution = await resolver.resolve(WALLET)

        alchemy.fetch_owned_nfts.assert_not_awaited()
        assert resolution.provider == "MORALIS"
        assert resolution.attempts[0].outcome == "rate_limited"

    @pytest.mark.asyncio
    async def test_every_provider_rate_limited(self, make_adapter, rate_limiter, allowlist):
        for name in ("ALCHEMY", "MORALIS"):
            for _ in range(rate_limiter.limit_for(name)):
                rate_limiter.record_request(name)
        resolver = PrimaryOwnershipResolver(
            [make_adapter("ALCHEMY", 1, []), make_adapter("MORALIS", 2, [])], rate_limiter, allowlist
        )

        with pytest.raises(AllProvidersFailedError):
            await resolver.resolve(WALLET)

    @pytest.mark.asyncio
    async def test_attempts_are_recorded_against_rate_limiter(self, make_adapter, provider_down, rate_limiter, allowlist):
        resolver = PrimaryOwnershipResolver(
            [make_adapter("ALCHEMY", 1, error=provider_down("ALCHEMY")), make_adapter("MORALIS", 2, [])],
            rate_limiter,
            allowlist,
        )
        await resolver.resolve(WALLET)

        status = rate_limiter.get_rate_limit_status()
        assert status["ALCHEMY"]["used"] == 1
        assert status["MORALIS"]["used"] == 1

    @pytest.mark.asyncio
    async def test_empty_result_is_success_not_fallback(self, make_adapter, rate_limiter, allowlist):
        moralis = make_adapter("MORALIS", 2, [NFTRecordFactory()])
        resolver = PrimaryOwnershipResolver([make_adapter("ALCHEMY", 1, []), moralis], rate_limiter, allowlist)

        resolution = await resolver.resolve(WALLET)

        assert resolution.records == ()
        assert resolution.provider == "ALCHEMY"
        moralis.fetch_owned_nfts.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unrecognized_contracts_are_dropped(self, make_adapter, rate_limiter, allowlist):
        records = [NFTRecordFactory(contract_address=CLONEX.upper().replace("0X", "0x")),
                   NFTRecordFactory(contract_address=ANIMUS),
                   NFTRecordFactory(contract_address=STRANGER)]
        resolver = PrimaryOwnershipResolver([make_adapter("ALCHEMY", 1, records)], rate_limiter, allowlist)

        resolution = await resolver.resolve(WALLET)

        assert [r.contract_address for r in resolution.records] == [CLONEX, ANIMUS]

    @pytest.mark.asyncio
    async def test_wallet_is_lowercased_for_adapters(self, make_adapter, rate_limiter, allowlist):
        alchemy = make_adapter("ALCHEMY", 1, [])
        resolver = PrimaryOwnershipResolver([alchemy], rate_limiter, allowlist)

        await resolver.resolve(WALLET.upper().replace("0X", "0x"))

        assert alchemy.fetch_owned_nfts.await_args.args[0] == WALLET
