"""
Test result aggregation and access tier computation.
"""

import itertools

import pytest

from nftgate.core.access_levels import AccessLevel, AccessPolicy, compute_access_level
from nftgate.core.aggregator import ResultAggregator, dedupe_records
from nftgate.core.models import (
    BlockchainVerification,
    DelegationInfo,
    DelegationType,
    OwnershipContext,
    VerificationSource,
)
from tests.factories import (
    ANIMUS,
    ANIMUS_EGGS,
    CLONEX,
    CLONEX_VIALS,
    OTHER_VAULT,
    STRANGER,
    VAULT,
    WALLET,
    DelegationGrantFactory,
    NFTRecordFactory,
)

COLLECTION_KEYS = ("clonex", "animus", "animus_eggs", "clonex_vials")


def delegated_record(token_id, contract=CLONEX, vault=VAULT, grant=None):
    grant = grant or DelegationGrantFactory(vault_wallet=vault)
    return NFTRecordFactory(
        token_id=token_id,
        contract_address=contract,
        ownership_context=OwnershipContext.DELEGATED,
        delegation_info=DelegationInfo(WALLET, vault, grant),
    )


class TestAccessPolicy:

    @pytest.mark.parametrize(
        "counts,expected",
        [
            ({}, AccessLevel.NONE),
            ({"clonex": 1}, AccessLevel.COLLECTOR),
            ({"clonex": 2}, AccessLevel.COLLECTOR),
            ({"clonex": 2, "animus": 1, "animus_eggs": 1, "clonex_vials": 5}, AccessLevel.ACTIVE_RESEARCHER),
            ({"clonex": 5, "animus": 2, "animus_eggs": 3, "clonex_vials": 10}, AccessLevel.SENIOR_RESEARCHER),
            ({"clonex": 10, "animus": 5, "animus_eggs": 5, "clonex_vials": 25}, AccessLevel.ECOSYSTEM_NATIVE),
            ({"animus": 50, "clonex_vials": 100}, AccessLevel.NONE),
        ],
    )
    def test_compute(self, counts, expected):
        assert compute_access_level(counts) == expected

    def test_levels_are_ordered(self):
        assert AccessLevel.NONE < AccessLevel.COLLECTOR < AccessLevel.ECOSYSTEM_NATIVE
        assert max(AccessLevel) == AccessLevel.ECOSYSTEM_NATIVE

    def test_monotonic(self):
        """Raising any single collection count never lowers the tier."""
        policy = AccessPolicy()
        grid = [0, 1, 2, 5, 10, 25]
        for values in itertools.product(grid, repeat=len(COLLECTION_KEYS)):
            counts = dict(zip(COLLECTION_KEYS, values))
            base = policy.compute(counts)
            for key in COLLECTION_KEYS:
                bumped = dict(counts, **{key: counts[key] + 1})
                assert policy.compute(bumped) >= base

    def test_requirements_gap_and_next_level(self):
        policy = AccessPolicy()
        counts = {"clonex": 2, "animus": 1}

        assert policy.next_level(AccessLevel.COLLECTOR) == AccessLevel.ACTIVE_RESEARCHER
        assert policy.next_level(AccessLevel.ECOSYSTEM_NATIVE) is None
        assert policy.requirements_gap(counts, AccessLevel.ACTIVE_RESEARCHER) == {"animus_eggs": 1, "clonex_vials": 5}

    def test_features_accumulate(self):
        policy = AccessPolicy()
        assert policy.features(AccessLevel.NONE) == ("basic_access",)
        assert "collector_features" in policy.features(AccessLevel.SENIOR_RESEARCHER)


class TestResultAggregator:

    def test_direct_tokens_only(self, collections, clock):
        direct = [NFTRecordFactory(token_id="1"), NFTRecordFactory(token_id="2")]

        result = ResultAggregator(collections, clock=clock).aggregate(WALLET, direct, [])

        assert len(result.direct_nfts) == 2
        assert result.total_nfts == 2
        assert result.access_level == AccessLevel.COLLECTOR.value
        assert result.collections == ("clonex",)
        assert result.verification_sources == ("ALCHEMY",)
        assert result.delegation_summary is None

    def test_details_are_union_without_duplicates(self, collections):
        direct = [NFTRecordFactory(token_id="1"), NFTRecordFactory(token_id="1", verification_source=VerificationSource.MORALIS)]
        delegated = [delegated_record("1"), delegated_record("1", vault=OTHER_VAULT), delegated_record("9")]

        result = ResultAggregator(collections).aggregate(WALLET, direct, delegated)

        identities = [r.identity for r in result.nft_details]
        assert len(identities) == len(set(identities)) == 3
        assert set(result.nft_details) == set(result.direct_nfts) | set(result.delegated_nfts)
        assert result.nft_details[0].verification_source == VerificationSource.ALCHEMY

    def test_delegated_tokens_count_toward_tier(self, collections):
        delegated = [delegated_record("1"), delegated_record("2"), delegated_record("3", contract=ANIMUS),
                     delegated_record("4", contract=ANIMUS_EGGS)]
        delegated += [delegated_record(str(10 + i), contract=CLONEX_VIALS) for i in range(5)]

        result = ResultAggregator(collections).aggregate(WALLET, [], delegated)

        assert result.access_level == AccessLevel.ACTIVE_RESEARCHER.value
        assert result.collections == ("clonex", "animus", "animus_eggs", "clonex_vials")

    def test_unrecognized_contracts_do_not_count(self, collections):
        result = ResultAggregator(collections).aggregate(WALLET, [NFTRecordFactory(contract_address=STRANGER)], [])

        assert result.access_level == AccessLevel.NONE.value
        assert result.collections == ()

    def test_blockchain_verified_count(self, collections):
        direct = [
            NFTRecordFactory(token_id="1", blockchain_verification=BlockchainVerification(True, True, 10, "0x1")),
            NFTRecordFactory(token_id="2", blockchain_verification=BlockchainVerification(False)),
            NFTRecordFactory(token_id="3"),
        ]

        result = ResultAggregator(collections).aggregate(WALLET, direct, [])

        assert result.blockchain_verified == 1

    def test_delegation_summary(self, collections, clock):
        grants = [
            DelegationGrantFactory(type=DelegationType.ALL),
            DelegationGrantFactory(type=DelegationType.CONTRACT, contract=CLONEX),
            DelegationGrantFactory(vault_wallet=OTHER_VAULT, type=DelegationType.TOKEN, contract=ANIMUS, token_id="3"),
        ]

        result = ResultAggregator(collections, clock=clock).aggregate(WALLET, [], [], grants=grants)
        summary = result.delegation_summary

        assert summary.total_vaults == 2
        assert summary.total_delegations == 3
        assert summary.by_type == {"ALL": 1, "CONTRACT": 1, "TOKEN": 1}
        assert summary.by_collection == {"clonex": 1, "animus": 1}
        assert summary.last_updated == clock.now

    def test_to_dict_is_camel_case(self, collections):
        result = ResultAggregator(collections).aggregate(WALLET, [NFTRecordFactory(token_id="1")], [delegated_record("2")])
        payload = result.to_dict()

        assert payload["accessLevel"] == "COLLECTOR"
        assert payload["totalNFTs"] == 2
        assert payload["directNFTs"][0]["tokenId"] == "1"
        assert payload["delegatedNFTs"][0]["delegationInfo"]["vaultWallet"] == VAULT
        assert payload["delegatedNFTs"][0]["ownershipContext"] == "DELEGATED"
        assert payload["stale"] is False

    def test_dedupe_keeps_first(self):
        first = NFTRecordFactory(token_id="1")
        second = NFTRecordFactory(token_id="1", verification_source=VerificationSource.ETHERSCAN)
        assert dedupe_records([first, second]) == [first]
