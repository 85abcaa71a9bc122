"""
Result Aggregator

Merges direct and delegated records into the final VerificationResult and
computes the access level from per-collection counts.
"""

import time
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from nftgate.core.access_levels import AccessPolicy
from nftgate.core.collections import CollectionRegistry
from nftgate.core.models import (
    ChainMetadata,
    DelegationGrant,
    DelegationSummary,
    NFTRecord,
    OwnershipContext,
    ProviderAttempt,
    VerificationResult,
)


def dedupe_records(records: Iterable[NFTRecord]) -> List[NFTRecord]:
    """Drop repeated identities, keeping the first occurrence."""
    seen = set()
    unique = []
    for record in records:
        if record.identity in seen:
            continue
        seen.add(record.identity)
        unique.append(record)
    return unique


class ResultAggregator:
    """Builds verification results for a collection registry and access policy."""

    def __init__(
        self,
        collections: Optional[CollectionRegistry] = None,
        policy: Optional[AccessPolicy] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.collections = collections or CollectionRegistry()
        self.policy = policy or AccessPolicy()
        self._clock = clock

    def count_by_collection(self, records: Iterable[NFTRecord]) -> Dict[str, int]:
        counts = {key: 0 for key in self.collections.keys}
        for record in records:
            collection = self.collections.by_contract(record.contract_address)
            if collection:
                counts[collection.key] += 1
        return counts

    def summarize_delegations(self, grants: Sequence[DelegationGrant]) -> Optional[DelegationSummary]:
        if not grants:
            return None
        by_type = Counter(g.type.value for g in grants)
        by_collection: Counter = Counter()
        for grant in grants:
            collection = self.collections.by_contract(grant.contract)
            if collection:
                by_collection[collection.key] += 1
        return DelegationSummary(
            total_vaults=len({g.vault_wallet.lower() for g in grants}),
            total_delegations=len(grants),
            by_type=dict(by_type),
            by_collection=dict(by_collection),
            last_updated=self._clock(),
        )

    def aggregate(
        self,
        wallet: str,
        direct: Sequence[NFTRecord],
        delegated: Sequence[NFTRecord],
        grants: Sequence[DelegationGrant] = (),
        verification_time_ms: float = 0.0,
        provider_attempts: Sequence[ProviderAttempt] = (),
        chain_metadata: Optional[ChainMetadata] = None,
        low_confidence: bool = False,
    ) -> VerificationResult:
        details = dedupe_records(list(direct) + list(delegated))
        counts = self.count_by_collection(details)
        level = self.policy.compute(counts)

        sources: List[str] = []
        for record in details:
            if record.verification_source.value not in sources:
                sources.append(record.verification_source.value)

        return VerificationResult(
            wallet=wallet.lower(),
            collections=tuple(key for key in self.collections.keys if counts.get(key, 0) > 0),
            access_level=level.value,
            total_nfts=len(details),
            nft_details=tuple(details),
            verification_sources=tuple(sources),
            blockchain_verified=sum(1 for r in details if r.is_verified),
            direct_nfts=tuple(r for r in details if r.ownership_context == OwnershipContext.DIRECT),
            delegated_nfts=tuple(r for r in details if r.ownership_context == OwnershipContext.DELEGATED),
            verification_time_ms=verification_time_ms,
            delegation_summary=self.summarize_delegations(grants),
            chain_metadata=chain_metadata,
            provider_attempts=tuple(provider_attempts),
            low_confidence=low_confidence,
            generated_at=self._clock(),
        )
