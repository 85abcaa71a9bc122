"""
Delegation Resolver

Discovers the vaults that delegated to a wallet and proves, token by token,
which of the vaults' NFTs the wallet may claim. A token becomes DELEGATED
only after the registry confirms the grant covers that exact token; provider
data alone never establishes delegation.
"""

import asyncio
import dataclasses
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from nftgate.core.collections import CollectionRegistry
from nftgate.core.models import (
    DelegationGrant,
    DelegationInfo,
    DelegationType,
    NFTRecord,
    OwnershipContext,
    TokenType,
)
from nftgate.core.resolver import PrimaryOwnershipResolver
from nftgate.exceptions import AllProvidersFailedError, GrantVerificationError, RegistryDiscoveryError
from nftgate.integrations.delegate_registry_client import DelegateRegistryClient
from nftgate.utils.logging_config import get_logger

# Broadest scope first so narrower grants only add tokens not already proven
SCOPE_ORDER = {DelegationType.ALL: 0, DelegationType.CONTRACT: 1, DelegationType.TOKEN: 2}


def grant_covers(grant: DelegationGrant, record: NFTRecord, collections: CollectionRegistry) -> bool:
    """Whether a grant's scope includes the record's token."""
    contract = record.contract_address.lower()
    if grant.type == DelegationType.ALL:
        return collections.is_recognized(contract)
    if not grant.contract or grant.contract.lower() != contract:
        return False
    if grant.type == DelegationType.CONTRACT:
        return True
    return grant.token_id is not None and str(grant.token_id) == record.token_id


@dataclasses.dataclass
class _DiscoveryEntry:
    grants: List[DelegationGrant]
    expires_at: float


class DelegationResolver:
    """Delegation discovery with a per-wallet TTL cache, plus per-token proof."""

    def __init__(
        self,
        registry: DelegateRegistryClient,
        ownership_resolver: PrimaryOwnershipResolver,
        collections: Optional[CollectionRegistry] = None,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
        logger=None,
    ):
        self.registry = registry
        self.ownership_resolver = ownership_resolver
        self.collections = collections or CollectionRegistry()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._discovery_cache: Dict[str, _DiscoveryEntry] = {}
        self.log = logger or get_logger(__name__)

    async def discover(self, wallet: str) -> List[DelegationGrant]:
        """
        Active grants naming the wallet as delegate.

        Discovery failures yield the last known grants, even if expired, or
        an empty list. Grants past their expiration are discarded.
        """
        wallet = wallet.lower()
        now = self._clock()
        cached = self._discovery_cache.get(wallet)
        if cached and now < cached.expires_at:
            return self._active(wallet, cached.grants, now)

        try:
            grants = await self.registry.get_delegations_for_delegate(wallet)
        except RegistryDiscoveryError as e:
            if cached:
                self.log.warning("delegation_discovery_failed_using_cache", wallet=wallet, error=e.message)
                return self._active(wallet, cached.grants, now)
            self.log.warning("delegation_discovery_failed", wallet=wallet, error=e.message)
            return []

        self._discovery_cache[wallet] = _DiscoveryEntry(grants=grants, expires_at=now + self.ttl_seconds)
        active = self._active(wallet, grants, now)
        if active:
            self.log.info("delegations_discovered", wallet=wallet, grants=len(active))
        return active

    def _active(self, wallet: str, grants: Sequence[DelegationGrant], now: float) -> List[DelegationGrant]:
        return [
            g for g in grants
            if not g.is_expired(now) and g.vault_wallet.lower() != wallet
        ]

    async def has_delegations(self, wallet: str) -> bool:
        return bool(await self.discover(wallet))

    async def resolve_delegated(self, wallet: str, grants: Sequence[DelegationGrant]) -> List[NFTRecord]:
        """
        Prove which vault tokens the wallet may claim under the given grants.

        Vaults are processed concurrently; checks for one vault's grants run
        sequentially through the registry throttle.
        """
        wallet = wallet.lower()
        by_vault: Dict[str, List[DelegationGrant]] = defaultdict(list)
        for grant in grants:
            by_vault[grant.vault_wallet.lower()].append(grant)

        if not by_vault:
            return []

        results = await asyncio.gather(
            *(self._resolve_vault(wallet, vault, vault_grants) for vault, vault_grants in by_vault.items())
        )
        delegated = [record for vault_records in results for record in vault_records]
        self.log.debug("delegated_nfts_resolved", wallet=wallet, vaults=len(by_vault), records=len(delegated))
        return delegated

    async def _resolve_vault(self, wallet: str, vault: str, grants: List[DelegationGrant]) -> List[NFTRecord]:
        try:
            resolution = await self.ownership_resolver.resolve(vault)
        except AllProvidersFailedError as e:
            self.log.warning("vault_fetch_failed", wallet=wallet, vault=vault, failures=e.failures)
            return []

        proven: Set[Tuple[str, str]] = set()
        delegated: List[NFTRecord] = []

        for grant in sorted(grants, key=lambda g: SCOPE_ORDER[g.type]):
            for record in resolution.records:
                token_key = (record.contract_address.lower(), record.token_id)
                if token_key in proven or not grant_covers(grant, record, self.collections):
                    continue
                if not await self._check(wallet, vault, grant, record):
                    continue
                proven.add(token_key)
                delegated.append(
                    dataclasses.replace(
                        record,
                        ownership_context=OwnershipContext.DELEGATED,
                        delegation_info=DelegationInfo(
                            delegate_wallet=wallet,
                            vault_wallet=vault,
                            delegation_type=grant,
                        ),
                    )
                )
        return delegated

    async def _check(self, wallet: str, vault: str, grant: DelegationGrant, record: NFTRecord) -> bool:
        collection = self.collections.by_contract(record.contract_address)
        token_type = collection.token_type if collection else record.token_type
        try:
            if token_type == TokenType.ERC1155:
                return await self.registry.check_erc1155(
                    wallet, vault, record.contract_address, record.token_id, rights=grant.rights
                )
            return await self.registry.check_erc721(
                wallet, vault, record.contract_address, record.token_id, rights=grant.rights
            )
        except GrantVerificationError as e:
            self.log.debug("delegation_check_failed", wallet=wallet, vault=vault, error=e.message)
            return False

    def clear_cache(self, wallet: Optional[str] = None):
        if wallet:
            self._discovery_cache.pop(wallet.lower(), None)
        else:
            self._discovery_cache.clear()

    @property
    def cached_wallets(self) -> int:
        return len(self._discovery_cache)
