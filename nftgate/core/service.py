#!/usr/bin/env python3
"""
NFT Verification Service

Orchestrates a wallet verification end to end:

    delegation discovery -> fingerprint -> cache lookup
    -> [direct resolution || delegation proof] -> on-chain verification
    -> aggregation -> cache write

Concurrent verifications of the same wallet and delegation fingerprint share
one in-flight resolution.
"""

import asyncio
import re
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from nftgate.config import AppConfig, create_settings
from nftgate.core.access_levels import AccessLevel, AccessPolicy
from nftgate.core.aggregator import ResultAggregator
from nftgate.core.cache import VerificationCache, delegation_fingerprint
from nftgate.core.collections import CollectionRegistry
from nftgate.core.delegation_resolver import DelegationResolver
from nftgate.core.models import ChainMetadata, DelegationGrant, OwnershipContext, VerificationResult
from nftgate.core.onchain_verifier import OnChainVerifier
from nftgate.core.rate_limiter import ProviderRateLimiter, RateLimitConfig, RequestThrottle
from nftgate.core.resolver import PrimaryOwnershipResolver
from nftgate.exceptions import AllProvidersFailedError, InvalidWalletAddressError, ProviderError
from nftgate.integrations.alchemy_client import AlchemyNFTClient
from nftgate.integrations.delegate_registry_client import DelegateRegistryClient
from nftgate.integrations.etherscan_client import EtherscanClient
from nftgate.integrations.moralis_client import MoralisNFTClient
from nftgate.utils.logging_config import get_logger

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_address(address: str) -> str:
    """Validate an EVM address and return it lowercased."""
    if not isinstance(address, str) or not ADDRESS_PATTERN.match(address.strip()):
        raise InvalidWalletAddressError(address)
    return address.strip().lower()


class NFTVerificationService:
    """Entry point for wallet verification."""

    def __init__(
        self,
        ownership_resolver: PrimaryOwnershipResolver,
        delegation_resolver: Optional[DelegationResolver],
        verifier: Optional[OnChainVerifier],
        aggregator: ResultAggregator,
        cache: VerificationCache,
        rate_limiter: ProviderRateLimiter,
        chain_indexer: Optional[EtherscanClient] = None,
        serve_stale_on_failure: bool = True,
        recent_activity_days: int = 7,
        logger=None,
    ):
        self.ownership_resolver = ownership_resolver
        self.delegation_resolver = delegation_resolver
        self.verifier = verifier
        self.aggregator = aggregator
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.chain_indexer = chain_indexer
        self.serve_stale_on_failure = serve_stale_on_failure
        self.recent_activity_days = recent_activity_days
        self.log = logger or get_logger(__name__)

        self._in_flight: Dict[Tuple[str, str], asyncio.Task] = {}
        self.stats = {"verifications": 0, "cache_hits": 0, "stale_served": 0, "failures": 0}

    @property
    def collections(self) -> CollectionRegistry:
        return self.aggregator.collections

    @property
    def policy(self) -> AccessPolicy:
        return self.aggregator.policy

    async def verify_wallet(self, wallet: str, force_refresh: bool = False) -> VerificationResult:
        """
        Verify a wallet's NFT holdings and compute its access level.

        Args:
            wallet: EVM address, any case
            force_refresh: Skip the cache lookup

        Raises:
            InvalidWalletAddressError: If the address is malformed
            AllProvidersFailedError: If no provider answered and no stale result exists
        """
        wallet = normalize_address(wallet)
        self.stats["verifications"] += 1

        grants = await self._discover(wallet)
        fingerprint = delegation_fingerprint(grants)

        if not force_refresh:
            cached = self.cache.get(wallet, fingerprint)
            if cached is not None:
                self.stats["cache_hits"] += 1
                self.log.debug("verification_cache_hit", wallet=wallet)
                return cached

        key = (wallet, fingerprint)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._resolve(wallet, grants, fingerprint))
            self._in_flight[key] = task
            task.add_done_callback(lambda _t, k=key: self._in_flight.pop(k, None))
            task.add_done_callback(_consume_exception)
        else:
            self.log.debug("verification_joined_in_flight", wallet=wallet)

        return await asyncio.shield(task)

    async def _discover(self, wallet: str) -> List[DelegationGrant]:
        if self.delegation_resolver is None:
            return []
        return await self.delegation_resolver.discover(wallet)

    async def _resolve(self, wallet: str, grants: List[DelegationGrant], fingerprint: str) -> VerificationResult:
        started = time.monotonic()

        delegation_step = (
            self.delegation_resolver.resolve_delegated(wallet, grants)
            if self.delegation_resolver and grants
            else _no_delegations()
        )
        direct_outcome, delegated_outcome = await asyncio.gather(
            self.ownership_resolver.resolve(wallet),
            delegation_step,
            return_exceptions=True,
        )

        if isinstance(direct_outcome, AllProvidersFailedError):
            self.stats["failures"] += 1
            stale = self.cache.get_stale(wallet) if self.serve_stale_on_failure else None
            if stale is not None:
                self.stats["stale_served"] += 1
                self.log.warning("serving_stale_verification", wallet=wallet, generated_at=stale.generated_at)
                return stale
            raise direct_outcome
        if isinstance(direct_outcome, BaseException):
            raise direct_outcome
        if isinstance(delegated_outcome, BaseException):
            raise delegated_outcome

        records = list(direct_outcome.records) + list(delegated_outcome)
        if self.verifier is not None and records:
            records = await self.verifier.verify(wallet, records)

        chain_metadata = await self._chain_metadata(wallet)

        direct = [r for r in records if r.ownership_context == OwnershipContext.DIRECT]
        delegated = [r for r in records if r.ownership_context == OwnershipContext.DELEGATED]
        low_confidence = not direct and direct_outcome.used_fallback

        result = self.aggregator.aggregate(
            wallet,
            direct,
            delegated,
            grants=grants,
            verification_time_ms=(time.monotonic() - started) * 1000,
            provider_attempts=direct_outcome.attempts,
            chain_metadata=chain_metadata,
            low_confidence=low_confidence,
        )
        self.cache.set(wallet, fingerprint, result)

        self.log.info(
            "wallet_verified",
            wallet=wallet,
            access_level=result.access_level,
            total_nfts=result.total_nfts,
            delegated=len(result.delegated_nfts),
            provider=direct_outcome.provider,
            duration_ms=round(result.verification_time_ms, 1),
        )
        return result

    async def _chain_metadata(self, wallet: str) -> Optional[ChainMetadata]:
        if self.chain_indexer is None or not self.chain_indexer.is_configured():
            return None
        try:
            return await self.chain_indexer.get_chain_metadata(
                wallet, self.collections.contracts, self.recent_activity_days
            )
        except ProviderError as e:
            self.log.warning("chain_metadata_unavailable", wallet=wallet, error=e.message)
            return None

    async def has_delegations(self, wallet: str) -> bool:
        wallet = normalize_address(wallet)
        if self.delegation_resolver is None:
            return False
        return await self.delegation_resolver.has_delegations(wallet)

    def requirements_gap(self, result: VerificationResult, target: AccessLevel) -> Dict[str, int]:
        """NFTs per collection the verified wallet still needs for a tier."""
        counts = self.aggregator.count_by_collection(result.nft_details)
        return self.policy.requirements_gap(counts, target)

    def next_access_level(self, result: VerificationResult) -> Optional[AccessLevel]:
        return self.policy.next_level(AccessLevel(result.access_level))

    def clear_cache(self, wallet: Optional[str] = None):
        if wallet:
            wallet = normalize_address(wallet)
            self.cache.invalidate(wallet)
        else:
            self.cache.clear()
        if self.delegation_resolver is not None:
            self.delegation_resolver.clear_cache(wallet)

    def get_service_status(self) -> Dict[str, Any]:
        """Provider health, rate limit usage and cache statistics for monitoring."""
        return {
            "providers": self.ownership_resolver.get_adapters_status(),
            "rate_limits": self.rate_limiter.get_rate_limit_status(),
            "cache": self.cache.get_stats(),
            "delegation_cache_wallets": (
                self.delegation_resolver.cached_wallets if self.delegation_resolver else 0
            ),
            "in_flight": len(self._in_flight),
            "stats": dict(self.stats),
        }

    async def close(self):
        await self.ownership_resolver.close()
        if self.delegation_resolver is not None:
            await self.delegation_resolver.registry.close()
        if self.chain_indexer is not None and self.chain_indexer not in self.ownership_resolver.adapters:
            await self.chain_indexer.close()


async def _no_delegations() -> list:
    return []


def _consume_exception(task: asyncio.Future):
    # Every caller may have been cancelled before a shared resolution failed
    if not task.cancelled():
        task.exception()


def build_verification_service(
    config: Optional[AppConfig] = None,
    collections: Optional[CollectionRegistry] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    logger=None,
) -> NFTVerificationService:
    """Wire up every component of the verification pipeline from configuration."""
    config = config or create_settings()
    collections = collections or CollectionRegistry()

    etherscan_throttle = RequestThrottle(config.etherscan.min_request_interval)
    etherscan = EtherscanClient(
        config.etherscan.api_key,
        base_url=config.etherscan.base_url,
        token_types={c.contract: c.token_type for c in collections},
        throttle=etherscan_throttle,
        priority=config.etherscan.priority,
        timeout=config.etherscan.timeout,
        transport=transport,
        logger=logger,
    )
    adapters = [
        AlchemyNFTClient(
            config.alchemy.api_key,
            base_url=config.alchemy.base_url,
            page_size=config.alchemy.page_size,
            max_pages=config.alchemy.max_pages,
            priority=config.alchemy.priority,
            timeout=config.alchemy.timeout,
            transport=transport,
            logger=logger,
        ),
        MoralisNFTClient(
            config.moralis.api_key,
            base_url=config.moralis.base_url,
            chain=config.moralis.chain,
            max_pages=config.moralis.max_pages,
            priority=config.moralis.priority,
            timeout=config.moralis.timeout,
            transport=transport,
            logger=logger,
        ),
        etherscan,
    ]

    rate_limiter = ProviderRateLimiter(
        RateLimitConfig(
            requests_per_window={
                "ALCHEMY": config.alchemy.requests_per_second,
                "MORALIS": config.moralis.requests_per_second,
                "ETHERSCAN": config.etherscan.requests_per_second,
            }
        )
    )
    ownership_resolver = PrimaryOwnershipResolver(adapters, rate_limiter, collections.contracts, logger=logger)

    delegation_resolver = None
    if config.verifier.enable_delegation:
        registry = DelegateRegistryClient(
            base_url=config.delegate.base_url,
            api_key=config.delegate.api_key,
            throttle=RequestThrottle(config.delegate.min_request_interval),
            timeout=config.delegate.timeout,
            transport=transport,
            logger=logger,
        )
        delegation_resolver = DelegationResolver(
            registry,
            ownership_resolver,
            collections,
            ttl_seconds=config.cache.ttl_seconds,
            logger=logger,
        )

    verifier = None
    if config.verifier.enable_onchain_verification:
        verifier = OnChainVerifier(etherscan, timeout=config.etherscan.timeout, logger=logger)

    return NFTVerificationService(
        ownership_resolver=ownership_resolver,
        delegation_resolver=delegation_resolver,
        verifier=verifier,
        aggregator=ResultAggregator(collections, AccessPolicy()),
        cache=VerificationCache(config.cache.ttl_seconds, config.cache.max_entries),
        rate_limiter=rate_limiter,
        chain_indexer=etherscan if config.verifier.enable_chain_metadata else None,
        serve_stale_on_failure=config.cache.serve_stale_on_failure,
        recent_activity_days=config.verifier.recent_activity_days,
        logger=logger,
    )
