"""
Primary Ownership Resolver

Tries provider adapters in ascending priority order and returns the first
successful result. Providers are never merged: one provider's view of a
wallet is internally consistent, two providers' views may not be.
"""

import dataclasses
import time
from typing import Iterable, List, Optional, Sequence

from nftgate.core.models import (
    OwnershipContext,
    OwnershipResolution,
    ProviderAttempt,
    VerificationSource,
)
from nftgate.core.rate_limiter import ProviderRateLimiter
from nftgate.exceptions import AllProvidersFailedError, ProviderError
from nftgate.integrations.base_client import NFTProviderAdapter
from nftgate.utils.logging_config import get_logger


class PrimaryOwnershipResolver:
    """First-success-wins fallback over the configured provider adapters."""

    def __init__(
        self,
        adapters: Sequence[NFTProviderAdapter],
        rate_limiter: ProviderRateLimiter,
        contract_allowlist: Iterable[str],
        logger=None,
    ):
        self.adapters: List[NFTProviderAdapter] = sorted(adapters, key=lambda a: a.priority)
        self.rate_limiter = rate_limiter
        self.contract_allowlist = [c.lower() for c in contract_allowlist]
        self.log = logger or get_logger(__name__)

    async def resolve(self, wallet: str, contract_allowlist: Optional[Iterable[str]] = None) -> OwnershipResolution:
        """
        Resolve the wallet's direct holdings.

        Raises:
            AllProvidersFailedError: When every adapter failed or was rate limited
        """
        wallet = wallet.lower()
        allowlist = [c.lower() for c in contract_allowlist] if contract_allowlist is not None else self.contract_allowlist
        allowed = set(allowlist)
        attempts: List[ProviderAttempt] = []
        failures = {}

        for adapter in self.adapters:
            name = adapter.name

            if self.rate_limiter.is_limited(name):
                self.log.info("provider_skipped_rate_limited", provider=name, wallet=wallet)
                attempts.append(ProviderAttempt(provider=name, outcome="rate_limited", error="rate limited"))
                failures[name] = "rate limited"
                continue

            self.rate_limiter.record_request(name)
            started = time.monotonic()
            try:
                fetched = await adapter.fetch_owned_nfts(wallet, allowlist)
            except ProviderError as e:
                duration_ms = (time.monotonic() - started) * 1000
                self.log.warning(
                    "provider_failed", provider=name, wallet=wallet, status_code=e.status_code, error=e.message
                )
                attempts.append(ProviderAttempt(provider=name, outcome="failed", duration_ms=duration_ms, error=e.message))
                failures[name] = e.message
                continue
            except Exception as e:
                duration_ms = (time.monotonic() - started) * 1000
                self.log.exception("provider_unexpected_error", provider=name, wallet=wallet)
                attempts.append(ProviderAttempt(provider=name, outcome="failed", duration_ms=duration_ms, error=str(e)))
                failures[name] = str(e)
                continue

            duration_ms = (time.monotonic() - started) * 1000
            source = VerificationSource(name)
            records = tuple(
                dataclasses.replace(
                    record,
                    contract_address=record.contract_address.lower(),
                    verification_source=source,
                    ownership_context=OwnershipContext.DIRECT,
                    delegation_info=None,
                )
                for record in fetched
                if record.contract_address.lower() in allowed
            )
            attempts.append(
                ProviderAttempt(provider=name, outcome="success", duration_ms=duration_ms, record_count=len(records))
            )
            self.log.debug("provider_succeeded", provider=name, wallet=wallet, records=len(records), duration_ms=round(duration_ms, 1))
            return OwnershipResolution(records=records, provider=name, attempts=tuple(attempts))

        self.log.error("all_providers_failed", wallet=wallet, failures=failures)
        raise AllProvidersFailedError(wallet, failures)

    def get_adapters_status(self) -> List[dict]:
        return [adapter.get_service_status() for adapter in self.adapters]

    async def close(self):
        for adapter in self.adapters:
            await adapter.close()
