"""
Verification Cache

Short-TTL cache of complete verification results keyed by wallet and
delegation fingerprint. Expired entries are retained, up to max_entries, so
the most recent result for a wallet can still be served as stale when every
provider is down.
"""

import dataclasses
import hashlib
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, Optional

from nftgate.core.models import CacheEntry, DelegationGrant, VerificationResult


def delegation_fingerprint(grants: Iterable[DelegationGrant]) -> str:
    """Stable digest of the sorted set of (vault, grant type) pairs."""
    pairs = sorted({(g.vault_wallet.lower(), g.type.value) for g in grants})
    material = "|".join(f"{vault}-{grant_type}" for vault, grant_type in pairs)
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class VerificationCache:
    """In-memory LRU-by-insertion cache of VerificationResult objects."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._latest: Dict[str, str] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(wallet: str, fingerprint: str) -> str:
        return f"{wallet.lower()}:{fingerprint}"

    def get(self, wallet: str, fingerprint: str) -> Optional[VerificationResult]:
        """Fresh result for the wallet and fingerprint, or None."""
        entry = self._entries.get(self._key(wallet, fingerprint))
        if entry is None or entry.is_expired(self._clock()):
            self.misses += 1
            return None
        self.hits += 1
        return entry.result

    def set(self, wallet: str, fingerprint: str, result: VerificationResult) -> CacheEntry:
        now = self._clock()
        key = self._key(wallet, fingerprint)
        entry = CacheEntry(
            data=list(result.nft_details),
            result=result,
            timestamp=now,
            sources_used=list(result.verification_sources),
            delegation_fingerprint=fingerprint,
            expires_at=now + self.ttl_seconds,
        )
        self._entries.pop(key, None)
        self._entries[key] = entry
        self._latest[wallet.lower()] = key
        self._evict()
        return entry

    def get_stale(self, wallet: str) -> Optional[VerificationResult]:
        """Most recent result for the wallet regardless of expiry, flagged stale."""
        key = self._latest.get(wallet.lower())
        entry = self._entries.get(key) if key else None
        if entry is None:
            return None
        return dataclasses.replace(entry.result, stale=True, low_confidence=True)

    def invalidate(self, wallet: str):
        prefix = f"{wallet.lower()}:"
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]
        self._latest.pop(wallet.lower(), None)

    def clear(self):
        self._entries.clear()
        self._latest.clear()

    def _evict(self):
        while len(self._entries) > self.max_entries:
            key, entry = self._entries.popitem(last=False)
            wallet = key.split(":", 1)[0]
            if self._latest.get(wallet) == key:
                del self._latest[wallet]

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        now = self._clock()
        return {
            "entries": len(self._entries),
            "fresh": sum(1 for e in self._entries.values() if not e.is_expired(now)),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
        }
