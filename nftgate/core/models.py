#!/usr/bin/env python3
"""
Verification Data Structures

Defines the NFT ownership records, delegation grants and the verification
result produced by the engine. Records are immutable once produced; pipeline
stages derive new records with dataclasses.replace().
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TokenType(str, Enum):
    ERC721 = "ERC721"
    ERC1155 = "ERC1155"

    @classmethod
    def parse(cls, value: Optional[str], default: "TokenType" = None) -> "TokenType":
        """Parse a provider token standard string, tolerating case and dashes."""
        normalized = (value or "").upper().replace("-", "").replace("_", "")
        for member in cls:
            if member.value == normalized:
                return member
        return default or cls.ERC721


class VerificationSource(str, Enum):
    ALCHEMY = "ALCHEMY"
    MORALIS = "MORALIS"
    ETHERSCAN = "ETHERSCAN"
    CACHE = "CACHE"


class OwnershipContext(str, Enum):
    DIRECT = "DIRECT"
    DELEGATED = "DELEGATED"


class DelegationType(str, Enum):
    """Delegation scope, broadest first."""

    ALL = "ALL"
    CONTRACT = "CONTRACT"
    TOKEN = "TOKEN"


@dataclass(frozen=True)
class NFTAttribute:
    trait_type: str
    value: str


@dataclass(frozen=True)
class NFTMetadata:
    """Token metadata following OpenSea/ERC-721 conventions."""

    name: str = ""
    description: str = ""
    image: str = ""
    attributes: Tuple[NFTAttribute, ...] = ()


@dataclass(frozen=True)
class NFTMedia:
    gateway: str = ""
    thumbnail: str = ""
    raw: str = ""
    format: str = ""


@dataclass(frozen=True)
class BlockchainVerification:
    """
    Result of an independent transfer-history check.

    Attributes:
        verified: An inbound transfer of the token to the wallet exists
        ownership_confirmed: The token's latest transfer is inbound to the wallet
        last_transfer_block: Block of the latest inbound transfer
        last_transfer_hash: Transaction hash of the latest inbound transfer
    """

    verified: bool
    ownership_confirmed: bool = False
    last_transfer_block: Optional[int] = None
    last_transfer_hash: Optional[str] = None


@dataclass(frozen=True)
class DelegationGrant:
    """A registry-recorded authorization from a vault to a delegate."""

    vault_wallet: str
    delegate_wallet: str
    type: DelegationType
    contract: Optional[str] = None
    token_id: Optional[str] = None
    rights: Optional[str] = None
    expiration_timestamp: Optional[int] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if not self.expiration_timestamp:
            return False
        return self.expiration_timestamp <= (now if now is not None else time.time())


@dataclass(frozen=True)
class DelegationInfo:
    delegate_wallet: str
    vault_wallet: str
    delegation_type: DelegationGrant


@dataclass(frozen=True)
class NFTRecord:
    """
    A single NFT a wallet can claim.

    Identity is (contract_address, token_id, ownership_context): the same token
    may appear once as DIRECT and, for a different delegate, once as DELEGATED.
    """

    token_id: str
    contract_address: str
    token_type: TokenType
    verification_source: VerificationSource
    ownership_context: OwnershipContext = OwnershipContext.DIRECT
    metadata: NFTMetadata = field(default_factory=NFTMetadata)
    media: Tuple[NFTMedia, ...] = ()
    token_uri: Optional[str] = None
    blockchain_verification: Optional[BlockchainVerification] = None
    delegation_info: Optional[DelegationInfo] = None

    @property
    def identity(self) -> Tuple[str, str, OwnershipContext]:
        return (self.contract_address.lower(), self.token_id, self.ownership_context)

    @property
    def is_verified(self) -> bool:
        return bool(self.blockchain_verification and self.blockchain_verification.verified)


@dataclass(frozen=True)
class ProviderAttempt:
    """One step of the provider fallback trail."""

    provider: str
    outcome: str  # 'success' | 'failed' | 'rate_limited'
    duration_ms: float = 0.0
    error: Optional[str] = None
    record_count: int = 0


@dataclass(frozen=True)
class OwnershipResolution:
    """Records returned by the winning provider plus the attempt trail."""

    records: Tuple[NFTRecord, ...]
    provider: str
    attempts: Tuple[ProviderAttempt, ...] = ()

    @property
    def used_fallback(self) -> bool:
        return any(attempt.outcome != "success" for attempt in self.attempts)


@dataclass(frozen=True)
class DelegationSummary:
    total_vaults: int
    total_delegations: int
    by_type: Dict[str, int] = field(default_factory=dict)
    by_collection: Dict[str, int] = field(default_factory=dict)
    last_updated: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ChainMetadata:
    total_transactions: int = 0
    first_nft_acquisition: Optional[str] = None
    recent_activity: bool = False


@dataclass(frozen=True)
class VerificationResult:
    """The sole externally consumed artifact of a verification."""

    wallet: str
    collections: Tuple[str, ...]
    access_level: str
    total_nfts: int
    nft_details: Tuple[NFTRecord, ...]
    verification_sources: Tuple[str, ...]
    blockchain_verified: int
    direct_nfts: Tuple[NFTRecord, ...]
    delegated_nfts: Tuple[NFTRecord, ...]
    verification_time_ms: float
    delegation_summary: Optional[DelegationSummary] = None
    chain_metadata: Optional[ChainMetadata] = None
    provider_attempts: Tuple[ProviderAttempt, ...] = ()
    stale: bool = False
    low_confidence: bool = False
    generated_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase JSON artifact consumed by the auth layer."""
        result = {
            "wallet": self.wallet,
            "collections": list(self.collections),
            "accessLevel": self.access_level,
            "totalNFTs": self.total_nfts,
            "nftDetails": [record_to_dict(r) for r in self.nft_details],
            "verificationSources": list(self.verification_sources),
            "blockchainVerified": self.blockchain_verified,
            "directNFTs": [record_to_dict(r) for r in self.direct_nfts],
            "delegatedNFTs": [record_to_dict(r) for r in self.delegated_nfts],
            "verificationTimeMs": round(self.verification_time_ms, 3),
            "providerAttempts": [
                {
                    "provider": a.provider,
                    "outcome": a.outcome,
                    "durationMs": round(a.duration_ms, 3),
                    "error": a.error,
                    "recordCount": a.record_count,
                }
                for a in self.provider_attempts
            ],
            "stale": self.stale,
            "lowConfidence": self.low_confidence,
            "generatedAt": self.generated_at,
        }
        if self.delegation_summary:
            s = self.delegation_summary
            result["delegationSummary"] = {
                "totalVaults": s.total_vaults,
                "totalDelegations": s.total_delegations,
                "byType": dict(s.by_type),
                "byCollection": dict(s.by_collection),
                "lastUpdated": s.last_updated,
            }
        if self.chain_metadata:
            m = self.chain_metadata
            result["chainMetadata"] = {
                "totalTransactions": m.total_transactions,
                "firstNFTAcquisition": m.first_nft_acquisition,
                "recentActivity": m.recent_activity,
            }
        return result


@dataclass
class CacheEntry:
    data: List[NFTRecord]
    result: VerificationResult
    timestamp: float
    sources_used: List[str]
    delegation_fingerprint: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def grant_to_dict(grant: DelegationGrant) -> Dict[str, Any]:
    return {
        "vaultWallet": grant.vault_wallet,
        "delegateWallet": grant.delegate_wallet,
        "type": grant.type.value,
        "contract": grant.contract,
        "tokenId": grant.token_id,
        "rights": grant.rights,
        "expirationTimestamp": grant.expiration_timestamp,
    }


def record_to_dict(record: NFTRecord) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "tokenId": record.token_id,
        "contractAddress": record.contract_address,
        "tokenType": record.token_type.value,
        "tokenUri": record.token_uri,
        "metadata": {
            "name": record.metadata.name,
            "description": record.metadata.description,
            "image": record.metadata.image,
            "attributes": [
                {"trait_type": a.trait_type, "value": a.value}
                for a in record.metadata.attributes
            ],
        },
        "media": [
            {"gateway": m.gateway, "thumbnail": m.thumbnail, "raw": m.raw, "format": m.format}
            for m in record.media
        ],
        "verificationSource": record.verification_source.value,
        "ownershipContext": record.ownership_context.value,
    }
    if record.blockchain_verification:
        v = record.blockchain_verification
        data["blockchainVerification"] = {
            "verified": v.verified,
            "lastTransferBlock": v.last_transfer_block,
            "lastTransferHash": v.last_transfer_hash,
            "ownershipConfirmed": v.ownership_confirmed,
        }
    if record.delegation_info:
        d = record.delegation_info
        data["delegationInfo"] = {
            "delegateWallet": d.delegate_wallet,
            "vaultWallet": d.vault_wallet,
            "delegationType": grant_to_dict(d.delegation_type),
        }
    return data
