"""
nftgate - NFT ownership and delegation verification engine.

This package resolves the NFTs a wallet can claim and turns them into an
ecosystem access tier:
- Multi-provider ownership resolution with priority fallback
- Independent on-chain re-verification of transfer history
- Delegation discovery and per-token delegation proof
- Short-TTL caching with stale fallback on upstream failure
"""

__version__ = "0.1.0"
__author__ = "nftgate Team"
