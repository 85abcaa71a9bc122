#!/usr/bin/env python3
"""
Moralis Web3 Data API Adapter

Provider B. Queries /{address}/nft filtered by token_addresses and follows
cursor pagination. Moralis returns metadata as a JSON-encoded string.
"""

from typing import Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from nftgate.core.models import (
    NFTAttribute,
    NFTMedia,
    NFTMetadata,
    NFTRecord,
    OwnershipContext,
    TokenType,
    VerificationSource,
)
from nftgate.exceptions import ProviderError
from nftgate.integrations.base_client import NFTProviderAdapter
from nftgate.integrations.schemas import MoralisNFT, MoralisNFTResponse, parse_metadata


class MoralisNFTClient(NFTProviderAdapter):
    """Adapter for the Moralis NFT ownership endpoint."""

    service_name = VerificationSource.MORALIS.value
    DEFAULT_BASE_URL = "https://deep-index.moralis.io/api/v2.2"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        chain: str = "eth",
        max_pages: int = 10,
        priority: int = 2,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger=None,
    ):
        super().__init__(
            base_url or self.DEFAULT_BASE_URL,
            api_key=api_key,
            timeout=timeout,
            transport=transport,
            logger=logger,
            priority=priority,
        )
        self.chain = chain
        self.max_pages = max_pages

    def _get_headers(self, is_post: bool = False) -> Dict[str, str]:
        headers = super()._get_headers(is_post)
        headers["X-API-Key"] = self.api_key or ""
        return headers

    async def fetch_owned_nfts(self, address: str, contract_allowlist: Iterable[str]) -> List[NFTRecord]:
        if not self.is_configured():
            raise ProviderError(self.name, "API key not configured")

        contracts = list(contract_allowlist)
        url = f"{self.base_url}/{address}/nft"
        records: List[NFTRecord] = []
        cursor: Optional[str] = None

        for _ in range(self.max_pages):
            params = [
                ("chain", self.chain),
                ("format", "decimal"),
                ("media_items", "true"),
                ("normalizeMetadata", "true"),
            ]
            params.extend(("token_addresses", c) for c in contracts)
            if cursor:
                params.append(("cursor", cursor))

            payload = await self._request_json("GET", url, params=params)
            try:
                page = MoralisNFTResponse.model_validate(payload)
            except ValidationError as e:
                raise ProviderError(self.name, f"malformed response: {e.error_count()} validation errors") from e

            records.extend(self._normalize(nft) for nft in page.result)

            cursor = page.cursor
            if not cursor:
                break
        else:
            self.log.warning("pagination_truncated", provider=self.name, wallet=address, max_pages=self.max_pages)
            raise ProviderError(self.name, f"holdings exceed {self.max_pages} pages")

        return records

    def _normalize(self, nft: MoralisNFT) -> NFTRecord:
        wire_meta = parse_metadata(nft.metadata) or parse_metadata(nft.normalized_metadata)
        if wire_meta:
            metadata = NFTMetadata(
                name=wire_meta.name or nft.name or f"Token #{nft.token_id}",
                description=wire_meta.description,
                image=wire_meta.image,
                attributes=tuple(NFTAttribute(a.trait_type, a.value) for a in wire_meta.attributes),
            )
        else:
            metadata = NFTMetadata(name=f"Token #{nft.token_id}")

        media = ()
        if nft.media and nft.media.original_media_url:
            collection = nft.media.media_collection
            preview = collection.get("medium") or collection.get("high")
            thumb = collection.get("low")
            media = (
                NFTMedia(
                    gateway=preview.url if preview else nft.media.original_media_url,
                    thumbnail=thumb.url if thumb else "",
                    raw=nft.media.original_media_url,
                    format=nft.media.mimetype,
                ),
            )

        return NFTRecord(
            token_id=nft.token_id,
            contract_address=nft.token_address.lower(),
            token_type=TokenType.parse(nft.contract_type),
            verification_source=VerificationSource.MORALIS,
            ownership_context=OwnershipContext.DIRECT,
            metadata=metadata,
            media=media,
            token_uri=nft.token_uri,
        )
