#!/usr/bin/env python3
"""
Alchemy NFT API Adapter

Provider A. Queries getNFTsForOwner with the collection allow-list and follows
pageKey pagination.
"""

from typing import Iterable, List, Optional

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
from nftgate.integrations.schemas import AlchemyOwnedNFT, AlchemyOwnedNFTsResponse, parse_metadata


class AlchemyNFTClient(NFTProviderAdapter):
    """Adapter for the Alchemy NFT API v3."""

    service_name = VerificationSource.ALCHEMY.value
    DEFAULT_BASE_URL = "https://eth-mainnet.g.alchemy.com/nft/v3"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        page_size: int = 100,
        max_pages: int = 10,
        priority: int = 1,
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
        self.page_size = page_size
        self.max_pages = max_pages

    async def fetch_owned_nfts(self, address: str, contract_allowlist: Iterable[str]) -> List[NFTRecord]:
        if not self.is_configured():
            raise ProviderError(self.name, "API key not configured")

        contracts = list(contract_allowlist)
        url = f"{self.base_url}/{self.api_key}/getNFTsForOwner"
        records: List[NFTRecord] = []
        page_key: Optional[str] = None

        for _ in range(self.max_pages):
            params = [
                ("owner", address),
                ("withMetadata", "true"),
                ("pageSize", str(self.page_size)),
            ]
            params.extend(("contractAddresses[]", c) for c in contracts)
            if page_key:
                params.append(("pageKey", page_key))

            payload = await self._request_json("GET", url, params=params)
            try:
                page = AlchemyOwnedNFTsResponse.model_validate(payload)
            except ValidationError as e:
                raise ProviderError(self.name, f"malformed response: {e.error_count()} validation errors") from e

            records.extend(self._normalize(nft) for nft in page.owned_nfts)

            page_key = page.page_key
            if not page_key:
                break
        else:
            self.log.warning("pagination_truncated", provider=self.name, wallet=address, max_pages=self.max_pages)
            raise ProviderError(self.name, f"holdings exceed {self.max_pages} pages")

        return records

    def _normalize(self, nft: AlchemyOwnedNFT) -> NFTRecord:
        token_type = TokenType.parse(nft.token_type or nft.contract.token_type)

        raw_metadata = nft.raw.metadata if nft.raw and nft.raw.metadata else nft.metadata
        wire_meta = parse_metadata(raw_metadata)

        image = ""
        if nft.image:
            image = nft.image.cached_url or nft.image.original_url or ""
        if wire_meta:
            metadata = NFTMetadata(
                name=nft.name or wire_meta.name or f"Token #{nft.token_id}",
                description=nft.description or wire_meta.description,
                image=image or wire_meta.image,
                attributes=tuple(NFTAttribute(a.trait_type, a.value) for a in wire_meta.attributes),
            )
        else:
            metadata = NFTMetadata(
                name=nft.name or f"Token #{nft.token_id}",
                description=nft.description or "",
                image=image,
            )

        media = tuple(NFTMedia(m.gateway, m.thumbnail, m.raw, m.format) for m in nft.media)
        if not media and nft.image:
            media = (
                NFTMedia(
                    gateway=nft.image.cached_url or "",
                    thumbnail=nft.image.thumbnail_url or "",
                    raw=nft.image.original_url or "",
                    format=nft.image.content_type or "",
                ),
            )

        token_uri = nft.token_uri or (nft.raw.token_uri if nft.raw else None)

        return NFTRecord(
            token_id=nft.token_id,
            contract_address=nft.contract.address.lower(),
            token_type=token_type,
            verification_source=VerificationSource.ALCHEMY,
            ownership_context=OwnershipContext.DIRECT,
            metadata=metadata,
            media=media,
            token_uri=token_uri,
        )
