#!/usr/bin/env python3
"""
Etherscan Account API Adapter

Provider C and the ledger indexer used for on-chain verification. Etherscan
has no ownership endpoint, so holdings are derived from transfer history: a
token is held when its most recent transfer is inbound to the address.
Every call goes through a shared RequestThrottle to respect the free tier.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx
from pydantic import ValidationError

from nftgate.core.models import (
    ChainMetadata,
    NFTMetadata,
    NFTRecord,
    OwnershipContext,
    TokenType,
    VerificationSource,
)
from nftgate.core.rate_limiter import RequestThrottle
from nftgate.exceptions import ProviderError, ProviderTimeoutError
from nftgate.integrations.base_client import NFTProviderAdapter
from nftgate.integrations.schemas import EtherscanEnvelope, EtherscanTransaction, EtherscanTransfer

TRANSFER_ACTIONS = {
    TokenType.ERC721: "tokennfttx",
    TokenType.ERC1155: "token1155tx",
}


def latest_transfers_by_token(transfers: Iterable[EtherscanTransfer]) -> Dict[str, EtherscanTransfer]:
    """Latest transfer per token id. Later entries win ties within a block."""
    latest: Dict[str, EtherscanTransfer] = {}
    for transfer in transfers:
        current = latest.get(transfer.token_id)
        if current is None or transfer.block_number >= current.block_number:
            latest[transfer.token_id] = transfer
    return latest


class EtherscanClient(NFTProviderAdapter):
    """Adapter for the Etherscan account module."""

    service_name = VerificationSource.ETHERSCAN.value
    DEFAULT_BASE_URL = "https://api.etherscan.io/api"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        token_types: Optional[Mapping[str, TokenType]] = None,
        throttle: Optional[RequestThrottle] = None,
        priority: int = 3,
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
        self.token_types = {k.lower(): v for k, v in (token_types or {}).items()}
        self.throttle = throttle or RequestThrottle(0.2)

    async def _account_query(
        self, action: str, request_timeout: Optional[float] = None, **params: Any
    ) -> List[Dict[str, Any]]:
        """
        Run one account-module query and return the result rows.

        request_timeout bounds the HTTP call only. Time spent waiting for a
        throttle slot does not count against it.
        """
        if not self.is_configured():
            raise ProviderError(self.name, "API key not configured")

        query = {"module": "account", "action": action, "apikey": self.api_key}
        query.update({k: v for k, v in params.items() if v is not None})

        await self.throttle.acquire()
        try:
            payload = await asyncio.wait_for(
                self._request_json("GET", self.base_url, params=query),
                timeout=request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(self.name, request_timeout, original_error=e) from e

        try:
            envelope = EtherscanEnvelope.model_validate(payload)
        except ValidationError as e:
            raise ProviderError(self.name, f"malformed response for {action}") from e

        if envelope.ok:
            return envelope.result
        if envelope.is_empty:
            return []

        reason = envelope.result if isinstance(envelope.result, str) else envelope.message
        status_code = 429 if "rate limit" in (reason or "").lower() else None
        raise ProviderError(self.name, f"{action}: {reason or 'NOTOK'}", status_code=status_code)

    async def get_nft_transfers(
        self,
        wallet: str,
        contract: Optional[str] = None,
        token_type: TokenType = TokenType.ERC721,
        timeout: Optional[float] = None,
    ) -> List[EtherscanTransfer]:
        """
        Token transfer history for a wallet, optionally scoped to one contract.

        Args:
            timeout: Deadline for the HTTP call, excluding the throttle wait

        Returns:
            Transfers in ascending block order
        """
        rows = await self._account_query(
            TRANSFER_ACTIONS[token_type],
            request_timeout=timeout,
            address=wallet,
            contractaddress=contract,
            page=1,
            offset=10000,
            sort="asc",
        )
        transfers = []
        for row in rows:
            try:
                transfers.append(EtherscanTransfer.model_validate(row))
            except ValidationError:
                self.log.debug("transfer_skipped", provider=self.name, wallet=wallet, row_keys=sorted(row))
        transfers.sort(key=lambda t: t.block_number)
        return transfers

    async def fetch_owned_nfts(self, address: str, contract_allowlist: Iterable[str]) -> List[NFTRecord]:
        if not self.is_configured():
            raise ProviderError(self.name, "API key not configured")

        wallet = address.lower()
        records: List[NFTRecord] = []
        for contract in contract_allowlist:
            contract = contract.lower()
            token_type = self.token_types.get(contract, TokenType.ERC721)
            transfers = await self.get_nft_transfers(wallet, contract, token_type)

            for token_id, transfer in latest_transfers_by_token(transfers).items():
                if transfer.to != wallet:
                    continue
                label = transfer.token_name or "Token"
                records.append(
                    NFTRecord(
                        token_id=token_id,
                        contract_address=contract,
                        token_type=token_type,
                        verification_source=VerificationSource.ETHERSCAN,
                        ownership_context=OwnershipContext.DIRECT,
                        metadata=NFTMetadata(name=f"{label} #{token_id}"),
                    )
                )
        return records

    async def get_wallet_activity(self, wallet: str) -> List[EtherscanTransaction]:
        """Normal transactions sent or received by a wallet."""
        rows = await self._account_query(
            "txlist",
            address=wallet,
            startblock=0,
            endblock=99999999,
            page=1,
            offset=10000,
            sort="asc",
        )
        activity = []
        for row in rows:
            try:
                activity.append(EtherscanTransaction.model_validate(row))
            except ValidationError:
                continue
        return activity

    async def get_chain_metadata(
        self,
        wallet: str,
        contract_allowlist: Iterable[str],
        recent_activity_days: int = 7,
        now: Optional[float] = None,
    ) -> ChainMetadata:
        """
        Summarize on-chain activity: transaction count, earliest acquisition of
        a recognized NFT, and whether the wallet transacted recently.
        """
        wallet = wallet.lower()
        now = time.time() if now is None else now
        contracts = {c.lower() for c in contract_allowlist}

        transactions = await self.get_wallet_activity(wallet)
        transfers = await self.get_nft_transfers(wallet)

        acquisitions = [
            int(t.time_stamp)
            for t in transfers
            if t.to == wallet and t.contract_address in contracts and (t.time_stamp or "").isdigit()
        ]
        first_acquisition = None
        if acquisitions:
            first_acquisition = datetime.fromtimestamp(min(acquisitions), tz=timezone.utc).isoformat()

        cutoff = now - recent_activity_days * 86400
        recent = any(tx.time_stamp.isdigit() and int(tx.time_stamp) >= cutoff for tx in transactions)

        return ChainMetadata(
            total_transactions=len(transactions),
            first_nft_acquisition=first_acquisition,
            recent_activity=recent,
        )
