"""
On-Chain Verifier

Re-checks each ownership record against the ledger indexer's transfer history,
independently of whichever provider reported it. Failures never drop a
record; they leave it unverified.
"""

import dataclasses
from typing import Dict, List, Sequence, Tuple, Union

from nftgate.core.models import BlockchainVerification, NFTRecord, OwnershipContext, TokenType
from nftgate.exceptions import ProviderError, ProviderTimeoutError, VerifierTimeoutError
from nftgate.integrations.etherscan_client import EtherscanClient
from nftgate.integrations.schemas import EtherscanTransfer
from nftgate.utils.logging_config import get_logger

UNVERIFIED = BlockchainVerification(verified=False)


def evaluate_transfers(owner: str, token_id: str, transfers: Sequence[EtherscanTransfer]) -> BlockchainVerification:
    """
    Evaluate one token's transfer history for an owner.

    The token is verified when any transfer of it is inbound to the owner;
    ownership is confirmed when its most recent transfer is inbound.
    """
    owner = owner.lower()
    history = [t for t in transfers if t.token_id == token_id]
    inbound = [t for t in history if t.to == owner]
    if not inbound:
        return UNVERIFIED

    latest_inbound = max(inbound, key=lambda t: t.block_number)
    latest = max(history, key=lambda t: t.block_number)
    return BlockchainVerification(
        verified=True,
        ownership_confirmed=latest.to == owner,
        last_transfer_block=latest_inbound.block_number,
        last_transfer_hash=latest_inbound.hash,
    )


class OnChainVerifier:
    """Sequential transfer-history verification through the indexer's throttle."""

    def __init__(self, indexer: EtherscanClient, timeout: float = 15.0, logger=None):
        self.indexer = indexer
        self.timeout = timeout
        self.log = logger or get_logger(__name__)

    def _owner_of(self, wallet: str, record: NFTRecord) -> str:
        if record.ownership_context == OwnershipContext.DELEGATED and record.delegation_info:
            return record.delegation_info.vault_wallet.lower()
        return wallet.lower()

    async def _fetch_history(self, owner: str, contract: str, token_type: TokenType) -> List[EtherscanTransfer]:
        try:
            return await self.indexer.get_nft_transfers(owner, contract, token_type, timeout=self.timeout)
        except ProviderTimeoutError as e:
            raise VerifierTimeoutError(owner, contract, self.timeout) from e

    async def verify(self, wallet: str, records: Sequence[NFTRecord]) -> List[NFTRecord]:
        """
        Attach a BlockchainVerification to every record.

        Direct records are checked against the wallet, delegated records
        against their vault. Histories are fetched once per (owner, contract).
        """
        histories: Dict[Tuple[str, str, TokenType], Union[List[EtherscanTransfer], Exception]] = {}
        verified_records: List[NFTRecord] = []

        for record in records:
            owner = self._owner_of(wallet, record)
            contract = record.contract_address.lower()
            key = (owner, contract, record.token_type)

            if key not in histories:
                try:
                    histories[key] = await self._fetch_history(owner, contract, record.token_type)
                except (ProviderError, VerifierTimeoutError) as e:
                    self.log.warning("onchain_verification_failed", owner=owner, contract=contract, error=e.message)
                    histories[key] = e

            history = histories[key]
            if isinstance(history, Exception):
                verification = UNVERIFIED
            else:
                verification = evaluate_transfers(owner, record.token_id, history)

            verified_records.append(dataclasses.replace(record, blockchain_verification=verification))

        verified_count = sum(1 for r in verified_records if r.is_verified)
        self.log.debug("onchain_verification_complete", wallet=wallet, records=len(records), verified=verified_count)
        return verified_records
