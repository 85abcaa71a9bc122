"""
Recognized NFT collections.

The registry doubles as the contract allow-list passed to provider adapters
and determines which delegation check (ERC721 vs ERC1155) applies to a token.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from nftgate.core.models import TokenType


@dataclass(frozen=True)
class Collection:
    key: str
    name: str
    contract: str
    symbol: str
    token_type: TokenType
    total_supply: Optional[int] = None


DEFAULT_COLLECTIONS: List[Collection] = [
    Collection(
        key="clonex",
        name="CloneX",
        contract="0x49cf6f5d44e70224e2e23fdcdd2c053f30ada28b",
        symbol="CLONEX",
        token_type=TokenType.ERC721,
        total_supply=20000,
    ),
    Collection(
        key="animus",
        name="Animus",
        contract="0xec99492dd9ef8ca48f691acd67d2c96a0a43935f",
        symbol="ANIMUS",
        token_type=TokenType.ERC721,
        total_supply=11111,
    ),
    Collection(
        key="animus_eggs",
        name="Animus Eggs",
        contract="0x6c410cf0b8c113dc6a7641b431390b11d5515082",
        symbol="EGGS",
        token_type=TokenType.ERC721,
        total_supply=8888,
    ),
    Collection(
        key="clonex_vials",
        name="CloneX Vials",
        contract="0x348fc118bcc65a92dc033a951af153d14d945312",
        symbol="VIALS",
        token_type=TokenType.ERC1155,
        total_supply=50000,
    ),
]


class CollectionRegistry:
    """Lookup of recognized collections by key or contract address."""

    def __init__(self, collections: Optional[Iterable[Collection]] = None):
        self._collections: List[Collection] = list(collections or DEFAULT_COLLECTIONS)
        self._by_contract: Dict[str, Collection] = {
            c.contract.lower(): c for c in self._collections
        }
        self._by_key: Dict[str, Collection] = {c.key: c for c in self._collections}

    def __iter__(self):
        return iter(self._collections)

    def __len__(self) -> int:
        return len(self._collections)

    @property
    def keys(self) -> List[str]:
        return [c.key for c in self._collections]

    @property
    def contracts(self) -> List[str]:
        """Contract allow-list, lowercased."""
        return [c.contract.lower() for c in self._collections]

    def get(self, key: str) -> Optional[Collection]:
        return self._by_key.get(key)

    def by_contract(self, contract_address: Optional[str]) -> Optional[Collection]:
        if not contract_address:
            return None
        return self._by_contract.get(contract_address.lower())

    def is_recognized(self, contract_address: Optional[str]) -> bool:
        return self.by_contract(contract_address) is not None
