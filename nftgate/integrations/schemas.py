"""
Pydantic models for external API responses.

Every provider response is validated here before it reaches the pipeline.
Optional fields default to empty strings or lists; malformed optional fields
are defaulted rather than propagated.
"""

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return ""
    return str(value)


# === Shared metadata ===

class WireAttribute(WireModel):
    trait_type: str = ""
    value: str = ""

    @field_validator("trait_type", "value", mode="before")
    @classmethod
    def _stringify(cls, v):
        return _as_str(v)


class WireMetadata(WireModel):
    name: str = ""
    description: str = ""
    image: str = ""
    attributes: List[WireAttribute] = Field(default_factory=list)

    @field_validator("name", "description", "image", mode="before")
    @classmethod
    def _stringify(cls, v):
        return _as_str(v)

    @field_validator("attributes", mode="before")
    @classmethod
    def _attributes_list(cls, v):
        if not isinstance(v, list):
            return []
        return [a for a in v if isinstance(a, dict)]


def parse_metadata(raw: Any) -> Optional[WireMetadata]:
    """Parse metadata given as a dict or a JSON string. Returns None when unusable."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, dict):
        return None
    return WireMetadata.model_validate(raw)


# === Alchemy NFT API v3 ===

class AlchemyContract(WireModel):
    address: str
    name: Optional[str] = None
    token_type: Optional[str] = Field(default=None, alias="tokenType")


class AlchemyImage(WireModel):
    cached_url: Optional[str] = Field(default=None, alias="cachedUrl")
    thumbnail_url: Optional[str] = Field(default=None, alias="thumbnailUrl")
    original_url: Optional[str] = Field(default=None, alias="originalUrl")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class AlchemyRaw(WireModel):
    token_uri: Optional[str] = Field(default=None, alias="tokenUri")
    metadata: Any = None


class AlchemyMedia(WireModel):
    gateway: str = ""
    thumbnail: str = ""
    raw: str = ""
    format: str = ""

    @field_validator("gateway", "thumbnail", "raw", "format", mode="before")
    @classmethod
    def _stringify(cls, v):
        return _as_str(v)


class AlchemyOwnedNFT(WireModel):
    contract: AlchemyContract
    token_id: str = Field(alias="tokenId")
    token_type: Optional[str] = Field(default=None, alias="tokenType")
    name: Optional[str] = None
    description: Optional[str] = None
    token_uri: Optional[str] = Field(default=None, alias="tokenUri")
    image: Optional[AlchemyImage] = None
    raw: Optional[AlchemyRaw] = None
    # v2-style fields still returned by some gateways
    metadata: Any = None
    media: List[AlchemyMedia] = Field(default_factory=list)

    @field_validator("token_id", mode="before")
    @classmethod
    def _token_id_str(cls, v):
        return str(v)

    @field_validator("token_uri", mode="before")
    @classmethod
    def _token_uri(cls, v):
        # v2 returns {"gateway": ..., "raw": ...}
        if isinstance(v, dict):
            return v.get("raw") or v.get("gateway")
        return v

    @field_validator("image", mode="before")
    @classmethod
    def _image(cls, v):
        return v if isinstance(v, dict) else None

    @field_validator("media", mode="before")
    @classmethod
    def _media(cls, v):
        if not isinstance(v, list):
            return []
        return [m for m in v if isinstance(m, dict)]


class AlchemyOwnedNFTsResponse(WireModel):
    owned_nfts: List[AlchemyOwnedNFT] = Field(default_factory=list, alias="ownedNfts")
    total_count: Optional[int] = Field(default=None, alias="totalCount")
    page_key: Optional[str] = Field(default=None, alias="pageKey")

    @field_validator("owned_nfts", mode="before")
    @classmethod
    def _owned(cls, v):
        return v or []


# === Moralis Web3 Data API v2.2 ===

class MoralisMediaCollection(WireModel):
    url: str = ""
    width: Optional[int] = None
    height: Optional[int] = None


class MoralisMedia(WireModel):
    original_media_url: str = ""
    mimetype: str = ""
    media_collection: Dict[str, MoralisMediaCollection] = Field(default_factory=dict)

    @field_validator("original_media_url", "mimetype", mode="before")
    @classmethod
    def _stringify(cls, v):
        return _as_str(v)

    @field_validator("media_collection", mode="before")
    @classmethod
    def _collection(cls, v):
        if not isinstance(v, dict):
            return {}
        return {k: item for k, item in v.items() if isinstance(item, dict)}


class MoralisNFT(WireModel):
    token_address: str
    token_id: str
    contract_type: Optional[str] = None
    token_uri: Optional[str] = None
    name: Optional[str] = None
    amount: Optional[str] = None
    metadata: Any = None
    normalized_metadata: Any = None
    media: Optional[MoralisMedia] = None

    @field_validator("token_id", "amount", mode="before")
    @classmethod
    def _str(cls, v):
        return None if v is None else str(v)

    @field_validator("media", mode="before")
    @classmethod
    def _media(cls, v):
        return v if isinstance(v, dict) else None


class MoralisNFTResponse(WireModel):
    result: List[MoralisNFT] = Field(default_factory=list)
    cursor: Optional[str] = None
    page_size: Optional[int] = None

    @field_validator("result", mode="before")
    @classmethod
    def _result(cls, v):
        return v or []


# === Etherscan ===

class EtherscanTransfer(WireModel):
    """A token transfer event from tokennfttx / token1155tx."""

    block_number: int = Field(alias="blockNumber")
    time_stamp: Optional[str] = Field(default=None, alias="timeStamp")
    hash: str
    from_address: str = Field(default="", alias="from")
    to: str = ""
    contract_address: str = Field(alias="contractAddress")
    token_id: str = Field(alias="tokenID")
    token_name: str = Field(default="", alias="tokenName")
    token_value: Optional[str] = Field(default=None, alias="tokenValue")

    @field_validator("to", "from_address", "contract_address", mode="before")
    @classmethod
    def _lower(cls, v):
        return _as_str(v).lower()

    @field_validator("token_id", mode="before")
    @classmethod
    def _token_id(cls, v):
        return str(v)

    @field_validator("token_name", mode="before")
    @classmethod
    def _name(cls, v):
        return _as_str(v)


class EtherscanTransaction(WireModel):
    """A normal transaction from txlist."""

    block_number: Optional[str] = Field(default=None, alias="blockNumber")
    time_stamp: str = Field(default="0", alias="timeStamp")
    hash: str = ""
    from_address: str = Field(default="", alias="from")
    to: str = ""

    @field_validator("to", "from_address", mode="before")
    @classmethod
    def _lower(cls, v):
        return _as_str(v).lower()


class EtherscanEnvelope(WireModel):
    """
    Etherscan wraps every response as {status, message, result}. On errors
    result is a string such as "Max rate limit reached".
    """

    status: str = "0"
    message: str = ""
    result: Union[List[Dict[str, Any]], str, None] = None

    @property
    def ok(self) -> bool:
        return self.status == "1" and isinstance(self.result, list)

    @property
    def is_empty(self) -> bool:
        # "No transactions found" is a valid empty success
        return self.status == "0" and "no transactions found" in self.message.lower()


# === Delegation registry (delegate.xyz) ===

DELEGATION_TYPE_CODES = {1: "ALL", 2: "CONTRACT", 3: "TOKEN"}


class RegistryDelegation(WireModel):
    type: str = "ALL"
    vault: str = ""
    delegate: str = ""
    contract: Optional[str] = None
    token_id: Optional[str] = Field(default=None, alias="tokenId")
    rights: Optional[str] = None
    expiration: Optional[int] = Field(default=None, alias="expirationTimestamp")

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v):
        if isinstance(v, int):
            return DELEGATION_TYPE_CODES.get(v, "NONE")
        text = _as_str(v).upper()
        # ERC20/ERC721/ERC1155 scoped grants are token-level in v2
        if text in ("ERC721", "ERC1155", "ERC20"):
            return "TOKEN"
        return text or "NONE"

    @field_validator("vault", "delegate", mode="before")
    @classmethod
    def _addr(cls, v):
        return _as_str(v).lower()

    @field_validator("contract", mode="before")
    @classmethod
    def _contract(cls, v):
        text = _as_str(v).lower()
        if not text or text == "0x0000000000000000000000000000000000000000":
            return None
        return text

    @field_validator("token_id", mode="before")
    @classmethod
    def _token_id(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("rights", mode="before")
    @classmethod
    def _rights(cls, v):
        text = _as_str(v)
        if not text or set(text.lower().replace("0x", "")) <= {"0"}:
            return None
        return text


class RegistryDelegationsResponse(WireModel):
    delegations: List[RegistryDelegation] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "RegistryDelegationsResponse":
        """Accept either {"delegations": [...]} or a bare list."""
        if isinstance(payload, list):
            payload = {"delegations": payload}
        if not isinstance(payload, dict):
            raise ValueError("Unexpected delegation registry payload")
        items = payload.get("delegations") or []
        normalized = []
        for item in items:
            if not isinstance(item, dict):
                continue
            item = dict(item)
            # v2 responses use from/to instead of vault/delegate
            item.setdefault("vault", item.get("from"))
            item.setdefault("delegate", item.get("to"))
            normalized.append(item)
        return cls(delegations=normalized)


class RegistryCheckResponse(WireModel):
    valid: bool = False
    delegate: Optional[str] = None
    vault: Optional[str] = None
    contract: Optional[str] = None
    token_id: Optional[str] = Field(default=None, alias="tokenId")
    rights: Optional[str] = None

    @field_validator("token_id", mode="before")
    @classmethod
    def _token_id(cls, v):
        return None if v is None else str(v)
