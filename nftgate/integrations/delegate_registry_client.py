"""
Delegation Registry Client

Talks to the delegate.xyz registry API: discovery of the vaults that delegated
to a wallet, and the per-token checks that prove a specific grant covers a
specific token. All calls share one RequestThrottle.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from nftgate.core.models import DelegationGrant, DelegationType
from nftgate.core.rate_limiter import RequestThrottle
from nftgate.exceptions import GrantVerificationError, ProviderError, RegistryDiscoveryError
from nftgate.integrations.base_client import BaseAPIClient
from nftgate.integrations.schemas import RegistryCheckResponse, RegistryDelegationsResponse


class DelegateRegistryClient(BaseAPIClient):
    """HTTP client for the delegation registry."""

    service_name = "DELEGATE_REGISTRY"
    DEFAULT_BASE_URL = "https://api.delegate.xyz/registry"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        throttle: Optional[RequestThrottle] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger=None,
    ):
        super().__init__(
            base_url or self.DEFAULT_BASE_URL,
            api_key=api_key,
            timeout=timeout,
            transport=transport,
            logger=logger,
        )
        self.throttle = throttle or RequestThrottle(0.2)

    def _get_headers(self, is_post: bool = False) -> Dict[str, str]:
        headers = super()._get_headers(is_post)
        if self.api_key:
            headers["X-API-KEY"] = self.api_key
        return headers

    async def get_delegations_for_delegate(self, delegate: str) -> List[DelegationGrant]:
        """
        List every grant naming the wallet as delegate.

        Raises:
            RegistryDiscoveryError: On any transport or payload failure
        """
        delegate = delegate.lower()
        await self.throttle.acquire()
        try:
            payload = await self._request_json(
                "GET", f"{self.base_url}/getDelegatesForDelegate", params={"delegate": delegate}
            )
            response = RegistryDelegationsResponse.from_payload(payload)
        except ProviderError as e:
            raise RegistryDiscoveryError(delegate, e.message, status_code=e.status_code) from e
        except (ValidationError, ValueError) as e:
            raise RegistryDiscoveryError(delegate, f"unexpected payload: {e}") from e

        grants = []
        for item in response.delegations:
            try:
                grant_type = DelegationType(item.type)
            except ValueError:
                self.log.debug("delegation_type_ignored", delegate=delegate, type=item.type)
                continue
            if not item.vault:
                continue
            grants.append(
                DelegationGrant(
                    vault_wallet=item.vault,
                    delegate_wallet=item.delegate or delegate,
                    type=grant_type,
                    contract=item.contract,
                    token_id=item.token_id,
                    rights=item.rights,
                    expiration_timestamp=item.expiration,
                )
            )
        return grants

    async def _check(self, endpoint: str, body: Dict[str, Any], contract: str, token_id: Optional[str]) -> bool:
        try:
            async with self.throttle:
                payload = await self._request_json("POST", f"{self.base_url}/{endpoint}", json_data=body)
            return RegistryCheckResponse.model_validate(payload).valid
        except ProviderError as e:
            raise GrantVerificationError(contract, token_id, e.message) from e
        except ValidationError as e:
            raise GrantVerificationError(contract, token_id, f"unexpected payload: {e.error_count()} errors") from e

    async def check_erc721(
        self,
        delegate: str,
        vault: str,
        contract: str,
        token_id: str,
        rights: Optional[str] = None,
    ) -> bool:
        """Check that the vault delegated this ERC721 token to the delegate."""
        body = {"delegate": delegate, "vault": vault, "contract": contract, "tokenId": token_id}
        if rights:
            body["rights"] = rights
        return await self._check("checkDelegateForERC721", body, contract, token_id)

    async def check_erc1155(
        self,
        delegate: str,
        vault: str,
        contract: str,
        token_id: Optional[str] = None,
        rights: Optional[str] = None,
    ) -> bool:
        """Check that the vault delegated this ERC1155 token (or the whole contract)."""
        body = {"delegate": delegate, "vault": vault, "contract": contract}
        if token_id:
            body["tokenId"] = token_id
        if rights:
            body["rights"] = rights
        return await self._check("checkDelegateForERC1155", body, contract, token_id)
