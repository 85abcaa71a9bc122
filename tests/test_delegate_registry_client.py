"""
Test the delegation registry client against mocked registry responses.
"""

import json

import httpx
import pytest

from nftgate.core.models import DelegationType
from nftgate.exceptions import GrantVerificationError, RegistryDiscoveryError
from nftgate.integrations.delegate_registry_client import DelegateRegistryClient
from tests.factories import ANIMUS, CLONEX, CLONEX_VIALS, OTHER_VAULT, VAULT, WALLET

ZERO = "0x" + "0" * 40


def registry(handler, throttle):
    return DelegateRegistryClient(throttle=throttle, transport=httpx.MockTransport(handler))


class TestDiscovery:

    @pytest.mark.asyncio
    async def test_parses_v1_and_v2_shapes(self, instant_throttle):
        payload = [
            {"type": "ALL", "from": VAULT.upper(), "to": WALLET, "contract": ZERO, "tokenId": "0", "rights": "0x" + "0" * 64},
            {"type": "ERC721", "from": OTHER_VAULT, "to": WALLET, "contract": CLONEX, "tokenId": 7},
            {"type": 2, "vault": OTHER_VAULT, "delegate": WALLET, "contract": ANIMUS, "expirationTimestamp": 1800000000},
            {"type": "NONE", "from": VAULT, "to": WALLET},
        ]

        def handler(request: httpx.Request):
            assert request.url.path.endswith("/getDelegatesForDelegate")
            assert request.url.params["delegate"] == WALLET
            return httpx.Response(200, json=payload)

        client = registry(handler, instant_throttle)
        grants = await client.get_delegations_for_delegate(WALLET)
        await client.close()

        assert [g.type for g in grants] == [DelegationType.ALL, DelegationType.TOKEN, DelegationType.CONTRACT]
        all_grant, token_grant, contract_grant = grants
        assert all_grant.vault_wallet == VAULT
        assert all_grant.contract is None
        assert all_grant.rights is None
        assert token_grant.contract == CLONEX
        assert token_grant.token_id == "7"
        assert contract_grant.expiration_timestamp == 1800000000

    @pytest.mark.asyncio
    async def test_wrapped_payload(self, instant_throttle):
        payload = {"delegations": [{"type": "CONTRACT", "vault": VAULT, "delegate": WALLET, "contract": CLONEX}]}
        client = registry(lambda r: httpx.Response(200, json=payload), instant_throttle)
        grants = await client.get_delegations_for_delegate(WALLET)
        await client.close()

        assert len(grants) == 1
        assert grants[0].contract == CLONEX

    @pytest.mark.asyncio
    async def test_http_failure_raises_discovery_error(self, instant_throttle):
        client = registry(lambda r: httpx.Response(502, text="bad gateway"), instant_throttle)
        with pytest.raises(RegistryDiscoveryError) as exc_info:
            await client.get_delegations_for_delegate(WALLET)
        await client.close()

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_unexpected_payload_raises_discovery_error(self, instant_throttle):
        client = registry(lambda r: httpx.Response(200, json="oops"), instant_throttle)
        with pytest.raises(RegistryDiscoveryError):
            await client.get_delegations_for_delegate(WALLET)
        await client.close()


class TestPerTokenChecks:

    @pytest.mark.asyncio
    async def test_erc721_check_body(self, instant_throttle):
        bodies = []

        def handler(request: httpx.Request):
            assert request.method == "POST"
            assert request.url.path.endswith("/checkDelegateForERC721")
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"valid": True})

        client = registry(handler, instant_throttle)
        assert await client.check_erc721(WALLET, VAULT, CLONEX, "7") is True
        await client.close()

        assert bodies == [{"delegate": WALLET, "vault": VAULT, "contract": CLONEX, "tokenId": "7"}]

    @pytest.mark.asyncio
    async def test_erc1155_check_invalid(self, instant_throttle):
        def handler(request: httpx.Request):
            assert request.url.path.endswith("/checkDelegateForERC1155")
            return httpx.Response(200, json={"valid": False})

        client = registry(handler, instant_throttle)
        assert await client.check_erc1155(WALLET, VAULT, CLONEX_VIALS, "3") is False
        await client.close()

    @pytest.mark.asyncio
    async def test_check_failure_raises_grant_error(self, instant_throttle):
        client = registry(lambda r: httpx.Response(500), instant_throttle)
        with pytest.raises(GrantVerificationError) as exc_info:
            await client.check_erc721(WALLET, VAULT, CLONEX, "7")
        await client.close()

        assert exc_info.value.token_id == "7"

    @pytest.mark.asyncio
    async def test_checks_go_through_throttle(self, instant_throttle):
        client = registry(lambda r: httpx.Response(200, json={"valid": True}), instant_throttle)
        for token_id in ("1", "2", "3"):
            await client.check_erc721(WALLET, VAULT, CLONEX, token_id)
        await client.close()

        assert instant_throttle.total_acquired == 3
