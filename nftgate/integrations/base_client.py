"""
Base API Client

Shared HTTP plumbing for every external data source: connection pooling,
per-call timeouts, error classification and network health tracking. Provider
adapters only translate wire formats on top of this.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import httpx

from nftgate.core.models import NFTRecord
from nftgate.exceptions import ProviderError, ProviderTimeoutError
from nftgate.utils.logging_config import get_logger


class BaseAPIClient:
    """HTTP client wrapper that raises ProviderError on every failure."""

    service_name = "UNKNOWN"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger=None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.log = logger or get_logger(self.__class__.__module__)

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout=timeout, connect=min(10.0, timeout)),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=transport or httpx.AsyncHTTPTransport(retries=1),
        )

        self.network_health = {
            "consecutive_failures": 0,
            "last_success": None,
            "is_available": True,
        }

    def _get_headers(self, is_post: bool = False) -> Dict[str, str]:
        headers = {"accept": "application/json"}
        if is_post:
            headers["content-type"] = "application/json"
        return headers

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Any = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make one HTTP request and return the decoded JSON body."""
        headers = self._get_headers(is_post=(method.upper() == "POST"))
        started = time.monotonic()
        try:
            response = await self._client.request(
                method, url, params=params, json=json_data, headers=headers
            )
        except httpx.TimeoutException as e:
            self._record_failure()
            self.log.warning("request_timeout", service=self.service_name, method=method.upper(), timeout=self.timeout)
            raise ProviderTimeoutError(self.service_name, self.timeout, original_error=e) from e
        except httpx.RequestError as e:
            self._record_failure()
            self.log.warning("request_error", service=self.service_name, method=method.upper(), error=str(e))
            raise ProviderError(self.service_name, f"request error: {e}", original_error=e) from e

        duration_ms = (time.monotonic() - started) * 1000
        self.log.debug(
            "api_call",
            service=self.service_name,
            method=method.upper(),
            status_code=response.status_code,
            duration_ms=round(duration_ms, 1),
        )

        if response.status_code == 429:
            self._record_failure()
            raise ProviderError(self.service_name, "rate limit exceeded", status_code=429)
        if response.status_code >= 400:
            self._record_failure()
            raise ProviderError(
                self.service_name,
                response.text[:200] or response.reason_phrase,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            self._record_failure()
            raise ProviderError(self.service_name, "invalid JSON response", status_code=response.status_code) from e

        self.network_health["consecutive_failures"] = 0
        self.network_health["last_success"] = time.time()
        self.network_health["is_available"] = True
        return payload

    def _record_failure(self):
        self.network_health["consecutive_failures"] += 1
        if self.network_health["consecutive_failures"] >= 3:
            self.network_health["is_available"] = False

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class NFTProviderAdapter(BaseAPIClient, ABC):
    """
    Contract for ownership data providers.

    fetch_owned_nfts() must return an empty list, not raise, when the wallet
    holds nothing, and must raise ProviderError on any failure.
    """

    def __init__(self, *args, priority: int = 100, **kwargs):
        super().__init__(*args, **kwargs)
        self.priority = priority

    @property
    def name(self) -> str:
        return self.service_name

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    async def fetch_owned_nfts(self, address: str, contract_allowlist: Iterable[str]) -> List[NFTRecord]:
        """
        Fetch the NFTs owned by an address, restricted to the given contracts.

        Args:
            address: Wallet address (lowercase hex)
            contract_allowlist: Contract addresses to include

        Returns:
            Normalized ownership records tagged with this provider
        """

    def get_service_status(self) -> Dict[str, Any]:
        return {
            "provider": self.name,
            "priority": self.priority,
            "configured": self.is_configured(),
            "network_health": dict(self.network_health),
        }
