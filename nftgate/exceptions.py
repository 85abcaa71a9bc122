"""
Custom Exception Classes

This module defines the error taxonomy of the verification engine. Only
AllProvidersFailedError aborts a verification; every other error degrades the
completeness or confidence of the result.
"""

from typing import Any, Dict, Optional


class VerifierBaseException(Exception):
    """Base exception for the verification engine."""

    recoverable: bool = True

    def __init__(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}


class ConfigurationError(VerifierBaseException):
    """Raised for configuration problems."""

    recoverable = False


class InvalidWalletAddressError(VerifierBaseException, ValueError):
    """Raised when a wallet or contract address is not a valid EVM address."""

    recoverable = False

    def __init__(self, address: str):
        super().__init__(f"Invalid EVM address: {address!r}", {"address": address})
        self.address = address


class ProviderError(VerifierBaseException):
    """A data provider call failed. Triggers fallback to the next adapter."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        details = f"{provider} error"
        if status_code is not None:
            details += f" (HTTP {status_code})"
        super().__init__(
            f"{details}: {message}",
            {"provider": provider, "status_code": status_code},
        )
        self.provider = provider
        self.status_code = status_code
        self.original_error = original_error


class ProviderTimeoutError(ProviderError):
    """A single provider call exceeded its timeout."""

    def __init__(self, provider: str, timeout: Optional[float] = None, original_error: Optional[Exception] = None):
        message = "request timed out"
        if timeout is not None:
            message += f" after {timeout:g}s"
        super().__init__(provider, message, original_error=original_error)
        self.timeout = timeout


class AllProvidersFailedError(VerifierBaseException):
    """Every ownership provider failed or was rate limited."""

    recoverable = False

    def __init__(self, wallet: str, failures: Optional[Dict[str, str]] = None):
        self.wallet = wallet
        self.failures = failures or {}
        summary = ", ".join(f"{name}: {reason}" for name, reason in self.failures.items())
        message = f"All NFT providers failed for {wallet}"
        if summary:
            message += f" ({summary})"
        super().__init__(message, {"wallet": wallet, "failures": self.failures})


class RegistryDiscoveryError(VerifierBaseException):
    """Delegation discovery failed. Treated as zero delegations."""

    def __init__(self, delegate: str, message: str, status_code: Optional[int] = None):
        super().__init__(
            f"Delegation discovery failed for {delegate}: {message}",
            {"delegate": delegate, "status_code": status_code},
        )
        self.delegate = delegate
        self.status_code = status_code


class GrantVerificationError(VerifierBaseException):
    """A per-token delegation check failed. The candidate is dropped."""

    def __init__(self, contract: str, token_id: Optional[str], message: str):
        super().__init__(
            f"Delegation check failed for {contract}:{token_id}: {message}",
            {"contract": contract, "token_id": token_id},
        )
        self.contract = contract
        self.token_id = token_id


class VerifierTimeoutError(VerifierBaseException):
    """A ledger indexer call timed out. The record is kept but unverified."""

    def __init__(self, wallet: str, contract: str, timeout: Optional[float] = None):
        super().__init__(
            f"Transfer history query timed out for {wallet} on {contract}",
            {"wallet": wallet, "contract": contract, "timeout": timeout},
        )
        self.wallet = wallet
        self.contract = contract
        self.timeout = timeout


def describe_error(error: Exception) -> Dict[str, Any]:
    """
    Map an exception to a user-facing error description.

    Returns a dict with 'type', 'message' and 'retryable' keys, suitable for
    API responses.
    """
    if isinstance(error, InvalidWalletAddressError):
        return {"type": "validation_error", "message": str(error), "retryable": False}

    if isinstance(error, AllProvidersFailedError):
        return {
            "type": "server_error",
            "message": "NFT data providers are unavailable. Please try again later.",
            "retryable": True,
            "details": error.failures,
        }

    if isinstance(error, (ProviderTimeoutError, VerifierTimeoutError)):
        return {
            "type": "network_error",
            "message": "Network error. Please check your connection and try again.",
            "retryable": True,
        }

    if isinstance(error, ProviderError):
        if error.status_code == 429:
            return {
                "type": "rate_limit",
                "message": "Too many requests. Please wait a moment and try again.",
                "retryable": True,
            }
        if error.status_code is not None and error.status_code >= 500:
            return {"type": "server_error", "message": "Server error. Please try again later.", "retryable": True}
        return {"type": "provider_error", "message": str(error), "retryable": True}

    return {
        "type": "unknown",
        "message": str(error) or "An unexpected error occurred.",
        "retryable": False,
    }
