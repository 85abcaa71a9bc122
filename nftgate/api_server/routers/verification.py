"""
Verification API Router

Exposes wallet verification, delegation lookup and service status.
Engine errors are translated to HTTP responses by the server's exception
handlers.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from nftgate.core.access_levels import AccessLevel
from nftgate.core.service import NFTVerificationService
from ..dependencies import get_verification_service
from ..schemas import AccessInfo, CacheClearResult, DelegationStatus, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verification", tags=["verification"])


@router.get("/status")
async def get_status(service: NFTVerificationService = Depends(get_verification_service)) -> Dict[str, Any]:
    """Provider health, rate limit usage and cache statistics."""
    return service.get_service_status()


@router.delete("/cache", response_model=CacheClearResult)
async def clear_cache(
    wallet: Optional[str] = Query(None),
    service: NFTVerificationService = Depends(get_verification_service),
):
    service.clear_cache(wallet)
    logger.info(f"Verification cache cleared for {wallet or 'all wallets'}")
    return CacheClearResult(cleared=True, wallet=wallet.lower() if wallet else None)


@router.get("/{wallet}/delegations", response_model=DelegationStatus)
async def get_delegation_status(
    wallet: str,
    service: NFTVerificationService = Depends(get_verification_service),
):
    has_delegations = await service.has_delegations(wallet)
    return DelegationStatus(wallet=wallet.lower(), has_delegations=has_delegations)


@router.get("/{wallet}", responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}})
async def verify_wallet(
    wallet: str,
    refresh: bool = Query(False, description="Bypass the verification cache"),
    service: NFTVerificationService = Depends(get_verification_service),
) -> Dict[str, Any]:
    """Verify a wallet and return the verification result with tier details."""
    result = await service.verify_wallet(wallet, force_refresh=refresh)

    level = AccessLevel(result.access_level)
    next_level = service.next_access_level(result)
    access = AccessInfo(
        level=level.value,
        features=list(service.policy.features(level)),
        next_level=next_level.value if next_level else None,
        requirements_gap=service.requirements_gap(result, next_level) if next_level else {},
    )

    payload = result.to_dict()
    payload["access"] = access.model_dump()
    return payload
