"""
Pydantic models for API responses.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    type: str
    message: str
    retryable: bool
    details: Optional[Dict[str, Any]] = None


class AccessInfo(BaseModel):
    level: str
    features: List[str]
    next_level: Optional[str] = None
    requirements_gap: Dict[str, int] = {}


class DelegationStatus(BaseModel):
    wallet: str
    has_delegations: bool


class CacheClearResult(BaseModel):
    cleared: bool
    wallet: Optional[str] = None
