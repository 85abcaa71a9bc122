"""
Dependency injection for the API server.

The verification service is attached to app.state when the app is created,
so routers stay free of module-level globals and tests can inject a stub.
"""

from fastapi import HTTPException, Request

from nftgate.core.service import NFTVerificationService


def get_verification_service(request: Request) -> NFTVerificationService:
    """Get the verification service via dependency injection."""
    service = getattr(request.app.state, "verification_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Verification service not configured")
    return service
