"""
Verification API Server

FastAPI application exposing the verification engine. Engine exceptions map to
HTTP status codes:

- InvalidWalletAddressError -> 400
- AllProvidersFailedError -> 503 (retryable)
- any other engine error -> 502
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nftgate import __version__
from nftgate.config import AppConfig, create_settings
from nftgate.core.service import NFTVerificationService
from nftgate.exceptions import (
    AllProvidersFailedError,
    InvalidWalletAddressError,
    VerifierBaseException,
    describe_error,
)

logger = logging.getLogger(__name__)


def _status_for(exc: VerifierBaseException) -> int:
    if isinstance(exc, InvalidWalletAddressError):
        return 400
    if isinstance(exc, AllProvidersFailedError):
        return 503
    return 502


def create_api_server(service: NFTVerificationService, settings: Optional[AppConfig] = None) -> FastAPI:
    """Factory function to create the API server around a verification service."""
    settings = settings or create_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await service.close()
        logger.info("Verification service closed")

    app = FastAPI(
        title="NFT Verification API",
        description="Wallet NFT ownership and delegation verification",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.verification_service = service
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    from .routers import verification

    app.include_router(verification.router)

    @app.get("/health")
    async def health_check():
        """Public health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "version": __version__,
            "providers": settings.configured_providers(),
        }

    @app.exception_handler(VerifierBaseException)
    async def verifier_exception_handler(request: Request, exc: VerifierBaseException):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.warning(f"Verification failed for {request.url.path}: {exc}")
        return JSONResponse(status_code=status_code, content=describe_error(exc))

    return app
