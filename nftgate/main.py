"""
Main entry point for the verification engine.

Two commands:
1. verify: verify one wallet and print the result as JSON
2. serve: run the HTTP API with uvicorn
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import uvicorn

from nftgate.config import AppConfig, create_settings
from nftgate.core.service import build_verification_service
from nftgate.exceptions import VerifierBaseException, describe_error
from nftgate.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="nftgate",
        description="NFT ownership and delegation verification engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m nftgate verify 0xabc...              # Verify a wallet
  python -m nftgate verify 0xabc... --refresh    # Skip the cache
  python -m nftgate serve --port 8080            # Run the HTTP API
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify = subparsers.add_parser("verify", help="Verify a wallet and print the result")
    verify.add_argument("wallet", help="Wallet address (0x...)")
    verify.add_argument("--refresh", action="store_true", help="Bypass the verification cache")
    verify.add_argument("--indent", type=int, default=2, help="JSON indentation (default: 2)")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind host (default: from configuration)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: from configuration)")

    return parser.parse_args(argv)


async def run_verify(settings: AppConfig, wallet: str, refresh: bool = False, indent: int = 2) -> int:
    """Verify one wallet and write the JSON result to stdout."""
    service = build_verification_service(settings)
    try:
        result = await service.verify_wallet(wallet, force_refresh=refresh)
    except VerifierBaseException as e:
        print(json.dumps({"error": describe_error(e)}, indent=indent), file=sys.stderr)
        return 1
    finally:
        await service.close()

    print(json.dumps(result.to_dict(), indent=indent))
    return 0


def run_server(settings: AppConfig, host: Optional[str] = None, port: Optional[int] = None) -> int:
    from nftgate.api_server import create_api_server

    app = create_api_server(build_verification_service(settings), settings)
    host = host or settings.api.host
    port = port or settings.api.port
    logger.info(f"Verification API starting on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    args = parse_arguments(argv)
    settings = create_settings()
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(settings.log_level, settings.log_format, settings.log_file)

    if settings.configured_providers():
        logger.debug(f"Configured providers: {', '.join(settings.configured_providers())}")
    else:
        logger.warning("No NFT provider API keys configured; every verification will fail")

    if args.command == "verify":
        return asyncio.run(run_verify(settings, args.wallet, args.refresh, args.indent))
    return run_server(settings, args.host, args.port)
