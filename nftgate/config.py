"""
Centralized Configuration Management

Loads and validates configuration for the verification engine from environment
variables and .env files. Each external provider has its own nested section.
"""

from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlchemyConfig(BaseSettings):
    """Alchemy NFT API (provider A) configuration."""

    model_config = SettingsConfigDict(env_prefix="ALCHEMY_")

    api_key: Optional[str] = None
    network: str = "eth-mainnet"
    base_url: str = "https://eth-mainnet.g.alchemy.com/nft/v3"
    page_size: int = 100
    max_pages: int = 10

    priority: int = 1
    requests_per_second: int = 5
    timeout: float = 15.0


class MoralisConfig(BaseSettings):
    """Moralis Web3 Data API (provider B) configuration."""

    model_config = SettingsConfigDict(env_prefix="MORALIS_")

    api_key: Optional[str] = None
    chain: str = "eth"
    base_url: str = "https://deep-index.moralis.io/api/v2.2"
    max_pages: int = 10

    priority: int = 2
    requests_per_second: int = 25
    timeout: float = 15.0


class EtherscanConfig(BaseSettings):
    """Etherscan (provider C and ledger indexer) configuration."""

    model_config = SettingsConfigDict(env_prefix="ETHERSCAN_")

    api_key: Optional[str] = None
    base_url: str = "https://api.etherscan.io/api"

    priority: int = 3
    requests_per_second: int = 5
    min_request_interval: float = 0.2  # Free tier caps request rate
    timeout: float = 15.0


class DelegateRegistryConfig(BaseSettings):
    """Delegation registry (delegate.xyz) configuration."""

    model_config = SettingsConfigDict(env_prefix="DELEGATE_")

    base_url: str = "https://api.delegate.xyz/registry"
    api_key: Optional[str] = None
    min_request_interval: float = 0.2
    timeout: float = 10.0


class CacheConfig(BaseSettings):
    """Verification and delegation cache configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    ttl_seconds: float = 300.0  # 5 minutes
    max_entries: int = 10000
    serve_stale_on_failure: bool = True


class VerifierConfig(BaseSettings):
    """Verification pipeline behaviour."""

    model_config = SettingsConfigDict(env_prefix="VERIFIER_")

    enable_onchain_verification: bool = True
    enable_delegation: bool = True
    enable_chain_metadata: bool = True
    recent_activity_days: int = 7


class ApiServerConfig(BaseSettings):
    """HTTP API configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: List[str] = ["http://localhost:3000"]


class AppConfig(BaseSettings):
    """
    Application configuration with nested provider sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    log_level: str = "INFO"
    log_format: str = "text"  # 'json' for structured output
    log_file: Optional[str] = None

    # Nested configuration sections, built per instance so each reads the
    # environment at construction time
    alchemy: AlchemyConfig = Field(default_factory=AlchemyConfig)
    moralis: MoralisConfig = Field(default_factory=MoralisConfig)
    etherscan: EtherscanConfig = Field(default_factory=EtherscanConfig)
    delegate: DelegateRegistryConfig = Field(default_factory=DelegateRegistryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    verifier: VerifierConfig = Field(default_factory=VerifierConfig)
    api: ApiServerConfig = Field(default_factory=ApiServerConfig)

    def configured_providers(self) -> List[str]:
        """Names of ownership providers that have credentials."""
        providers = []
        if self.alchemy.api_key:
            providers.append("ALCHEMY")
        if self.moralis.api_key:
            providers.append("MORALIS")
        if self.etherscan.api_key:
            providers.append("ETHERSCAN")
        return providers


def create_settings(env_file: str = ".env") -> AppConfig:
    """
    Create settings from the environment and a .env file.

    The .env file is loaded into the process environment first so the
    prefixed provider sections (ALCHEMY_API_KEY, ...) see its values.
    Variables already set in the environment take precedence.
    """
    load_dotenv(env_file)
    return AppConfig(_env_file=env_file)
