"""Settings loader combining bundled YAML defaults with environment overrides."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from wallet_token_aggregator.rpc.provider import ALCHEMY_URL_TEMPLATE

# Environment variable -> (section, key) in settings.yaml
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "ALCHEMY_API_KEY": ("alchemy", "api_key"),
    "ALCHEMY_URL": ("alchemy", "url"),
    "ALCHEMY_NETWORK": ("alchemy", "network"),
    "COINGECKO_API_KEY": ("coingecko", "api_key"),
    "COINGECKO_BASE_URL": ("coingecko", "base_url"),
    "TOP_TOKENS": ("coingecko", "top_tokens"),
    "PRICE_CACHE_FILE": ("price_cache", "file"),
    "PRICE_CACHE_TTL": ("price_cache", "ttl_seconds"),
    "METADATA_WORKERS": ("metadata", "workers"),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "REQUEST_TIMEOUT": (None, "request_timeout"),
}


class AlchemySettings(BaseModel):
    api_key: str | None = None
    url: str | None = None
    network: str = "eth-mainnet"


class CoinGeckoSettings(BaseModel):
    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: str | None = None
    platform: str = "ethereum"
    top_tokens: int = Field(default=500, gt=0)
    per_page: int = Field(default=250, gt=0, le=250)


class PriceCacheSettings(BaseModel):
    file: Path = Path("prices.json")
    ttl_seconds: int = Field(default=3600, gt=0)


class MetadataSettings(BaseModel):
    workers: int = Field(default=16, gt=0)
    logo_url_template: str = (
        "https://raw.githubusercontent.com/trustwallet/assets/master/blockchains/ethereum/assets/{address}/logo.png"
    )


class IdentitySettings(BaseModel):
    name_suffixes: list[str] = Field(default_factory=lambda: [".eth"])


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 5000
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])


class Settings(BaseModel):
    """
    Service configuration.

    Attributes
    ----------
    alchemy : AlchemySettings
        Balance, metadata and ENS provider
    coingecko : CoinGeckoSettings
        Market-data source for the bulk price refresh
    price_cache : PriceCacheSettings
        Snapshot file and TTL
    metadata : MetadataSettings
        Enrichment concurrency and fallback logo template
    identity : IdentitySettings
        Suffixes treated as ENS names
    server : ServerSettings
        HTTP listener and CORS origins
    request_timeout : float
        Timeout in seconds for every outbound call

    """

    alchemy: AlchemySettings = Field(default_factory=AlchemySettings)
    coingecko: CoinGeckoSettings = Field(default_factory=CoinGeckoSettings)
    price_cache: PriceCacheSettings = Field(default_factory=PriceCacheSettings)
    metadata: MetadataSettings = Field(default_factory=MetadataSettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    request_timeout: float = Field(default=10.0, gt=0)

    @property
    def rpc_url(self) -> str:
        """
        Alchemy endpoint URL.

        Raises
        ------
        ValueError
            If neither ALCHEMY_URL nor ALCHEMY_API_KEY is configured

        """
        if self.alchemy.url:
            return self.alchemy.url
        if self.alchemy.api_key:
            return ALCHEMY_URL_TEMPLATE.format(network=self.alchemy.network, key=self.alchemy.api_key)
        msg = "Alchemy is not configured. Set ALCHEMY_API_KEY or ALCHEMY_URL."
        raise ValueError(msg)


def load_defaults(path: Path | None = None) -> dict[str, Any]:
    """
    Load bundled default settings from settings.yaml.

    Parameters
    ----------
    path : Path | None
        Alternative YAML file. Uses the bundled file if None.

    Returns
    -------
    dict[str, Any]
        Raw settings tree

    """
    path = path or Path(__file__).parent / "settings.yaml"
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_settings(path: Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """
    Load settings from YAML and apply environment overrides.

    Parameters
    ----------
    path : Path | None
        Alternative YAML file
    environ : Mapping[str, str] | None
        Environment to read overrides from. Uses os.environ if None.

    Returns
    -------
    Settings
        Validated settings

    """
    data = load_defaults(path)
    environ = os.environ if environ is None else environ

    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        if section is None:
            data[key] = value
        else:
            # An empty YAML section loads as None
            section_data = data.get(section) or {}
            section_data[key] = value
            data[section] = section_data

    return Settings.model_validate(data)
