"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import (
    Field,
    SecretStr,
    field_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

load_dotenv()


class Network(str, Enum):
    CELO = "celo-mainnet"
    ETHEREUM = "ethereum-mainnet"
    ARBITRUM = "arbitrum-one"
    OPTIMISM = "op-mainnet"
    POLYGON = "polygon-pos-mainnet"
    BASE = "base-mainnet"


SECRET_FIELDS = frozenset(
    {"alchemy_key", "hypersync_api_token", "the_graph_api_key", "fonbnk_client_secret"}
)

LOG_LEVELS = frozenset({"TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class RevenueSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with DEFI_REVENUE_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- endpoints ---
    rpc_urls: dict[Network, str] = Field(default_factory=dict)
    alchemy_key: SecretStr | None = None
    hypersync_url_template: str = "https://{chain_id}.hypersync.xyz"
    hypersync_api_token: SecretStr | None = None
    block_index_url: str = "https://coins.llama.fi"
    price_history_url: str = "https://api.mainnet.valora.xyz/getTokenPriceHistory"
    beefy_api_url: str = "https://databarn.beefy.com/api/v1/beefy"
    somm_api_url: str = "https://api.sommelier.finance"
    fonbnk_api_url: str = "https://aten.fonbnk-services.com"
    the_graph_gateway_url: str = "https://gateway.thegraph.com/api/subgraphs/id/"
    the_graph_api_key: SecretStr | None = None

    # --- fonbnk credentials ---
    fonbnk_client_id: str | None = None
    fonbnk_client_secret: SecretStr | None = None

    # --- referral registry ---
    registry_addresses: dict[Network, str] = Field(default_factory=dict)

    # --- transport ---
    request_timeout: float = Field(default=15.0, gt=0)
    max_retries: int = Field(default=5, ge=0)
    retry_base_delay: float = Field(default=1.0, gt=0)

    # --- chain queries ---
    block_chunk_size: int = Field(default=10_000, gt=0)
    rpc_max_concurrent_calls: int = Field(default=5, gt=0)
    rpc_delay: float = Field(default=0.0, ge=0)
    rpc_jitter: float = Field(default=0.0, ge=0)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DEFI_REVENUE_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator(*sorted(SECRET_FIELDS), mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        level = str(v).upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(LOG_LEVELS)}, got {v!r}"
            )
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("DEFI_REVENUE_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    # Try default locations
                    local_config = Path("defi-revenue.toml")
                    user_config = (
                        Path.home() / ".config" / "defi-revenue" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [defi_revenue]
                body = data.get("defi_revenue", data)
                if not isinstance(body, dict):
                    return {}

                for key in SECRET_FIELDS:
                    if key in body:
                        raise ValueError(
                            f"Security violation: '{key}' found in TOML config file. "
                            f"Secrets must only be provided via environment variables or CLI flags."
                        )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,  # optional secrets dir
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with secrets redacted."""
        data = self.model_dump(mode="json")
        for key in SECRET_FIELDS:
            if getattr(self, key) is not None:
                data[key] = "***redacted***"
        return data

    def secret_value(self, name: str) -> str | None:
        """Return the plain value of a secret setting, or None if unset."""
        secret = getattr(self, name)
        return secret.get_secret_value() if secret is not None else None
