"""Fetcher settings powered by Pydantic BaseSettings."""

from enum import Enum
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class VerifyMode(str, Enum):
    """TLS peer verification mode."""

    PEER = "peer"
    NONE = "none"


# OpenSSL style integers are accepted as aliases
_VERIFY_MODE_ALIASES = {"0": VerifyMode.NONE, "1": VerifyMode.PEER}


def _normalize_uri(uri: str) -> str:
    """Normalize a registry URI for settings lookups (trailing slash)."""
    return uri if uri.endswith("/") else f"{uri}/"


class FetcherSettings(BaseSettings):
    """Read-only key-value configuration for fetch sessions.

    Values come from ``GEMFETCH_*`` environment variables, a ``.env`` file,
    or a YAML file through :func:`load_settings`.
    """

    model_config = SettingsConfigDict(
        env_prefix="GEMFETCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    credentials: dict[str, str] = Field(
        default_factory=dict,
        description="Registry URL or host -> 'username:password'",
    )
    mirrors: dict[str, str] = Field(
        default_factory=dict, description="Registry URL -> mirror URL"
    )
    ssl_verify_mode: VerifyMode | None = None
    ssl_ca_cert: Path | None = None
    ssl_client_cert: Path | None = None
    disable_endpoint: bool = False
    user_agent: str | None = Field(
        default=None, description="Extra token appended to the User-Agent"
    )
    spec_cache_dirs: list[Path] = Field(default_factory=list)

    @field_validator("ssl_verify_mode", mode="before")
    @classmethod
    def parse_verify_mode(cls, v: Any) -> Any:
        """Accept OpenSSL style 0/1 values."""
        if v is None:
            return v
        key = str(v).strip().lower()
        return _VERIFY_MODE_ALIASES.get(key, key)

    def credentials_for(self, uri: httpx.URL) -> str | None:
        """Look up credentials configured for a registry.

        A full URL key wins over a bare host key.

        Args:
            uri: Registry URL (after mirror substitution).

        Returns:
            'username:password' string, or None.
        """
        by_uri = self.credentials.get(_normalize_uri(str(uri)))
        if by_uri is None:
            by_uri = self.credentials.get(str(uri))
        return by_uri if by_uri is not None else self.credentials.get(uri.host)

    def mirror_for(self, uri: str) -> str:
        """Return the mirror configured for a registry, or the registry itself.

        Args:
            uri: Registry URL.

        Returns:
            The URL to use in place of ``uri``.
        """
        normalized = _normalize_uri(uri)
        mirrors = {_normalize_uri(k): v for k, v in self.mirrors.items()}
        return mirrors.get(normalized, uri)

    def enabled_option_names(self) -> list[str]:
        """Names of settings that are set, for the User-Agent string.

        Values are never included; only the option names are.
        """
        names: list[str] = []
        for name, value in self.model_dump().items():
            if value in (None, False, {}, []):
                continue
            names.append(name)
        return sorted(names)


def get_settings() -> FetcherSettings:
    """Get a settings instance from the environment."""
    return FetcherSettings()


def load_settings(path: Path) -> FetcherSettings:
    """Load settings from a YAML file.

    Values in the file take precedence over environment variables.

    Args:
        path: Path to the YAML file.

    Returns:
        Validated settings.
    """
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        msg = f"Settings file {path} must contain a mapping"
        raise ValueError(msg)
    return FetcherSettings(**data)
