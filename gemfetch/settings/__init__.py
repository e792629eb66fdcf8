"""Fetcher settings loading."""

from .app import FetcherSettings, VerifyMode, get_settings, load_settings


__all__ = ["FetcherSettings", "VerifyMode", "get_settings", "load_settings"]
