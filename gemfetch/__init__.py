"""Remote specification fetching for RubyGems-style registries."""

__version__ = "0.1.0"
