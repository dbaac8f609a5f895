"""Gold Portfolio: cross-checked gold price feed and offline cache gateway."""

__version__ = "0.1.0"
