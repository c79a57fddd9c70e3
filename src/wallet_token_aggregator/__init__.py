"""Aggregate a wallet's fungible-token holdings into a priced, deduplicated list."""

__version__ = "0.1.0"
