"""ChainWatch - multi-chain stablecoin transfer indexer."""

__version__ = "0.1.0"
