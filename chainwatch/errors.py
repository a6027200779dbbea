"""Indexer error taxonomy."""


class IndexerError(Exception):
    """Base class for errors raised by the ingestion pipeline."""

    kind = "indexer_error"


class GapError(IndexerError):
    """A block arrived above checkpoint + 1; missing heights must be backfilled."""

    kind = "gap"

    def __init__(self, chain_id: int, expected: int, received: int):
        self.chain_id = chain_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Chain {chain_id}: expected block {expected}, received {received}"
        )


class DeepReorgError(IndexerError):
    """No common ancestor within the configured maximum reorg depth."""

    kind = "deep_reorg"

    def __init__(self, chain_id: int, block_number: int, max_depth: int):
        self.chain_id = chain_id
        self.block_number = block_number
        self.max_depth = max_depth
        super().__init__(
            f"Chain {chain_id}: reorg at block {block_number} exceeds "
            f"max depth {max_depth}"
        )


class TransientStoreError(IndexerError):
    """The store is unavailable; retry with backoff."""

    kind = "transient_store"


class UpstreamFetchError(IndexerError):
    """The block source failed or returned an inconsistent chain."""

    kind = "upstream_fetch"


class AttributionAmbiguous(IndexerError):
    """Both sides of a transfer match known provider wallets."""

    kind = "attribution_ambiguous"

    def __init__(self, transfer_id: int, from_provider: int, to_provider: int):
        self.transfer_id = transfer_id
        self.from_provider = from_provider
        self.to_provider = to_provider
        super().__init__(
            f"Transfer {transfer_id} matches providers on both sides "
            f"(from={from_provider}, to={to_provider})"
        )
