"""Reorg detection and rollback."""

import logging
from enum import Enum

from ..db import Repository, RollbackSummary
from ..errors import DeepReorgError, GapError, UpstreamFetchError
from ..graph import GraphAggregator
from ..types import Checkpoint, FetchedBlock
from .checkpoint import CheckpointStore
from .source import BlockSource

logger = logging.getLogger(__name__)


class Continuation(str, Enum):
    """How a fetched block relates to the stored chain."""

    EXTEND = "extend"
    DUPLICATE = "duplicate"
    REORG = "reorg"


class ReorgDetector:
    """
    Compares fetched blocks against the block hash ledger for one chain.

    Rollback never reaches further than ``max_reorg_depth`` below the
    checkpoint; deeper forks halt the chain with DeepReorgError.
    """

    def __init__(
        self,
        chain_id: int,
        repository: Repository,
        checkpoints: CheckpointStore,
        aggregator: GraphAggregator,
        source: BlockSource,
        max_reorg_depth: int = 64,
    ):
        self.chain_id = chain_id
        self.repository = repository
        self.checkpoints = checkpoints
        self.aggregator = aggregator
        self.source = source
        self.max_reorg_depth = max_reorg_depth

    async def classify(self, checkpoint: Checkpoint, block: FetchedBlock) -> Continuation:
        """
        Decide how to continue with a fetched block.

        Raises:
            GapError: the block is above checkpoint + 1
        """
        last = checkpoint.last_indexed_block

        if block.number > last + 1:
            raise GapError(self.chain_id, last + 1, block.number)

        if block.number == last + 1:
            if (
                checkpoint.last_block_hash is None
                or block.parent_hash == checkpoint.last_block_hash
            ):
                return Continuation.EXTEND

            logger.warning(
                f"Chain {self.chain_id}: block {block.number} parent "
                f"{block.parent_hash[:10]}... does not match checkpoint "
                f"{checkpoint.last_block_hash[:10]}..."
            )
            return Continuation.REORG

        stored = await self.repository.get_block_hash(self.chain_id, block.number)
        if stored is None:
            # Below the ledger window or before the start block
            logger.debug(
                f"Chain {self.chain_id}: no stored hash for block {block.number}, ignoring"
            )
            return Continuation.DUPLICATE

        if stored == block.hash:
            return Continuation.DUPLICATE

        logger.warning(
            f"Chain {self.chain_id}: block {block.number} hash {block.hash[:10]}... "
            f"differs from stored {stored[:10]}..."
        )
        return Continuation.REORG

    async def find_common_ancestor(
        self, checkpoint: Checkpoint, block: FetchedBlock
    ) -> int:
        """
        Walk back along the fetched block's parent links to the fork point.

        Each step compares the stored hash at a height with the hash the new
        chain expects there. On a mismatch the canonical header for that
        height is fetched and must carry the expected hash before its parent
        is followed.

        Returns:
            The highest height whose stored hash agrees with the new chain

        Raises:
            DeepReorgError: the ancestor lies deeper than max_reorg_depth
            UpstreamFetchError: the source's headers do not link up
        """
        floor = checkpoint.last_indexed_block - self.max_reorg_depth
        expected = block.parent_hash
        height = block.number - 1

        while True:
            if height < floor:
                raise DeepReorgError(self.chain_id, block.number, self.max_reorg_depth)

            stored = await self.repository.get_block_hash(self.chain_id, height)
            if stored is None or stored == expected:
                return height

            header = await self.source.get_header(self.chain_id, height)
            if header is None or header.hash != expected:
                raise UpstreamFetchError(
                    f"Chain {self.chain_id}: canonical header at {height} does not "
                    f"match expected hash {expected[:10]}..."
                )

            expected = header.parent_hash
            height -= 1

    async def rollback(self, ancestor: int) -> RollbackSummary:
        """
        Remove everything above the common ancestor.

        Must run inside a transaction. Derived rows are deleted before their
        transfers, aggregates are re-derived from what remains, and the
        checkpoint is reset to the ancestor.
        """
        summary = await self.repository.delete_transfers_above(self.chain_id, ancestor)
        await self.repository.delete_block_hashes_above(self.chain_id, ancestor)
        await self.aggregator.rederive(self.chain_id, summary.pairs, summary.addresses)

        ancestor_hash = await self.repository.get_block_hash(self.chain_id, ancestor)
        await self.checkpoints.save(self.chain_id, ancestor, ancestor_hash)

        logger.warning(
            f"Chain {self.chain_id}: rolled back to block {ancestor}, "
            f"deleted {summary.transfers_deleted} transfers"
        )
        return summary
