"""Per-chain checkpoint ownership."""

import asyncio
import logging

from ..db import Repository
from ..types import Checkpoint

logger = logging.getLogger(__name__)


class CheckpointStore:
    """
    Durable per-chain cursors, each guarded by its own lock.

    Whoever holds ``lock(chain_id)`` is the only writer of that chain's
    checkpoint, block hashes and transfers.
    """

    def __init__(self, repository: Repository):
        self.repository = repository
        self._locks: dict[int, asyncio.Lock] = {}
        self._start_blocks: dict[int, int] = {}

    def register(self, chain_id: int, start_block: int = 0):
        """Declare a chain and the first height to index when it has no checkpoint."""
        self._start_blocks[chain_id] = start_block
        self._locks.setdefault(chain_id, asyncio.Lock())

    def lock(self, chain_id: int) -> asyncio.Lock:
        if chain_id not in self._locks:
            raise KeyError(f"Chain {chain_id} is not registered")
        return self._locks[chain_id]

    async def load(self, chain_id: int) -> Checkpoint:
        """
        Get the current checkpoint for a chain.

        A chain that was never indexed starts just below its start block
        with no known hash.
        """
        checkpoint = await self.repository.get_checkpoint(chain_id)
        if checkpoint is not None:
            return checkpoint

        start = self._start_blocks.get(chain_id, 0)
        return Checkpoint(
            chain_id=chain_id,
            last_indexed_block=start - 1,
            last_block_hash=None,
        )

    async def save(self, chain_id: int, block_number: int, block_hash: str | None):
        """Write the checkpoint. Must run inside the block's transaction."""
        await self.repository.upsert_checkpoint(chain_id, block_number, block_hash)
        logger.debug(f"Chain {chain_id} checkpoint -> {block_number}")
