"""Per-chain watcher loop with retry and health reporting."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from ..config import ChainConfig, RetryConfig
from ..db import AnomalyRecord, Repository
from ..errors import DeepReorgError, GapError, TransientStoreError, UpstreamFetchError
from ..graph import recluster
from ..types import Transfer
from .checkpoint import CheckpointStore
from .pipeline import AdvanceResult, BlockPipeline
from .source import BlockSource

logger = logging.getLogger(__name__)

AnomalyCallback = Callable[[Transfer, AnomalyRecord], Awaitable[None] | None]


class ChainStatus(str, Enum):
    HEALTHY = "healthy"
    RETRYING = "retrying"
    HALTED = "halted"


@dataclass
class ChainHealth:
    """Last known state of one chain's watcher."""

    chain_id: int
    name: str
    status: ChainStatus = ChainStatus.HEALTHY
    last_height: int | None = None
    last_error_kind: str | None = None
    last_error: str | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> str:
        text = f"{self.name} ({self.chain_id}): {self.status.value}, height={self.last_height}"
        if self.last_error_kind:
            text += f", last error [{self.last_error_kind}] {self.last_error}"
        return text


class ChainIndexer:
    """
    Polls a block source and feeds one chain's blocks through the pipeline.

    Transient failures back off exponentially and retry the same height.
    Gaps, deep reorgs and unexpected errors halt this chain only.
    """

    def __init__(
        self,
        chain: ChainConfig,
        pipeline: BlockPipeline,
        source: BlockSource,
        checkpoints: CheckpointStore,
        repository: Repository,
        retry: RetryConfig | None = None,
        on_anomaly: AnomalyCallback | None = None,
    ):
        self.chain = chain
        self.pipeline = pipeline
        self.source = source
        self.checkpoints = checkpoints
        self.repository = repository
        self.retry = retry or RetryConfig()
        self.on_anomaly = on_anomaly

        self.health = ChainHealth(chain_id=chain.chain_id, name=chain.name)
        self._running = False
        self._delay = self.retry.initial_delay_secs
        self._blocks_since_recluster = 0

    @property
    def halted(self) -> bool:
        return self.health.status is ChainStatus.HALTED

    async def step(self) -> AdvanceResult | None:
        """
        Fetch and apply the next block.

        Returns:
            The advance result, or None if the next block is not yet available
        """
        checkpoint = await self.checkpoints.load(self.chain.chain_id)
        block = await self.source.get_block(
            self.chain.chain_id, checkpoint.last_indexed_block + 1
        )
        if block is None:
            return None

        result = await self.pipeline.advance(block)

        if result.rolled_back_to is not None:
            logger.warning(
                f"Chain {self.chain.name}: reorg at block {block.number}, "
                f"resumed from {result.rolled_back_to}"
            )

        if result.rollback is not None:
            # Clusters may rest on edges the rollback removed
            await self._recluster_now()
        elif result.applied:
            self._blocks_since_recluster += 1
            await self._maybe_recluster()

        for transfer, anomaly in result.anomalies:
            await self._notify(transfer, anomaly)

        current = await self.checkpoints.load(self.chain.chain_id)
        self._mark_healthy(current.last_indexed_block)
        return result

    async def run(self):
        """Run until stopped or halted."""
        self._running = True
        logger.info(
            f"Watching {self.chain.name} (chain {self.chain.chain_id}) "
            f"from block {self.chain.start_block}"
        )

        while self._running:
            try:
                result = await self.step()
            except (GapError, DeepReorgError) as e:
                self._mark_halted(e)
                logger.error(f"Chain {self.chain.name} halted: {e}")
                break
            except (TransientStoreError, UpstreamFetchError) as e:
                delay = self._mark_retrying(e)
                logger.warning(
                    f"Chain {self.chain.name}: {e}; retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
                continue
            except Exception as e:
                self._mark_halted(e)
                logger.exception(f"Chain {self.chain.name} halted on unexpected error: {e}")
                break

            if result is None:
                await asyncio.sleep(self.chain.poll_interval_secs)

        self._running = False

    def stop(self):
        """Signal the loop to exit after the current step."""
        self._running = False

    async def _maybe_recluster(self):
        interval = self.chain.recluster_interval_blocks
        if interval <= 0 or self._blocks_since_recluster < interval:
            return
        await self._recluster_now()

    async def _recluster_now(self):
        if self.chain.recluster_interval_blocks <= 0:
            return
        self._blocks_since_recluster = 0
        await recluster(self.repository, self.chain.chain_id)

    async def _notify(self, transfer: Transfer, anomaly: AnomalyRecord):
        if self.on_anomaly is None:
            return
        outcome = self.on_anomaly(transfer, anomaly)
        if asyncio.iscoroutine(outcome):
            await outcome

    def _mark_healthy(self, height: int):
        self.health.status = ChainStatus.HEALTHY
        self.health.last_height = height
        self.health.updated_at = datetime.now(timezone.utc)
        self._delay = self.retry.initial_delay_secs

    def _mark_retrying(self, error: Exception) -> float:
        self._record_error(ChainStatus.RETRYING, error)
        delay = self._delay
        self._delay = min(self._delay * 2, self.retry.max_delay_secs)
        return delay

    def _mark_halted(self, error: Exception):
        self._record_error(ChainStatus.HALTED, error)

    def _record_error(self, status: ChainStatus, error: Exception):
        self.health.status = status
        self.health.last_error_kind = getattr(error, "kind", type(error).__name__)
        self.health.last_error = str(error)
        self.health.updated_at = datetime.now(timezone.utc)
