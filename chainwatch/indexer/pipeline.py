"""Block pipeline - applies fetched blocks to the store for one chain."""

import logging
from dataclasses import dataclass, field

from ..config import ChainConfig
from ..db import AnomalyRecord, Repository, RollbackSummary
from ..detection import AnomalyScorer, WalletContext
from ..entity import EntityAttributor
from ..graph import GraphAggregator
from ..types import FetchedBlock, Transfer
from .checkpoint import CheckpointStore
from .recorder import TransferRecorder
from .reorg import Continuation, ReorgDetector

logger = logging.getLogger(__name__)


@dataclass
class AdvanceResult:
    """Outcome of applying one fetched block."""

    block_number: int
    continuation: Continuation
    applied: bool = False
    transfers_recorded: int = 0
    duplicates: int = 0
    new_wallets: int = 0
    rolled_back_to: int | None = None
    rollback: RollbackSummary | None = None
    anomalies: list[tuple[Transfer, AnomalyRecord]] = field(default_factory=list)


class BlockPipeline:
    """
    Ingests blocks for one chain.

    A block's transfers, their derived rows, its hash and the checkpoint are
    written in one transaction, so a crash leaves the chain at its previous
    checkpoint and the block is simply replayed.
    """

    def __init__(
        self,
        chain: ChainConfig,
        repository: Repository,
        checkpoints: CheckpointStore,
        detector: ReorgDetector,
        recorder: TransferRecorder,
        aggregator: GraphAggregator,
        attributor: EntityAttributor,
        scorer: AnomalyScorer,
    ):
        self.chain = chain
        self.repository = repository
        self.checkpoints = checkpoints
        self.detector = detector
        self.recorder = recorder
        self.aggregator = aggregator
        self.attributor = attributor
        self.scorer = scorer
        self._watched_tokens = {t.address.lower() for t in chain.tokens}

    @property
    def chain_id(self) -> int:
        return self.chain.chain_id

    async def advance(self, block: FetchedBlock) -> AdvanceResult:
        """
        Apply a fetched block.

        Raises:
            GapError: the block skips heights
            DeepReorgError: the block forks deeper than the reorg window
            TransientStoreError / UpstreamFetchError: retry later
        """
        async with self.checkpoints.lock(self.chain_id):
            checkpoint = await self.checkpoints.load(self.chain_id)
            continuation = await self.detector.classify(checkpoint, block)
            result = AdvanceResult(block_number=block.number, continuation=continuation)

            if continuation is Continuation.DUPLICATE:
                logger.debug(f"Chain {self.chain_id}: block {block.number} already indexed")
                return result

            if continuation is Continuation.EXTEND:
                async with self.repository.transaction():
                    await self._apply(block, result)
                return result

            # Fetch-heavy search runs before the write transaction opens
            ancestor = await self.detector.find_common_ancestor(checkpoint, block)
            async with self.repository.transaction():
                result.rollback = await self.detector.rollback(ancestor)
                result.rolled_back_to = ancestor
                if block.number == ancestor + 1:
                    await self._apply(block, result)

            return result

    async def _apply(self, block: FetchedBlock, result: AdvanceResult):
        transfers = [
            Transfer.from_fetched(self.chain_id, block, fetched)
            for fetched in block.transfers
            if self._is_watched(fetched.token_address)
        ]

        # Configured token metadata wins over what the feed reports
        known = await self.repository.get_known_tokens(self.chain_id)
        for transfer in transfers:
            if transfer.token_address in known:
                transfer.token_symbol, transfer.token_decimals = known[transfer.token_address]

        for transfer in transfers:
            record = await self.recorder.record(transfer)
            if record.inserted:
                result.transfers_recorded += 1
            else:
                result.duplicates += 1

            if await self.repository.mark_absorbed(record.transfer_id):
                result.new_wallets += len(await self.aggregator.absorb(transfer))

            await self.attributor.attribute(transfer)

            context = await WalletContext.build(
                self.repository, self.attributor.labels, transfer
            )
            for anomaly in await self.scorer.evaluate(transfer, context):
                result.anomalies.append((transfer, anomaly))

        await self.repository.upsert_block_hash(
            self.chain_id, block.number, block.hash, block.parent_hash
        )
        # Keep one extra height so the deepest allowed ancestor stays comparable
        prune_below = block.number - self.chain.max_reorg_depth - 1
        if prune_below > 0:
            await self.repository.prune_block_hashes(self.chain_id, prune_below)

        await self.checkpoints.save(self.chain_id, block.number, block.hash)
        result.applied = True

        logger.info(
            f"Chain {self.chain.name}: block {block.number} processed "
            f"({result.transfers_recorded} transfers, {len(result.anomalies)} anomalies)"
        )

    def _is_watched(self, token_address: str) -> bool:
        if not self._watched_tokens:
            return True
        return token_address.lower() in self._watched_tokens
