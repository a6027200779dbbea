"""Builders for blocks, transfers and a wired pipeline, plus an in-memory block source."""

import hashlib
import itertools
from datetime import datetime, timedelta, timezone

from chainwatch.config import ChainConfig
from chainwatch.db import Repository
from chainwatch.detection import AnomalyScorer
from chainwatch.entity import EntityAttributor, EntityLabelStore
from chainwatch.graph import GraphAggregator
from chainwatch.indexer import (
    BlockPipeline,
    CheckpointStore,
    ReorgDetector,
    TransferRecorder,
)
from chainwatch.types import BlockHeader, FetchedBlock, FetchedTransfer, Transfer

CHAIN_ID = 1
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
BLOCK_TIME = timedelta(seconds=12)

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
DAVE = "0x" + "d4" * 20

_tx_counter = itertools.count(1)


def block_hash(fork: str, number: int) -> str:
    return "0x" + hashlib.sha256(f"{fork}:{number}".encode()).hexdigest()


def block_time(number: int) -> datetime:
    return BASE_TIME + BLOCK_TIME * number


def usdc(amount: float) -> int:
    """Human USDC amount in raw units."""
    return int(round(amount * 10**6))


def make_fetched(
    sender: str,
    recipient: str,
    amount: int,
    tx_hash: str | None = None,
    log_index: int = 0,
    token: str = USDC,
) -> FetchedTransfer:
    if tx_hash is None:
        tx_hash = "0x" + hashlib.sha256(f"tx:{next(_tx_counter)}".encode()).hexdigest()
    return FetchedTransfer(
        tx_hash=tx_hash,
        log_index=log_index,
        token_address=token,
        from_address=sender,
        to_address=recipient,
        amount=amount,
        symbol="USDC",
        decimals=6,
    )


def make_block(
    number: int,
    parent_hash: str,
    fork: str = "a",
    transfers: list[FetchedTransfer] | None = None,
) -> FetchedBlock:
    return FetchedBlock(
        number=number,
        hash=block_hash(fork, number),
        parent_hash=parent_hash,
        timestamp=block_time(number),
        transfers=transfers or [],
    )


def make_transfer(
    sender: str,
    recipient: str,
    amount: int,
    block_number: int = 10,
    tx_hash: str | None = None,
    log_index: int = 0,
    chain_id: int = CHAIN_ID,
    timestamp: datetime | None = None,
) -> Transfer:
    """A transfer as the pipeline builds it, not yet recorded."""
    fetched = make_fetched(sender, recipient, amount, tx_hash=tx_hash, log_index=log_index)
    block = make_block(block_number, block_hash("a", block_number - 1))
    if timestamp is not None:
        block.timestamp = timestamp
    return Transfer.from_fetched(chain_id, block, fetched)


class FakeBlockSource:
    """
    In-memory block source.

    Each chain has one canonical view. ``extend`` writes blocks into it, so
    extending from a lower height with another fork replaces what was there.
    """

    def __init__(self):
        self.blocks: dict[tuple[int, int], FetchedBlock] = {}
        self.failures: list[Exception] = []
        self.requests: list[tuple[int, int]] = []

    def add(self, block: FetchedBlock, chain_id: int = CHAIN_ID):
        self.blocks[(chain_id, block.number)] = block

    def extend(
        self,
        start: int,
        count: int,
        fork: str = "a",
        parent_hash: str | None = None,
        transfers: dict[int, list[FetchedTransfer]] | None = None,
        chain_id: int = CHAIN_ID,
    ) -> list[FetchedBlock]:
        transfers = transfers or {}
        parent = parent_hash or block_hash(fork, start - 1)
        created = []
        for number in range(start, start + count):
            block = make_block(number, parent, fork, transfers.get(number))
            self.add(block, chain_id)
            created.append(block)
            parent = block.hash
        return created

    async def get_block(self, chain_id: int, number: int) -> FetchedBlock | None:
        self.requests.append((chain_id, number))
        if self.failures:
            raise self.failures.pop(0)
        return self.blocks.get((chain_id, number))

    async def get_header(self, chain_id: int, number: int) -> BlockHeader | None:
        block = self.blocks.get((chain_id, number))
        return block.header if block else None


def build_pipeline(
    repository: Repository,
    source: FakeBlockSource,
    chain: ChainConfig,
    labels: EntityLabelStore,
    detectors: list | None = None,
    checkpoints: CheckpointStore | None = None,
) -> BlockPipeline:
    """Wire a pipeline the way the application does."""
    if checkpoints is None:
        checkpoints = CheckpointStore(repository)
    checkpoints.register(chain.chain_id, chain.start_block)

    aggregator = GraphAggregator(repository)
    detector = ReorgDetector(
        chain.chain_id,
        repository,
        checkpoints,
        aggregator,
        source,
        max_reorg_depth=chain.max_reorg_depth,
    )
    return BlockPipeline(
        chain,
        repository,
        checkpoints,
        detector,
        TransferRecorder(repository),
        aggregator,
        EntityAttributor(repository, labels),
        AnomalyScorer(repository, detectors=detectors or []),
    )
