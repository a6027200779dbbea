"""Main entry point for ChainWatch."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .alerting import AnomalyLogger, setup_app_logging
from .config import ChainConfig, Config, load_config
from .db import AnomalyRecord, Repository
from .detection import AnomalyScorer, build_detectors
from .entity import EntityAttributor, EntityLabelStore
from .graph import GraphAggregator
from .indexer import (
    BlockPipeline,
    BlockSource,
    ChainIndexer,
    CheckpointStore,
    HttpBlockSource,
    ReorgDetector,
    TransferRecorder,
)
from .types import Transfer

logger = logging.getLogger(__name__)


class ChainWatch:
    """Main application class that orchestrates all components."""

    def __init__(self, config: Config, source: BlockSource | None = None):
        self.config = config

        self.repository = Repository(config.database.path)
        self.source = source or HttpBlockSource(
            config.feed.base_url, timeout=config.feed.timeout_secs
        )
        self.anomaly_logger = AnomalyLogger(
            log_file=config.logging.file,
            log_level=config.logging.level,
            max_file_size_mb=config.logging.max_file_size_mb,
            backup_count=config.logging.backup_count,
        )

        self.checkpoints = CheckpointStore(self.repository)
        self.labels = EntityLabelStore(self.repository)
        self.aggregator = GraphAggregator(self.repository)
        self.recorder = TransferRecorder(self.repository)
        self.attributor = EntityAttributor(self.repository, self.labels)
        self.scorer = AnomalyScorer(
            self.repository, enabled=config.anomaly_detection.enabled
        )

        self.indexers: list[ChainIndexer] = []
        self._tasks: list[asyncio.Task] = []

    async def start(self):
        """Initialize storage and start one watcher task per chain."""
        logger.info("Starting ChainWatch...")

        await self.repository.initialize()

        async with self.repository.transaction():
            for chain in self.config.chains:
                for token in chain.tokens:
                    await self.repository.upsert_known_token(
                        chain.chain_id, token.address, token.symbol, token.decimals
                    )

        await self.labels.load()

        for detector in build_detectors(self.config.anomaly_detection, self.repository):
            self.scorer.add_detector(detector)

        logger.info(
            f"Detection: large_transfer={self.config.anomaly_detection.large_transfer_thresholds}, "
            f"velocity={self.config.anomaly_detection.velocity.max_transfers}"
            f"/{self.config.anomaly_detection.velocity.window_secs}s"
        )

        for chain in self.config.chains:
            indexer = self._build_indexer(chain)
            self.indexers.append(indexer)
            self._tasks.append(
                asyncio.create_task(self._run_chain(indexer), name=f"chain-{chain.name}")
            )

    def _build_indexer(self, chain: ChainConfig) -> ChainIndexer:
        self.checkpoints.register(chain.chain_id, chain.start_block)

        detector = ReorgDetector(
            chain.chain_id,
            self.repository,
            self.checkpoints,
            self.aggregator,
            self.source,
            max_reorg_depth=chain.max_reorg_depth,
        )
        pipeline = BlockPipeline(
            chain,
            self.repository,
            self.checkpoints,
            detector,
            self.recorder,
            self.aggregator,
            self.attributor,
            self.scorer,
        )
        return ChainIndexer(
            chain,
            pipeline,
            self.source,
            self.checkpoints,
            self.repository,
            retry=self.config.retry,
            on_anomaly=self._on_anomaly,
        )

    async def _run_chain(self, indexer: ChainIndexer):
        """Run one chain; its failures never reach the other chains."""
        try:
            await indexer.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Chain {indexer.chain.name} stopped unexpectedly: {e}")
            indexer._mark_halted(e)

    async def wait(self):
        """Wait for all chain tasks to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def stop(self):
        """Stop the watcher gracefully."""
        logger.info("Stopping ChainWatch...")

        for indexer in self.indexers:
            indexer.stop()
        for task in self._tasks:
            task.cancel()
        await self.wait()

        for indexer in self.indexers:
            logger.info(f"Chain health: {indexer.health.summary()}")

        stats = self.scorer.stats
        logger.info(
            f"Scorer stats: {stats['transfers_scored']} transfers scored, "
            f"{stats['anomalies_detected']} anomalies"
        )

        close = getattr(self.source, "close", None)
        if close is not None:
            await close()
        await self.repository.close()
        self.anomaly_logger.close()
        logger.info("ChainWatch stopped")

    def _on_anomaly(self, transfer: Transfer, anomaly: AnomalyRecord):
        self.anomaly_logger.log_anomaly(transfer, anomaly)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="ChainWatch - Index stablecoin transfers and flag anomalous flows"
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args()


async def main_async(args):
    """Async main function."""
    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        sys.exit(1)

    try:
        config = load_config(config_path)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if args.debug:
        config.logging.level = "DEBUG"

    setup_app_logging(config.logging.level)

    app = ChainWatch(config)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    await app.start()

    # Stop on signal, or once every chain has halted
    waiter = asyncio.create_task(app.wait())
    shutdown = asyncio.create_task(shutdown_event.wait())
    await asyncio.wait({waiter, shutdown}, return_when=asyncio.FIRST_COMPLETED)
    shutdown.cancel()

    await app.stop()


def main():
    """Main entry point."""
    args = parse_args()

    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
