"""Block ingestion: checkpoints, recording, reorg handling and the watcher loop."""

from .chain import ChainHealth, ChainIndexer, ChainStatus
from .checkpoint import CheckpointStore
from .pipeline import AdvanceResult, BlockPipeline
from .recorder import RecordResult, TransferRecorder
from .reorg import Continuation, ReorgDetector
from .source import BlockSource, HttpBlockSource, parse_block

__all__ = [
    "AdvanceResult",
    "BlockPipeline",
    "BlockSource",
    "ChainHealth",
    "ChainIndexer",
    "ChainStatus",
    "CheckpointStore",
    "Continuation",
    "HttpBlockSource",
    "RecordResult",
    "ReorgDetector",
    "TransferRecorder",
    "parse_block",
]
