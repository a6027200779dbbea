"""Velocity detector - flags senders moving funds unusually often."""

import logging
from dataclasses import dataclass
from datetime import timedelta

from ...db import AnomalyRecord, Repository
from ...types import Transfer
from ..context import WalletContext

logger = logging.getLogger(__name__)


@dataclass
class VelocityDetectorConfig:
    """Configuration for the velocity detector."""

    window_secs: int  # Look-back window ending at the transfer
    max_transfers: int  # Transfers allowed in the window before flagging


class VelocityDetector:
    """
    Detects senders exceeding a transfer count within a time window.

    The window ends at the transfer's own timestamp, so the result depends
    only on transfers already recorded at or before it.
    """

    ANOMALY_TYPE = "velocity"

    def __init__(self, config: VelocityDetectorConfig, repository: Repository):
        self.config = config
        self.repository = repository

    async def analyze(
        self, transfer: Transfer, context: WalletContext
    ) -> AnomalyRecord | None:
        since = transfer.block_timestamp - timedelta(seconds=self.config.window_secs)
        count = await self.repository.count_outgoing_since(
            transfer.from_address,
            transfer.chain_id,
            since,
            transfer.block_timestamp,
        )

        if count <= self.config.max_transfers:
            return None

        logger.debug(
            f"Velocity: {transfer.from_address[:10]}... sent {count} transfers "
            f"in {self.config.window_secs}s"
        )

        risk = 0.7 if count > self.config.max_transfers * 5 else 0.5

        return AnomalyRecord(
            chain_id=transfer.chain_id,
            anomaly_type=self.ANOMALY_TYPE,
            risk_score=risk,
            flags=[f"velocity_{count}_transfers_in_{self.config.window_secs}_secs"],
            details={
                "transfer_count": count,
                "window_secs": self.config.window_secs,
                "max_allowed": self.config.max_transfers,
            },
            address=transfer.from_address,
        )
