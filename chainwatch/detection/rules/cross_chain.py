"""Cross-chain activity detector."""

from datetime import timedelta

from ...db import AnomalyRecord, Repository
from ...types import Transfer
from ..context import WalletContext

MIN_CHAINS = 3
HIGH_CHAINS = 5


class CrossChainActivityDetector:
    """Flags senders active on three or more chains within a short window."""

    ANOMALY_TYPE = "cross_chain_activity"

    def __init__(self, window_secs: int, repository: Repository):
        self.window_secs = window_secs
        self.repository = repository

    async def analyze(
        self, transfer: Transfer, context: WalletContext
    ) -> AnomalyRecord | None:
        since = transfer.block_timestamp - timedelta(seconds=self.window_secs)
        chains = await self.repository.count_active_chains_since(
            transfer.from_address, since, transfer.block_timestamp
        )

        if chains < MIN_CHAINS:
            return None

        return AnomalyRecord(
            chain_id=transfer.chain_id,
            anomaly_type=self.ANOMALY_TYPE,
            risk_score=0.5 if chains >= HIGH_CHAINS else 0.3,
            flags=[f"active_on_{chains}_chains_in_{self.window_secs}_secs"],
            details={
                "chain_count": chains,
                "window_secs": self.window_secs,
                "address": transfer.from_address,
            },
            address=transfer.from_address,
        )
