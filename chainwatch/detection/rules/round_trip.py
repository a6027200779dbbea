"""Round trip detector - flags funds flowing back along a recently used edge."""

from ...db import AnomalyRecord, Repository
from ...types import Transfer
from ..context import WalletContext


class RoundTripDetector:
    """
    Detects A -> B when B -> A was last seen within the window.

    Reads the reverse graph edge, so the transfer must already be absorbed.
    """

    ANOMALY_TYPE = "round_trip"
    RISK_SCORE = 0.5

    def __init__(self, window_secs: int, repository: Repository):
        self.window_secs = window_secs
        self.repository = repository

    async def analyze(
        self, transfer: Transfer, context: WalletContext
    ) -> AnomalyRecord | None:
        if transfer.from_address == transfer.to_address:
            return None

        reverse = await self.repository.get_edge(
            transfer.to_address, transfer.from_address, transfer.chain_id
        )
        if reverse is None:
            return None

        elapsed = (transfer.block_timestamp - reverse.last_seen).total_seconds()
        if elapsed < 0 or elapsed > self.window_secs:
            return None

        return AnomalyRecord(
            chain_id=transfer.chain_id,
            anomaly_type=self.ANOMALY_TYPE,
            risk_score=self.RISK_SCORE,
            flags=[f"round_trip_within_{int(elapsed)}_secs"],
            details={
                "counterparty": transfer.to_address,
                "reverse_transfer_count": reverse.transfer_count,
                "reverse_total_amount": str(reverse.total_amount),
                "seconds_since_reverse": elapsed,
            },
            address=transfer.from_address,
        )
