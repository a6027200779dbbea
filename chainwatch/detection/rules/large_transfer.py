"""Large transfer detector - flags transfers above a per-token threshold."""

import logging
from dataclasses import dataclass, field

from ...db import AnomalyRecord
from ...types import Transfer
from ..context import WalletContext

logger = logging.getLogger(__name__)

FALLBACK_THRESHOLD = 100_000.0


@dataclass
class LargeTransferConfig:
    """Configuration for the large transfer detector."""

    # Human-unit thresholds keyed by token symbol; "default" covers the rest
    thresholds: dict[str, float] = field(
        default_factory=lambda: {"default": FALLBACK_THRESHOLD}
    )

    def threshold_for(self, symbol: str) -> float:
        return self.thresholds.get(
            symbol, self.thresholds.get("default", FALLBACK_THRESHOLD)
        )


class LargeTransferDetector:
    """
    Detects transfers whose amount meets the token's threshold.

    Risk grows with the multiple of the threshold:
    1x -> 0.4, 5x -> 0.6, 10x -> 0.8
    """

    ANOMALY_TYPE = "large_transfer"

    def __init__(self, config: LargeTransferConfig):
        self.config = config

    async def analyze(
        self, transfer: Transfer, context: WalletContext
    ) -> AnomalyRecord | None:
        threshold = self.config.threshold_for(transfer.token_symbol)
        amount = transfer.human_amount

        if amount < threshold:
            return None

        if amount >= threshold * 10:
            risk = 0.8
        elif amount >= threshold * 5:
            risk = 0.6
        else:
            risk = 0.4

        return AnomalyRecord(
            chain_id=transfer.chain_id,
            anomaly_type=self.ANOMALY_TYPE,
            risk_score=risk,
            flags=[
                f"transfer_amount_{amount:.0f}_{transfer.token_symbol}"
                f"_exceeds_{threshold:.0f}"
            ],
            details={
                "amount": amount,
                "token": transfer.token_symbol,
                "threshold": threshold,
            },
        )
