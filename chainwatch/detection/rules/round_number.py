"""Round number detector - flags suspiciously round transfer amounts."""

from ...db import AnomalyRecord
from ...types import Transfer
from ..context import WalletContext

ROUND_UNITS = (100_000.0, 50_000.0, 25_000.0, 10_000.0, 5_000.0, 1_000.0)
MIN_AMOUNT = 1_000.0


class RoundNumberDetector:
    """
    Detects amounts within a relative tolerance of a round multiple.

    Only amounts of at least 1,000 are considered. The largest matching unit
    sets the risk: 100k -> 0.4, 10k and up -> 0.3, otherwise 0.2.
    """

    ANOMALY_TYPE = "round_number"

    def __init__(self, tolerance: float = 0.001):
        self.tolerance = tolerance

    async def analyze(
        self, transfer: Transfer, context: WalletContext
    ) -> AnomalyRecord | None:
        amount = transfer.human_amount
        if amount < MIN_AMOUNT:
            return None

        for unit in ROUND_UNITS:
            if amount < unit:
                continue

            fraction = (amount % unit) / unit
            if self.tolerance <= fraction <= 1.0 - self.tolerance:
                continue

            if unit >= 100_000:
                risk = 0.4
            elif unit >= 10_000:
                risk = 0.3
            else:
                risk = 0.2

            return AnomalyRecord(
                chain_id=transfer.chain_id,
                anomaly_type=self.ANOMALY_TYPE,
                risk_score=risk,
                flags=[f"round_amount_{amount:.0f}"],
                details={
                    "amount": amount,
                    "nearest_round": unit,
                    "token": transfer.token_symbol,
                },
            )

        return None
