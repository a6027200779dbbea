"""New wallet detector - flags large amounts landing on a never-seen address."""

from ...db import AnomalyRecord
from ...types import Transfer
from ..context import WalletContext


class NewWalletLargeReceiveDetector:
    """
    Detects a large transfer that is the recipient's first appearance on the chain.

    Risk is 0.6 at the threshold and 0.8 at ten times it.
    """

    ANOMALY_TYPE = "new_wallet_large_receive"

    def __init__(self, threshold_usd: float):
        self.threshold_usd = threshold_usd

    async def analyze(
        self, transfer: Transfer, context: WalletContext
    ) -> AnomalyRecord | None:
        amount = transfer.human_amount
        if amount < self.threshold_usd:
            return None

        if not context.recipient_is_new(transfer):
            return None

        risk = 0.8 if amount >= self.threshold_usd * 10 else 0.6

        return AnomalyRecord(
            chain_id=transfer.chain_id,
            anomaly_type=self.ANOMALY_TYPE,
            risk_score=risk,
            flags=[f"new_wallet_received_{amount:.0f}_{transfer.token_symbol}"],
            details={
                "amount": amount,
                "token": transfer.token_symbol,
                "new_wallet": transfer.to_address,
            },
            address=transfer.to_address,
        )
