"""Sanctioned counterparty detector."""

from ...db import AnomalyRecord
from ...types import Transfer
from ..context import WalletContext


class SanctionedCounterpartyDetector:
    """Flags transfers where either side is watchlisted or labeled sanctioned."""

    ANOMALY_TYPE = "sanctioned_counterparty"
    RISK_SCORE = 0.95

    async def analyze(
        self, transfer: Transfer, context: WalletContext
    ) -> AnomalyRecord | None:
        labels = context.labels
        from_hit = labels.is_sanctioned(transfer.from_address, transfer.chain_id)
        to_hit = labels.is_sanctioned(transfer.to_address, transfer.chain_id)

        if not (from_hit or to_hit):
            return None

        side = "from" if from_hit else "to"
        address = transfer.from_address if from_hit else transfer.to_address
        flags = [f"sanctioned_{side}_address"]
        if from_hit and to_hit:
            flags.append("sanctioned_to_address")

        return AnomalyRecord(
            chain_id=transfer.chain_id,
            anomaly_type=self.ANOMALY_TYPE,
            risk_score=self.RISK_SCORE,
            flags=flags,
            details={
                "side": side,
                "sanctioned_address": address,
                "lists": sorted(
                    {entry.list_name for entry in labels.watchlist_entries(address)}
                ),
            },
            address=address,
        )
