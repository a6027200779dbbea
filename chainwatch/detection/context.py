"""Wallet context handed to detectors."""

from dataclasses import dataclass

from ..db import FirstSeen, Repository
from ..entity import EntityLabelStore
from ..types import Transfer


@dataclass
class WalletContext:
    """Current state around a transfer's two wallets."""

    labels: EntityLabelStore
    sender_first_seen: FirstSeen | None = None
    recipient_first_seen: FirstSeen | None = None

    @classmethod
    async def build(
        cls, repository: Repository, labels: EntityLabelStore, transfer: Transfer
    ) -> "WalletContext":
        return cls(
            labels=labels,
            sender_first_seen=await repository.get_first_seen(
                transfer.from_address, transfer.chain_id
            ),
            recipient_first_seen=await repository.get_first_seen(
                transfer.to_address, transfer.chain_id
            ),
        )

    def recipient_is_new(self, transfer: Transfer) -> bool:
        """True when this transfer is the recipient's first sighting on the chain."""
        first = self.recipient_first_seen
        return (
            first is not None
            and first.first_direction == "in"
            and first.first_block == transfer.block_number
            and first.first_tx_hash == transfer.tx_hash
        )
