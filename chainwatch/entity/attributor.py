"""Entity attributor - links transfers to labels and on-ramp providers."""

import logging
from dataclasses import dataclass

from ..db import ProviderWallet, Repository
from ..errors import AttributionAmbiguous
from ..types import Transfer
from .label_store import EntityLabelStore

logger = logging.getLogger(__name__)


@dataclass
class AttributionResult:
    """What attribute() wrote for one transfer."""

    flags_added: int = 0
    onramp_direction: str | None = None
    provider_id: int | None = None
    ambiguous: bool = False


class EntityAttributor:
    """Attaches entity flags and on-ramp attribution to recorded transfers."""

    def __init__(self, repository: Repository, labels: EntityLabelStore):
        self.repository = repository
        self.labels = labels

    async def attribute(self, transfer: Transfer) -> AttributionResult:
        """
        Attribute a recorded transfer.

        Safe to repeat: flags and on-ramp rows are keyed so replays write nothing.
        """
        if transfer.id is None:
            raise ValueError("Transfer must be recorded before attribution")

        result = AttributionResult()

        for side, address in (
            ("from", transfer.from_address),
            ("to", transfer.to_address),
        ):
            labels = self.labels.lookup(address, transfer.chain_id)
            for label in labels:
                if await self.repository.insert_entity_flag(transfer.id, label.id, side):
                    result.flags_added += 1
                    logger.debug(
                        f"Attributed {label.entity_name} ({label.entity_type}) "
                        f"to transfer {transfer.id} side={side}"
                    )

            if not labels and self.labels.watchlist_entries(address):
                logger.debug(
                    f"Watchlisted {side} address {address[:10]}... on transfer "
                    f"{transfer.id} has no entity label"
                )

        try:
            match = self._match_provider(transfer)
        except AttributionAmbiguous as e:
            logger.warning(f"Skipping on-ramp attribution: {e}")
            await self.repository.record_attribution_audit(
                transfer.id,
                transfer.chain_id,
                reason=AttributionAmbiguous.kind,
                details={
                    "from_provider_id": e.from_provider,
                    "to_provider_id": e.to_provider,
                    "tx_hash": transfer.tx_hash,
                },
            )
            result.ambiguous = True
            return result

        if match is not None:
            wallet, direction = match
            await self.repository.insert_onramp_transfer(
                transfer.id, wallet.provider_id, direction
            )
            result.onramp_direction = direction
            result.provider_id = wallet.provider_id
            logger.debug(
                f"Attributed transfer {transfer.id} to {wallet.provider_name} ({direction})"
            )

        return result

    def _match_provider(self, transfer: Transfer) -> tuple[ProviderWallet, str] | None:
        """
        Find the provider on exactly one side of a transfer.

        A provider receiving funds is a deposit; a provider sending them is a
        withdrawal.

        Raises:
            AttributionAmbiguous: both sides are provider wallets
        """
        from_wallet = self.labels.provider_for(transfer.from_address, transfer.chain_id)
        to_wallet = self.labels.provider_for(transfer.to_address, transfer.chain_id)

        if from_wallet and to_wallet:
            raise AttributionAmbiguous(
                transfer.id or 0, from_wallet.provider_id, to_wallet.provider_id
            )
        if to_wallet:
            return to_wallet, "deposit"
        if from_wallet:
            return from_wallet, "withdrawal"
        return None
