"""Transfer recorder - exactly-once insertion of transfer events."""

import logging
from dataclasses import dataclass

from ..db import Repository
from ..types import Transfer

logger = logging.getLogger(__name__)


@dataclass
class RecordResult:
    """Durable identity of a recorded transfer."""

    transfer_id: int
    inserted: bool

    @property
    def duplicate(self) -> bool:
        return not self.inserted


class TransferRecorder:
    """Idempotent writer keyed by (chain_id, tx_hash, log_index)."""

    def __init__(self, repository: Repository):
        self.repository = repository

    async def record(self, transfer: Transfer) -> RecordResult:
        """
        Insert a transfer unless its idempotency key already exists.

        A duplicate is a successful no-op; the existing row's id is returned
        so callers can fan out the same way either time.
        """
        inserted = await self.repository.insert_transfer(transfer)
        transfer_id = await self.repository.get_transfer_id(
            transfer.chain_id, transfer.tx_hash, transfer.log_index
        )
        if transfer_id is None:
            raise RuntimeError(
                f"Transfer {transfer.tx_hash}:{transfer.log_index} vanished after insert"
            )

        if not inserted:
            logger.debug(
                f"Duplicate transfer ignored: chain {transfer.chain_id} "
                f"{transfer.tx_hash[:10]}...:{transfer.log_index}"
            )

        transfer.id = transfer_id
        return RecordResult(transfer_id=transfer_id, inserted=inserted)
