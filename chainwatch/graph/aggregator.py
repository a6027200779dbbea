"""Graph aggregator - wallet first-seen records and pairwise edge statistics."""

import logging

from ..db import FirstSeen, GraphEdge, Repository
from ..types import Transfer

logger = logging.getLogger(__name__)


class GraphAggregator:
    """
    Incrementally folds transfers into the wallet graph.

    Absorbing the same transfer twice double-counts; the pipeline claims
    each transfer id through the absorption marker before calling absorb().
    """

    def __init__(self, repository: Repository):
        self.repository = repository

    async def absorb(self, transfer: Transfer) -> list[FirstSeen]:
        """
        Fold one transfer into first-seen records and its edge.

        Returns:
            First-seen records created by this transfer (may be empty)
        """
        new_wallets: list[FirstSeen] = []

        for address, direction in (
            (transfer.from_address, "out"),
            (transfer.to_address, "in"),
        ):
            record = FirstSeen(
                address=address,
                chain_id=transfer.chain_id,
                first_seen_at=transfer.block_timestamp,
                first_block=transfer.block_number,
                first_tx_hash=transfer.tx_hash,
                first_direction=direction,
            )
            if await self.repository.insert_first_seen(record):
                new_wallets.append(record)

        edge = await self.repository.get_edge(
            transfer.from_address, transfer.to_address, transfer.chain_id
        )
        if edge is None:
            edge = GraphEdge(
                source_address=transfer.from_address,
                dest_address=transfer.to_address,
                chain_id=transfer.chain_id,
                transfer_count=1,
                total_amount=transfer.amount,
                first_seen=transfer.block_timestamp,
                last_seen=transfer.block_timestamp,
            )
        else:
            edge.transfer_count += 1
            edge.total_amount += transfer.amount
            edge.first_seen = min(edge.first_seen, transfer.block_timestamp)
            edge.last_seen = max(edge.last_seen, transfer.block_timestamp)

        await self.repository.save_edge(edge)

        if new_wallets:
            logger.debug(
                f"Chain {transfer.chain_id}: {len(new_wallets)} new wallet(s) "
                f"in {transfer.tx_hash[:10]}..."
            )
        return new_wallets

    async def rederive(
        self,
        chain_id: int,
        pairs: set[tuple[str, str]],
        addresses: set[str],
    ):
        """
        Recompute edges and first-seen records from the surviving transfers.

        Used after rollback instead of decrementing, so aggregates always
        match the transfer log.
        """
        for source, dest in sorted(pairs):
            edge = await self.repository.aggregate_edge(source, dest, chain_id)
            if edge is None:
                await self.repository.delete_edge(source, dest, chain_id)
            else:
                await self.repository.save_edge(edge)

        for address in sorted(addresses):
            await self.repository.delete_first_seen(address, chain_id)
            earliest = await self.repository.get_earliest_transfer(address, chain_id)
            if earliest is None:
                continue

            await self.repository.insert_first_seen(
                FirstSeen(
                    address=address,
                    chain_id=chain_id,
                    first_seen_at=earliest.block_timestamp,
                    first_block=earliest.block_number,
                    first_tx_hash=earliest.tx_hash,
                    first_direction="out" if earliest.from_address == address else "in",
                )
            )

        logger.info(
            f"Chain {chain_id}: re-derived {len(pairs)} edge(s) and "
            f"{len(addresses)} first-seen record(s)"
        )

    async def outgoing(self, address: str, chain_id: int | None = None) -> list[GraphEdge]:
        """Who did this wallet send to."""
        return await self.repository.get_outgoing_edges(address, chain_id)

    async def incoming(self, address: str, chain_id: int | None = None) -> list[GraphEdge]:
        """Who sent to this wallet."""
        return await self.repository.get_incoming_edges(address, chain_id)
