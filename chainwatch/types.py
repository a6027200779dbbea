"""Block and transfer types flowing through the indexer."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal


def utc(ts: datetime) -> datetime:
    """Normalize a timestamp to an aware UTC datetime."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass
class FetchedTransfer:
    """A decoded Transfer log as delivered by the block source."""

    tx_hash: str
    log_index: int
    token_address: str
    from_address: str
    to_address: str
    amount: int  # Raw token units
    symbol: str
    decimals: int


@dataclass
class BlockHeader:
    """Minimal header needed for reorg comparison."""

    number: int
    hash: str
    parent_hash: str


@dataclass
class FetchedBlock:
    """A block with its decoded stablecoin transfers."""

    number: int
    hash: str
    parent_hash: str
    timestamp: datetime
    transfers: list[FetchedTransfer] = field(default_factory=list)

    @property
    def header(self) -> BlockHeader:
        return BlockHeader(self.number, self.hash, self.parent_hash)


@dataclass
class Transfer:
    """A stablecoin transfer as persisted in the transfers table."""

    chain_id: int
    block_number: int
    block_hash: str
    tx_hash: str
    log_index: int
    token_address: str
    from_address: str
    to_address: str
    amount: int
    token_symbol: str
    token_decimals: int
    block_timestamp: datetime
    id: int | None = None

    @property
    def human_amount(self) -> float:
        """Amount scaled by the token's decimals."""
        return float(Decimal(self.amount) / (Decimal(10) ** self.token_decimals))

    @classmethod
    def from_fetched(
        cls, chain_id: int, block: FetchedBlock, fetched: FetchedTransfer
    ) -> "Transfer":
        return cls(
            chain_id=chain_id,
            block_number=block.number,
            block_hash=block.hash.lower(),
            tx_hash=fetched.tx_hash.lower(),
            log_index=fetched.log_index,
            token_address=fetched.token_address.lower(),
            from_address=fetched.from_address.lower(),
            to_address=fetched.to_address.lower(),
            amount=fetched.amount,
            token_symbol=fetched.symbol,
            token_decimals=fetched.decimals,
            block_timestamp=utc(block.timestamp),
        )


@dataclass
class Checkpoint:
    """Durable per-chain cursor."""

    chain_id: int
    last_indexed_block: int
    last_block_hash: str | None
    updated_at: datetime | None = None
