"""Database repository for checkpoints, transfers, graph, anomalies and attribution."""

import asyncio
import json
import logging
import sqlite3
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from ..errors import TransientStoreError
from ..types import Checkpoint, Transfer, utc
from .models import SCHEMA

logger = logging.getLogger(__name__)


def _ts(value: datetime) -> str:
    return utc(value).isoformat(timespec="microseconds")


def _dt(value: str) -> datetime:
    return datetime.fromisoformat(value)


@dataclass
class FirstSeen:
    """First sighting of an address on a chain."""

    address: str
    chain_id: int
    first_seen_at: datetime
    first_block: int
    first_tx_hash: str | None
    first_direction: str


@dataclass
class GraphEdge:
    """Aggregated transfers from one address to another on one chain."""

    source_address: str
    dest_address: str
    chain_id: int
    transfer_count: int
    total_amount: int
    first_seen: datetime
    last_seen: datetime


@dataclass
class AnomalyRecord:
    """A detected anomaly ready for upsert."""

    chain_id: int
    anomaly_type: str
    risk_score: float
    flags: list[str]
    details: dict
    address: str | None = None
    transfer_id: int | None = None
    id: int | None = None
    detected_at: datetime | None = None
    resolved: bool = False


@dataclass
class EntityLabel:
    id: int
    address: str
    chain_id: int | None  # None applies to all chains
    entity_name: str
    entity_type: str
    label_source: str
    confidence: float


@dataclass
class WatchlistEntry:
    id: int
    list_name: str
    address: str
    entity_name: str | None
    program: str | None


@dataclass
class ProviderWallet:
    provider_id: int
    provider_name: str
    chain_id: int
    address: str
    label: str | None


@dataclass
class EntityFlag:
    transfer_id: int
    entity_label_id: int
    side: str


@dataclass
class OnrampTransfer:
    transfer_id: int
    provider_id: int
    direction: str


@dataclass
class RollbackSummary:
    """What a rollback removed."""

    transfers_deleted: int = 0
    pairs: set[tuple[str, str]] = field(default_factory=set)
    addresses: set[str] = field(default_factory=set)


class Repository:
    """Database repository for all persistence operations.

    Write methods do not commit. Callers group them inside ``transaction()``
    so a block's writes land together or not at all.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()

    async def initialize(self):
        """Initialize the database and create tables."""
        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Autocommit mode; transactions are opened explicitly
        self._connection = await aiosqlite.connect(self.db_path, isolation_level=None)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.executescript(SCHEMA)

        logger.info(f"Database initialized at {self.db_path}")

    async def close(self):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if not self._connection:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run the enclosed writes as one atomic unit.

        Transactions on the shared connection are serialized. SQLite
        operational errors roll back and surface as TransientStoreError.
        """
        async with self._tx_lock:
            try:
                await self.conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                raise TransientStoreError(f"Could not begin transaction: {e}") from e

            try:
                yield self.conn
            except sqlite3.OperationalError as e:
                await self._rollback_quietly()
                raise TransientStoreError(f"Store unavailable: {e}") from e
            except BaseException:
                await self._rollback_quietly()
                raise

            try:
                await self.conn.execute("COMMIT")
            except sqlite3.OperationalError as e:
                await self._rollback_quietly()
                raise TransientStoreError(f"Commit failed: {e}") from e

    async def _rollback_quietly(self):
        try:
            await self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning(f"Rollback failed: {e}")

    # Checkpoint Operations

    async def get_checkpoint(self, chain_id: int) -> Checkpoint | None:
        """Get the checkpoint for a chain, or None if never indexed."""
        async with self.conn.execute(
            "SELECT * FROM indexer_state WHERE chain_id = ?", (chain_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None

            return Checkpoint(
                chain_id=row["chain_id"],
                last_indexed_block=row["last_indexed_block"],
                last_block_hash=row["last_block_hash"],
                updated_at=_dt(row["updated_at"]),
            )

    async def upsert_checkpoint(
        self, chain_id: int, block_number: int, block_hash: str | None
    ):
        """Move the checkpoint for a chain."""
        await self.conn.execute(
            """
            INSERT INTO indexer_state (chain_id, last_indexed_block, last_block_hash, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(chain_id) DO UPDATE SET
                last_indexed_block = excluded.last_indexed_block,
                last_block_hash = excluded.last_block_hash,
                updated_at = excluded.updated_at
            """,
            (chain_id, block_number, block_hash, _ts(datetime.now(timezone.utc))),
        )

    # Block Hash Operations

    async def get_block_hash(self, chain_id: int, block_number: int) -> str | None:
        async with self.conn.execute(
            "SELECT block_hash FROM block_hashes WHERE chain_id = ? AND block_number = ?",
            (chain_id, block_number),
        ) as cursor:
            row = await cursor.fetchone()
            return row["block_hash"] if row else None

    async def upsert_block_hash(
        self, chain_id: int, block_number: int, block_hash: str, parent_hash: str
    ):
        await self.conn.execute(
            """
            INSERT INTO block_hashes (chain_id, block_number, block_hash, parent_hash)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(chain_id, block_number) DO UPDATE SET
                block_hash = excluded.block_hash,
                parent_hash = excluded.parent_hash
            """,
            (chain_id, block_number, block_hash, parent_hash),
        )

    async def delete_block_hashes_above(self, chain_id: int, block_number: int):
        await self.conn.execute(
            "DELETE FROM block_hashes WHERE chain_id = ? AND block_number > ?",
            (chain_id, block_number),
        )

    async def prune_block_hashes(self, chain_id: int, below_block: int):
        """Drop block hashes older than the reorg window."""
        await self.conn.execute(
            "DELETE FROM block_hashes WHERE chain_id = ? AND block_number < ?",
            (chain_id, below_block),
        )

    # Token Operations

    async def upsert_known_token(
        self, chain_id: int, token_address: str, symbol: str, decimals: int
    ):
        await self.conn.execute(
            """
            INSERT INTO known_tokens (chain_id, token_address, symbol, decimals)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(chain_id, token_address) DO UPDATE SET
                symbol = excluded.symbol,
                decimals = excluded.decimals
            """,
            (chain_id, token_address.lower(), symbol, decimals),
        )

    async def get_known_tokens(self, chain_id: int) -> dict[str, tuple[str, int]]:
        """Configured token metadata for a chain, keyed by address."""
        async with self.conn.execute(
            "SELECT token_address, symbol, decimals FROM known_tokens WHERE chain_id = ?",
            (chain_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return {
                row["token_address"]: (row["symbol"], row["decimals"]) for row in rows
            }

    # Transfer Operations

    async def insert_transfer(self, transfer: Transfer) -> bool:
        """Insert a transfer; returns False if the idempotency key already exists."""
        async with self.conn.execute(
            """
            INSERT INTO transfers (
                chain_id, block_number, block_hash, tx_hash, log_index,
                token_address, from_address, to_address, amount,
                token_symbol, token_decimals, block_timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(chain_id, tx_hash, log_index) DO NOTHING
            """,
            (
                transfer.chain_id,
                transfer.block_number,
                transfer.block_hash,
                transfer.tx_hash,
                transfer.log_index,
                transfer.token_address,
                transfer.from_address,
                transfer.to_address,
                str(transfer.amount),
                transfer.token_symbol,
                transfer.token_decimals,
                _ts(transfer.block_timestamp),
            ),
        ) as cursor:
            return cursor.rowcount == 1

    async def get_transfer_id(
        self, chain_id: int, tx_hash: str, log_index: int
    ) -> int | None:
        async with self.conn.execute(
            """
            SELECT id FROM transfers
            WHERE chain_id = ? AND tx_hash = ? AND log_index = ?
            """,
            (chain_id, tx_hash.lower(), log_index),
        ) as cursor:
            row = await cursor.fetchone()
            return row["id"] if row else None

    async def get_transfer(self, transfer_id: int) -> Transfer | None:
        async with self.conn.execute(
            "SELECT * FROM transfers WHERE id = ?", (transfer_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_transfer(row) if row else None

    async def get_transfers(self, chain_id: int) -> list[Transfer]:
        """All transfers on a chain in ingestion order."""
        async with self.conn.execute(
            """
            SELECT * FROM transfers WHERE chain_id = ?
            ORDER BY block_number, log_index
            """,
            (chain_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_transfer(row) for row in rows]

    async def count_transfers(self, chain_id: int) -> int:
        async with self.conn.execute(
            "SELECT COUNT(*) AS count FROM transfers WHERE chain_id = ?", (chain_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0

    async def count_outgoing_since(
        self, address: str, chain_id: int, since: datetime, until: datetime
    ) -> int:
        """Count transfers sent by an address on a chain within (since, until]."""
        async with self.conn.execute(
            """
            SELECT COUNT(*) AS count FROM transfers
            WHERE from_address = ? AND chain_id = ?
              AND block_timestamp > ? AND block_timestamp <= ?
            """,
            (address.lower(), chain_id, _ts(since), _ts(until)),
        ) as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0

    async def count_active_chains_since(
        self, address: str, since: datetime, until: datetime
    ) -> int:
        """Count distinct chains an address touched within (since, until]."""
        async with self.conn.execute(
            """
            SELECT COUNT(DISTINCT chain_id) AS count FROM transfers
            WHERE (from_address = ? OR to_address = ?)
              AND block_timestamp > ? AND block_timestamp <= ?
            """,
            (address.lower(), address.lower(), _ts(since), _ts(until)),
        ) as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0

    async def delete_transfers_above(
        self, chain_id: int, block_number: int
    ) -> RollbackSummary:
        """
        Delete transfers above a height together with every row derived from them.

        Dependents go first: anomalies, entity flags, on-ramp rows, audit rows
        and absorption markers, then the transfers themselves.
        """
        summary = RollbackSummary()
        async with self.conn.execute(
            """
            SELECT from_address, to_address FROM transfers
            WHERE chain_id = ? AND block_number > ?
            """,
            (chain_id, block_number),
        ) as cursor:
            for row in await cursor.fetchall():
                summary.pairs.add((row["from_address"], row["to_address"]))
                summary.addresses.add(row["from_address"])
                summary.addresses.add(row["to_address"])

        doomed = "SELECT id FROM transfers WHERE chain_id = ? AND block_number > ?"
        for table in (
            "anomalies",
            "transfer_entity_flags",
            "onramp_transfers",
            "attribution_audit",
            "absorbed_transfers",
        ):
            await self.conn.execute(
                f"DELETE FROM {table} WHERE transfer_id IN ({doomed})",
                (chain_id, block_number),
            )

        async with self.conn.execute(
            "DELETE FROM transfers WHERE chain_id = ? AND block_number > ?",
            (chain_id, block_number),
        ) as cursor:
            summary.transfers_deleted = cursor.rowcount

        return summary

    def _row_to_transfer(self, row: aiosqlite.Row) -> Transfer:
        return Transfer(
            id=row["id"],
            chain_id=row["chain_id"],
            block_number=row["block_number"],
            block_hash=row["block_hash"],
            tx_hash=row["tx_hash"],
            log_index=row["log_index"],
            token_address=row["token_address"],
            from_address=row["from_address"],
            to_address=row["to_address"],
            amount=int(row["amount"]),
            token_symbol=row["token_symbol"],
            token_decimals=row["token_decimals"],
            block_timestamp=_dt(row["block_timestamp"]),
        )

    # Absorption Marker Operations

    async def mark_absorbed(self, transfer_id: int) -> bool:
        """Claim a transfer for graph absorption; False if already absorbed."""
        async with self.conn.execute(
            "INSERT OR IGNORE INTO absorbed_transfers (transfer_id) VALUES (?)",
            (transfer_id,),
        ) as cursor:
            return cursor.rowcount == 1

    # First-Seen Operations

    async def insert_first_seen(self, record: FirstSeen) -> bool:
        """Insert a first-seen row unless one exists; True if created."""
        async with self.conn.execute(
            """
            INSERT OR IGNORE INTO wallet_first_seen (
                address, chain_id, first_seen_at, first_block,
                first_tx_hash, first_direction
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record.address.lower(),
                record.chain_id,
                _ts(record.first_seen_at),
                record.first_block,
                record.first_tx_hash,
                record.first_direction,
            ),
        ) as cursor:
            return cursor.rowcount == 1

    async def get_first_seen(self, address: str, chain_id: int) -> FirstSeen | None:
        async with self.conn.execute(
            "SELECT * FROM wallet_first_seen WHERE address = ? AND chain_id = ?",
            (address.lower(), chain_id),
        ) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None

            return FirstSeen(
                address=row["address"],
                chain_id=row["chain_id"],
                first_seen_at=_dt(row["first_seen_at"]),
                first_block=row["first_block"],
                first_tx_hash=row["first_tx_hash"],
                first_direction=row["first_direction"],
            )

    async def delete_first_seen(self, address: str, chain_id: int):
        await self.conn.execute(
            "DELETE FROM wallet_first_seen WHERE address = ? AND chain_id = ?",
            (address.lower(), chain_id),
        )

    async def get_earliest_transfer(
        self, address: str, chain_id: int
    ) -> Transfer | None:
        """The first transfer touching an address, by block then log index."""
        async with self.conn.execute(
            """
            SELECT * FROM transfers
            WHERE chain_id = ? AND (from_address = ? OR to_address = ?)
            ORDER BY block_number, log_index
            LIMIT 1
            """,
            (chain_id, address.lower(), address.lower()),
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_transfer(row) if row else None

    # Graph Edge Operations

    async def get_edge(
        self, source_address: str, dest_address: str, chain_id: int
    ) -> GraphEdge | None:
        async with self.conn.execute(
            """
            SELECT * FROM wallet_graph_edges
            WHERE source_address = ? AND dest_address = ? AND chain_id = ?
            """,
            (source_address.lower(), dest_address.lower(), chain_id),
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_edge(row) if row else None

    async def save_edge(self, edge: GraphEdge):
        """Write an edge's full state."""
        await self.conn.execute(
            """
            INSERT INTO wallet_graph_edges (
                source_address, dest_address, chain_id, transfer_count,
                total_amount, first_seen, last_seen
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(source_address, dest_address, chain_id) DO UPDATE SET
                transfer_count = excluded.transfer_count,
                total_amount = excluded.total_amount,
                first_seen = excluded.first_seen,
                last_seen = excluded.last_seen
            """,
            (
                edge.source_address,
                edge.dest_address,
                edge.chain_id,
                edge.transfer_count,
                str(edge.total_amount),
                _ts(edge.first_seen),
                _ts(edge.last_seen),
            ),
        )

    async def delete_edge(self, source_address: str, dest_address: str, chain_id: int):
        await self.conn.execute(
            """
            DELETE FROM wallet_graph_edges
            WHERE source_address = ? AND dest_address = ? AND chain_id = ?
            """,
            (source_address, dest_address, chain_id),
        )

    async def aggregate_edge(
        self, source_address: str, dest_address: str, chain_id: int
    ) -> GraphEdge | None:
        """Derive an edge from the surviving transfers between a pair."""
        async with self.conn.execute(
            """
            SELECT amount, block_timestamp FROM transfers
            WHERE from_address = ? AND to_address = ? AND chain_id = ?
            """,
            (source_address, dest_address, chain_id),
        ) as cursor:
            rows = await cursor.fetchall()

        if not rows:
            return None

        timestamps = [_dt(row["block_timestamp"]) for row in rows]
        return GraphEdge(
            source_address=source_address,
            dest_address=dest_address,
            chain_id=chain_id,
            transfer_count=len(rows),
            # Python ints; raw amounts can exceed SQLite's 64-bit integers
            total_amount=sum(int(row["amount"]) for row in rows),
            first_seen=min(timestamps),
            last_seen=max(timestamps),
        )

    async def get_edges(self, chain_id: int) -> list[GraphEdge]:
        async with self.conn.execute(
            """
            SELECT * FROM wallet_graph_edges WHERE chain_id = ?
            ORDER BY source_address, dest_address
            """,
            (chain_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_edge(row) for row in rows]

    async def get_outgoing_edges(
        self, address: str, chain_id: int | None = None
    ) -> list[GraphEdge]:
        """Edges from an address, largest total first."""
        return await self._edges_for("source_address", address, chain_id)

    async def get_incoming_edges(
        self, address: str, chain_id: int | None = None
    ) -> list[GraphEdge]:
        """Edges into an address, largest total first."""
        return await self._edges_for("dest_address", address, chain_id)

    async def _edges_for(
        self, column: str, address: str, chain_id: int | None
    ) -> list[GraphEdge]:
        query = f"SELECT * FROM wallet_graph_edges WHERE {column} = ?"
        params: tuple = (address.lower(),)
        if chain_id is not None:
            query += " AND chain_id = ?"
            params += (chain_id,)

        async with self.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()

        edges = [self._row_to_edge(row) for row in rows]
        # total_amount is text; sort numerically here
        return sorted(edges, key=lambda e: e.total_amount, reverse=True)

    async def get_bidirectional_pairs(self, chain_id: int) -> list[tuple[str, str]]:
        """Pairs where both A -> B and B -> A edges exist."""
        async with self.conn.execute(
            """
            SELECT e1.source_address, e1.dest_address
            FROM wallet_graph_edges e1
            JOIN wallet_graph_edges e2
              ON e1.source_address = e2.dest_address
             AND e1.dest_address = e2.source_address
             AND e1.chain_id = e2.chain_id
            WHERE e1.chain_id = ?
            """,
            (chain_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [(row["source_address"], row["dest_address"]) for row in rows]

    async def replace_clusters(self, chain_id: int, assignments: dict[str, int]):
        """Replace all cluster assignments for a chain."""
        now = _ts(datetime.now(timezone.utc))
        await self.conn.execute(
            "DELETE FROM wallet_clusters WHERE chain_id = ?", (chain_id,)
        )
        await self.conn.executemany(
            """
            INSERT INTO wallet_clusters (address, chain_id, cluster_id, assigned_at)
            VALUES (?, ?, ?, ?)
            """,
            [
                (address, chain_id, cluster_id, now)
                for address, cluster_id in assignments.items()
            ],
        )

    async def get_clusters(self, chain_id: int) -> dict[str, int]:
        async with self.conn.execute(
            "SELECT address, cluster_id FROM wallet_clusters WHERE chain_id = ?",
            (chain_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return {row["address"]: row["cluster_id"] for row in rows}

    def _row_to_edge(self, row: aiosqlite.Row) -> GraphEdge:
        return GraphEdge(
            source_address=row["source_address"],
            dest_address=row["dest_address"],
            chain_id=row["chain_id"],
            transfer_count=row["transfer_count"],
            total_amount=int(row["total_amount"]),
            first_seen=_dt(row["first_seen"]),
            last_seen=_dt(row["last_seen"]),
        )

    # Anomaly Operations

    async def upsert_anomaly(self, anomaly: AnomalyRecord) -> int:
        """Insert or overwrite the anomaly for (transfer_id, anomaly_type)."""
        await self.conn.execute(
            """
            INSERT INTO anomalies (
                transfer_id, chain_id, anomaly_type, risk_score,
                flags, details, address, detected_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(transfer_id, anomaly_type) DO UPDATE SET
                risk_score = excluded.risk_score,
                flags = excluded.flags,
                details = excluded.details,
                address = excluded.address
            """,
            (
                anomaly.transfer_id,
                anomaly.chain_id,
                anomaly.anomaly_type,
                anomaly.risk_score,
                json.dumps(anomaly.flags),
                json.dumps(anomaly.details) if anomaly.details else None,
                anomaly.address,
                _ts(anomaly.detected_at or datetime.now(timezone.utc)),
            ),
        )
        async with self.conn.execute(
            "SELECT id FROM anomalies WHERE transfer_id = ? AND anomaly_type = ?",
            (anomaly.transfer_id, anomaly.anomaly_type),
        ) as cursor:
            row = await cursor.fetchone()
            return row["id"] if row else 0

    async def get_anomalies(
        self, chain_id: int, transfer_id: int | None = None
    ) -> list[AnomalyRecord]:
        query = "SELECT * FROM anomalies WHERE chain_id = ?"
        params: tuple = (chain_id,)
        if transfer_id is not None:
            query += " AND transfer_id = ?"
            params += (transfer_id,)
        query += " ORDER BY id"

        async with self.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()

            return [
                AnomalyRecord(
                    id=row["id"],
                    transfer_id=row["transfer_id"],
                    chain_id=row["chain_id"],
                    anomaly_type=row["anomaly_type"],
                    risk_score=row["risk_score"],
                    flags=json.loads(row["flags"]),
                    details=json.loads(row["details"]) if row["details"] else {},
                    address=row["address"],
                    detected_at=_dt(row["detected_at"]),
                    resolved=bool(row["resolved"]),
                )
                for row in rows
            ]

    async def resolve_anomaly(self, anomaly_id: int):
        """Mark an anomaly as reviewed."""
        await self.conn.execute(
            "UPDATE anomalies SET resolved = 1 WHERE id = ?", (anomaly_id,)
        )

    # Attribution Reference Data (written by the watchlist loader)

    async def add_entity_label(
        self,
        address: str,
        entity_name: str,
        entity_type: str,
        label_source: str,
        chain_id: int | None = None,
        confidence: float = 1.0,
        metadata: dict | None = None,
    ) -> int:
        async with self.conn.execute(
            """
            INSERT INTO entity_labels (
                address, chain_id, entity_name, entity_type,
                label_source, confidence, metadata
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                address.lower(),
                chain_id,
                entity_name,
                entity_type,
                label_source,
                confidence,
                json.dumps(metadata) if metadata else None,
            ),
        ) as cursor:
            return cursor.lastrowid or 0

    async def add_watchlist_entry(
        self,
        list_name: str,
        address: str,
        entity_name: str | None = None,
        program: str | None = None,
    ) -> int:
        async with self.conn.execute(
            """
            INSERT INTO watchlist_entries (list_name, address, entity_name, program)
            VALUES (?, ?, ?, ?)
            """,
            (list_name, address.lower(), entity_name, program),
        ) as cursor:
            return cursor.lastrowid or 0

    async def add_provider(self, name: str, provider_type: str = "exchange") -> int:
        async with self.conn.execute(
            "INSERT INTO onramp_providers (name, provider_type) VALUES (?, ?)",
            (name, provider_type),
        ) as cursor:
            return cursor.lastrowid or 0

    async def add_provider_wallet(
        self, provider_id: int, chain_id: int, address: str, label: str | None = None
    ) -> int:
        async with self.conn.execute(
            """
            INSERT INTO provider_wallets (provider_id, chain_id, address, label)
            VALUES (?, ?, ?, ?)
            """,
            (provider_id, chain_id, address.lower(), label),
        ) as cursor:
            return cursor.lastrowid or 0

    async def load_entity_labels(self) -> list[EntityLabel]:
        async with self.conn.execute(
            """
            SELECT id, address, chain_id, entity_name, entity_type,
                   label_source, confidence
            FROM entity_labels ORDER BY id
            """
        ) as cursor:
            rows = await cursor.fetchall()
            return [EntityLabel(**dict(row)) for row in rows]

    async def load_watchlist(self) -> list[WatchlistEntry]:
        async with self.conn.execute(
            """
            SELECT id, list_name, address, entity_name, program
            FROM watchlist_entries ORDER BY id
            """
        ) as cursor:
            rows = await cursor.fetchall()
            return [WatchlistEntry(**dict(row)) for row in rows]

    async def load_provider_wallets(self) -> list[ProviderWallet]:
        async with self.conn.execute(
            """
            SELECT w.provider_id, p.name AS provider_name, w.chain_id,
                   w.address, w.label
            FROM provider_wallets w
            JOIN onramp_providers p ON p.id = w.provider_id
            """
        ) as cursor:
            rows = await cursor.fetchall()
            return [ProviderWallet(**dict(row)) for row in rows]

    # Attribution Operations

    async def insert_entity_flag(
        self, transfer_id: int, entity_label_id: int, side: str
    ) -> bool:
        async with self.conn.execute(
            """
            INSERT OR IGNORE INTO transfer_entity_flags (transfer_id, entity_label_id, side)
            VALUES (?, ?, ?)
            """,
            (transfer_id, entity_label_id, side),
        ) as cursor:
            return cursor.rowcount == 1

    async def get_entity_flags(self, transfer_id: int) -> list[EntityFlag]:
        async with self.conn.execute(
            """
            SELECT transfer_id, entity_label_id, side FROM transfer_entity_flags
            WHERE transfer_id = ? ORDER BY entity_label_id, side
            """,
            (transfer_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [EntityFlag(**dict(row)) for row in rows]

    async def insert_onramp_transfer(
        self, transfer_id: int, provider_id: int, direction: str
    ) -> bool:
        async with self.conn.execute(
            """
            INSERT OR IGNORE INTO onramp_transfers (transfer_id, provider_id, direction)
            VALUES (?, ?, ?)
            """,
            (transfer_id, provider_id, direction),
        ) as cursor:
            return cursor.rowcount == 1

    async def get_onramp_transfer(self, transfer_id: int) -> OnrampTransfer | None:
        async with self.conn.execute(
            "SELECT * FROM onramp_transfers WHERE transfer_id = ?", (transfer_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return OnrampTransfer(**dict(row)) if row else None

    async def record_attribution_audit(
        self, transfer_id: int, chain_id: int, reason: str, details: dict
    ):
        """Record a skipped attribution, once per transfer and reason."""
        async with self.conn.execute(
            "SELECT 1 FROM attribution_audit WHERE transfer_id = ? AND reason = ?",
            (transfer_id, reason),
        ) as cursor:
            if await cursor.fetchone():
                return

        await self.conn.execute(
            """
            INSERT INTO attribution_audit (transfer_id, chain_id, reason, details, recorded_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                transfer_id,
                chain_id,
                reason,
                json.dumps(details),
                _ts(datetime.now(timezone.utc)),
            ),
        )

    async def count_attribution_audits(self, transfer_id: int) -> int:
        async with self.conn.execute(
            "SELECT COUNT(*) AS count FROM attribution_audit WHERE transfer_id = ?",
            (transfer_id,),
        ) as cursor:
            row = await cursor.fetchone()
            return row["count"] if row else 0
