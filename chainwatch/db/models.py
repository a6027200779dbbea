"""SQLite database schema."""

SCHEMA = """
-- Stablecoin tokens watched per chain
CREATE TABLE IF NOT EXISTS known_tokens (
    chain_id INTEGER NOT NULL,
    token_address TEXT NOT NULL,
    symbol TEXT NOT NULL,
    decimals INTEGER NOT NULL,
    PRIMARY KEY (chain_id, token_address)
);

-- Per-chain checkpoint for resumability
CREATE TABLE IF NOT EXISTS indexer_state (
    chain_id INTEGER PRIMARY KEY,
    last_indexed_block INTEGER NOT NULL,
    last_block_hash TEXT,
    updated_at TIMESTAMP NOT NULL
);

-- Block hash ledger for reorg detection
CREATE TABLE IF NOT EXISTS block_hashes (
    chain_id INTEGER NOT NULL,
    block_number INTEGER NOT NULL,
    block_hash TEXT NOT NULL,
    parent_hash TEXT NOT NULL,
    PRIMARY KEY (chain_id, block_number)
);

-- Canonical transfer event log; amounts are raw units stored as decimal text
CREATE TABLE IF NOT EXISTS transfers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chain_id INTEGER NOT NULL,
    block_number INTEGER NOT NULL,
    block_hash TEXT NOT NULL,
    tx_hash TEXT NOT NULL,
    log_index INTEGER NOT NULL,
    token_address TEXT NOT NULL,
    from_address TEXT NOT NULL,
    to_address TEXT NOT NULL,
    amount TEXT NOT NULL,
    token_symbol TEXT NOT NULL,
    token_decimals INTEGER NOT NULL,
    block_timestamp TIMESTAMP NOT NULL,
    UNIQUE (chain_id, tx_hash, log_index)
);

-- Transfers already folded into the wallet graph
CREATE TABLE IF NOT EXISTS absorbed_transfers (
    transfer_id INTEGER PRIMARY KEY
);

-- First sighting of every address per chain
CREATE TABLE IF NOT EXISTS wallet_first_seen (
    address TEXT NOT NULL,
    chain_id INTEGER NOT NULL,
    first_seen_at TIMESTAMP NOT NULL,
    first_block INTEGER NOT NULL,
    first_tx_hash TEXT,
    first_direction TEXT NOT NULL,
    PRIMARY KEY (address, chain_id)
);

-- Aggregated transfers between wallet pairs
CREATE TABLE IF NOT EXISTS wallet_graph_edges (
    source_address TEXT NOT NULL,
    dest_address TEXT NOT NULL,
    chain_id INTEGER NOT NULL,
    transfer_count INTEGER NOT NULL DEFAULT 1,
    total_amount TEXT NOT NULL DEFAULT '0',
    first_seen TIMESTAMP NOT NULL,
    last_seen TIMESTAMP NOT NULL,
    PRIMARY KEY (source_address, dest_address, chain_id)
);

CREATE TABLE IF NOT EXISTS wallet_clusters (
    address TEXT NOT NULL,
    chain_id INTEGER NOT NULL,
    cluster_id INTEGER NOT NULL,
    assigned_at TIMESTAMP NOT NULL,
    PRIMARY KEY (address, chain_id)
);

-- Detected anomalies; resolved is owned by the analyst workflow
CREATE TABLE IF NOT EXISTS anomalies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    transfer_id INTEGER NOT NULL,
    chain_id INTEGER NOT NULL,
    anomaly_type TEXT NOT NULL,
    risk_score REAL NOT NULL,
    flags TEXT NOT NULL DEFAULT '[]',
    details TEXT,
    address TEXT,
    detected_at TIMESTAMP NOT NULL,
    resolved INTEGER NOT NULL DEFAULT 0,
    UNIQUE (transfer_id, anomaly_type)
);

-- Attribution side tables, populated by the watchlist loader
CREATE TABLE IF NOT EXISTS entity_labels (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    address TEXT NOT NULL,
    chain_id INTEGER,
    entity_name TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    label_source TEXT NOT NULL,
    confidence REAL NOT NULL DEFAULT 1.0,
    metadata TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (address, chain_id, label_source, entity_name)
);

CREATE TABLE IF NOT EXISTS watchlist_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    list_name TEXT NOT NULL,
    address TEXT NOT NULL,
    entity_name TEXT,
    sdn_id TEXT,
    program TEXT,
    added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (list_name, address)
);

CREATE TABLE IF NOT EXISTS transfer_entity_flags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    transfer_id INTEGER NOT NULL,
    entity_label_id INTEGER NOT NULL,
    side TEXT NOT NULL,
    UNIQUE (transfer_id, entity_label_id, side)
);

CREATE TABLE IF NOT EXISTS onramp_providers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    provider_type TEXT NOT NULL,
    website TEXT,
    kyc_required INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS provider_wallets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    provider_id INTEGER NOT NULL,
    chain_id INTEGER NOT NULL,
    address TEXT NOT NULL,
    label TEXT,
    UNIQUE (chain_id, address)
);

CREATE TABLE IF NOT EXISTS onramp_transfers (
    transfer_id INTEGER PRIMARY KEY,
    provider_id INTEGER NOT NULL,
    direction TEXT NOT NULL
);

-- Attributions skipped as ambiguous, kept for review
CREATE TABLE IF NOT EXISTS attribution_audit (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    transfer_id INTEGER NOT NULL,
    chain_id INTEGER NOT NULL,
    reason TEXT NOT NULL,
    details TEXT,
    recorded_at TIMESTAMP NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_transfers_chain_block ON transfers(chain_id, block_number);
CREATE INDEX IF NOT EXISTS idx_transfers_from ON transfers(from_address, chain_id, block_timestamp);
CREATE INDEX IF NOT EXISTS idx_transfers_to ON transfers(to_address, chain_id);
CREATE INDEX IF NOT EXISTS idx_transfers_timestamp ON transfers(block_timestamp);
CREATE INDEX IF NOT EXISTS idx_graph_edges_dest ON wallet_graph_edges(dest_address);
CREATE INDEX IF NOT EXISTS idx_wallet_clusters_cluster ON wallet_clusters(cluster_id);
CREATE INDEX IF NOT EXISTS idx_anomalies_chain ON anomalies(chain_id, detected_at);
CREATE INDEX IF NOT EXISTS idx_anomalies_address ON anomalies(address);
CREATE INDEX IF NOT EXISTS idx_entity_labels_address ON entity_labels(address);
CREATE INDEX IF NOT EXISTS idx_watchlist_address ON watchlist_entries(address);
CREATE INDEX IF NOT EXISTS idx_entity_flags_transfer ON transfer_entity_flags(transfer_id);
CREATE INDEX IF NOT EXISTS idx_provider_wallets_address ON provider_wallets(address);
CREATE INDEX IF NOT EXISTS idx_audit_transfer ON attribution_audit(transfer_id);
"""
