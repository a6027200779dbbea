"""Configuration loader for ChainWatch."""

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass
class TokenConfig:
    symbol: str
    address: str
    decimals: int


@dataclass
class ChainConfig:
    name: str
    chain_id: int
    tokens: list[TokenConfig]
    start_block: int = 0
    poll_interval_secs: float = 2.0
    max_reorg_depth: int = 64
    # Recluster wallets every N indexed blocks (0 disables)
    recluster_interval_blocks: int = 0


@dataclass
class VelocityConfig:
    window_secs: int = 3600
    max_transfers: int = 50


@dataclass
class CrossChainConfig:
    window_secs: int = 3600


@dataclass
class RoundTripConfig:
    window_secs: int = 86400


@dataclass
class AnomalyDetectionConfig:
    enabled: bool = True
    # Per-symbol thresholds in human units; "default" applies to the rest
    large_transfer_thresholds: dict[str, float] = field(
        default_factory=lambda: {"default": 100_000.0}
    )
    round_number_tolerance: float = 0.001
    new_wallet_threshold_usd: float = 50_000.0
    velocity: VelocityConfig = field(default_factory=VelocityConfig)
    cross_chain: CrossChainConfig = field(default_factory=CrossChainConfig)
    round_trip: RoundTripConfig = field(default_factory=RoundTripConfig)


@dataclass
class LoggingConfig:
    level: str
    file: str
    max_file_size_mb: int
    backup_count: int


@dataclass
class FeedConfig:
    base_url: str
    timeout_secs: float = 30.0


@dataclass
class RetryConfig:
    initial_delay_secs: float = 0.5
    max_delay_secs: float = 30.0


@dataclass
class DatabaseConfig:
    path: str


@dataclass
class Config:
    database: DatabaseConfig
    logging: LoggingConfig
    feed: FeedConfig
    chains: list[ChainConfig]
    anomaly_detection: AnomalyDetectionConfig = field(
        default_factory=AnomalyDetectionConfig
    )
    retry: RetryConfig = field(default_factory=RetryConfig)

    def validate(self):
        """Reject configurations the indexer cannot run with."""
        if not self.chains:
            raise ValueError("At least one chain must be configured")

        seen: set[int] = set()
        for chain in self.chains:
            if chain.chain_id in seen:
                raise ValueError(f"Duplicate chain_id {chain.chain_id}")
            seen.add(chain.chain_id)

            if chain.max_reorg_depth < 1:
                raise ValueError(
                    f"Chain '{chain.name}' max_reorg_depth must be at least 1"
                )

            for token in chain.tokens:
                if not ADDRESS_RE.match(token.address):
                    raise ValueError(
                        f"Invalid token address '{token.address}' for "
                        f"{token.symbol} on chain '{chain.name}'"
                    )


def _parse_chain(raw: dict) -> ChainConfig:
    tokens = [TokenConfig(**t) for t in raw.get("tokens", [])]
    return ChainConfig(**{**raw, "tokens": tokens})


def _parse_anomaly_detection(raw: dict | None) -> AnomalyDetectionConfig:
    if not raw:
        return AnomalyDetectionConfig()

    raw = dict(raw)
    velocity = VelocityConfig(**raw.pop("velocity", {}))
    cross_chain = CrossChainConfig(**raw.pop("cross_chain", {}))
    round_trip = RoundTripConfig(**raw.pop("round_trip", {}))
    return AnomalyDetectionConfig(
        velocity=velocity,
        cross_chain=cross_chain,
        round_trip=round_trip,
        **raw,
    )


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from a YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    config = Config(
        database=DatabaseConfig(**raw["database"]),
        logging=LoggingConfig(**raw["logging"]),
        feed=FeedConfig(**raw["feed"]),
        chains=[_parse_chain(c) for c in raw.get("chains") or []],
        anomaly_detection=_parse_anomaly_detection(raw.get("anomaly_detection")),
        retry=RetryConfig(**raw.get("retry", {})),
    )
    config.validate()
    return config
