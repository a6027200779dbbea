"""Database layer."""

from .models import SCHEMA
from .repository import (
    AnomalyRecord,
    EntityFlag,
    EntityLabel,
    FirstSeen,
    GraphEdge,
    OnrampTransfer,
    ProviderWallet,
    Repository,
    RollbackSummary,
    WatchlistEntry,
)

__all__ = [
    "SCHEMA",
    "Repository",
    "AnomalyRecord",
    "EntityFlag",
    "EntityLabel",
    "FirstSeen",
    "GraphEdge",
    "OnrampTransfer",
    "ProviderWallet",
    "RollbackSummary",
    "WatchlistEntry",
]
