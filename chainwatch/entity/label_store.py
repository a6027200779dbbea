"""In-memory index of entity labels, watchlist entries and provider wallets."""

import logging
from collections import defaultdict

from ..db import EntityLabel, ProviderWallet, Repository, WatchlistEntry

logger = logging.getLogger(__name__)

SANCTIONED_TYPES = {"sanctioned"}
SANCTION_SOURCES = {"ofac_sdn"}


class EntityLabelStore:
    """
    Read-only view of the attribution reference tables.

    The tables are owned by the watchlist loader; call reload() after it runs.
    """

    def __init__(self, repository: Repository):
        self.repository = repository
        self._labels: dict[str, list[EntityLabel]] = {}
        self._watchlist: dict[str, list[WatchlistEntry]] = {}
        self._providers: dict[tuple[int, str], ProviderWallet] = {}

    async def load(self):
        """Load all reference data into memory."""
        labels: dict[str, list[EntityLabel]] = defaultdict(list)
        for label in await self.repository.load_entity_labels():
            labels[label.address].append(label)

        watchlist: dict[str, list[WatchlistEntry]] = defaultdict(list)
        for entry in await self.repository.load_watchlist():
            watchlist[entry.address].append(entry)

        providers = {
            (wallet.chain_id, wallet.address): wallet
            for wallet in await self.repository.load_provider_wallets()
        }

        self._labels = dict(labels)
        self._watchlist = dict(watchlist)
        self._providers = providers

        logger.info(
            f"Loaded {sum(len(v) for v in self._labels.values())} entity labels, "
            f"{sum(len(v) for v in self._watchlist.values())} watchlist entries, "
            f"{len(self._providers)} provider wallets"
        )

    async def reload(self):
        await self.load()

    def lookup(self, address: str, chain_id: int) -> list[EntityLabel]:
        """
        Labels that apply to an address on a chain.

        A chain-scoped label shadows global labels of the same entity type;
        labels of different types all apply. Results are ordered by label id.
        """
        candidates = [
            label
            for label in self._labels.get(address.lower(), [])
            if label.chain_id is None or label.chain_id == chain_id
        ]
        scoped_types = {
            label.entity_type for label in candidates if label.chain_id is not None
        }

        applicable = [
            label
            for label in candidates
            if label.chain_id is not None or label.entity_type not in scoped_types
        ]
        return sorted(applicable, key=lambda label: label.id)

    def watchlist_entries(self, address: str) -> list[WatchlistEntry]:
        return self._watchlist.get(address.lower(), [])

    def is_sanctioned(self, address: str, chain_id: int) -> bool:
        """Whether an address is watchlisted or carries a sanctions label."""
        if self.watchlist_entries(address):
            return True
        return any(
            label.entity_type in SANCTIONED_TYPES or label.label_source in SANCTION_SOURCES
            for label in self.lookup(address, chain_id)
        )

    def provider_for(self, address: str, chain_id: int) -> ProviderWallet | None:
        return self._providers.get((chain_id, address.lower()))
