"""Wallet clustering over bidirectional graph edges."""

import logging

from ..db import Repository

logger = logging.getLogger(__name__)


class UnionFind:
    """Disjoint sets with path compression and union by rank."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        while self.parent[x] != x:
            self.parent[x] = self.parent[self.parent[x]]
            x = self.parent[x]
        return x

    def union(self, x: int, y: int):
        rx, ry = self.find(x), self.find(y)
        if rx == ry:
            return
        if self.rank[rx] < self.rank[ry]:
            rx, ry = ry, rx
        self.parent[ry] = rx
        if self.rank[rx] == self.rank[ry]:
            self.rank[rx] += 1


def build_clusters(pairs: list[tuple[str, str]]) -> dict[str, int]:
    """
    Group addresses connected by the given pairs.

    Cluster ids are numbered from 1 in order of each cluster's smallest address.
    """
    addresses = sorted({a for pair in pairs for a in pair})
    index = {address: i for i, address in enumerate(addresses)}

    uf = UnionFind(len(addresses))
    for source, dest in pairs:
        uf.union(index[source], index[dest])

    root_to_cluster: dict[int, int] = {}
    assignments: dict[str, int] = {}
    for address in addresses:
        root = uf.find(index[address])
        if root not in root_to_cluster:
            root_to_cluster[root] = len(root_to_cluster) + 1
        assignments[address] = root_to_cluster[root]

    return assignments


async def recluster(repository: Repository, chain_id: int) -> int:
    """
    Re-cluster a chain's wallets.

    Two wallets share a cluster when each has sent to the other, which
    suggests common ownership. Runs periodically, not on every block.

    Returns:
        Number of wallets assigned to clusters
    """
    pairs = await repository.get_bidirectional_pairs(chain_id)
    assignments = build_clusters(pairs)

    async with repository.transaction():
        await repository.replace_clusters(chain_id, assignments)

    logger.info(
        f"Chain {chain_id}: reclustered {len(assignments)} wallets into "
        f"{len(set(assignments.values()))} clusters"
    )
    return len(assignments)
