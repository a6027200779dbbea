"""Wallet interaction graph."""

from .aggregator import GraphAggregator
from .cluster import build_clusters, recluster

__all__ = ["GraphAggregator", "build_clusters", "recluster"]
