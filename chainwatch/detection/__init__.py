"""Anomaly detection engine and rules."""

from .context import WalletContext
from .engine import AnomalyScorer, Detector
from .rules import build_detectors

__all__ = [
    "AnomalyScorer",
    "Detector",
    "WalletContext",
    "build_detectors",
]
