"""Anomaly scorer - runs all detection rules against recorded transfers."""

import logging
import sqlite3
from typing import Protocol

from ..db import AnomalyRecord, Repository
from ..errors import IndexerError
from ..types import Transfer
from .context import WalletContext

logger = logging.getLogger(__name__)


class Detector(Protocol):
    """Protocol for detection rules."""

    ANOMALY_TYPE: str

    async def analyze(
        self, transfer: Transfer, context: WalletContext
    ) -> AnomalyRecord | None:
        """Analyze a transfer and return an anomaly if one is detected."""
        ...


class AnomalyScorer:
    """
    Runs an ordered list of detectors and upserts what they find.

    Each anomaly is keyed by (transfer_id, anomaly_type), so scoring the same
    transfer again overwrites score, flags and details instead of adding rows.
    The analyst-owned ``resolved`` flag is never written here.
    """

    def __init__(
        self,
        repository: Repository,
        detectors: list[Detector] | None = None,
        enabled: bool = True,
    ):
        self.repository = repository
        self.detectors: list[Detector] = detectors or []
        self.enabled = enabled
        self._transfer_count = 0
        self._anomaly_count = 0

    def add_detector(self, detector: Detector):
        """Add a detector to the scorer."""
        self.detectors.append(detector)
        logger.info(f"Added detector: {detector.ANOMALY_TYPE}")

    async def evaluate(
        self, transfer: Transfer, context: WalletContext
    ) -> list[AnomalyRecord]:
        """
        Score a recorded transfer.

        Args:
            transfer: The transfer to analyze (must carry its id)
            context: Wallet state around the transfer

        Returns:
            Anomalies upserted for this transfer (may be empty)
        """
        if not self.enabled:
            return []
        if transfer.id is None:
            raise ValueError("Transfer must be recorded before scoring")

        self._transfer_count += 1
        anomalies: list[AnomalyRecord] = []

        for detector in self.detectors:
            try:
                anomaly = await detector.analyze(transfer, context)
            except (IndexerError, sqlite3.Error):
                raise
            except Exception as e:
                logger.error(
                    f"Error in detector {detector.ANOMALY_TYPE}: {e}",
                    exc_info=True,
                )
                continue

            if anomaly is None:
                continue

            anomaly.transfer_id = transfer.id
            anomaly.risk_score = min(1.0, max(0.0, anomaly.risk_score))
            anomaly.id = await self.repository.upsert_anomaly(anomaly)
            anomalies.append(anomaly)
            self._anomaly_count += 1

        return anomalies

    @property
    def stats(self) -> dict:
        """Get scorer statistics."""
        return {
            "transfers_scored": self._transfer_count,
            "anomalies_detected": self._anomaly_count,
            "detectors_active": len(self.detectors),
        }
