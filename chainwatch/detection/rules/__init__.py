"""Detection rules."""

from ...config import AnomalyDetectionConfig
from ...db import Repository
from .cross_chain import CrossChainActivityDetector
from .large_transfer import LargeTransferConfig, LargeTransferDetector
from .new_wallet import NewWalletLargeReceiveDetector
from .round_number import RoundNumberDetector
from .round_trip import RoundTripDetector
from .sanctioned import SanctionedCounterpartyDetector
from .velocity import VelocityDetector, VelocityDetectorConfig

__all__ = [
    "CrossChainActivityDetector",
    "LargeTransferConfig",
    "LargeTransferDetector",
    "NewWalletLargeReceiveDetector",
    "RoundNumberDetector",
    "RoundTripDetector",
    "SanctionedCounterpartyDetector",
    "VelocityDetector",
    "VelocityDetectorConfig",
    "build_detectors",
]


def build_detectors(config: AnomalyDetectionConfig, repository: Repository) -> list:
    """Create the standard detectors in evaluation order."""
    return [
        LargeTransferDetector(
            LargeTransferConfig(thresholds=dict(config.large_transfer_thresholds))
        ),
        SanctionedCounterpartyDetector(),
        RoundNumberDetector(tolerance=config.round_number_tolerance),
        NewWalletLargeReceiveDetector(threshold_usd=config.new_wallet_threshold_usd),
        VelocityDetector(
            VelocityDetectorConfig(
                window_secs=config.velocity.window_secs,
                max_transfers=config.velocity.max_transfers,
            ),
            repository,
        ),
        CrossChainActivityDetector(config.cross_chain.window_secs, repository),
        RoundTripDetector(config.round_trip.window_secs, repository),
    ]
