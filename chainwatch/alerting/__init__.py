"""Anomaly output."""

from .logger import AnomalyFormatter, AnomalyLogger, setup_app_logging

__all__ = ["AnomalyFormatter", "AnomalyLogger", "setup_app_logging"]
