"""Anomaly logging - formats and outputs anomalies to console and file."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..db import AnomalyRecord
from ..types import Transfer


class AnomalyFormatter(logging.Formatter):
    """Custom formatter for anomaly messages."""

    ANOMALY_FORMAT = """
================================================================================
{timestamp} | ANOMALY | {anomaly_type} | risk {risk_score:.2f}
--------------------------------------------------------------------------------
  Chain:       {chain_id}
  Block:       {block_number}
  Token:       {symbol}
  Amount:      {amount:,.2f}
  From:        {from_address}
  To:          {to_address}
  Flags:       {flags}
  Tx:          {tx_hash}
================================================================================
"""

    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, "anomaly"):
            return self._format_anomaly(record.anomaly, record.transfer)
        return super().format(record)

    def _format_anomaly(self, anomaly: AnomalyRecord, transfer: Transfer) -> str:
        return self.ANOMALY_FORMAT.format(
            timestamp=transfer.block_timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            anomaly_type=anomaly.anomaly_type.upper().replace("_", " "),
            risk_score=anomaly.risk_score,
            chain_id=transfer.chain_id,
            block_number=transfer.block_number,
            symbol=transfer.token_symbol or "Unknown",
            amount=transfer.human_amount,
            from_address=transfer.from_address,
            to_address=transfer.to_address,
            flags=", ".join(anomaly.flags) or "-",
            tx_hash=transfer.tx_hash,
        )


class AnomalyLogger:
    """Handles anomaly output to console and file."""

    def __init__(
        self,
        log_file: str | Path,
        log_level: str = "INFO",
        max_file_size_mb: int = 10,
        backup_count: int = 5,
    ):
        self.log_file = Path(log_file)
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.max_file_size = max_file_size_mb * 1024 * 1024
        self.backup_count = backup_count

        self._logger = logging.getLogger("chainwatch.anomalies")
        self._logger.propagate = False
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging handlers."""
        self._logger.setLevel(self.log_level)
        self._logger.handlers.clear()

        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(AnomalyFormatter())
        self._logger.addHandler(console_handler)

        file_handler = RotatingFileHandler(
            self.log_file,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
        )
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(AnomalyFormatter())
        self._logger.addHandler(file_handler)

    def log_anomaly(self, transfer: Transfer, anomaly: AnomalyRecord):
        """Log an anomaly to console and file."""
        record = self._logger.makeRecord(
            name="chainwatch.anomalies",
            level=logging.WARNING,
            fn="",
            lno=0,
            msg="Anomaly detected",
            args=(),
            exc_info=None,
        )
        record.anomaly = anomaly
        record.transfer = transfer
        self._logger.handle(record)

    def close(self):
        for handler in self._logger.handlers:
            handler.close()
        self._logger.handlers.clear()


def setup_app_logging(level: str = "INFO"):
    """Set up application-wide logging."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
