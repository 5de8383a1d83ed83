"""
Local Storage - Load Layer

Writes the Parquet payload to the local filesystem instead of BigQuery.
Used for dry runs and debugging.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Callable

import polars as pl

from .sink import Sink, WriteDisposition

logger = logging.getLogger(__name__)


class LocalParquetSink(Sink):
    """One timestamped Parquet file per write: <output_dir>/<table>_<UTC ts>.parquet"""

    def __init__(
        self,
        output_dir: str,
        table: str = "icm_extraction",
        clock: Callable[[], datetime] = lambda: datetime.now(tz=timezone.utc),
    ):
        self.output_dir = output_dir
        self.table = table
        self.clock = clock
        self.last_path = None

    def filepath(self) -> str:
        timestamp = self.clock().strftime("%Y%m%dT%H%M%SZ")
        return os.path.join(self.output_dir, f"{self.table}_{timestamp}.parquet")

    def write(self, data: bytes, disposition: WriteDisposition = WriteDisposition.REPLACE) -> None:
        filepath = self.filepath()
        logger.info(f"Saving Parquet payload to {filepath}")

        # Ensure directory exists
        os.makedirs(self.output_dir, exist_ok=True)

        with open(filepath, "wb") as f:
            f.write(data)

        self.last_path = filepath
        logger.info(f"✅ Saved {len(data)} bytes to {filepath}")


def load_parquet(filepath: str) -> pl.DataFrame:
    """
    Load DataFrame from Parquet file

    Args:
        filepath: Path to Parquet file

    Returns:
        pl.DataFrame: Loaded DataFrame
    """
    logger.info(f"Loading DataFrame from Parquet: {filepath}")
    return pl.read_parquet(filepath)
