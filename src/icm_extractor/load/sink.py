"""
Sink - Load Layer

Destination-agnostic contract for storing one extraction's Parquet payload.
"""

import io
import logging
from abc import ABC, abstractmethod
from enum import Enum

import polars as pl

logger = logging.getLogger(__name__)

PARQUET_COMPRESSION = "gzip"


class WriteDisposition(Enum):
    """How a write treats data already at the destination"""

    REPLACE = "replace"


class Sink(ABC):
    """Storage destination for an extraction frame serialized as Parquet"""

    @abstractmethod
    def write(self, data: bytes, disposition: WriteDisposition = WriteDisposition.REPLACE) -> None:
        """Store `data`, replacing the previous contents when asked to"""


def frame_to_parquet(frame: pl.DataFrame) -> bytes:
    """
    Serialize a frame to an in-memory gzip-compressed Parquet file

    Args:
        frame: DataFrame to serialize

    Returns:
        bytes: Parquet file contents
    """
    buffer = io.BytesIO()
    frame.write_parquet(buffer, compression=PARQUET_COMPRESSION)

    data = buffer.getvalue()
    logger.info(f"Serialized {frame.height} rows to Parquet ({len(data)} bytes)")
    return data
