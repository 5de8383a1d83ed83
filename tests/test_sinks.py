"""
Unit Tests for the load layer - Parquet serialization and both sinks
"""

import io
import os
import tempfile
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import polars as pl
from google.cloud import bigquery

from icm_extractor.load.bigquery import BigQuerySink
from icm_extractor.load.local_storage import LocalParquetSink, load_parquet
from icm_extractor.load.sink import WriteDisposition, frame_to_parquet

FRAME = pl.DataFrame(
    {
        "Part_No_": ["P-1", "P-2"],
        "qty": pl.Series([1, None], dtype=pl.Int64),
        "ExtractionTime": pl.Series(
            [datetime(2025, 1, 6, 3, 0)] * 2, dtype=pl.Datetime("ms")
        ),
    }
)


def test_frame_to_parquet_is_readable():
    data = frame_to_parquet(FRAME)

    assert data.startswith(b"PAR1")
    assert pl.read_parquet(io.BytesIO(data)).equals(FRAME)


class TestLocalParquetSink(unittest.TestCase):
    def test_writes_timestamped_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output_dir = os.path.join(tmpdir, "output")
            sink = LocalParquetSink(
                output_dir,
                table="parts",
                clock=lambda: datetime(2025, 1, 6, 3, 0, 5, tzinfo=timezone.utc),
            )

            sink.write(frame_to_parquet(FRAME))

            self.assertEqual(
                sink.last_path, os.path.join(output_dir, "parts_20250106T030005Z.parquet")
            )
            self.assertTrue(load_parquet(sink.last_path).equals(FRAME))


class TestBigQuerySink(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.sink = BigQuerySink("key.json", "project", "dataset", "table", client=self.client)

    def test_load_job_truncates_table(self):
        self.sink.write(b"PAR1...", WriteDisposition.REPLACE)

        args, kwargs = self.client.load_table_from_file.call_args
        self.assertEqual(args[0].read(), b"PAR1...")
        self.assertEqual(args[1], "project.dataset.table")

        job_config = kwargs["job_config"]
        self.assertEqual(job_config.source_format, bigquery.SourceFormat.PARQUET)
        self.assertEqual(
            job_config.write_disposition, bigquery.WriteDisposition.WRITE_TRUNCATE
        )
        self.client.load_table_from_file.return_value.result.assert_called_once()

    def test_failed_job_propagates(self):
        self.client.load_table_from_file.return_value.result.side_effect = RuntimeError(
            "job failed"
        )

        with self.assertRaises(RuntimeError):
            self.sink.write(b"PAR1...")

    @patch("icm_extractor.load.bigquery.bigquery.Client.from_service_account_json")
    def test_client_is_created_from_keyfile(self, mock_from_keyfile):
        sink = BigQuerySink("key.json", "project", "dataset", "table")

        self.assertIs(sink.client, mock_from_keyfile.return_value)
        mock_from_keyfile.assert_called_once_with("key.json", project="project")


if __name__ == "__main__":
    unittest.main()
