"""
Unit Tests for the entry point wiring
"""

import unittest
from unittest.mock import patch

from icm_extractor.coreutils.config import Settings
from icm_extractor.load.bigquery import BigQuerySink
from icm_extractor.load.local_storage import LocalParquetSink
from icm_extractor.main import build_loop, build_sink, main
from icm_extractor.orchestration.pipeline import LoopState


def settings(**overrides):
    values = dict(
        username="user",
        password="secret",
        bq_keyfile="key.json",
        bq_project="project",
        bq_dataset="dataset",
        bq_table="table",
    )
    values.update(overrides)
    return Settings(**values)


class TestWiring(unittest.TestCase):
    def test_bigquery_sink_by_default(self):
        sink = build_sink(settings())

        self.assertIsInstance(sink, BigQuerySink)
        self.assertEqual(sink.table_id, "project.dataset.table")

    def test_output_dir_selects_local_sink(self):
        sink = build_sink(settings(output_dir="out"))

        self.assertIsInstance(sink, LocalParquetSink)
        self.assertEqual(sink.output_dir, "out")
        self.assertEqual(sink.table, "table")

    def test_build_loop(self):
        loop = build_loop(
            settings(retries=2, persistent_error_cooldown_ms=5, cron="0 3 * * *", timezone="UTC")
        )

        self.assertEqual(loop.retry_config.max_attempts, 3)
        self.assertEqual(loop.backoff.base_cooldown_ms, 5)
        self.assertEqual(loop.schedule.expression, "0 3 * * *")
        self.assertEqual(loop.credentials.username, "user")
        self.assertEqual(loop.client.timeout, 300.0)


class TestMain(unittest.TestCase):
    def setUp(self):
        for target, value in [
            ("icm_extractor.main.load_settings", settings()),
            ("icm_extractor.main.setup_logging", None),
        ]:
            patcher = patch(target, return_value=value)
            patcher.start()
            self.addCleanup(patcher.stop)

    @patch("icm_extractor.main.build_loop")
    def test_single_run_exits_cleanly(self, mock_build_loop):
        mock_build_loop.return_value.run.return_value = LoopState.TERMINATED

        self.assertEqual(main([]), 0)

    @patch("icm_extractor.main.build_loop")
    def test_keyboard_interrupt_stops_cleanly(self, mock_build_loop):
        mock_build_loop.return_value.run.side_effect = KeyboardInterrupt

        self.assertEqual(main([]), 0)


if __name__ == "__main__":
    unittest.main()
