"""
Main Entry Point - ICM Extraction

Loads configuration, wires the ICM client, the sink and the run loop
together, and runs extractions once or on a cron schedule.
"""

import logging
import sys
from typing import Optional, Sequence

from icm_extractor.coreutils.config import Settings, load_settings
from icm_extractor.coreutils.logging import setup_logging
from icm_extractor.extract.icm_api import ICMClient
from icm_extractor.extract.schemas import Credentials
from icm_extractor.load.sink import Sink
from icm_extractor.orchestration.backoff import PersistentErrorBackoff
from icm_extractor.orchestration.pipeline import ExtractionLoop, LoopState

logger = logging.getLogger("icm_extractor")


def build_sink(settings: Settings) -> Sink:
    """BigQuery sink, or a local Parquet sink when an output directory is set"""
    if settings.uses_local_sink:
        from icm_extractor.load.local_storage import LocalParquetSink

        logger.info(f"🔍 DRY RUN: writing Parquet files to {settings.output_dir}")
        return LocalParquetSink(settings.output_dir, table=settings.bq_table or "icm_extraction")

    from icm_extractor.load.bigquery import BigQuerySink

    return BigQuerySink(
        keyfile=settings.bq_keyfile,
        project=settings.bq_project,
        dataset=settings.bq_dataset,
        table=settings.bq_table,
    )


def build_loop(settings: Settings) -> ExtractionLoop:
    return ExtractionLoop(
        client=ICMClient(https_proxy=settings.https_proxy, timeout=settings.request_timeout),
        sink=build_sink(settings),
        credentials=Credentials(settings.username, settings.password),
        retry_config=settings.retry_config,
        backoff=PersistentErrorBackoff(
            settings.persistent_error_cooldown_ms,
            settings.persistent_error_cooldown_max_ms,
        ),
        schedule=settings.schedule,
        scope=settings.scope,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point"""
    settings = load_settings(argv)
    setup_logging(settings.log_level, settings.log_dir)

    if settings.schedule:
        logger.info(f"🚀 Starting ICM extractor ({settings.schedule})")
    else:
        logger.info("🚀 Starting ICM extractor (single run)")

    loop = build_loop(settings)

    try:
        state = loop.run()
    except KeyboardInterrupt:
        logger.info("🛑 Extraction stopped by user")
        return 0

    return 0 if state is LoopState.TERMINATED else 1


if __name__ == "__main__":
    sys.exit(main())
