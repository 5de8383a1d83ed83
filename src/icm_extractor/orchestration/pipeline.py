"""
Pipeline Orchestrator - Extraction Run Loop

One extraction cycle is: fetch every dataset from ICM, merge them into a
typed frame, serialize it to Parquet and hand it to the sink.

The loop around it is an explicit state machine:
- RUNNING_CYCLE -> BACKOFF_WAIT -> RUNNING_CYCLE when a cycle fails
- RUNNING_CYCLE -> SCHEDULE_WAIT -> RUNNING_CYCLE after a success with a cron schedule
- RUNNING_CYCLE -> TERMINATED after a success without one

A failed cycle never stops the process; it is retried after a cooldown that
grows with the number of consecutive failures.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import polars as pl

from ..coreutils.logging import describe_error
from ..coreutils.retry import RetryConfig, with_retry
from ..coreutils.time import format_fire_time, relative_duration, utc_now
from ..extract.data_fetcher import ExtractionInputs, fetch_extraction_inputs
from ..extract.icm_api import ICMClient
from ..extract.schemas import Credentials, QueryScope
from ..load.sink import Sink, WriteDisposition, frame_to_parquet
from ..transformation.merge import ColumnNameMaps, merge_and_infer
from .backoff import PersistentErrorBackoff
from .scheduler import CronSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionRun:
    """Context shared by every operation of one cycle"""

    extraction_time: datetime
    retry_config: RetryConfig
    credentials: Credentials


class LoopState(Enum):
    RUNNING_CYCLE = "running_cycle"
    BACKOFF_WAIT = "backoff_wait"
    SCHEDULE_WAIT = "schedule_wait"
    TERMINATED = "terminated"


def merge_extraction_inputs(inputs: ExtractionInputs, extraction_time: datetime) -> pl.DataFrame:
    """Run the merge engine over everything one cycle fetched"""
    return merge_and_infer(
        primary_rows=inputs.part_rows,
        secondary_attributes_by_key=inputs.attributes_by_key,
        column_name_maps=ColumnNameMaps(
            fields=inputs.field_names, attributes=inputs.attribute_names
        ),
        lookup_label_map=inputs.status_labels,
        correlation_map=inputs.correlation_map,
        status_by_key=inputs.status_by_key,
        extraction_time=extraction_time,
    )


def run_extraction_cycle(
    run: ExtractionRun,
    client: ICMClient,
    sink: Sink,
    scope: QueryScope = QueryScope(),
    sleep: Callable[[float], None] = time.sleep,
) -> pl.DataFrame:
    """
    Run one fetch -> merge -> Parquet -> sink cycle

    Args:
        run: Extraction time, retry budget and credentials of this cycle
        client: ICM source provider
        sink: Destination of the Parquet payload
        scope: Query filters
        sleep: Wait used between retry attempts

    Returns:
        pl.DataFrame: The frame that was written

    Raises:
        Any error left after the per-operation retries, or a MergeError
    """
    logger.info(f"🔄 Starting extraction at {run.extraction_time.isoformat()}")

    inputs = fetch_extraction_inputs(
        client, run.credentials, run.retry_config, scope, sleep=sleep
    )
    frame = merge_extraction_inputs(inputs, run.extraction_time)
    data = frame_to_parquet(frame)

    with_retry(
        lambda: sink.write(data, WriteDisposition.REPLACE),
        run.retry_config,
        "sink write",
        sleep=sleep,
    )

    logger.info(f"✅ Extraction completed: {frame.height} rows, {frame.width} columns")
    return frame


class ExtractionLoop:
    """Runs extraction cycles until done, backing off after persistent errors"""

    def __init__(
        self,
        client: ICMClient,
        sink: Sink,
        credentials: Credentials,
        retry_config: RetryConfig,
        backoff: PersistentErrorBackoff,
        schedule: Optional[CronSchedule] = None,
        scope: QueryScope = QueryScope(),
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.sink = sink
        self.credentials = credentials
        self.retry_config = retry_config
        self.backoff = backoff
        self.schedule = schedule
        self.scope = scope
        self.sleep = sleep
        self.clock = clock

        self.state = LoopState.RUNNING_CYCLE
        self.wait_seconds = 0.0
        self.cycles = 0
        self.last_error: Optional[Exception] = None

    def step(self) -> LoopState:
        """Perform one state transition and return the new state"""
        if self.state is LoopState.RUNNING_CYCLE:
            self._run_cycle()
        elif self.state in (LoopState.BACKOFF_WAIT, LoopState.SCHEDULE_WAIT):
            self.sleep(self.wait_seconds)
            self.state = LoopState.RUNNING_CYCLE

        return self.state

    def run(self, max_cycles: Optional[int] = None) -> LoopState:
        """
        Drive the loop until it terminates

        Args:
            max_cycles: Stop once this many cycles ran (None runs forever with a schedule)

        Returns:
            LoopState: The state the loop stopped in
        """
        while self.state is not LoopState.TERMINATED:
            if self.state is LoopState.RUNNING_CYCLE and max_cycles is not None:
                if self.cycles >= max_cycles:
                    break
            self.step()

        return self.state

    def _run_cycle(self) -> None:
        run = ExtractionRun(
            extraction_time=self.clock(),
            retry_config=self.retry_config,
            credentials=self.credentials,
        )
        self.cycles += 1

        try:
            run_extraction_cycle(run, self.client, self.sink, self.scope, self.sleep)

        except Exception as e:
            self.last_error = e
            logger.error(f"❌ Extraction failed: {describe_error(e)}", exc_info=True)

            self.wait_seconds = self.backoff.record_failure() / 1000
            logger.info(
                f"⏳ Persistent error occurred, will retry {relative_duration(self.wait_seconds)}"
            )
            self.state = LoopState.BACKOFF_WAIT
            return

        self.last_error = None
        self.backoff.record_success()

        if self.schedule is None:
            logger.info("✅ No schedule configured, exiting")
            self.state = LoopState.TERMINATED
            return

        now = self.clock()
        try:
            fire_time = self.schedule.next_fire_time(now)
        except ValueError as e:
            logger.error(f"❌ {e}")
            self.state = LoopState.TERMINATED
            return

        self.wait_seconds = max((fire_time - now).total_seconds(), 0.0)
        logger.info(
            f"📅 Next extraction will start {relative_duration(self.wait_seconds)} "
            f"on {format_fire_time(fire_time)}"
        )
        self.state = LoopState.SCHEDULE_WAIT
