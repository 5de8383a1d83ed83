"""
Data Fetcher - Extract Layer

Issues every fetch one extraction cycle needs, each with its own retry
budget, overlapping the independent ones on a thread pool. Returns raw data
indexed for the merge step; no business logic.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List

from ..coreutils.retry import RetryConfig, with_retry
from .icm_api import ICMClient
from .schemas import Credentials, QueryScope

logger = logging.getLogger(__name__)

PART_KEY = "chgelemChgnoteSeqTech"
VIEW_KEY = "uppviewMatSeq"

# Stand-in sent for rows without a change-note key
MISSING_KEY = -1


@dataclass(frozen=True)
class UppIndex:
    """UPP material rows indexed by change-note key"""

    part_keys: List[Any] = field(default_factory=list)
    view_keys: List[Any] = field(default_factory=list)
    view_key_by_part_key: Dict[Any, Any] = field(default_factory=dict)
    status_by_part_key: Dict[Any, Dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractionInputs:
    """Everything one cycle fetched, ready for the merge engine"""

    part_rows: List[Dict[str, Any]]
    status_by_key: Dict[Any, Dict[str, Any]]
    correlation_map: Dict[Any, Any]
    attributes_by_key: Dict[Any, Dict[Any, Any]]
    field_names: Dict[str, str]
    attribute_names: Dict[Any, str]
    status_labels: Dict[Any, str]


def index_upp_mat_data(rows: Iterable[Dict[str, Any]]) -> UppIndex:
    """
    Index UPP material rows by their change-note key

    Keys keep first-seen order; later rows for the same key win.
    """
    part_keys = {}
    view_keys = {}
    view_key_by_part_key = {}
    status_by_part_key = {}

    for row in rows:
        part_key = row.get(PART_KEY)
        view_key = row.get(VIEW_KEY)

        part_keys[part_key] = None
        view_keys[view_key] = None
        view_key_by_part_key[part_key] = view_key
        status_by_part_key[part_key] = row

    return UppIndex(
        part_keys=list(part_keys),
        view_keys=list(view_keys),
        view_key_by_part_key=view_key_by_part_key,
        status_by_part_key=status_by_part_key,
    )


def group_attribute_values(
    rows: Iterable[Dict[str, Any]],
) -> Dict[Any, Dict[Any, Any]]:
    """Group class-parameter values by UPP view row: {uppviewMatSeq: {classParamSeq: value}}"""
    grouped: Dict[Any, Dict[Any, Any]] = {}

    for row in rows:
        grouped.setdefault(row.get(VIEW_KEY), {})[row.get("classParamSeq")] = row.get(
            "value"
        )

    return grouped


def part_data_keys(upp_index: UppIndex) -> List[Any]:
    return [key if key else MISSING_KEY for key in upp_index.part_keys]


def fetch_extraction_inputs(
    client: ICMClient,
    credentials: Credentials,
    retry_config: RetryConfig,
    scope: QueryScope = QueryScope(),
    max_workers: int = 4,
    sleep: Callable[[float], None] = time.sleep,
) -> ExtractionInputs:
    """
    Fetch and index every dataset of one extraction cycle

    Field names, attribute names, status labels and UPP data are requested
    concurrently. Part data waits for the UPP keys; attribute values wait for
    both the UPP keys and the attribute names.

    Args:
        client: ICM source provider
        credentials: Login used for every request
        retry_config: Budget applied to each fetch independently
        scope: Product / generation / view filters
        max_workers: Thread pool size
        sleep: Wait used between retry attempts

    Returns:
        ExtractionInputs: Raw data for the merge step
    """

    def retried(description, operation):
        return with_retry(operation, retry_config, description, sleep=sleep)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        field_names_future = executor.submit(
            retried, "field names", lambda: client.get_field_names(credentials)
        )
        attribute_names_future = executor.submit(
            retried,
            "attribute names",
            lambda: client.get_attribute_names(credentials, scope),
        )
        status_labels_future = executor.submit(
            retried, "status labels", lambda: client.get_status_labels(credentials)
        )

        upp_index = retried(
            "UPP material data",
            lambda: index_upp_mat_data(client.get_upp_mat_data(credentials, scope)),
        )
        logger.info(
            f"✅ Indexed {len(upp_index.part_keys)} change-note keys, "
            f"{len(upp_index.view_keys)} UPP view rows"
        )

        part_rows_future = executor.submit(
            retried,
            "part data",
            lambda: client.get_part_data(credentials, part_data_keys(upp_index)),
        )

        attribute_names = attribute_names_future.result()
        attributes_by_key = retried(
            "attribute values",
            lambda: group_attribute_values(
                client.get_attribute_values(
                    credentials, list(attribute_names), upp_index.view_keys
                )
            ),
        )

        inputs = ExtractionInputs(
            part_rows=part_rows_future.result(),
            status_by_key=upp_index.status_by_part_key,
            correlation_map=upp_index.view_key_by_part_key,
            attributes_by_key=attributes_by_key,
            field_names=field_names_future.result(),
            attribute_names=attribute_names,
            status_labels=status_labels_future.result(),
        )

    logger.info(f"✅ Data extracted: {len(inputs.part_rows)} part rows")
    return inputs
