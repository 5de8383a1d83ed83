"""
BigQuery Uploader - Load Layer

Loads the Parquet payload into a BigQuery table, replacing its contents.
"""

import io
import logging
from typing import Optional

from google.cloud import bigquery

from .sink import Sink, WriteDisposition

logger = logging.getLogger(__name__)

WRITE_DISPOSITIONS = {
    WriteDisposition.REPLACE: bigquery.WriteDisposition.WRITE_TRUNCATE,
}


class BigQuerySink(Sink):
    """Parquet load jobs into `project.dataset.table`"""

    def __init__(
        self,
        keyfile: str,
        project: str,
        dataset: str,
        table: str,
        client: Optional[bigquery.Client] = None,
    ):
        self.project = project
        self.dataset = dataset
        self.table = table
        self._keyfile = keyfile
        self._client = client

    @property
    def table_id(self) -> str:
        return f"{self.project}.{self.dataset}.{self.table}"

    @property
    def client(self) -> bigquery.Client:
        if self._client is None:
            self._client = bigquery.Client.from_service_account_json(
                self._keyfile, project=self.project
            )
        return self._client

    def write(self, data: bytes, disposition: WriteDisposition = WriteDisposition.REPLACE) -> None:
        """
        Run a load job and wait for it to finish

        Raises:
            google.api_core.exceptions.GoogleAPIError: if the job fails
        """
        logger.info(f"🔄 Loading {len(data)} bytes into {self.table_id}...")

        job_config = bigquery.LoadJobConfig(
            source_format=bigquery.SourceFormat.PARQUET,
            write_disposition=WRITE_DISPOSITIONS[disposition],
        )

        job = self.client.load_table_from_file(
            io.BytesIO(data), self.table_id, job_config=job_config
        )
        job.result()

        logger.info(f"✅ Loaded {job.output_rows} rows into {self.table_id}")
