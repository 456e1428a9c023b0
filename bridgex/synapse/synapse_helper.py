"""Retrying, rate-limited access to the table store.

``SynapseHelper`` is the only place that talks to a ``TableStore``. Every
call takes a permit from the general limiter, except listing a table's
columns, which Synapse throttles far harder and so has its own per-minute
limiter. Async jobs go through ``AsyncJobPoller``.
"""

import time
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from bridgex.exceptions import RetryableSynapseError, RowCountMismatchError
from bridgex.logging_config import get_logger
from bridgex.objects.app_config import AppConfig
from bridgex.objects.column_model import ColumnModel
from bridgex.synapse.async_job import AsyncJobPoller, UploadJob
from bridgex.synapse.rate_limiter import RateLimiter
from bridgex.synapse.schema import SchemaChangeRequest
from bridgex.synapse.synapse_client import SynapseRestClient
from bridgex.synapse.table_store import QueryPage, ResourceAccess, TableStore
from bridgex.utils.retry import RetryPolicy, call_with_retry

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (RetryableSynapseError,)

DEFAULT_RETRY_POLICY = RetryPolicy(attempts=2, delay_seconds=0.1, retryable=RETRYABLE_ERRORS)
FILE_UPLOAD_RETRY_POLICY = RetryPolicy(attempts=2, delay_seconds=1.0, retryable=RETRYABLE_ERRORS)
STATUS_RETRY_POLICY = RetryPolicy(attempts=5, delay_seconds=0.1, retryable=RETRYABLE_ERRORS)


class SynapseHelper:
    """Applies retry policies, rate limits and async polling to store calls.

    Attributes:
        store: Raw table store
        rate_limiter: General limiter, shared by all workers
        column_models_rate_limiter: Limiter for listing table columns
        poller: Poll loop for async jobs
        retry_policy: Policy for ordinary calls
        file_upload_retry_policy: Policy for file uploads
    """

    def __init__(
        self,
        store: TableStore,
        rate_limiter: RateLimiter,
        column_models_rate_limiter: RateLimiter,
        async_interval_millis: int = 1000,
        async_max_attempts: int = 300,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        file_upload_retry_policy: RetryPolicy = FILE_UPLOAD_RETRY_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.rate_limiter = rate_limiter
        self.column_models_rate_limiter = column_models_rate_limiter
        self.retry_policy = retry_policy
        self.file_upload_retry_policy = file_upload_retry_policy
        self.poller = AsyncJobPoller(
            async_interval_millis, async_max_attempts, retry_policy, rate_limiter, sleep=sleep
        )

    @classmethod
    def from_config(cls, config: AppConfig, store: Optional[TableStore] = None) -> "SynapseHelper":
        """Build a helper with fresh limiters, talking to Synapse unless ``store`` is given."""
        if store is None:
            store = SynapseRestClient(config.synapse_endpoint, config.synapse_auth_token)
        return cls(
            store,
            rate_limiter=RateLimiter.per_second(config.rate_limit_per_second),
            column_models_rate_limiter=RateLimiter.per_minute(config.column_models_rate_limit_per_minute),
            async_interval_millis=config.async_interval_millis,
            async_max_attempts=config.async_max_attempts,
        )

    def _call(self, operation: Callable[[], T], name: str, policy: Optional[RetryPolicy] = None) -> T:
        return call_with_retry(operation, policy or self.retry_policy, self.rate_limiter, name=name)

    def is_synapse_writable(self) -> bool:
        """True when the store reports READ_WRITE."""
        status = call_with_retry(
            self.store.get_stack_status, STATUS_RETRY_POLICY, self.rate_limiter, name="get_stack_status"
        )
        return status == "READ_WRITE"

    def create_column_models(self, columns: List[ColumnModel]) -> List[ColumnModel]:
        return self._call(lambda: self.store.create_column_models(columns), "create_column_models")

    def create_table(self, name: str, parent_id: str, column_ids: List[str]) -> str:
        return self._call(lambda: self.store.create_table(name, parent_id, column_ids), "create_table")

    def create_acl(self, entity_id: str, resource_access: List[ResourceAccess]) -> None:
        self._call(lambda: self.store.create_acl(entity_id, resource_access), "create_acl")

    def get_column_models_for_table(self, table_id: str) -> List[ColumnModel]:
        return call_with_retry(
            lambda: self.store.get_column_models_for_table(table_id),
            self.retry_policy,
            self.column_models_rate_limiter,
            name="get_column_models_for_table",
        )

    def upload_file(self, path: Path) -> str:
        return self._call(lambda: self.store.upload_file(path), "upload_file", self.file_upload_retry_policy)

    def update_table_columns(self, change: SchemaChangeRequest) -> List[ColumnModel]:
        """Apply a column migration in one transaction.

        Changed and added columns are created first, then a single schema
        change transaction swaps them in and sets the final column order.

        Returns:
            The table's columns after the migration
        """
        to_create = change.added_columns + change.changed_columns
        created = self.create_column_models(to_create) if to_create else []
        created_by_name = {c.name: c for c in created}

        old_by_name = {c.name: c for c in change.old_columns}
        ordered_columns = [created_by_name.get(c.name) or old_by_name[c.name] for c in change.new_columns]
        ordered_column_ids = [str(c.id) for c in ordered_columns]

        self.poller.run(
            lambda: self.store.start_table_transaction(
                change.table_id, change.build_changes(created_by_name), ordered_column_ids
            ),
            lambda token: self.store.get_table_transaction_result(change.table_id, token),
            job_name=f"table transaction for {change.table_id}",
        )
        return ordered_columns

    def upload_tsv_to_table(self, table_id: str, path: Path, line_count: int) -> int:
        """Upload a TSV file and import it into a table.

        Args:
            table_id: Destination table
            path: TSV file with a header line
            line_count: Data lines in the file, checked against Synapse's count

        Returns:
            Rows Synapse processed

        Raises:
            RowCountMismatchError: if Synapse processed a different number of rows
            AsyncJobTimeoutError: if the import job never finished
        """
        file_handle_id = self.upload_file(path)
        logger.info(f"Uploaded {path.name} as file handle {file_handle_id} for table {table_id}")

        rows_processed = self.poller.run(
            lambda: self.store.start_csv_import(table_id, file_handle_id),
            lambda token: self.store.get_csv_import_result(table_id, token),
            job_name=f"csv import to {table_id}",
        )

        if rows_processed != line_count:
            raise RowCountMismatchError(table_id, line_count, rows_processed)

        return rows_processed

    def start_query(self, table_id: str, sql: str) -> UploadJob:
        return self.poller.start(lambda: self.store.start_query(table_id, sql), f"query on {table_id}")

    def get_query_result(self, table_id: str, job: UploadJob) -> QueryPage:
        return self.poller.wait(job, lambda token: self.store.get_query_result(table_id, token))

    def start_next_page(self, table_id: str, next_page_token: str) -> UploadJob:
        return self.poller.start(
            lambda: self.store.start_next_page(table_id, next_page_token),
            f"next page on {table_id}",
        )

    def get_next_page_result(self, table_id: str, job: UploadJob) -> QueryPage:
        return self.poller.wait(job, lambda token: self.store.get_next_page_result(table_id, token))
