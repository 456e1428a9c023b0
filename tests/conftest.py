"""Pytest fixtures and configuration."""

import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional
from unittest.mock import Mock

import pytest

from bridgex.exceptions import RetryableSynapseError
from bridgex.objects.app_config import AppConfig
from bridgex.objects.column_model import ColumnModel
from bridgex.objects.export_config import ExportConfig, FieldDefinition, StudyConfig, TableDefinition
from bridgex.objects.table_registry import TableRegistration, TableRegistry
from bridgex.synapse.rate_limiter import RateLimiter
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.synapse.table_store import TableStore
from bridgex.utils.retry import RetryPolicy


class InMemoryTableRegistry(TableRegistry):
    """Dict-backed registry for tests."""

    def __init__(self, entries: Optional[Dict[str, str]] = None) -> None:
        self.entries: Dict[str, str] = dict(entries or {})

    def get_table_id(self, table_key: str) -> Optional[str]:
        return self.entries.get(table_key)

    def put(self, table_key: str, table_id: str) -> str:
        return self.entries.setdefault(table_key, table_id)

    def list_registrations(self) -> List[TableRegistration]:
        return [TableRegistration(table_key=k, table_id=v) for k, v in sorted(self.entries.items())]


def make_created_columns(columns: List[ColumnModel]) -> List[ColumnModel]:
    """Give generated column models ids, as Synapse does."""
    return [c.model_copy(update={"id": str(100 + i)}) for i, c in enumerate(columns)]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_store() -> Mock:
    """TableStore mock that creates tables and columns successfully."""
    store = Mock(spec=TableStore)
    store.create_column_models.side_effect = make_created_columns
    store.create_table.return_value = "syn1000"
    store.get_stack_status.return_value = "READ_WRITE"
    store.upload_file.return_value = "fh-1"
    store.start_csv_import.return_value = "import-token"
    store.start_table_transaction.return_value = "txn-token"
    store.get_table_transaction_result.return_value = {}
    return store


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Two attempts, no delay."""
    return RetryPolicy(attempts=2, delay_seconds=0, retryable=(RetryableSynapseError,))


@pytest.fixture
def helper(mock_store: Mock, retry_policy: RetryPolicy) -> SynapseHelper:
    """SynapseHelper over the mock store with polling sleeps disabled."""
    return SynapseHelper(
        mock_store,
        rate_limiter=RateLimiter.per_second(1000),
        column_models_rate_limiter=RateLimiter.per_second(1000),
        async_interval_millis=0,
        async_max_attempts=5,
        retry_policy=retry_policy,
        file_upload_retry_policy=retry_policy,
    )


@pytest.fixture
def registry() -> InMemoryTableRegistry:
    return InMemoryTableRegistry()


@pytest.fixture
def app_config(temp_dir: Path) -> AppConfig:
    """Application config pointing scratch files at the temp dir."""
    return AppConfig(
        synapse_auth_token="test-token",
        synapse_principal_id=3336429,
        admin_team_id=3337267,
        staff_team_id=3345000,
        async_interval_millis=0,
        async_max_attempts=5,
        registry_db_url="postgresql://localhost/test",
        scratch_dir=temp_dir / "scratch",
        worker_queue_size=10,
    )


@pytest.fixture
def export_config() -> ExportConfig:
    """One study with a single walking schema."""
    return ExportConfig(
        study={"test-study": StudyConfig(project_id="syn500", data_access_team_id=1234)},
        table={
            "walking": TableDefinition(
                study_id="test-study",
                schema_id="walking",
                revision=1,
                field=[
                    FieldDefinition(name="steps", type="int"),
                    FieldDefinition(name="notes", type="string", max_length=20),
                ],
            )
        },
    )


@pytest.fixture
def sample_record() -> Dict[str, object]:
    """A walking record as read from the records file."""
    return {
        "id": "rec-1",
        "studyId": "test-study",
        "schemaId": "walking",
        "schemaRevision": 1,
        "healthCode": "hc-1",
        "userExternalId": "ext-1",
        "uploadDate": "2024-03-01",
        "createdOn": 1709251200000,
        "metadata": '{"appVersion": "version 1.0, build 7", "phoneInfo": "iPhone 15"}',
        "data": {"steps": 42, "notes": "ok"},
    }
