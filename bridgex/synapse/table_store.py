"""Abstract interface to the remote table store.

``TableStore`` lists the raw calls the exporter makes. Implementations do a
single request per method and raise the ``bridgex.exceptions`` Synapse
errors; retrying and rate limiting are layered on top by ``SynapseHelper``.
Async get methods raise ``ResultNotReadyError`` while the job is running.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bridgex.objects.column_model import ColumnModel
from bridgex.synapse.schema import ColumnChange

ACCESS_TYPE_ADMIN: FrozenSet[str] = frozenset(
    {
        "READ",
        "DOWNLOAD",
        "UPDATE",
        "DELETE",
        "CREATE",
        "CHANGE_PERMISSIONS",
        "CHANGE_SETTINGS",
        "MODERATE",
    }
)
ACCESS_TYPE_READ: FrozenSet[str] = frozenset({"READ", "DOWNLOAD"})


class ResourceAccess(BaseModel):
    """Access granted to one principal on an entity."""

    model_config = ConfigDict(frozen=True)

    principal_id: int
    access_type: FrozenSet[str]


class QueryPage(BaseModel):
    """One page of a table query.

    Attributes:
        rows: Row values in header order
        headers: Column names of the result
        etag: Consistency token of the table when the query ran
        next_page_token: Cursor for the next page, None on the last page
    """

    rows: List[List[Optional[str]]] = Field(default_factory=list)
    headers: List[str] = Field(default_factory=list)
    etag: Optional[str] = None
    next_page_token: Optional[str] = None


class TableStore(ABC):
    """Remote table store operations used by the exporter.

    Example implementations:
        - SynapseRestClient: Synapse repository REST API
    """

    @abstractmethod
    def create_column_models(self, columns: List[ColumnModel]) -> List[ColumnModel]:
        """Create column models, returning them with their ids."""
        pass

    @abstractmethod
    def create_table(self, name: str, parent_id: str, column_ids: List[str]) -> str:
        """Create a table entity and return its id."""
        pass

    @abstractmethod
    def create_acl(self, entity_id: str, resource_access: List[ResourceAccess]) -> None:
        """Replace the inherited ACL of an entity with ``resource_access``."""
        pass

    @abstractmethod
    def get_column_models_for_table(self, table_id: str) -> List[ColumnModel]:
        """List a table's current columns in table order."""
        pass

    @abstractmethod
    def start_table_transaction(
        self, table_id: str, changes: List[ColumnChange], ordered_column_ids: List[str]
    ) -> str:
        """Start a column change transaction, returning the job token."""
        pass

    @abstractmethod
    def get_table_transaction_result(self, table_id: str, token: str) -> dict:
        """Get a finished transaction's response body."""
        pass

    @abstractmethod
    def upload_file(self, path: Path, content_type: str = "text/tab-separated-values") -> str:
        """Upload a local file and return its file handle id."""
        pass

    @abstractmethod
    def start_csv_import(self, table_id: str, file_handle_id: str) -> str:
        """Start importing a TSV file handle into a table, returning the job token."""
        pass

    @abstractmethod
    def get_csv_import_result(self, table_id: str, token: str) -> int:
        """Get the number of rows a finished import processed."""
        pass

    @abstractmethod
    def start_query(self, table_id: str, sql: str) -> str:
        """Start a table query, returning the job token."""
        pass

    @abstractmethod
    def get_query_result(self, table_id: str, token: str) -> QueryPage:
        """Get the first page of a finished query."""
        pass

    @abstractmethod
    def start_next_page(self, table_id: str, next_page_token: str) -> str:
        """Start fetching the page a cursor points at, returning the job token."""
        pass

    @abstractmethod
    def get_next_page_result(self, table_id: str, token: str) -> QueryPage:
        """Get a page started with ``start_next_page``."""
        pass

    @abstractmethod
    def get_stack_status(self) -> str:
        """Return the store's status, READ_WRITE when writes are accepted."""
        pass
