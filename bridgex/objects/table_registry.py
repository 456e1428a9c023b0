"""Registry mapping table keys to Synapse table ids."""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class TableRegistration(BaseModel):
    """A provisioned table. Never deleted once written."""

    model_config = ConfigDict(frozen=True)

    table_key: str
    table_id: str


class TableRegistry(ABC):
    """Persistent store of table registrations.

    Writes happen only while tables are provisioned, which is sequential, so
    implementations need no locking of their own. ``put`` must keep an
    existing registration rather than overwrite it.
    """

    @abstractmethod
    def get_table_id(self, table_key: str) -> Optional[str]:
        """Look up a table id, None when the key was never provisioned."""
        pass

    @abstractmethod
    def put(self, table_key: str, table_id: str) -> str:
        """Register a table, returning the id stored for the key afterwards."""
        pass

    @abstractmethod
    def list_registrations(self) -> List[TableRegistration]:
        pass
