"""Idempotent creation and migration of destination tables."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from bridgex.exceptions import ProvisioningError
from bridgex.logging_config import get_logger
from bridgex.objects.column_definition import ColumnDefinition, to_column_models
from bridgex.objects.table_registry import TableRegistry
from bridgex.synapse.schema import build_schema_change_request
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.synapse.table_store import ACCESS_TYPE_ADMIN, ACCESS_TYPE_READ, ResourceAccess

logger = get_logger(__name__)


class AccessPolicy(BaseModel):
    """Where a table lives and who may use it.

    Attributes:
        parent_id: Synapse project the table is created in
        admin_principal_ids: Principals granted full control
        read_principal_ids: Principals granted read and download
    """

    model_config = ConfigDict(frozen=True)

    parent_id: str
    admin_principal_ids: List[int]
    read_principal_ids: List[int]

    def resource_access(self) -> List[ResourceAccess]:
        access = [ResourceAccess(principal_id=p, access_type=ACCESS_TYPE_ADMIN) for p in self.admin_principal_ids]
        access.extend(
            ResourceAccess(principal_id=p, access_type=ACCESS_TYPE_READ)
            for p in self.read_principal_ids
            if p not in self.admin_principal_ids
        )
        return access


class TableProvisioner:
    """Gets or creates Synapse tables, recording them in the registry.

    Must only be used from one thread at a time. Table creation is run
    sequentially because parallel creation gets throttled by Synapse, and it
    keeps registry writes uncontended.
    """

    def __init__(self, helper: SynapseHelper, registry: TableRegistry) -> None:
        self.helper = helper
        self.registry = registry

    def ensure_table(
        self,
        table_key: str,
        table_name: str,
        columns: List[ColumnDefinition],
        access_policy: AccessPolicy,
    ) -> str:
        """Return the table id for ``table_key``, creating the table if needed.

        A registered key returns straight away without any Synapse calls.

        Args:
            table_key: Registry key of the table
            table_name: Name for a newly created table
            columns: Desired columns in table order
            access_policy: Parent project and ACL for a new table

        Returns:
            Synapse table id

        Raises:
            ProvisioningError: if Synapse created fewer or more columns than requested
        """
        existing_id = self.registry.get_table_id(table_key)
        if existing_id is not None:
            logger.debug(f"Table {table_key} already exists as {existing_id}")
            return existing_id

        column_models = to_column_models(columns)
        created_columns = self.helper.create_column_models(column_models)
        if len(created_columns) != len(column_models):
            raise ProvisioningError(
                f"Error creating Synapse table {table_key}: Tried to create {len(column_models)} columns. "
                f"Actual: {len(created_columns)} columns."
            )

        column_ids = [str(c.id) for c in created_columns]
        table_id = self.helper.create_table(table_name, access_policy.parent_id, column_ids)
        self.helper.create_acl(table_id, access_policy.resource_access())

        registered_id = self.registry.put(table_key, table_id)
        logger.info(f"Created Synapse table {table_id} for {table_key} with {len(column_ids)} columns")
        return registered_id

    def migrate_table(self, table_id: str, columns: List[ColumnDefinition]) -> bool:
        """Bring an existing table's columns up to ``columns``.

        Returns:
            True if a migration was applied, False if nothing changed

        Raises:
            IncompatibleSchemaError: if any existing column can't be migrated
        """
        old_columns = self.helper.get_column_models_for_table(table_id)
        change = build_schema_change_request(table_id, old_columns, to_column_models(columns))
        if change is None:
            logger.debug(f"Table {table_id} already has the requested columns")
            return False

        added = [c.name for c in change.added_columns]
        changed = [c.name for c in change.changed_columns]
        logger.info(f"Migrating table {table_id}: added={added} changed={changed}")
        self.helper.update_table_columns(change)
        return True

    def lookup(self, table_key: str) -> Optional[str]:
        return self.registry.get_table_id(table_key)
