"""Schema compatibility rules and field type mapping.

Decides whether an existing Synapse table can be migrated in place to a new
column list, and builds the column change transaction when it can. Every
function here is pure; applying the change is the provisioner's job.
"""

from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict

from bridgex.exceptions import ConfigurationError, IncompatibleSchemaError
from bridgex.objects.column_definition import ColumnDefinition, TransferMethod
from bridgex.objects.column_model import ColumnModel, ColumnType
from bridgex.objects.export_config import FieldDefinition, FieldType

# Non-lossy widenings only. BOOLEAN and DATE are stored as 0/1 and epoch
# millis, which must not be reinterpreted as strings.
ALLOWED_OLD_TYPE_TO_NEW_TYPE: Dict[ColumnType, FrozenSet[ColumnType]] = {
    ColumnType.INTEGER: frozenset(
        {ColumnType.DOUBLE, ColumnType.DATE, ColumnType.STRING, ColumnType.LARGETEXT}
    ),
    ColumnType.DATE: frozenset({ColumnType.INTEGER, ColumnType.DOUBLE}),
    ColumnType.DOUBLE: frozenset({ColumnType.STRING, ColumnType.LARGETEXT}),
    ColumnType.STRING: frozenset({ColumnType.LARGETEXT}),
}

# Max string length of a value of this type once converted to STRING.
SYNAPSE_TYPE_TO_MAX_LENGTH: Dict[ColumnType, int] = {
    ColumnType.DOUBLE: 22,
    ColumnType.INTEGER: 20,
}

DEFAULT_MAX_LENGTH = 100

BRIDGE_TYPE_TO_MAX_LENGTH: Dict[FieldType, int] = {
    FieldType.CALENDAR_DATE: 10,
    FieldType.DURATION_V2: 24,
    FieldType.TIME_V2: 12,
}

BRIDGE_TYPE_TO_SYNAPSE_TYPE: Dict[FieldType, ColumnType] = {
    FieldType.ATTACHMENT_BLOB: ColumnType.FILEHANDLEID,
    FieldType.ATTACHMENT_CSV: ColumnType.FILEHANDLEID,
    FieldType.ATTACHMENT_JSON_BLOB: ColumnType.FILEHANDLEID,
    FieldType.ATTACHMENT_JSON_TABLE: ColumnType.FILEHANDLEID,
    FieldType.ATTACHMENT_V2: ColumnType.FILEHANDLEID,
    FieldType.BOOLEAN: ColumnType.BOOLEAN,
    FieldType.CALENDAR_DATE: ColumnType.STRING,
    FieldType.DATE: ColumnType.DATE,
    FieldType.DURATION_V2: ColumnType.STRING,
    FieldType.FLOAT: ColumnType.DOUBLE,
    FieldType.INLINE_JSON_BLOB: ColumnType.STRING,
    FieldType.INT: ColumnType.INTEGER,
    FieldType.LARGE_TEXT_ATTACHMENT: ColumnType.LARGETEXT,
    FieldType.SINGLE_CHOICE: ColumnType.STRING,
    FieldType.STRING: ColumnType.STRING,
    FieldType.TIME_V2: ColumnType.STRING,
    FieldType.TIMESTAMP: ColumnType.DATE,
}

_COLUMN_TYPE_TO_TRANSFER_METHOD: Dict[ColumnType, TransferMethod] = {
    ColumnType.BOOLEAN: TransferMethod.BOOLEAN,
    ColumnType.DATE: TransferMethod.DATE,
    ColumnType.DOUBLE: TransferMethod.DOUBLE,
    ColumnType.FILEHANDLEID: TransferMethod.FILEHANDLEID,
    ColumnType.INTEGER: TransferMethod.INTEGER,
    ColumnType.LARGETEXT: TransferMethod.LARGETEXT,
    ColumnType.STRING: TransferMethod.STRING,
}


class ColumnChange(BaseModel):
    """Replace column ``old_column_id`` with ``new_column_id``.

    A None old id adds a column; a None new id removes one.
    """

    model_config = ConfigDict(frozen=True)

    old_column_id: Optional[str] = None
    new_column_id: Optional[str] = None


class SchemaChangeRequest(BaseModel):
    """A whole-table column migration, applied in a single transaction."""

    model_config = ConfigDict(frozen=True)

    table_id: str
    old_columns: List[ColumnModel]
    new_columns: List[ColumnModel]

    @property
    def added_columns(self) -> List[ColumnModel]:
        old_names = {c.name for c in self.old_columns}
        return [c for c in self.new_columns if c.name not in old_names]

    @property
    def changed_columns(self) -> List[ColumnModel]:
        old_by_name = {c.name: c for c in self.old_columns}
        return [
            c
            for c in self.new_columns
            if c.name in old_by_name and not _same_definition(old_by_name[c.name], c)
        ]

    def build_changes(self, created: Dict[str, ColumnModel]) -> List[ColumnChange]:
        """Pair old column ids with the ids of the created replacements.

        Args:
            created: Newly created column models by name, with Synapse ids
        """
        old_by_name = {c.name: c for c in self.old_columns}
        changes = []
        for column in self.new_columns:
            if column.name not in created:
                continue
            old = old_by_name.get(column.name)
            changes.append(
                ColumnChange(
                    old_column_id=old.id if old is not None else None,
                    new_column_id=created[column.name].id,
                )
            )
        return changes


def _same_definition(old: ColumnModel, new: ColumnModel) -> bool:
    return (
        old.name == new.name
        and old.column_type == new.column_type
        and old.maximum_size == new.maximum_size
    )


def is_compatible_column(old: ColumnModel, new: ColumnModel) -> bool:
    """Whether ``old`` can be replaced by ``new`` without losing data.

    Column ids are ignored: Synapse columns have them, generated ones don't.

    Raises:
        ConfigurationError: if a STRING column has no resolvable max length
    """
    if old.name != new.name:
        return False

    if old.column_type != new.column_type:
        allowed = ALLOWED_OLD_TYPE_TO_NEW_TYPE.get(old.column_type, frozenset())
        if new.column_type not in allowed:
            return False

    # String columns may grow but never shrink.
    if new.column_type == ColumnType.STRING and old.maximum_size != new.maximum_size:
        if old.maximum_size is not None:
            old_max_length = old.maximum_size
        elif old.column_type in SYNAPSE_TYPE_TO_MAX_LENGTH:
            old_max_length = SYNAPSE_TYPE_TO_MAX_LENGTH[old.column_type]
        else:
            raise ConfigurationError(
                f"old column {old.name} has type {old.column_type.value} and no max length"
            )

        if new.maximum_size is None:
            raise ConfigurationError(f"new column {new.name} has type STRING and no max length")

        if new.maximum_size < old_max_length:
            return False

    return True


def build_schema_change_request(
    table_id: str,
    old_columns: List[ColumnModel],
    new_columns: List[ColumnModel],
) -> Optional[SchemaChangeRequest]:
    """Validate a full migration and describe it.

    Columns are paired by name. Removing a column is never allowed, adding one
    always is.

    Returns:
        None when the table already has exactly the requested columns

    Raises:
        IncompatibleSchemaError: naming every column that cannot be migrated
        ConfigurationError: if a STRING column has no resolvable max length
    """
    new_by_name = {c.name: c for c in new_columns}
    problems = []
    has_changes = False

    for old in old_columns:
        new = new_by_name.get(old.name)
        if new is None:
            problems.append(f"{old.name} (removed)")
            continue
        if not is_compatible_column(old, new):
            problems.append(
                f"{old.name} ({old.column_type.value}/{old.maximum_size} -> "
                f"{new.column_type.value}/{new.maximum_size})"
            )
        elif not _same_definition(old, new):
            has_changes = True

    if problems:
        raise IncompatibleSchemaError(
            f"Table {table_id} has incompatible column changes: {', '.join(problems)}"
        )

    old_names = {c.name for c in old_columns}
    if any(c.name not in old_names for c in new_columns):
        has_changes = True

    if not has_changes:
        return None

    return SchemaChangeRequest(
        table_id=table_id,
        old_columns=list(old_columns),
        new_columns=list(new_columns),
    )


def get_max_length_for_field_def(field_def: FieldDefinition) -> int:
    """Explicit max length, else the type's default, else 100."""
    if field_def.max_length is not None:
        return field_def.max_length
    return BRIDGE_TYPE_TO_MAX_LENGTH.get(field_def.type, DEFAULT_MAX_LENGTH)


def column_for_field_def(field_def: FieldDefinition) -> ColumnDefinition:
    """Build the column a schema field is exported to.

    String-typed fields marked ``unbounded_text`` become LARGETEXT columns,
    which have no max length and are never truncated.
    """
    column_type = BRIDGE_TYPE_TO_SYNAPSE_TYPE[field_def.type]
    if column_type == ColumnType.STRING and field_def.unbounded_text:
        column_type = ColumnType.LARGETEXT

    maximum_size = get_max_length_for_field_def(field_def) if column_type == ColumnType.STRING else None

    return ColumnDefinition(
        name=field_def.name,
        transfer_method=_COLUMN_TYPE_TO_TRANSFER_METHOD[column_type],
        maximum_size=maximum_size,
    )
