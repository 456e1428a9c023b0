"""Column definitions and the rules that turn record values into TSV cells."""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from bridgex.exceptions import ConfigurationError, RowProcessingError
from bridgex.objects.column_model import ColumnModel, ColumnType
from bridgex.utils.sanitize import sanitize_string

STRING_SET_SEPARATOR = ","
TSV_RESERVED_CHARS = ("\t", "\n", "\r")


def _to_epoch_millis(value: Any) -> int:
    if isinstance(value, bool):
        raise RowProcessingError(f"expected a date, got boolean {value}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise RowProcessingError(f"invalid date value {value!r}") from e
    else:
        raise RowProcessingError(f"unsupported date value {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


class TransferMethod(str, Enum):
    """How a record attribute is rendered into a Synapse cell.

    Each method also fixes the Synapse column type of the column it feeds.
    """

    STRING = "STRING"
    STRINGSET = "STRINGSET"
    DATE = "DATE"
    INTEGER = "INTEGER"
    DOUBLE = "DOUBLE"
    BOOLEAN = "BOOLEAN"
    LARGETEXT = "LARGETEXT"
    FILEHANDLEID = "FILEHANDLEID"

    @property
    def column_type(self) -> ColumnType:
        return _COLUMN_TYPES[self]

    def transfer(self, value: Any) -> Optional[str]:
        """Render one value, returning None for absent values.

        Raises:
            RowProcessingError: if the value cannot be represented in this column
        """
        if value is None:
            return "" if self is TransferMethod.STRINGSET else None

        if self is TransferMethod.STRINGSET:
            if isinstance(value, str):
                return value
            return STRING_SET_SEPARATOR.join(sorted(str(v) for v in value))

        if self is TransferMethod.DATE:
            return str(_to_epoch_millis(value))

        if self is TransferMethod.INTEGER:
            if isinstance(value, bool):
                raise RowProcessingError(f"expected an integer, got boolean {value}")
            try:
                return str(int(value))
            except (TypeError, ValueError) as e:
                raise RowProcessingError(f"invalid integer value {value!r}") from e

        if self is TransferMethod.DOUBLE:
            if isinstance(value, bool):
                raise RowProcessingError(f"expected a number, got boolean {value}")
            try:
                return repr(float(value))
            except (TypeError, ValueError) as e:
                raise RowProcessingError(f"invalid number value {value!r}") from e

        if self is TransferMethod.BOOLEAN:
            if isinstance(value, bool):
                return "true" if value else "false"
            lowered = str(value).strip().lower()
            if lowered in ("true", "false"):
                return lowered
            raise RowProcessingError(f"invalid boolean value {value!r}")

        # STRING, LARGETEXT and FILEHANDLEID
        if isinstance(value, (dict, list)):
            return json.dumps(value, sort_keys=True)
        return str(value)


_COLUMN_TYPES: Dict[TransferMethod, ColumnType] = {
    TransferMethod.STRING: ColumnType.STRING,
    TransferMethod.STRINGSET: ColumnType.STRING,
    TransferMethod.DATE: ColumnType.DATE,
    TransferMethod.INTEGER: ColumnType.INTEGER,
    TransferMethod.DOUBLE: ColumnType.DOUBLE,
    TransferMethod.BOOLEAN: ColumnType.BOOLEAN,
    TransferMethod.LARGETEXT: ColumnType.LARGETEXT,
    TransferMethod.FILEHANDLEID: ColumnType.FILEHANDLEID,
}


class ColumnDefinition(BaseModel):
    """One column of an exported table.

    Attributes:
        name: Synapse column name
        transfer_method: Rule turning the source value into a cell
        maximum_size: Max string length, required for STRING columns
        source_name: Record attribute to read, defaults to ``name``
        sanitize: Strip HTML and truncate string values before writing

    Example:
        >>> ColumnDefinition(name="healthCode", transfer_method=TransferMethod.STRING, maximum_size=36)
    """

    model_config = ConfigDict(frozen=True)

    name: str
    transfer_method: TransferMethod
    maximum_size: Optional[int] = None
    source_name: Optional[str] = None
    sanitize: bool = True

    @model_validator(mode="after")
    def validate_string_length(self) -> "ColumnDefinition":
        if self.transfer_method.column_type == ColumnType.STRING and self.maximum_size is None:
            raise ConfigurationError(f"STRING column {self.name} has no max length")
        return self

    @property
    def column_type(self) -> ColumnType:
        return self.transfer_method.column_type

    @property
    def source_key(self) -> str:
        return self.source_name or self.name

    def to_column_model(self) -> ColumnModel:
        return ColumnModel(
            name=self.name,
            column_type=self.column_type,
            maximum_size=self.maximum_size,
        )

    def render(
        self,
        values: Mapping[str, Any],
        record_id: Optional[str],
        study_id: Optional[str] = None,
    ) -> str:
        """Render this column's cell for one record. Absent values become ''."""
        cell = self.transfer_method.transfer(values.get(self.source_key))
        if cell is None:
            return ""
        if self.sanitize and self.column_type in (ColumnType.STRING, ColumnType.LARGETEXT):
            max_length = self.maximum_size if self.column_type == ColumnType.STRING else None
            cell = sanitize_string(cell, self.name, max_length, record_id, study_id) or ""
        elif any(c in cell for c in TSV_RESERVED_CHARS):
            # A raw tab or newline would shift or split the TSV line
            raise RowProcessingError(
                f"Column {self.name} of record {record_id} contains a tab or line break"
            )
        return cell


def to_column_models(columns: List[ColumnDefinition]) -> List[ColumnModel]:
    return [column.to_column_model() for column in columns]
