"""Synapse column models as returned by and sent to the table API."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ColumnType(str, Enum):
    """Synapse column types used by the exporter."""

    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    DOUBLE = "DOUBLE"
    FILEHANDLEID = "FILEHANDLEID"
    INTEGER = "INTEGER"
    LARGETEXT = "LARGETEXT"
    STRING = "STRING"


class ColumnModel(BaseModel):
    """A single Synapse column.

    Columns we generate locally have no ``id``; the ones Synapse hands back
    always do. Serialized with the camelCase names Synapse expects.

    Example:
        >>> ColumnModel(name="recordId", column_type=ColumnType.STRING, maximum_size=36)
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = None
    name: str
    column_type: ColumnType = Field(alias="columnType")
    maximum_size: Optional[int] = Field(default=None, alias="maximumSize")

    def to_synapse_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_synapse_json(cls, body: Dict[str, Any]) -> "ColumnModel":
        known = {k: v for k, v in body.items() if k in ("id", "name", "columnType", "maximumSize")}
        if "id" in known and known["id"] is not None:
            known["id"] = str(known["id"])
        return cls.model_validate(known)
