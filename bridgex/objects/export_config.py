"""Export configuration models loaded from export_config.toml.

Studies say which Synapse project receives their tables and which team may
read them. Tables describe the upload schemas whose records are exported,
one Synapse table per schema revision.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, field_validator, model_validator


class FieldType(str, Enum):
    """Field types an upload schema can declare."""

    ATTACHMENT_BLOB = "attachment_blob"
    ATTACHMENT_CSV = "attachment_csv"
    ATTACHMENT_JSON_BLOB = "attachment_json_blob"
    ATTACHMENT_JSON_TABLE = "attachment_json_table"
    ATTACHMENT_V2 = "attachment_v2"
    BOOLEAN = "boolean"
    CALENDAR_DATE = "calendar_date"
    DATE = "date"
    DURATION_V2 = "duration_v2"
    FLOAT = "float"
    INLINE_JSON_BLOB = "inline_json_blob"
    INT = "int"
    LARGE_TEXT_ATTACHMENT = "large_text_attachment"
    SINGLE_CHOICE = "single_choice"
    STRING = "string"
    TIME_V2 = "time_v2"
    TIMESTAMP = "timestamp"


class FieldDefinition(BaseModel):
    """One field of an upload schema.

    Attributes:
        name: Field name, also used as the column name
        type: Declared field type
        max_length: Explicit max length for string-like fields
        unbounded_text: Route the field to a LARGETEXT column instead
    """

    name: str
    type: FieldType
    max_length: Optional[int] = None
    unbounded_text: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @field_validator("max_length")
    @classmethod
    def validate_max_length(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError(f"max_length must be positive, got {v}")
        return v


class StudyConfig(BaseModel):
    """Synapse destination for one study's tables."""

    project_id: str
    data_access_team_id: int
    disable_export: bool = False
    export_app_versions: bool = True


class TableDefinition(BaseModel):
    """One exported schema revision.

    Example:
        >>> TableDefinition(
        ...     study_id="my-study",
        ...     schema_id="walking",
        ...     revision=2,
        ...     field=[FieldDefinition(name="steps", type="int")],
        ... ).table_key
        'my-study-walking-v2'
    """

    study_id: str
    schema_id: str
    revision: int = 1
    field: List[FieldDefinition] = []

    @property
    def table_key(self) -> str:
        return f"{self.study_id}-{self.schema_id}-v{self.revision}"

    @property
    def table_name(self) -> str:
        return self.table_key

    @model_validator(mode="after")
    def check_unique_field_names(self) -> "TableDefinition":
        names = [f.name for f in self.field]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate field names in {self.table_key}: {', '.join(duplicates)}")
        return self


class ExportConfig(BaseModel):
    """Top-level export configuration.

    TOML layout::

        [study.my-study]
        project_id = "syn1234"
        data_access_team_id = 5678

        [table.walking]
        study_id = "my-study"
        schema_id = "walking"
        revision = 1
        field = [{ name = "steps", type = "int" }]
    """

    study: Dict[str, StudyConfig] = {}
    table: Dict[str, TableDefinition] = {}

    @model_validator(mode="after")
    def check_study_references(self) -> "ExportConfig":
        for name, table_def in self.table.items():
            if table_def.study_id not in self.study:
                raise ValueError(f"Table {name} references unknown study {table_def.study_id}")
        return self

    def find_table(self, study_id: str, schema_id: str, revision: int) -> Optional[TableDefinition]:
        for table_def in self.table.values():
            if (
                table_def.study_id == study_id
                and table_def.schema_id == schema_id
                and table_def.revision == revision
            ):
                return table_def
        return None

    def find_table_by_key(self, table_key: str) -> Optional[TableDefinition]:
        for table_def in self.table.values():
            if table_def.table_key == table_key:
                return table_def
        return None
