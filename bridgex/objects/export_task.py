"""Units of work handed from the dispatcher to a table worker."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskKind(str, Enum):
    ROW_DATA = "ROW_DATA"
    END_OF_STREAM = "END_OF_STREAM"


class ExportTask(BaseModel):
    """One record for a table, or the end-of-stream marker.

    Attributes:
        kind: ROW_DATA or END_OF_STREAM
        record_id: Source record id, used in logs for redrive
        study_id: Study the record belongs to
        record: Top-level record attributes (healthCode, uploadDate, ...)
        data: Parsed schema field values for health data tables

    Example:
        >>> task = ExportTask.row("rec-1", "study", {"healthCode": "hc"}, {"answer": 42})
        >>> ExportTask.end_of_stream().is_end_of_stream
        True
    """

    model_config = ConfigDict(frozen=True)

    kind: TaskKind
    record_id: Optional[str] = None
    study_id: Optional[str] = None
    record: Dict[str, Any] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def row(
        cls,
        record_id: str,
        study_id: Optional[str],
        record: Dict[str, Any],
        data: Optional[Dict[str, Any]] = None,
    ) -> "ExportTask":
        return cls(
            kind=TaskKind.ROW_DATA,
            record_id=record_id,
            study_id=study_id,
            record=record,
            data=data or {},
        )

    @classmethod
    def end_of_stream(cls) -> "ExportTask":
        return END_OF_STREAM

    @property
    def is_end_of_stream(self) -> bool:
        return self.kind == TaskKind.END_OF_STREAM


END_OF_STREAM = ExportTask(kind=TaskKind.END_OF_STREAM)
