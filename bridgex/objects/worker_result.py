"""Per-table summaries reported by export workers."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class WorkerResult(BaseModel):
    """What one table worker did during a run.

    Attributes:
        table_key: Registry key of the destination table
        table_id: Synapse table id
        line_count: Rows written to the scratch file
        error_count: Records that failed to render
        uploaded: True once rows were imported and the count matched
        rows_processed: Row count Synapse reported for the import
        error: Failure message when the upload failed
        scratch_file: Path of the kept scratch file for redrive
        upload_seconds: Wall time spent uploading and importing
        extra_metrics: Table-specific values, e.g. unique app versions
    """

    table_key: str
    table_id: str
    line_count: int = 0
    error_count: int = 0
    uploaded: bool = False
    rows_processed: Optional[int] = None
    error: Optional[str] = None
    scratch_file: Optional[str] = None
    upload_seconds: float = 0.0
    extra_metrics: Dict[str, List[str]] = Field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.error is not None


class ExportSummary(BaseModel):
    """Outcome of a whole export run."""

    results: List[WorkerResult] = Field(default_factory=list)
    provisioning_failures: Dict[str, str] = Field(default_factory=dict)
    skipped_records: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(self.provisioning_failures) or any(r.failed for r in self.results)

    @property
    def total_lines(self) -> int:
        return sum(r.line_count for r in self.results)

    @property
    def total_errors(self) -> int:
        return sum(r.error_count for r in self.results)
