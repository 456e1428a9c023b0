"""Generic per-table export worker.

One worker thread per destination table per run. Tasks arrive on a bounded
queue; rows are appended to a TSV scratch file in dequeue order; at end of
stream the file is uploaded and imported into the table. The worker owns its
counters and hands a ``WorkerResult`` back through a result queue.
"""

import queue
import threading
import time
import uuid
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, TextIO

from bridgex.logging_config import get_logger
from bridgex.objects.export_task import END_OF_STREAM, ExportTask
from bridgex.objects.worker_result import WorkerResult
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.worker.table_spec import TableSpec

logger = get_logger(__name__)

TSV_SEPARATOR = "\t"

# Called with the kept scratch file and table key after a failed upload
FailedFileHandler = Callable[[Path, str], None]


class WorkerState(str, Enum):
    INIT = "INIT"
    ACCUMULATING = "ACCUMULATING"
    UPLOAD = "UPLOAD"
    DONE = "DONE"


def _safe_file_stem(table_key: str) -> str:
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in table_key)


class ExportWorker:
    """Exports one table.

    The table must already exist: the manager provisions every table on its
    own thread before any worker starts.

    Attributes:
        spec: Table behaviour (columns, row rendering)
        table_id: Provisioned Synapse table id
        state: Current position in INIT, ACCUMULATING, UPLOAD, DONE

    Example:
        >>> worker = ExportWorker(spec, "syn1234", helper, Path("/tmp"), results)
        >>> worker.start()
        >>> worker.submit(ExportTask.row("rec-1", "study", record, data))
        >>> worker.finish()
    """

    def __init__(
        self,
        spec: TableSpec,
        table_id: str,
        helper: SynapseHelper,
        scratch_dir: Path,
        result_queue: "queue.Queue[WorkerResult]",
        queue_size: int = 1000,
        on_failed_file: Optional[FailedFileHandler] = None,
    ) -> None:
        self.spec = spec
        self.table_id = table_id
        self.helper = helper
        self.scratch_dir = scratch_dir
        self.result_queue = result_queue
        self.on_failed_file = on_failed_file
        self.tasks: "queue.Queue[ExportTask]" = queue.Queue(maxsize=queue_size)
        self.state = WorkerState.INIT

        self.line_count = 0
        self.error_count = 0
        self.scratch_file: Optional[Path] = None
        self._writer: Optional[TextIO] = None
        self._thread = threading.Thread(
            target=self.run, name=f"worker-{spec.table_key}", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def submit(self, task: ExportTask) -> None:
        """Queue a task, blocking while the queue is full."""
        self.tasks.put(task)

    def finish(self) -> None:
        self.tasks.put(END_OF_STREAM)

    def run(self) -> WorkerResult:
        """Run the state machine to completion and publish the result."""
        result = WorkerResult(table_key=self.spec.table_key, table_id=self.table_id)
        try:
            self._init()
            self._accumulate()
            self._upload(result)
        except Exception as e:
            logger.error(f"Export of table {self.spec.table_key} ({self.table_id}) failed: {e}", exc_info=True)
            result.error = str(e)
            self._close_writer()
            self._drain()
        finally:
            self.state = WorkerState.DONE
            result.line_count = self.line_count
            result.error_count = self.error_count
            result.extra_metrics = self.spec.extra_metrics()
            self.result_queue.put(result)
        return result

    def _init(self) -> None:
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        self.scratch_file = self.scratch_dir / f"{_safe_file_stem(self.spec.table_key)}.{uuid.uuid4().hex}.tsv"
        self._writer = open(self.scratch_file, "w", encoding="utf-8", newline="")
        self._writer.write(TSV_SEPARATOR.join(self.spec.headers) + "\n")
        self.state = WorkerState.ACCUMULATING

    def _accumulate(self) -> None:
        assert self._writer is not None
        while True:
            task = self.tasks.get()
            if task.is_end_of_stream:
                break
            try:
                cells = self.spec.render_row(task)
                self._writer.write(TSV_SEPARATOR.join(cells) + "\n")
                self.line_count += 1
            except Exception as e:
                self.error_count += 1
                logger.error(
                    f"Error processing record {task.record_id} for table {self.spec.table_key} "
                    f"({self.table_id}): {e}"
                )
        self.state = WorkerState.UPLOAD

    def _upload(self, result: WorkerResult) -> None:
        self._close_writer()
        assert self.scratch_file is not None

        if self.line_count == 0:
            logger.info(f"No rows for table {self.spec.table_key}, skipping upload")
            self.scratch_file.unlink(missing_ok=True)
            return

        start_time = time.monotonic()
        try:
            result.rows_processed = self.helper.upload_tsv_to_table(
                self.table_id, self.scratch_file, self.line_count
            )
        except Exception as e:
            result.error = str(e)
            result.scratch_file = str(self.scratch_file)
            logger.error(
                f"[re-upload-tsv] file={self.scratch_file} table={self.table_id} "
                f"key={self.spec.table_key}: {e}"
            )
            self._handle_failed_file()
            return
        finally:
            result.upload_seconds = time.monotonic() - start_time

        result.uploaded = True
        logger.info(
            f"Uploaded {self.line_count} rows to table {self.table_id} ({self.spec.table_key}) "
            f"in {result.upload_seconds:.1f}s"
        )
        self.scratch_file.unlink(missing_ok=True)

    def _handle_failed_file(self) -> None:
        if self.on_failed_file is None or self.scratch_file is None:
            return
        try:
            self.on_failed_file(self.scratch_file, self.spec.table_key)
        except Exception as e:
            # the local copy is still there for redrive
            logger.error(f"Unable to archive {self.scratch_file} for redrive: {e}")

    def _close_writer(self) -> None:
        if self._writer is not None and not self._writer.closed:
            self._writer.close()

    def _drain(self) -> None:
        """Consume remaining tasks so the dispatcher never blocks on a dead worker."""
        if self.state != WorkerState.ACCUMULATING and self.state != WorkerState.INIT:
            return
        while True:
            task = self.tasks.get()
            if task.is_end_of_stream:
                return
            self.error_count += 1
