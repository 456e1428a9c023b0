"""Runs an export: provisions tables, fans records out to workers, collects results.

Order of a run:

1. Build a ``TableSpec`` for every configured table of every enabled study.
2. Provision the tables one at a time on the calling thread.
3. Start one ``ExportWorker`` per provisioned table.
4. Route each record to its health data table and its study's app version
   table, then send end-of-stream to every worker.
5. Wait for the workers and gather their ``WorkerResult`` messages.
"""

import queue
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bridgex.exceptions import BridgexError, ConfigurationError
from bridgex.logging_config import get_logger
from bridgex.objects.app_config import AppConfig
from bridgex.objects.export_config import ExportConfig
from bridgex.objects.export_task import ExportTask
from bridgex.objects.table_registry import TableRegistry
from bridgex.objects.worker_result import ExportSummary, WorkerResult
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.synapse.table_provisioner import AccessPolicy, TableProvisioner
from bridgex.worker.export_worker import ExportWorker, FailedFileHandler
from bridgex.worker.table_spec import AppVersionTableSpec, HealthDataTableSpec, TableSpec

logger = get_logger(__name__)


class ExportManager:
    """Coordinates one export run.

    Attributes:
        helper: Retrying Synapse access shared by all workers
        provisioner: Table get-or-create, used only from the calling thread
        app_config: Runtime settings
        export_config: Studies and tables to export
        update_schemas: Migrate existing tables to the configured columns
    """

    def __init__(
        self,
        helper: SynapseHelper,
        registry: TableRegistry,
        app_config: AppConfig,
        export_config: ExportConfig,
        on_failed_file: Optional[FailedFileHandler] = None,
        update_schemas: bool = False,
    ) -> None:
        self.helper = helper
        self.provisioner = TableProvisioner(helper, registry)
        self.app_config = app_config
        self.export_config = export_config
        self.on_failed_file = on_failed_file
        self.update_schemas = update_schemas

    def access_policy_for(self, study_id: str) -> AccessPolicy:
        study = self.export_config.study[study_id]
        admins = [self.app_config.synapse_principal_id]
        if self.app_config.admin_team_id is not None:
            admins.append(self.app_config.admin_team_id)
        readers = [study.data_access_team_id]
        if self.app_config.staff_team_id is not None:
            readers.append(self.app_config.staff_team_id)
        return AccessPolicy(parent_id=study.project_id, admin_principal_ids=admins, read_principal_ids=readers)

    def build_table_specs(self) -> List[TableSpec]:
        specs: List[TableSpec] = []
        for study_id, study in self.export_config.study.items():
            if study.disable_export:
                logger.info(f"Export disabled for study {study_id}")
                continue
            policy = self.access_policy_for(study_id)
            for table_def in self.export_config.table.values():
                if table_def.study_id == study_id:
                    specs.append(HealthDataTableSpec(table_def, policy))
            if study.export_app_versions:
                specs.append(AppVersionTableSpec(study_id, study, policy))
        return specs

    def provision(self, specs: List[TableSpec], summary: ExportSummary) -> Dict[str, str]:
        """Provision tables sequentially.

        A table that fails to provision is reported and left out of the run.

        Returns:
            Table ids by table key for every provisioned table

        Raises:
            ConfigurationError: a column invariant is broken, the whole run stops
        """
        table_ids: Dict[str, str] = {}
        for spec in specs:
            try:
                existing_id = self.provisioner.lookup(spec.table_key)
                table_id = self.provisioner.ensure_table(
                    spec.table_key, spec.table_name, spec.columns, spec.access_policy
                )
                if existing_id is not None and self.update_schemas:
                    self.provisioner.migrate_table(table_id, spec.columns)
            except ConfigurationError:
                raise
            except BridgexError as e:
                logger.error(f"Unable to provision table {spec.table_key}: {e}")
                summary.provisioning_failures[spec.table_key] = str(e)
                continue
            table_ids[spec.table_key] = table_id
        return table_ids

    def _tasks_for(
        self, record: Dict[str, Any], table_ids: Dict[str, str]
    ) -> List[Tuple[str, ExportTask]]:
        record_id = str(record.get("id", ""))
        study_id = record.get("studyId")
        if study_id not in self.export_config.study or self.export_config.study[study_id].disable_export:
            return []

        try:
            revision = int(record.get("schemaRevision") or 1)
        except (TypeError, ValueError):
            logger.warning(f"Record {record_id} has invalid schemaRevision {record.get('schemaRevision')!r}")
            return []

        routed: List[Tuple[str, ExportTask]] = []
        table_def = self.export_config.find_table(study_id, str(record.get("schemaId")), revision)
        record_fields = {k: v for k, v in record.items() if k != "data"}
        if table_def is not None and table_def.table_key in table_ids:
            data = record.get("data") or {}
            routed.append((table_def.table_key, ExportTask.row(record_id, study_id, record_fields, data)))

        app_version_key = f"{study_id}-appVersion"
        if app_version_key in table_ids:
            original_table = table_def.table_key if table_def is not None else str(record.get("schemaId", ""))
            app_record = dict(record_fields, originalTable=original_table)
            routed.append((app_version_key, ExportTask.row(record_id, study_id, app_record)))
        return routed

    def run(self, records: Iterable[Dict[str, Any]]) -> ExportSummary:
        """Export ``records`` and report what happened per table."""
        summary = ExportSummary()
        specs = self.build_table_specs()
        table_ids = self.provision(specs, summary)

        result_queue: "queue.Queue[WorkerResult]" = queue.Queue()
        workers: Dict[str, ExportWorker] = {}
        for spec in specs:
            if spec.table_key not in table_ids:
                continue
            workers[spec.table_key] = ExportWorker(
                spec,
                table_ids[spec.table_key],
                self.helper,
                self.app_config.scratch_dir,
                result_queue,
                queue_size=self.app_config.worker_queue_size,
                on_failed_file=self.on_failed_file,
            )

        for worker in workers.values():
            worker.start()

        try:
            for record in records:
                routed = self._tasks_for(record, table_ids)
                if not routed:
                    summary.skipped_records += 1
                    logger.debug(f"Skipping record {record.get('id')}: no destination table")
                    continue
                for table_key, task in routed:
                    workers[table_key].submit(task)
        finally:
            for worker in workers.values():
                worker.finish()
            for worker in workers.values():
                worker.join()

        while not result_queue.empty():
            summary.results.append(result_queue.get())
        summary.results.sort(key=lambda r: r.table_key)

        for result in summary.results:
            if result.failed:
                logger.error(f"Table {result.table_key} ({result.table_id}) failed: {result.error}")
        logger.info(
            f"Export finished: {len(summary.results)} tables, {summary.total_lines} rows, "
            f"{summary.total_errors} row errors, {len(summary.provisioning_failures)} provisioning failures"
        )
        return summary
