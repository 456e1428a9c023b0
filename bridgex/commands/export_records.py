"""Export records to Synapse tables command."""

from pathlib import Path
from typing import List, Optional

import click

from bridgex.bucket.gcs_manager import GcsManager
from bridgex.console import error, newline, status, success, table, warning
from bridgex.exceptions import BridgexError, ConfigurationError
from bridgex.metrics import Metrics, publish_metrics
from bridgex.objects.app_config import AppConfig
from bridgex.objects.export_config import ExportConfig
from bridgex.objects.worker_result import ExportSummary
from bridgex.postgres_table_registry import PostgresTableRegistry
from bridgex.record_reader import iter_records
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.worker.export_manager import ExportManager
from bridgex.worker.export_worker import FailedFileHandler


def _summary_rows(summary: ExportSummary) -> List[List[object]]:
    rows: List[List[object]] = []
    for result in summary.results:
        if result.failed:
            outcome = f"FAILED: {result.error}"
        elif result.uploaded:
            outcome = "uploaded"
        else:
            outcome = "no rows"
        rows.append([result.table_key, result.table_id, result.line_count, result.error_count, outcome])
    for table_key, reason in summary.provisioning_failures.items():
        rows.append([table_key, "", 0, 0, f"NOT PROVISIONED: {reason}"])
    return rows


@click.command(name="export-records")
@click.argument(
    "records_file",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
)
@click.option(
    "--update-schemas",
    is_flag=True,
    default=False,
    help="Migrate existing tables to the configured columns before exporting",
)
@click.pass_context
def export_records(ctx: click.Context, records_file: Path, update_schemas: bool) -> ExportSummary:
    """Export a JSON-lines file of records to Synapse.

    Every configured table is provisioned first, then each record is written
    to its schema's table and its study's app version table. Exits with
    status 1 if any table failed.
    """
    app_config: AppConfig = ctx.obj["CONFIG"]
    export_config: ExportConfig = ctx.obj["EXPORT_CONFIG"]

    helper = SynapseHelper.from_config(app_config)
    if not helper.is_synapse_writable():
        error("Synapse is not writable right now, try again later.")
        ctx.exit(1)

    try:
        registry = PostgresTableRegistry(app_config.registry_db_url, app_config.registry_table_prefix)
        registry.ensure_table()
    except BridgexError as e:
        error(str(e))
        ctx.exit(1)

    on_failed_file: Optional[FailedFileHandler] = None
    if app_config.redrive_bucket and app_config.gcs_project_id:
        on_failed_file = GcsManager(app_config.gcs_project_id, app_config.redrive_bucket).archive_failed_file

    manager = ExportManager(
        helper,
        registry,
        app_config,
        export_config,
        on_failed_file=on_failed_file,
        update_schemas=update_schemas,
    )

    status(f"Exporting records from {records_file}")
    try:
        summary = manager.run(iter_records(records_file))
    except ConfigurationError as e:
        error(f"Invalid export configuration: {e}")
        ctx.exit(1)
    finally:
        registry.close()

    metrics = Metrics()
    metrics.record_summary(summary)
    publish_metrics(metrics)

    newline()
    table(
        data=_summary_rows(summary),
        headers=["Table Key", "Table ID", "Rows", "Errors", "Result"],
        title="Export Summary",
    )
    newline()

    if summary.skipped_records:
        warning(f"{summary.skipped_records} records had no destination table")

    if summary.has_failures:
        error("Export finished with failures. Kept scratch files can be re-uploaded.")
        ctx.exit(1)

    success(f"Exported {summary.total_lines} rows to {len(summary.results)} tables")
    return summary
