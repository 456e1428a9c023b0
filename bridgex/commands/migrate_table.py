"""Migrate a registered table to its configured columns."""

import click

from bridgex.console import error, info, success
from bridgex.exceptions import BridgexError, ConfigurationError
from bridgex.objects.app_config import AppConfig
from bridgex.objects.export_config import ExportConfig
from bridgex.postgres_table_registry import PostgresTableRegistry
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.worker.export_manager import ExportManager


@click.command(name="migrate-table")
@click.argument("table_key", type=click.STRING)
@click.pass_context
def migrate_table(ctx: click.Context, table_key: str) -> bool:
    """Apply compatible column changes to an existing table.

    Fails without touching the table if any column change would lose data.
    """
    app_config: AppConfig = ctx.obj["CONFIG"]
    export_config: ExportConfig = ctx.obj["EXPORT_CONFIG"]

    helper = SynapseHelper.from_config(app_config)
    try:
        registry = PostgresTableRegistry(app_config.registry_db_url, app_config.registry_table_prefix)
    except BridgexError as e:
        error(str(e))
        ctx.exit(1)

    try:
        manager = ExportManager(helper, registry, app_config, export_config)
        try:
            specs = {spec.table_key: spec for spec in manager.build_table_specs()}
        except ConfigurationError as e:
            error(f"Invalid export configuration: {e}")
            ctx.exit(1)
        spec = specs.get(table_key)
        if spec is None:
            error(f"No enabled table is configured with key {table_key}")
            ctx.exit(1)

        table_id = manager.provisioner.lookup(table_key)
        if table_id is None:
            error(f"Table {table_key} is not registered yet; export to it first")
            ctx.exit(1)

        try:
            changed = manager.provisioner.migrate_table(table_id, spec.columns)
        except BridgexError as e:
            error(f"Unable to migrate {table_key} ({table_id}): {e}")
            ctx.exit(1)
    finally:
        registry.close()

    if changed:
        success(f"Migrated {table_key} ({table_id})")
    else:
        info(f"{table_key} ({table_id}) already has the configured columns")
    return changed
