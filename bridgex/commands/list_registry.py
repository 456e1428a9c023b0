"""List registered Synapse tables command."""

from typing import List

import click

from bridgex.console import error, newline, success, table, warning
from bridgex.exceptions import BridgexError
from bridgex.objects.app_config import AppConfig
from bridgex.objects.table_registry import TableRegistration
from bridgex.postgres_table_registry import PostgresTableRegistry


@click.command(name="list-registry")
@click.pass_context
def list_registry(ctx: click.Context) -> List[TableRegistration]:
    """List every table key and the Synapse table it was exported to."""
    app_config: AppConfig = ctx.obj["CONFIG"]

    try:
        registry = PostgresTableRegistry(app_config.registry_db_url, app_config.registry_table_prefix)
        try:
            registry.ensure_table()
            registrations = registry.list_registrations()
        finally:
            registry.close()
    except BridgexError as e:
        error(str(e))
        ctx.exit(1)

    if not registrations:
        newline()
        warning("No tables registered yet.")
        return []

    newline()
    success(f"Found {len(registrations)} registered tables:")
    table(
        data=[[r.table_key, r.table_id] for r in registrations],
        headers=["Table Key", "Table ID"],
        title=f"Tables in {registry.table_name}",
    )
    newline()
    return registrations
