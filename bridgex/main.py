"""bridgex CLI application entry point.

Exports health-study records to Synapse tables. The group callback loads the
export configuration and connection settings (options, ``BX_*`` environment
variables or a .env file) and hands them to the commands through the Click
context. Commands can be chained, so a command's options go before its
argument, e.g. ``bridgex check-synapse export-records --update-schemas records.jsonl``
or ``bridgex dump-table --output out.csv syn1234``.
"""
import importlib.metadata
from pathlib import Path
from typing import Optional

import click
import toml
from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from bridgex.commands.check_synapse import check_synapse
from bridgex.commands.dump_table import dump_table
from bridgex.commands.export_records import export_records
from bridgex.commands.list_registry import list_registry
from bridgex.commands.migrate_table import migrate_table
from bridgex.logging_config import setup_logging
from bridgex.objects.app_config import AppConfig
from bridgex.objects.export_config import ExportConfig


@click.group(chain=True)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging (DEBUG level)")
@click.option("--log-file", type=click.Path(), help="Write logs to file")
@click.option(
    "--export-config",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True),
    help="Location of export_config.toml",
    envvar="BX_EXPORT_CONFIG",
)
@click.option(
    "--synapse-endpoint",
    type=str,
    default="https://repo-prod.prod.sagebase.org/repo/v1",
    help="Synapse repository API base URL",
    envvar="BX_SYNAPSE_ENDPOINT",
)
@click.option("--synapse-auth-token", type=str, help="Synapse personal access token", envvar="BX_SYNAPSE_AUTH_TOKEN")
@click.option(
    "--synapse-principal-id",
    type=int,
    help="Principal id of the exporter account",
    envvar="BX_SYNAPSE_PRINCIPAL_ID",
)
@click.option("--admin-team-id", type=int, default=None, help="Team granted admin access", envvar="BX_ADMIN_TEAM_ID")
@click.option("--staff-team-id", type=int, default=None, help="Team granted read access", envvar="BX_STAFF_TEAM_ID")
@click.option("--registry-db-url", type=str, help="PostgreSQL URL of the table registry", envvar="BX_REGISTRY_DB_URL")
@click.option(
    "--registry-table-prefix",
    type=str,
    default="",
    help="Prefix for the registry table name",
    envvar="BX_REGISTRY_TABLE_PREFIX",
)
@click.option(
    "--scratch-dir",
    type=click.Path(file_okay=False, dir_okay=True, writable=True),
    default="./bridgex-scratch",
    help="Directory for TSV scratch files",
    envvar="BX_SCRATCH_DIR",
)
@click.option("--async-interval-millis", type=int, default=1000, envvar="BX_ASYNC_INTERVAL_MILLIS")
@click.option("--async-max-attempts", type=int, default=300, envvar="BX_ASYNC_MAX_ATTEMPTS")
@click.option("--rate-limit-per-second", type=float, default=10, envvar="BX_RATE_LIMIT_PER_SECOND")
@click.option(
    "--column-models-rate-limit-per-minute",
    type=float,
    default=24,
    envvar="BX_COLUMN_MODELS_RATE_LIMIT_PER_MINUTE",
)
@click.option("--gcs-project-id", type=str, default=None, help="GCP project for redrive files", envvar="BX_GCS_PROJECT_ID")
@click.option("--redrive-bucket", type=str, default=None, help="GCS bucket for failed scratch files", envvar="BX_REDRIVE_BUCKET")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    log_file: Optional[str],
    export_config: Optional[str],
    synapse_endpoint: str,
    synapse_auth_token: Optional[str],
    synapse_principal_id: Optional[int],
    admin_team_id: Optional[int],
    staff_team_id: Optional[int],
    registry_db_url: Optional[str],
    registry_table_prefix: str,
    scratch_dir: str,
    async_interval_millis: int,
    async_max_attempts: int,
    rate_limit_per_second: float,
    column_models_rate_limit_per_minute: float,
    gcs_project_id: Optional[str],
    redrive_bucket: Optional[str],
) -> None:
    """bridgex CLI group for exporting records to Synapse tables.

    Raises:
        click.UsageError: If required settings are missing or invalid
    """
    logger = setup_logging(verbose=verbose, log_file=log_file)
    ctx.ensure_object(dict)
    ctx.obj["logger"] = logger

    if not export_config:
        raise click.UsageError("BX_EXPORT_CONFIG must be set")
    if not synapse_auth_token:
        raise click.UsageError("BX_SYNAPSE_AUTH_TOKEN must be set")
    if synapse_principal_id is None:
        raise click.UsageError("BX_SYNAPSE_PRINCIPAL_ID must be set")
    if not registry_db_url:
        raise click.UsageError("BX_REGISTRY_DB_URL must be set")

    logger.info(f"export_config: {export_config}")

    try:
        valid_config = ExportConfig(**toml.load(export_config))
    except ValidationError as e:
        raise click.UsageError(f"Validation failed for {export_config}\n{e}")
    except toml.TomlDecodeError as e:
        raise click.UsageError(f"Unable to parse {export_config}: {e}")

    ctx.obj["EXPORT_CONFIG"] = valid_config

    try:
        app_config = AppConfig(
            synapse_endpoint=synapse_endpoint,
            synapse_auth_token=synapse_auth_token,
            synapse_principal_id=synapse_principal_id,
            admin_team_id=admin_team_id,
            staff_team_id=staff_team_id,
            async_interval_millis=async_interval_millis,
            async_max_attempts=async_max_attempts,
            rate_limit_per_second=rate_limit_per_second,
            column_models_rate_limit_per_minute=column_models_rate_limit_per_minute,
            registry_db_url=registry_db_url,
            registry_table_prefix=registry_table_prefix,
            scratch_dir=Path(scratch_dir),
            gcs_project_id=gcs_project_id,
            redrive_bucket=redrive_bucket,
        )
    except ValidationError as e:
        raise click.UsageError(f"Invalid settings\n{e}")

    ctx.obj["CONFIG"] = app_config


cli.add_command(check_synapse)
cli.add_command(export_records)
cli.add_command(dump_table)
cli.add_command(migrate_table)
cli.add_command(list_registry)


def start_cli() -> click.Group:
    """Load .env, print the banner and run the CLI group."""
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file, verbose=True)

    click.secho("bridgex", fg="magenta", bold=True)
    click.echo(f"Version: {importlib.metadata.version('bridgex')}")
    if env_file:
        click.secho(f"Configuration loaded from: {env_file}")
    click.echo(nl=True)

    return cli(obj={})  # type: ignore


if __name__ == "__main__":
    start_cli()
