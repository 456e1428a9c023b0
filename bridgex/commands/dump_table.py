"""Dump a Synapse table to CSV command."""

from pathlib import Path
from typing import Optional

import click
import pandas as pd

from bridgex.console import newline, success, warning
from bridgex.objects.app_config import AppConfig
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.synapse.table_iterator import SynapseTableIterator


def table_to_dataframe(iterator: SynapseTableIterator) -> pd.DataFrame:
    """Read every row of a query into a DataFrame of strings."""
    rows = list(iterator)
    headers = iterator.headers
    if not headers and rows:
        headers = [f"column_{i}" for i in range(len(rows[0]))]
    return pd.DataFrame(rows, columns=headers, dtype="object")


@click.command(name="dump-table")
@click.argument("table_id", type=click.STRING)
@click.option("--sql", type=click.STRING, default=None, help="Query to run (default: SELECT * FROM TABLE_ID)")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="CSV file to write (default: <TABLE_ID>.csv)",
)
@click.pass_context
def dump_table(ctx: click.Context, table_id: str, sql: Optional[str], output: Optional[Path]) -> pd.DataFrame:
    """Page through a Synapse table query and write the rows to CSV.

    The etag printed at the end belongs to the first page; rows written to
    the table during the dump may or may not be included.
    """
    app_config: AppConfig = ctx.obj["CONFIG"]
    helper = SynapseHelper.from_config(app_config)

    iterator = SynapseTableIterator(helper, table_id, sql)
    df = table_to_dataframe(iterator)

    output_path = output or Path(f"{table_id}.csv")
    df.to_csv(output_path, index=False)

    newline()
    if df.empty:
        warning(f"Query on {table_id} returned no rows")
    success(f"Wrote {len(df)} rows from {table_id} to {output_path} (etag {iterator.etag})")
    return df
