from typing import List, Optional

import psycopg2
from psycopg2.sql import SQL, Identifier

from bridgex.exceptions import RegistryError
from bridgex.logging_config import get_logger
from bridgex.objects.table_registry import TableRegistration, TableRegistry

logger = get_logger(__name__)

REGISTRY_TABLE_NAME = "synapse_meta_tables"


class PostgresTableRegistry(TableRegistry):
    """
    Table registry kept in a PostgreSQL table.

    One row per exported table, keyed by table key. Inserts use
    ``on conflict do nothing`` so a second registration of the same key keeps
    the first table id.
    """

    def __init__(self, db_url: str, table_prefix: str = "") -> None:
        self.table_name = f"{table_prefix}{REGISTRY_TABLE_NAME}"
        try:
            self.connection = psycopg2.connect(db_url)
            self.connection.set_session(autocommit=True)
        except psycopg2.OperationalError as e:
            raise RegistryError(f"Unable to connect to table registry: {e}") from e

    def close(self) -> None:
        self.connection.close()

    def test_connection(self) -> bool:
        try:
            with self.connection.cursor() as cursor:
                cursor.execute("select 1")
            return True
        except psycopg2.Error:
            return False

    def ensure_table(self) -> None:
        query = SQL(
            "create table if not exists {} (table_key text primary key, table_id text not null)"
        ).format(Identifier(self.table_name))
        try:
            with self.connection.cursor() as cursor:
                cursor.execute(query)
        except psycopg2.Error as e:
            raise RegistryError(f"Unable to create registry table {self.table_name}: {e}") from e

    def get_table_id(self, table_key: str) -> Optional[str]:
        query = SQL("select table_id from {} where table_key = %s").format(Identifier(self.table_name))
        try:
            with self.connection.cursor() as cursor:
                cursor.execute(query, (table_key,))
                row = cursor.fetchone()
        except psycopg2.Error as e:
            raise RegistryError(f"Unable to read registry entry for {table_key}: {e}") from e
        return row[0] if row is not None else None

    def put(self, table_key: str, table_id: str) -> str:
        query = SQL(
            "insert into {} (table_key, table_id) values (%s, %s) on conflict (table_key) do nothing"
        ).format(Identifier(self.table_name))
        try:
            with self.connection.cursor() as cursor:
                cursor.execute(query, (table_key, table_id))
                inserted = cursor.rowcount == 1
        except psycopg2.Error as e:
            raise RegistryError(f"Unable to register table {table_key}={table_id}: {e}") from e

        if inserted:
            return table_id

        existing = self.get_table_id(table_key)
        logger.warning(f"Table key {table_key} already registered as {existing}, ignoring {table_id}")
        return existing or table_id

    def list_registrations(self) -> List[TableRegistration]:
        query = SQL("select table_key, table_id from {} order by table_key").format(
            Identifier(self.table_name)
        )
        try:
            with self.connection.cursor() as cursor:
                cursor.execute(query)
                rows = cursor.fetchall()
        except psycopg2.Error as e:
            raise RegistryError(f"Unable to list registry table {self.table_name}: {e}") from e
        return [TableRegistration(table_key=key, table_id=table_id) for key, table_id in rows]
