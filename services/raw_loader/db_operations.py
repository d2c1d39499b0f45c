"""
Database Operations for the Raw Loader

Creates one TEXT-only table per source file and bulk loads the file verbatim
with COPY. No value is interpreted: empty unquoted fields become NULL, quoted
empty fields stay empty strings, everything else is kept as-is.
"""

import logging
from pathlib import Path

import psycopg2
from psycopg2 import sql

from services.common.database import DatabaseError, WarehouseDB

from .sources import SOURCES_BY_TABLE, RawLoadError

logger = logging.getLogger(__name__)


class RawLoaderDB(WarehouseDB):
    """Database interface for the raw loader stage."""

    def load_raw_tables(self, schema: str, files: dict[str, Path]) -> dict[str, int]:
        """
        Drop, recreate and COPY every raw table in a single transaction.

        Args:
            schema: Raw schema name (created if missing)
            files: Mapping of raw table name to validated CSV path

        Returns:
            Mapping of raw table name to loaded row count

        Raises:
            RawLoadError: If COPY rejects a file (e.g., wrong column count on a row)
            DatabaseError: For any other database failure
        """
        counts: dict[str, int] = {}
        current_table = None
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(schema))
                    )

                    for table_name, path in files.items():
                        current_table = table_name
                        source = SOURCES_BY_TABLE[table_name]
                        table = sql.Identifier(schema, table_name)

                        cur.execute(sql.SQL("DROP TABLE IF EXISTS {} CASCADE").format(table))
                        cur.execute(
                            sql.SQL("CREATE TABLE {table} ({columns})").format(
                                table=table,
                                columns=sql.SQL(', ').join(
                                    sql.SQL("{} TEXT").format(sql.Identifier(c))
                                    for c in source.columns
                                ),
                            )
                        )

                        copy = sql.SQL(
                            "COPY {table} FROM STDIN WITH (FORMAT csv, HEADER true)"
                        ).format(table=table)
                        with open(path, encoding='utf-8', newline='') as f:
                            cur.copy_expert(copy.as_string(cur), f)

                        cur.execute(sql.SQL("SELECT COUNT(*) FROM {}").format(table))
                        counts[table_name] = cur.fetchone()[0]

                        logger.info(
                            "Loaded raw table",
                            extra={
                                'table': f"{schema}.{table_name}",
                                'source': str(path),
                                'rows': counts[table_name],
                            }
                        )

            return counts

        except psycopg2.DataError as e:
            # COPY reports structural problems (extra/missing columns) as data errors
            raise RawLoadError(f"Malformed source data for {current_table}: {e}") from e
        except psycopg2.Error as e:
            logger.error(
                "Raw load transaction failed",
                extra={'table': current_table, 'error': str(e), 'pgcode': e.pgcode}
            )
            raise DatabaseError(f"Failed to load raw tables: {e}") from e
