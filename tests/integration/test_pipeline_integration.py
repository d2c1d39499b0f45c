"""
Integration Tests for the Warehouse Pipeline

These tests need a dedicated PostgreSQL database. They only touch the
it_raw / it_clean / it_analytics schemas, which they drop and rebuild.

Enable with:
    export DATABASE_URL="postgresql://...job_warehouse_test"
    export RUN_DB_INTEGRATION=1
    pytest tests/integration -m integration -v
"""

import csv
import os

import psycopg2
import pytest
from psycopg2 import sql

from services.common.config_loader import PipelineConfig, SchemaNames
from services.common.database import DatabaseError, TableSpec, WarehouseDB
from services.pipeline import run_pipeline
from services.raw_loader.sources import SOURCE_FILES

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("RUN_DB_INTEGRATION") != "1",
        reason="Integration tests disabled - set RUN_DB_INTEGRATION=1 with a test database",
    ),
]

SCHEMAS = SchemaNames(raw='it_raw', clean='it_clean', analytics='it_analytics')


def query(database_url, statement, params=None):
    with psycopg2.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(statement, params)
            return cur.fetchall()


@pytest.fixture
def export_config(tmp_path, raw_tables):
    """Write the raw_tables fixture as a CSV export and point the config at it."""
    for source in SOURCE_FILES:
        path = tmp_path / source.relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(source.columns)
            for row in raw_tables[source.table]:
                writer.writerow(['' if row.get(c) is None else row[c] for c in source.columns])
    return PipelineConfig(data_dir=str(tmp_path), schemas=SCHEMAS)


@pytest.fixture
def clean_schemas(database_url):
    yield
    with psycopg2.connect(database_url) as conn:
        with conn.cursor() as cur:
            for schema in (SCHEMAS.analytics, SCHEMAS.clean, SCHEMAS.raw):
                cur.execute(
                    sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(schema))
                )


def test_full_rebuild(database_url, export_config, clean_schemas):
    results = run_pipeline(database_url, export_config)

    assert results['raw']['data_postings_raw'] == 6
    assert results['clean']['jobs'] == 4

    # Empty CSV fields load as NULL
    nulls = query(database_url, "SELECT COUNT(*) FROM it_raw.data_postings_raw WHERE job_id IS NULL")
    assert nulls == [(1,)]

    activity = query(
        database_url,
        "SELECT company_id, job_postings FROM it_analytics.company_activity ORDER BY company_id",
    )
    assert activity == [('1016', 2), ('2774458', 2), ('55', 0)]

    overview = query(
        database_url,
        "SELECT skills, industries FROM it_analytics.v_job_overview WHERE job_id = '105'",
    )
    assert overview == [([], [])]

    view_skills = query(
        database_url,
        "SELECT skills FROM it_analytics.v_job_with_skills WHERE job_id = '101'",
    )
    assert view_skills == [(['Python', 'SQL'],)]


def test_rebuild_is_idempotent(database_url, export_config, clean_schemas):
    run_pipeline(database_url, export_config)
    first = query(database_url, "SELECT * FROM it_analytics.salary_clean ORDER BY salary_id")

    run_pipeline(database_url, export_config)
    second = query(database_url, "SELECT * FROM it_analytics.salary_clean ORDER BY salary_id")

    assert first == second
    assert len(first) == 4


def test_failed_rebuild_keeps_previous_tables(database_url, clean_schemas):
    db = WarehouseDB(database_url)
    spec = TableSpec(name='marker', columns=[('id', 'TEXT')], primary_key=('id',))

    db.replace_tables(SCHEMAS.clean, [(spec, [{'id': 'v1'}])])

    with pytest.raises(DatabaseError):
        db.replace_tables(
            SCHEMAS.clean,
            [(spec, [{'id': 'v2'}])],
            post_statements=[sql.SQL("SELECT * FROM no_such_table")],
        )

    assert query(database_url, "SELECT id FROM it_clean.marker") == [('v1',)]
