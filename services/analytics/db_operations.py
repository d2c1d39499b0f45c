"""
Database Operations for the Analytics Service

This module handles all database interactions for the analytics stage:
- Reading the clean model tables built by the normalizer
- Rebuilding the analytics summary tables in one transaction
- Recreating the convenience views dashboards query
"""

import logging
from typing import Any

from psycopg2 import sql

from services.common.database import TableSpec, WarehouseDB
from services.normalizer.db_operations import CLEAN_TABLE_SPECS

logger = logging.getLogger(__name__)

# Clean tables the aggregations read
CLEAN_INPUTS = (
    'companies', 'industries', 'skills', 'jobs',
    'job_industries', 'job_skills', 'job_salaries',
)

ANALYTICS_TABLE_SPECS: list[TableSpec] = [
    TableSpec(
        name='skill_demand',
        columns=[('skill_abr', 'TEXT'), ('skill_name', 'TEXT'), ('job_count', 'BIGINT')],
        primary_key=('skill_abr',),
    ),
    TableSpec(
        name='industry_demand',
        columns=[('industry_id', 'TEXT'), ('industry_name', 'TEXT'), ('job_count', 'BIGINT')],
        primary_key=('industry_id',),
    ),
    TableSpec(
        name='company_activity',
        columns=[('company_id', 'TEXT'), ('company_name', 'TEXT'), ('job_postings', 'BIGINT')],
        primary_key=('company_id',),
    ),
    TableSpec(
        name='salary_clean',
        columns=[
            ('salary_id', 'TEXT'),
            ('job_id', 'TEXT'),
            ('title', 'TEXT'),
            ('location', 'TEXT'),
            ('formatted_experience_level', 'TEXT'),
            ('pay_period', 'TEXT'),
            ('currency', 'TEXT'),
            ('compensation_type', 'TEXT'),
            ('min_salary', 'NUMERIC'),
            ('med_salary', 'NUMERIC'),
            ('max_salary', 'NUMERIC'),
            ('annual_salary', 'NUMERIC'),
            ('salary_range', 'NUMERIC'),
        ],
        primary_key=('salary_id',),
        indexes=[('job_id',), ('title',)],
    ),
    TableSpec(
        name='salary_summary',
        columns=[
            ('title', 'TEXT'),
            ('num_postings', 'BIGINT'),
            ('avg_min_salary', 'NUMERIC'),
            ('avg_med_salary', 'NUMERIC'),
            ('avg_max_salary', 'NUMERIC'),
            ('avg_annual_salary', 'NUMERIC'),
        ],
        indexes=[('title',)],
    ),
    TableSpec(
        name='salary_by_experience',
        columns=[
            ('formatted_experience_level', 'TEXT'),
            ('postings', 'BIGINT'),
            ('avg_annual_salary', 'NUMERIC'),
        ],
    ),
    TableSpec(
        name='job_overview',
        columns=[
            ('job_id', 'TEXT'),
            ('title', 'TEXT'),
            ('company_name', 'TEXT'),
            ('location', 'TEXT'),
            ('remote_allowed', 'TEXT'),
            ('skills', 'TEXT[]'),
            ('industries', 'TEXT[]'),
            ('min_salary', 'NUMERIC'),
            ('med_salary', 'NUMERIC'),
            ('max_salary', 'NUMERIC'),
            ('annual_salary', 'NUMERIC'),
            ('original_listed_time', 'TEXT'),
        ],
        primary_key=('job_id',),
    ),
]


def build_view_statements(analytics_schema: str, clean_schema: str) -> list[sql.Composable]:
    """
    DDL for the analytics views.

    v_job_with_skills / v_job_with_industries aggregate names straight from
    the clean model; v_job_overview exposes the materialized job_overview.
    """
    def view(name: str) -> sql.Identifier:
        return sql.Identifier(analytics_schema, name)

    def clean(name: str) -> sql.Identifier:
        return sql.Identifier(clean_schema, name)

    return [
        sql.SQL("DROP VIEW IF EXISTS {} CASCADE").format(view('v_job_with_skills')),
        sql.SQL("""
            CREATE VIEW {view} AS
            SELECT
                j.job_id,
                j.title,
                j.company_id,
                COALESCE(
                    ARRAY_AGG(sk.skill_name ORDER BY sk.skill_name)
                        FILTER (WHERE sk.skill_name IS NOT NULL),
                    '{{}}'::TEXT[]
                ) AS skills
            FROM {jobs} j
            LEFT JOIN {job_skills} js ON js.job_id = j.job_id
            LEFT JOIN {skills} sk ON sk.skill_abr = js.skill_abr
            GROUP BY j.job_id, j.title, j.company_id
        """).format(
            view=view('v_job_with_skills'),
            jobs=clean('jobs'),
            job_skills=clean('job_skills'),
            skills=clean('skills'),
        ),
        sql.SQL("DROP VIEW IF EXISTS {} CASCADE").format(view('v_job_with_industries')),
        sql.SQL("""
            CREATE VIEW {view} AS
            SELECT
                j.job_id,
                j.title,
                COALESCE(
                    ARRAY_AGG(i.industry_name ORDER BY i.industry_name)
                        FILTER (WHERE i.industry_name IS NOT NULL),
                    '{{}}'::TEXT[]
                ) AS industries
            FROM {jobs} j
            LEFT JOIN {job_industries} ji ON ji.job_id = j.job_id
            LEFT JOIN {industries} i ON i.industry_id = ji.industry_id
            GROUP BY j.job_id, j.title
        """).format(
            view=view('v_job_with_industries'),
            jobs=clean('jobs'),
            job_industries=clean('job_industries'),
            industries=clean('industries'),
        ),
        sql.SQL("DROP VIEW IF EXISTS {} CASCADE").format(view('v_job_overview')),
        sql.SQL("CREATE VIEW {view} AS SELECT * FROM {table}").format(
            view=view('v_job_overview'),
            table=view('job_overview'),
        ),
    ]


class AnalyticsDB(WarehouseDB):
    """
    Database interface for the analytics service.

    This class provides methods to:
    - Fetch the clean model tables
    - Replace analytics tables and views atomically
    """

    def fetch_clean_tables(self, clean_schema: str) -> dict[str, list[dict[str, Any]]]:
        """
        Fetch the clean tables the aggregations depend on.

        Raises:
            DatabaseError: If a clean table is missing (normalizer not run)
        """
        specs = {spec.name: spec for spec in CLEAN_TABLE_SPECS}
        clean = {
            name: self.fetch_rows(clean_schema, name, specs[name].column_names)
            for name in CLEAN_INPUTS
        }
        logger.info(
            "Fetched clean tables",
            extra={'schema': clean_schema, 'row_counts': {t: len(r) for t, r in clean.items()}}
        )
        return clean

    def replace_analytics(
        self,
        analytics_schema: str,
        clean_schema: str,
        tables: dict[str, list[dict[str, Any]]]
    ) -> dict[str, int]:
        """
        Drop and rebuild all analytics tables and views in a single transaction.

        Returns:
            Mapping of table name to written row count

        Raises:
            DatabaseError: If the rebuild fails (previous objects stay intact)
        """
        return self.replace_tables(
            analytics_schema,
            [(spec, tables[spec.name]) for spec in ANALYTICS_TABLE_SPECS],
            post_statements=build_view_statements(analytics_schema, clean_schema),
        )
