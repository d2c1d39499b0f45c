"""
Database Operations for the Normalizer Service

This module handles all database interactions for the normalizer:
- Reading every raw staging table loaded by the raw loader
- Rebuilding the clean relational model (dimensions, facts, links)
- Declaring the clean table contracts (columns, keys, indexes)

All clean tables are replaced in one transaction, so a failed build leaves
the previous clean model untouched.
"""

import logging
from typing import Any

from services.common.database import ForeignKey, TableSpec, WarehouseDB
from services.raw_loader.sources import SOURCE_FILES

logger = logging.getLogger(__name__)


# Clean tables in dependency order (referenced tables first)
CLEAN_TABLE_SPECS: list[TableSpec] = [
    TableSpec(
        name='industries',
        columns=[('industry_id', 'TEXT'), ('industry_name', 'TEXT')],
        primary_key=('industry_id',),
    ),
    TableSpec(
        name='skills',
        columns=[('skill_abr', 'TEXT'), ('skill_name', 'TEXT')],
        primary_key=('skill_abr',),
    ),
    TableSpec(
        name='companies',
        columns=[
            ('company_id', 'TEXT'),
            ('company_name', 'TEXT'),
            ('description', 'TEXT'),
            ('company_size', 'TEXT'),
            ('state', 'TEXT'),
            ('country', 'TEXT'),
            ('city', 'TEXT'),
            ('zip_code', 'TEXT'),
            ('address', 'TEXT'),
            ('url', 'TEXT'),
            ('employee_count', 'NUMERIC'),
            ('follower_count', 'NUMERIC'),
        ],
        primary_key=('company_id',),
        indexes=[('country', 'city')],
    ),
    TableSpec(
        name='jobs',
        columns=[
            ('job_id', 'TEXT'),
            ('company_id', 'TEXT'),
            ('company_name', 'TEXT'),
            ('title', 'TEXT'),
            ('description', 'TEXT'),
            ('location', 'TEXT'),
            ('formatted_work_type', 'TEXT'),
            ('work_type', 'TEXT'),
            ('formatted_experience_level', 'TEXT'),
            ('listed_time', 'TEXT'),
            ('original_listed_time', 'TEXT'),
            ('remote_allowed', 'TEXT'),
            ('views', 'NUMERIC'),
            ('applies', 'NUMERIC'),
            ('posting_domain', 'TEXT'),
            ('currency', 'TEXT'),
            ('compensation_type', 'TEXT'),
            ('max_salary_raw', 'NUMERIC'),
            ('med_salary_raw', 'NUMERIC'),
            ('min_salary_raw', 'NUMERIC'),
            ('normalized_salary', 'NUMERIC'),
            ('zip_code', 'TEXT'),
            ('fips', 'TEXT'),
        ],
        primary_key=('job_id',),
        foreign_keys=[ForeignKey(('company_id',), 'companies', ('company_id',))],
        indexes=[('company_id',), ('title',), ('location',), ('remote_allowed',)],
    ),
    TableSpec(
        name='job_industries',
        columns=[('job_id', 'TEXT'), ('industry_id', 'TEXT')],
        foreign_keys=[
            ForeignKey(('job_id',), 'jobs', ('job_id',)),
            ForeignKey(('industry_id',), 'industries', ('industry_id',)),
        ],
        indexes=[('job_id',), ('industry_id',)],
    ),
    TableSpec(
        name='job_skills',
        columns=[('job_id', 'TEXT'), ('skill_abr', 'TEXT')],
        foreign_keys=[
            ForeignKey(('job_id',), 'jobs', ('job_id',)),
            ForeignKey(('skill_abr',), 'skills', ('skill_abr',)),
        ],
        indexes=[('job_id',), ('skill_abr',)],
    ),
    TableSpec(
        name='job_benefits',
        columns=[('job_id', 'TEXT'), ('inferred', 'TEXT'), ('type', 'TEXT')],
        foreign_keys=[ForeignKey(('job_id',), 'jobs', ('job_id',))],
        indexes=[('job_id',)],
    ),
    TableSpec(
        name='job_salaries',
        columns=[
            ('salary_id', 'TEXT'),
            ('job_id', 'TEXT'),
            ('max_salary', 'NUMERIC'),
            ('med_salary', 'NUMERIC'),
            ('min_salary', 'NUMERIC'),
            ('pay_period', 'TEXT'),
            ('currency', 'TEXT'),
            ('compensation_type', 'TEXT'),
        ],
        primary_key=('salary_id',),
        foreign_keys=[ForeignKey(('job_id',), 'jobs', ('job_id',))],
        indexes=[('job_id',)],
    ),
    TableSpec(
        name='company_industries',
        columns=[('company_id', 'TEXT'), ('industry', 'TEXT')],
        foreign_keys=[ForeignKey(('company_id',), 'companies', ('company_id',))],
        indexes=[('company_id',)],
    ),
    TableSpec(
        name='company_specialities',
        columns=[('company_id', 'TEXT'), ('speciality', 'TEXT')],
        foreign_keys=[ForeignKey(('company_id',), 'companies', ('company_id',))],
        indexes=[('company_id',)],
    ),
]


class NormalizerDB(WarehouseDB):
    """
    Database interface for the normalizer service.

    This class provides methods to:
    - Fetch all raw staging tables
    - Replace the clean model tables atomically
    """

    def fetch_raw_tables(self, raw_schema: str) -> dict[str, list[dict[str, Any]]]:
        """
        Fetch every raw table defined by the source file contract.

        Args:
            raw_schema: Schema holding the raw tables

        Returns:
            Raw rows keyed by raw table name

        Raises:
            DatabaseError: If a raw table is missing or unreadable
        """
        raw = {
            source.table: self.fetch_rows(raw_schema, source.table, source.columns)
            for source in SOURCE_FILES
        }
        logger.info(
            "Fetched raw tables",
            extra={'schema': raw_schema, 'row_counts': {t: len(r) for t, r in raw.items()}}
        )
        return raw

    def replace_clean_model(
        self,
        clean_schema: str,
        tables: dict[str, list[dict[str, Any]]]
    ) -> dict[str, int]:
        """
        Drop and rebuild all clean tables in a single transaction.

        Args:
            clean_schema: Target schema for the clean model
            tables: Clean rows keyed by clean table name

        Returns:
            Mapping of table name to written row count

        Raises:
            DatabaseError: If the rebuild fails (previous tables stay intact)
        """
        return self.replace_tables(
            clean_schema,
            [(spec, tables[spec.name]) for spec in CLEAN_TABLE_SPECS],
        )
