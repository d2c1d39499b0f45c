"""
Source File Contract for the Raw Loader

Each CSV export of the job-postings dataset maps to exactly one untyped raw
table. The column list below is the fixed contract: the file header must
match it exactly (same names, same order), otherwise the load is aborted
before any table is touched.
"""

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class RawLoadError(Exception):
    """Raised when a source file is missing or structurally invalid."""
    pass


@dataclass(frozen=True)
class SourceFile:
    """One delimited source file and the raw table it loads into."""

    table: str
    relative_path: str
    columns: tuple[str, ...]


SOURCE_FILES: tuple[SourceFile, ...] = (
    SourceFile(
        table='data_companies_companies_raw',
        relative_path='companies/companies.csv',
        columns=(
            'company_id', 'name', 'description', 'company_size', 'state',
            'country', 'city', 'zip_code', 'address', 'url',
        ),
    ),
    SourceFile(
        table='data_companies_company_industries_raw',
        relative_path='companies/company_industries.csv',
        columns=('company_id', 'industry'),
    ),
    SourceFile(
        table='data_companies_company_specialities_raw',
        relative_path='companies/company_specialities.csv',
        columns=('company_id', 'speciality'),
    ),
    SourceFile(
        table='data_companies_employee_counts_raw',
        relative_path='companies/employee_counts.csv',
        columns=('company_id', 'employee_count', 'follower_count', 'time_recorded'),
    ),
    SourceFile(
        table='data_jobs_benefits_raw',
        relative_path='jobs/benefits.csv',
        columns=('job_id', 'inferred', 'type'),
    ),
    SourceFile(
        table='data_jobs_job_industries_raw',
        relative_path='jobs/job_industries.csv',
        columns=('job_id', 'industry_id'),
    ),
    SourceFile(
        table='data_jobs_job_skills_raw',
        relative_path='jobs/job_skills.csv',
        columns=('job_id', 'skill_abr'),
    ),
    SourceFile(
        table='data_jobs_salaries_raw',
        relative_path='jobs/salaries.csv',
        columns=(
            'salary_id', 'job_id', 'max_salary', 'med_salary', 'min_salary',
            'pay_period', 'currency', 'compensation_type',
        ),
    ),
    SourceFile(
        table='data_mappings_industries_raw',
        relative_path='mappings/industries.csv',
        columns=('industry_id', 'industry_name'),
    ),
    SourceFile(
        table='data_mappings_skills_raw',
        relative_path='mappings/skills.csv',
        columns=('skill_abr', 'skill_name'),
    ),
    SourceFile(
        table='data_postings_raw',
        relative_path='postings.csv',
        columns=(
            'job_id', 'company_name', 'title', 'description', 'max_salary',
            'pay_period', 'location', 'company_id', 'views', 'med_salary',
            'min_salary', 'formatted_work_type', 'applies', 'original_listed_time',
            'remote_allowed', 'job_posting_url', 'application_url', 'application_type',
            'expiry', 'closed_time', 'formatted_experience_level', 'skills_desc',
            'listed_time', 'posting_domain', 'sponsored', 'work_type', 'currency',
            'compensation_type', 'normalized_salary', 'zip_code', 'fips',
        ),
    ),
)

SOURCES_BY_TABLE: dict[str, SourceFile] = {source.table: source for source in SOURCE_FILES}


def read_header(path: Path) -> list[str]:
    """
    Read the header row of a CSV file.

    A UTF-8 byte order mark is tolerated.

    Raises:
        RawLoadError: If the file is empty or not valid CSV
    """
    try:
        with open(path, newline='', encoding='utf-8-sig') as f:
            header = next(csv.reader(f), None)
    except (csv.Error, UnicodeDecodeError) as e:
        raise RawLoadError(f"Unreadable header in {path}: {e}") from e

    if not header:
        raise RawLoadError(f"Missing header row in {path}")

    return [column.strip() for column in header]


def validate_source_files(data_dir: Union[str, Path]) -> dict[str, Path]:
    """
    Check that every source file exists and carries the contract header.

    All files are checked before anything is loaded so that a single bad file
    aborts the run with no table rebuilt.

    Args:
        data_dir: Directory holding the dataset export

    Returns:
        Mapping of raw table name to resolved file path

    Raises:
        RawLoadError: Listing every missing file or header mismatch found
    """
    base = Path(data_dir)
    resolved: dict[str, Path] = {}
    problems: list[str] = []

    for source in SOURCE_FILES:
        path = base / source.relative_path
        if not path.is_file():
            problems.append(f"missing file {path}")
            continue

        try:
            header = read_header(path)
        except RawLoadError as e:
            problems.append(str(e))
            continue

        if tuple(header) != source.columns:
            problems.append(
                f"header mismatch in {path}: expected {list(source.columns)}, got {header}"
            )
            continue

        resolved[source.table] = path

    if problems:
        logger.error(
            "Source file validation failed",
            extra={'data_dir': str(base), 'problems': problems}
        )
        raise RawLoadError("Source validation failed: " + "; ".join(problems))

    logger.info(
        "Source files validated",
        extra={'data_dir': str(base), 'file_count': len(resolved)}
    )
    return resolved
