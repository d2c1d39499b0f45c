"""
Fact and Link Builders (Job, links, benefits, salaries)

These builders run after the dimensions exist. Every output row must point at
rows that were actually built:

- A posting is kept only when its job_id is present AND its canonical
  company_id resolves to a built company (inner join semantics).
- Link rows are kept only when both endpoints exist; duplicates collapse.
- Salary rows are kept only when the job exists; several quotes per job
  are preserved and keyed by salary_id.

References that do not resolve are silently excluded. That is a policy, not
an error: downstream consumers see fewer rows than the source files hold.
"""

import logging
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from services.common.identifiers import normalize_company_id

from .dimensions import null_last_key

logger = logging.getLogger(__name__)

Coercer = Callable[..., Optional[Decimal]]

# Posting columns carried over as opaque text (timestamps included)
JOB_TEXT_COLUMNS = (
    'company_name', 'title', 'description', 'location', 'formatted_work_type',
    'work_type', 'formatted_experience_level', 'listed_time', 'original_listed_time',
    'remote_allowed', 'posting_domain', 'currency', 'compensation_type',
    'zip_code', 'fips',
)

# Raw posting column -> clean jobs column, coerced as a count
JOB_COUNT_COLUMNS = {'views': 'views', 'applies': 'applies'}

# Raw posting column -> clean jobs column, coerced as a salary
JOB_SALARY_COLUMNS = {
    'max_salary': 'max_salary_raw',
    'med_salary': 'med_salary_raw',
    'min_salary': 'min_salary_raw',
    'normalized_salary': 'normalized_salary',
}


class NormalizationError(Exception):
    """Raised when the clean model cannot be built from the raw tables."""
    pass


def _blank(value: Any) -> bool:
    return value is None or value == ''


def build_jobs(
    raw_postings: list[dict[str, Any]],
    companies: list[dict[str, Any]],
    coerce_count: Coercer,
    coerce_salary: Coercer
) -> list[dict[str, Any]]:
    """
    Build the job fact table from raw postings.

    Args:
        raw_postings: Rows of the raw postings table
        companies: Built company dimension
        coerce_count: Coercer for views/applies
        coerce_salary: Coercer for the salary figures

    Returns:
        One row per job_id, ordered by job_id

    Raises:
        NormalizationError: If two retained postings share a job_id
        CoercionError: If a numeric field is invalid under the strict policy
    """
    company_ids = {company['company_id'] for company in companies}
    jobs: dict[str, dict[str, Any]] = {}
    missing_id = 0
    unknown_company = 0

    for row in raw_postings:
        job_id = row.get('job_id')
        if _blank(job_id):
            missing_id += 1
            continue

        company_id = normalize_company_id(row.get('company_id'))
        if company_id not in company_ids:
            unknown_company += 1
            continue

        if job_id in jobs:
            raise NormalizationError(f"Duplicate job_id in postings: {job_id}")

        job = {'job_id': job_id, 'company_id': company_id}
        for column in JOB_TEXT_COLUMNS:
            job[column] = row.get(column)
        for raw_column, column in JOB_COUNT_COLUMNS.items():
            job[column] = coerce_count(row.get(raw_column), raw_column, job_id)
        for raw_column, column in JOB_SALARY_COLUMNS.items():
            job[column] = coerce_salary(row.get(raw_column), raw_column, job_id)

        jobs[job_id] = job

    logger.info(
        "Built job fact table",
        extra={
            'count': len(jobs),
            'dropped_missing_job_id': missing_id,
            'dropped_unknown_company': unknown_company,
        }
    )

    return [jobs[job_id] for job_id in sorted(jobs)]


def _distinct_rows(rows: Iterable[tuple], columns: tuple[str, ...]) -> list[dict[str, Any]]:
    """Deduplicate value tuples and return them as ordered row dictionaries."""
    return [dict(zip(columns, values)) for values in sorted(set(rows), key=null_last_key)]


def build_job_industries(
    raw_job_industries: list[dict[str, Any]],
    jobs: list[dict[str, Any]],
    industries: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Distinct job/industry links whose job and industry both exist."""
    job_ids = {job['job_id'] for job in jobs}
    industry_ids = {industry['industry_id'] for industry in industries}

    links = _distinct_rows(
        (
            (row.get('job_id'), row.get('industry_id'))
            for row in raw_job_industries
            if row.get('job_id') in job_ids and row.get('industry_id') in industry_ids
        ),
        ('job_id', 'industry_id'),
    )
    logger.info(
        "Built job_industries links",
        extra={'count': len(links), 'source_rows': len(raw_job_industries)}
    )
    return links


def build_job_skills(
    raw_job_skills: list[dict[str, Any]],
    jobs: list[dict[str, Any]],
    skills: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Distinct job/skill links whose job and skill both exist."""
    job_ids = {job['job_id'] for job in jobs}
    skill_abrs = {skill['skill_abr'] for skill in skills}

    links = _distinct_rows(
        (
            (row.get('job_id'), row.get('skill_abr'))
            for row in raw_job_skills
            if row.get('job_id') in job_ids and row.get('skill_abr') in skill_abrs
        ),
        ('job_id', 'skill_abr'),
    )
    logger.info(
        "Built job_skills links",
        extra={'count': len(links), 'source_rows': len(raw_job_skills)}
    )
    return links


def build_job_benefits(
    raw_benefits: list[dict[str, Any]],
    jobs: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Distinct benefit records (job_id, inferred, type) for existing jobs."""
    job_ids = {job['job_id'] for job in jobs}

    benefits = _distinct_rows(
        (
            (row.get('job_id'), row.get('inferred'), row.get('type'))
            for row in raw_benefits
            if row.get('job_id') in job_ids
        ),
        ('job_id', 'inferred', 'type'),
    )
    logger.info(
        "Built job_benefits",
        extra={'count': len(benefits), 'source_rows': len(raw_benefits)}
    )
    return benefits


def build_job_salaries(
    raw_salaries: list[dict[str, Any]],
    jobs: list[dict[str, Any]],
    coerce_salary: Coercer
) -> list[dict[str, Any]]:
    """
    Build the typed salary fact for existing jobs.

    Multiple salary quotes per job are preserved. Rows without a salary_id
    cannot be keyed and are dropped with a warning.

    Raises:
        NormalizationError: If two retained rows share a salary_id
        CoercionError: If a salary figure is invalid under the strict policy
    """
    job_ids = {job['job_id'] for job in jobs}
    salaries: dict[str, dict[str, Any]] = {}
    missing_id = 0

    for row in raw_salaries:
        job_id = row.get('job_id')
        if job_id not in job_ids:
            continue

        salary_id = row.get('salary_id')
        if _blank(salary_id):
            missing_id += 1
            continue

        if salary_id in salaries:
            raise NormalizationError(f"Duplicate salary_id in salaries: {salary_id}")

        salaries[salary_id] = {
            'salary_id': salary_id,
            'job_id': job_id,
            'max_salary': coerce_salary(row.get('max_salary'), 'max_salary', salary_id),
            'med_salary': coerce_salary(row.get('med_salary'), 'med_salary', salary_id),
            'min_salary': coerce_salary(row.get('min_salary'), 'min_salary', salary_id),
            'pay_period': row.get('pay_period'),
            'currency': row.get('currency'),
            'compensation_type': row.get('compensation_type'),
        }

    if missing_id:
        logger.warning(
            "Dropped salary rows without salary_id",
            extra={'count': missing_id}
        )

    logger.info("Built job_salaries", extra={'count': len(salaries)})
    return [salaries[salary_id] for salary_id in sorted(salaries)]


def build_company_links(
    raw_rows: list[dict[str, Any]],
    companies: list[dict[str, Any]],
    value_column: str
) -> list[dict[str, Any]]:
    """
    Distinct (company_id, value) rows for existing companies.

    Used for company industries and company specialities; company ids are
    canonicalized the same way as in the company dimension.
    """
    company_ids = {company['company_id'] for company in companies}

    pairs = []
    for row in raw_rows:
        company_id = normalize_company_id(row.get('company_id'))
        value = row.get(value_column)
        if company_id in company_ids and value is not None:
            pairs.append((company_id, value))

    links = _distinct_rows(pairs, ('company_id', value_column))
    logger.info(
        f"Built company {value_column} links",
        extra={'count': len(links), 'source_rows': len(raw_rows)}
    )
    return links
