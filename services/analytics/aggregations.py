"""
Analytics Aggregations

Pure functions computing the analytics tables from clean model rows:
- Skill and industry demand (link counts per dimension key)
- Company activity (job count per company, zero-job companies included)
- Row-level salary data with an annualized figure and range
- Salary summaries per job title and per experience level
- A denormalized job overview with sorted skill and industry names

Every function returns rows in a fixed order so two builds over the same clean
tables produce identical output.
"""

import logging
from collections import Counter
from decimal import Decimal
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 40 * 52
MONTHS_PER_YEAR = 12


def annualize(med_salary: Optional[Decimal], pay_period: Optional[str]) -> Optional[Decimal]:
    """
    Approximate a yearly figure from a median salary quote.

    HOURLY quotes are multiplied by 2080 (40h x 52 weeks), MONTHLY by 12.
    Any other period, including unknown ones, is assumed to be annual already.

    Examples:
        >>> annualize(Decimal('50'), 'HOURLY')
        Decimal('104000')
        >>> annualize(Decimal('80000'), 'WEEKLY')
        Decimal('80000')
    """
    if med_salary is None:
        return None

    # Exact match only; 'hourly' or ' HOURLY' count as annual
    if pay_period == 'HOURLY':
        return med_salary * HOURS_PER_YEAR
    if pay_period == 'MONTHLY':
        return med_salary * MONTHS_PER_YEAR
    return med_salary


def salary_range(
    min_salary: Optional[Decimal],
    max_salary: Optional[Decimal]
) -> Optional[Decimal]:
    """Spread between max and min salary, or None when either is unknown."""
    if min_salary is None or max_salary is None:
        return None
    return max_salary - min_salary


def _average(values: Iterable[Optional[Decimal]]) -> Optional[Decimal]:
    known = [value for value in values if value is not None]
    if not known:
        return None
    return sum(known, Decimal(0)) / Decimal(len(known))


def _desc_nulls_last(value: Optional[Decimal]) -> tuple:
    return (value is None, -value if value is not None else Decimal(0))


def _asc_nulls_last(value: Optional[str]) -> tuple:
    return (value is None, value if value is not None else '')


def _demand(
    links: list[dict[str, Any]],
    dimension: list[dict[str, Any]],
    key: str,
    name_column: str
) -> list[dict[str, Any]]:
    names = {row[key]: row.get(name_column) for row in dimension}
    counts = Counter(link[key] for link in links)

    rows = [
        {key: value, name_column: names.get(value), 'job_count': count}
        for value, count in counts.items()
    ]
    rows.sort(key=lambda r: (-r['job_count'], _asc_nulls_last(r[key])))
    return rows


def skill_demand(
    job_skills: list[dict[str, Any]],
    skills: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """
    Number of job/skill links per skill_abr.

    Skills without a name in the dimension still appear, with skill_name None.
    """
    return _demand(job_skills, skills, 'skill_abr', 'skill_name')


def industry_demand(
    job_industries: list[dict[str, Any]],
    industries: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Number of job/industry links per industry_id (name None when unknown)."""
    return _demand(job_industries, industries, 'industry_id', 'industry_name')


def company_activity(
    companies: list[dict[str, Any]],
    jobs: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Job postings per company, including companies with no postings."""
    counts = Counter(job['company_id'] for job in jobs)

    rows = [
        {
            'company_id': company['company_id'],
            'company_name': company.get('company_name'),
            'job_postings': counts.get(company['company_id'], 0),
        }
        for company in companies
    ]
    rows.sort(key=lambda r: (-r['job_postings'], r['company_id']))
    return rows


def salary_clean(
    job_salaries: list[dict[str, Any]],
    jobs: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """
    One row per salary record joined to its job, with annual_salary and salary_range.
    """
    jobs_by_id = {job['job_id']: job for job in jobs}

    rows = []
    for salary in job_salaries:
        job = jobs_by_id.get(salary['job_id'])
        if job is None:
            continue

        rows.append({
            'salary_id': salary['salary_id'],
            'job_id': job['job_id'],
            'title': job.get('title'),
            'location': job.get('location'),
            'formatted_experience_level': job.get('formatted_experience_level'),
            'pay_period': salary.get('pay_period'),
            'currency': salary.get('currency'),
            'compensation_type': salary.get('compensation_type'),
            'min_salary': salary.get('min_salary'),
            'med_salary': salary.get('med_salary'),
            'max_salary': salary.get('max_salary'),
            'annual_salary': annualize(salary.get('med_salary'), salary.get('pay_period')),
            'salary_range': salary_range(salary.get('min_salary'), salary.get('max_salary')),
        })

    rows.sort(key=lambda r: (r['job_id'], r['salary_id']))
    return rows


def salary_summary(salary_rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Average salary figures per job title over records with a known median.

    Ordered by avg_annual_salary descending (None last), then title ascending.
    """
    groups: dict[Optional[str], list[dict[str, Any]]] = {}
    for row in salary_rows:
        if row.get('med_salary') is None:
            continue
        groups.setdefault(row.get('title'), []).append(row)

    summary = [
        {
            'title': title,
            'num_postings': len(group),
            'avg_min_salary': _average(r.get('min_salary') for r in group),
            'avg_med_salary': _average(r.get('med_salary') for r in group),
            'avg_max_salary': _average(r.get('max_salary') for r in group),
            'avg_annual_salary': _average(r.get('annual_salary') for r in group),
        }
        for title, group in groups.items()
    ]
    summary.sort(
        key=lambda r: (_desc_nulls_last(r['avg_annual_salary']), _asc_nulls_last(r['title']))
    )
    return summary


def salary_by_experience(salary_rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Salary record count and average annual salary per experience level."""
    groups: dict[Optional[str], list[dict[str, Any]]] = {}
    for row in salary_rows:
        groups.setdefault(row.get('formatted_experience_level'), []).append(row)

    rows = [
        {
            'formatted_experience_level': level,
            'postings': len(group),
            'avg_annual_salary': _average(r.get('annual_salary') for r in group),
        }
        for level, group in groups.items()
    ]
    rows.sort(
        key=lambda r: (
            _desc_nulls_last(r['avg_annual_salary']),
            _asc_nulls_last(r['formatted_experience_level']),
        )
    )
    return rows


def _names_per_job(
    links: list[dict[str, Any]],
    dimension: list[dict[str, Any]],
    key: str,
    name_column: str
) -> dict[str, list[str]]:
    names = {row[key]: row.get(name_column) for row in dimension}
    per_job: dict[str, list[str]] = {}
    for link in links:
        name = names.get(link[key])
        if name is not None:
            per_job.setdefault(link['job_id'], []).append(name)
    return {job_id: sorted(values) for job_id, values in per_job.items()}


def job_overview(
    jobs: list[dict[str, Any]],
    companies: list[dict[str, Any]],
    job_skills: list[dict[str, Any]],
    skills: list[dict[str, Any]],
    job_industries: list[dict[str, Any]],
    industries: list[dict[str, Any]],
    salary_rows: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """
    Denormalized job rows for BI: company name, skill names, industry names, salary.

    Exactly one row per job. Salary columns come from the job's salary record
    with the smallest salary_id, or are null when it has none. Missing skills
    or industries render as an empty list.
    """
    company_names = {c['company_id']: c.get('company_name') for c in companies}
    skills_per_job = _names_per_job(job_skills, skills, 'skill_abr', 'skill_name')
    industries_per_job = _names_per_job(
        job_industries, industries, 'industry_id', 'industry_name'
    )

    salary_per_job: dict[str, dict[str, Any]] = {}
    for row in salary_rows:
        current = salary_per_job.get(row['job_id'])
        if current is None or row['salary_id'] < current['salary_id']:
            salary_per_job[row['job_id']] = row

    overview = []
    for job in sorted(jobs, key=lambda j: j['job_id']):
        salary = salary_per_job.get(job['job_id'], {})
        overview.append({
            'job_id': job['job_id'],
            'title': job.get('title'),
            'company_name': company_names.get(job['company_id']),
            'location': job.get('location'),
            'remote_allowed': job.get('remote_allowed'),
            'skills': list(skills_per_job.get(job['job_id'], [])),
            'industries': list(industries_per_job.get(job['job_id'], [])),
            'original_listed_time': job.get('original_listed_time'),
            'min_salary': salary.get('min_salary'),
            'med_salary': salary.get('med_salary'),
            'max_salary': salary.get('max_salary'),
            'annual_salary': salary.get('annual_salary'),
        })

    return overview


def build_analytics(clean: dict[str, list[dict[str, Any]]]) -> dict[str, list[dict[str, Any]]]:
    """
    Compute every analytics table from clean model rows.

    Args:
        clean: Clean rows keyed by clean table name

    Returns:
        Analytics rows keyed by analytics table name
    """
    salaries = salary_clean(clean['job_salaries'], clean['jobs'])

    tables = {
        'skill_demand': skill_demand(clean['job_skills'], clean['skills']),
        'industry_demand': industry_demand(clean['job_industries'], clean['industries']),
        'company_activity': company_activity(clean['companies'], clean['jobs']),
        'salary_clean': salaries,
        'salary_summary': salary_summary(salaries),
        'salary_by_experience': salary_by_experience(salaries),
        'job_overview': job_overview(
            clean['jobs'],
            clean['companies'],
            clean['job_skills'],
            clean['skills'],
            clean['job_industries'],
            clean['industries'],
            salaries,
        ),
    }

    logger.info(
        "Computed analytics tables",
        extra={'row_counts': {name: len(rows) for name, rows in tables.items()}}
    )
    return tables
