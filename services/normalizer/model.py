"""
Clean Model Assembly

Builds every clean table from the raw tables in dependency order:
dimensions first, then the job fact, then links and salaries. The result is
a pure function of the raw rows and the configuration.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from services.common.coercion import CoercionError, NumericCoercer
from services.common.config_loader import CoercionPolicy, MERGE_FIRST_NON_NULL

from .dimensions import build_companies, build_industries, build_skills
from .facts import (
    NormalizationError,
    build_company_links,
    build_job_benefits,
    build_job_industries,
    build_job_salaries,
    build_job_skills,
    build_jobs,
)

logger = logging.getLogger(__name__)


@dataclass
class CleanModel:
    """Clean tables keyed by table name, plus lenient-coercion counters."""

    tables: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    nulled_counts: int = 0
    nulled_salaries: int = 0


def build_clean_model(
    raw: dict[str, list[dict[str, Any]]],
    coercion: CoercionPolicy,
    merge_policy: str = MERGE_FIRST_NON_NULL
) -> CleanModel:
    """
    Build the complete clean model from raw table rows.

    Args:
        raw: Raw rows keyed by raw table name
        coercion: Numeric coercion policy per field group
        merge_policy: Dimension merge policy

    Returns:
        CleanModel with one entry per clean table

    Raises:
        NormalizationError: On duplicate fact keys or invalid numeric text
                            under the strict policy
    """
    coerce_count = NumericCoercer(coercion.counts)
    coerce_salary = NumericCoercer(coercion.salaries, allow_negative=False)

    try:
        companies = build_companies(
            raw['data_companies_companies_raw'],
            raw['data_companies_employee_counts_raw'],
            coerce_count,
            merge_policy,
        )
        industries = build_industries(raw['data_mappings_industries_raw'], merge_policy)
        skills = build_skills(raw['data_mappings_skills_raw'], merge_policy)

        jobs = build_jobs(raw['data_postings_raw'], companies, coerce_count, coerce_salary)

        tables = {
            'industries': industries,
            'skills': skills,
            'companies': companies,
            'jobs': jobs,
            'job_industries': build_job_industries(
                raw['data_jobs_job_industries_raw'], jobs, industries
            ),
            'job_skills': build_job_skills(raw['data_jobs_job_skills_raw'], jobs, skills),
            'job_benefits': build_job_benefits(raw['data_jobs_benefits_raw'], jobs),
            'job_salaries': build_job_salaries(
                raw['data_jobs_salaries_raw'], jobs, coerce_salary
            ),
            'company_industries': build_company_links(
                raw['data_companies_company_industries_raw'], companies, 'industry'
            ),
            'company_specialities': build_company_links(
                raw['data_companies_company_specialities_raw'], companies, 'speciality'
            ),
        }

    except CoercionError as e:
        raise NormalizationError(f"Numeric coercion failed: {e}") from e

    if coerce_count.nulled_count or coerce_salary.nulled_count:
        logger.warning(
            "Invalid numeric values were coerced to NULL",
            extra={
                'counts_nulled': coerce_count.nulled_count,
                'salaries_nulled': coerce_salary.nulled_count,
            }
        )

    return CleanModel(
        tables=tables,
        nulled_counts=coerce_count.nulled_count,
        nulled_salaries=coerce_salary.nulled_count,
    )
