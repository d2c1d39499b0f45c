"""
Dimension Builders (Company, Industry, Skill)

Raw mapping and company files can contain several rows for the same natural
key. The builders here produce exactly one row per key.

Merge policies:
- first_non_null (default): each column is resolved independently to the
  smallest non-null value among the key's rows. The choice does not depend
  on the order rows were read in, so rebuilds are reproducible. Note that
  one output row may combine attributes coming from different source rows;
  that is a known data-quality hazard kept for compatibility.
- most_complete: keep the single source row with the most non-null columns
  (ties go to the smallest row values), so attributes are never mixed.

Rows whose key is null are dropped; they cannot be deduplicated safely.
"""

import logging
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from services.common.config_loader import MERGE_FIRST_NON_NULL, MERGE_MOST_COMPLETE
from services.common.identifiers import normalize_company_id

logger = logging.getLogger(__name__)

COMPANY_ATTRIBUTES = (
    'company_name', 'description', 'company_size', 'state', 'country',
    'city', 'zip_code', 'address', 'url',
)

Coercer = Callable[..., Optional[Decimal]]


def null_last_key(values: Sequence[Any]) -> tuple:
    """Sort key over a sequence of nullable values, with None ordered last."""
    return tuple((value is None, value if value is not None else '') for value in values)


def merge_duplicates(
    rows: list[dict[str, Any]],
    key: str,
    columns: Sequence[str],
    policy: str = MERGE_FIRST_NON_NULL
) -> list[dict[str, Any]]:
    """
    Collapse rows sharing a natural key into one row per key.

    Args:
        rows: Input rows (key already normalized)
        key: Natural key column
        columns: Non-key columns to carry over
        policy: 'first_non_null' or 'most_complete'

    Returns:
        One row per non-null key, ordered by key

    Raises:
        ValueError: If the policy is unknown
    """
    if policy not in (MERGE_FIRST_NON_NULL, MERGE_MOST_COMPLETE):
        raise ValueError(f"Unknown merge policy: {policy}")

    groups: dict[Any, list[dict[str, Any]]] = {}
    null_keys = 0
    for row in rows:
        value = row.get(key)
        if value is None:
            null_keys += 1
            continue
        groups.setdefault(value, []).append(row)

    merged = []
    for value in sorted(groups):
        group = groups[value]
        record = {key: value}

        if policy == MERGE_FIRST_NON_NULL:
            for column in columns:
                candidates = [r.get(column) for r in group if r.get(column) is not None]
                record[column] = min(candidates) if candidates else None
        else:
            best = min(
                group,
                key=lambda r: (
                    -sum(r.get(c) is not None for c in columns),
                    null_last_key([r.get(c) for c in columns]),
                )
            )
            for column in columns:
                record[column] = best.get(column)

        merged.append(record)

    duplicates = len(rows) - null_keys - len(merged)
    if null_keys or duplicates:
        logger.info(
            "Merged dimension rows",
            extra={
                'key': key,
                'input_rows': len(rows),
                'output_rows': len(merged),
                'null_keys_dropped': null_keys,
                'duplicates_merged': duplicates,
                'policy': policy,
            }
        )

    return merged


def _latest_employee_counts(
    raw_employee_counts: list[dict[str, Any]],
    coerce_count: Coercer
) -> dict[str, dict[str, Optional[Decimal]]]:
    """
    Pick the most recently recorded employee/follower counts per company.

    time_recorded is opaque text and is compared as text, never parsed.
    """
    latest: dict[str, tuple] = {}

    for row in raw_employee_counts:
        company_id = normalize_company_id(row.get('company_id'))
        if company_id is None:
            continue

        recorded = row.get('time_recorded')
        employees = coerce_count(row.get('employee_count'), 'employee_count', company_id)
        followers = coerce_count(row.get('follower_count'), 'follower_count', company_id)

        # Unknown values rank below any known value
        rank = (
            (recorded is not None, recorded if recorded is not None else ''),
        ) + tuple(
            (v is not None, v if v is not None else Decimal(0))
            for v in (employees, followers)
        )
        if company_id not in latest or rank > latest[company_id][0]:
            latest[company_id] = (rank, employees, followers)

    return {
        company_id: {'employee_count': employees, 'follower_count': followers}
        for company_id, (_, employees, followers) in latest.items()
    }


def build_companies(
    raw_companies: list[dict[str, Any]],
    raw_employee_counts: list[dict[str, Any]],
    coerce_count: Coercer,
    policy: str = MERGE_FIRST_NON_NULL
) -> list[dict[str, Any]]:
    """
    Build the company dimension: one row per canonical company_id.

    Company ids are canonicalized first, so '2774458' and '2774458.0'
    collapse into the same company. The latest employee/follower counts are
    attached when the employee-counts source has a row for the company.
    """
    canonical = [
        {
            'company_id': normalize_company_id(row.get('company_id')),
            'company_name': row.get('name'),
            'description': row.get('description'),
            'company_size': row.get('company_size'),
            'state': row.get('state'),
            'country': row.get('country'),
            'city': row.get('city'),
            'zip_code': row.get('zip_code'),
            'address': row.get('address'),
            'url': row.get('url'),
        }
        for row in raw_companies
    ]

    companies = merge_duplicates(canonical, 'company_id', COMPANY_ATTRIBUTES, policy)

    counts = _latest_employee_counts(raw_employee_counts, coerce_count)
    for company in companies:
        latest = counts.get(company['company_id'], {})
        company['employee_count'] = latest.get('employee_count')
        company['follower_count'] = latest.get('follower_count')

    logger.info("Built company dimension", extra={'count': len(companies)})
    return companies


def build_industries(
    raw_industries: list[dict[str, Any]],
    policy: str = MERGE_FIRST_NON_NULL
) -> list[dict[str, Any]]:
    """Build the industry dimension: one row per industry_id."""
    industries = merge_duplicates(raw_industries, 'industry_id', ('industry_name',), policy)
    logger.info("Built industry dimension", extra={'count': len(industries)})
    return industries


def build_skills(
    raw_skills: list[dict[str, Any]],
    policy: str = MERGE_FIRST_NON_NULL
) -> list[dict[str, Any]]:
    """Build the skill dimension: one row per skill_abr."""
    skills = merge_duplicates(raw_skills, 'skill_abr', ('skill_name',), policy)
    logger.info("Built skill dimension", extra={'count': len(skills)})
    return skills
