"""
Unit Tests for the Normalizer (clean model build)

These tests validate the clean-model builders in isolation, without
requiring a database connection.

Test Organization:
- TestMergeDuplicates: per-column and most-complete dimension merges
- TestDimensions: company/industry/skill dimensions
- TestJobs: job fact join, coercion and duplicate handling
- TestLinksAndSalaries: link tables, benefits, salaries, company links
- TestCleanModel: whole-model invariants
"""

import random
from decimal import Decimal

import pytest

from services.common.coercion import LENIENT, STRICT, CoercionError, NumericCoercer
from services.common.config_loader import (
    MERGE_FIRST_NON_NULL,
    MERGE_MOST_COMPLETE,
    CoercionPolicy,
)
from services.normalizer.dimensions import (
    build_companies,
    build_industries,
    build_skills,
    merge_duplicates,
)
from services.normalizer.facts import (
    NormalizationError,
    build_company_links,
    build_job_benefits,
    build_job_industries,
    build_job_salaries,
    build_job_skills,
    build_jobs,
)
from services.normalizer.model import build_clean_model

from tests.conftest import make_raw_row


@pytest.fixture
def coerce_count():
    return NumericCoercer(STRICT)


@pytest.fixture
def coerce_salary():
    return NumericCoercer(STRICT, allow_negative=False)


# ============================================================================
# Dimension merge
# ============================================================================

class TestMergeDuplicates:
    """Tests for merge_duplicates"""

    @pytest.fixture
    def rows(self):
        return [
            {'id': 'a', 'name': 'Zeta', 'city': None, 'url': 'https://z.example'},
            {'id': 'a', 'name': 'Alpha', 'city': 'Paris', 'url': None},
            {'id': 'b', 'name': None, 'city': None, 'url': None},
            {'id': None, 'name': 'dropped', 'city': 'x', 'url': 'y'},
        ]

    def test_first_non_null_merges_per_column(self, rows):
        """Each column resolves independently, so values may come from different rows"""
        merged = merge_duplicates(rows, 'id', ('name', 'city', 'url'), MERGE_FIRST_NON_NULL)

        assert merged == [
            {'id': 'a', 'name': 'Alpha', 'city': 'Paris', 'url': 'https://z.example'},
            {'id': 'b', 'name': None, 'city': None, 'url': None},
        ]

    def test_most_complete_keeps_one_source_row(self, rows):
        rows.append({'id': 'a', 'name': 'Beta', 'city': 'Rome', 'url': 'https://b.example'})

        merged = merge_duplicates(rows, 'id', ('name', 'city', 'url'), MERGE_MOST_COMPLETE)

        assert merged[0] == {'id': 'a', 'name': 'Beta', 'city': 'Rome', 'url': 'https://b.example'}

    def test_most_complete_tie_goes_to_smallest_values(self, rows):
        merged = merge_duplicates(rows, 'id', ('name', 'city', 'url'), MERGE_MOST_COMPLETE)

        # Both 'a' rows have two populated columns; 'Alpha' sorts first
        assert merged[0] == {'id': 'a', 'name': 'Alpha', 'city': 'Paris', 'url': None}

    @pytest.mark.parametrize("policy", [MERGE_FIRST_NON_NULL, MERGE_MOST_COMPLETE])
    def test_independent_of_input_order(self, rows, policy):
        shuffled = list(rows)
        random.Random(7).shuffle(shuffled)

        assert (merge_duplicates(rows, 'id', ('name', 'city', 'url'), policy)
                == merge_duplicates(shuffled, 'id', ('name', 'city', 'url'), policy))

    def test_unknown_policy(self, rows):
        with pytest.raises(ValueError):
            merge_duplicates(rows, 'id', ('name',), 'newest')


class TestDimensions:
    """Tests for the company, industry and skill dimensions"""

    def test_company_ids_collapse(self, raw_tables, coerce_count):
        """'2774458' and '2774458.0' become one company row"""
        companies = build_companies(
            raw_tables['data_companies_companies_raw'],
            raw_tables['data_companies_employee_counts_raw'],
            coerce_count,
        )

        ids = [c['company_id'] for c in companies]
        assert ids == ['1016', '2774458', '55']

        acme = companies[1]
        assert acme['company_name'] == 'Acme Corp'
        assert acme['description'] == 'Builds anvils'
        assert acme['company_size'] == '5'
        assert acme['city'] == 'Austin'

    def test_latest_employee_counts(self, raw_tables, coerce_count):
        companies = build_companies(
            raw_tables['data_companies_companies_raw'],
            raw_tables['data_companies_employee_counts_raw'],
            coerce_count,
        )
        by_id = {c['company_id']: c for c in companies}

        assert by_id['2774458']['employee_count'] == Decimal('1300')
        assert by_id['2774458']['follower_count'] == Decimal('5100')
        assert by_id['1016']['employee_count'] == Decimal('40')
        assert by_id['55']['employee_count'] is None
        assert by_id['55']['follower_count'] is None

    def test_employee_counts_reject_bad_numbers_when_strict(self, coerce_count):
        counts = [make_raw_row('data_companies_employee_counts_raw',
                               company_id='1', employee_count='lots',
                               time_recorded='1712000000')]

        with pytest.raises(CoercionError):
            build_companies([], counts, coerce_count)

    def test_time_recorded_is_opaque_text(self, coerce_count):
        """Timestamps are compared as text, so any format is accepted"""
        companies = [make_raw_row('data_companies_companies_raw', company_id='1', name='Co')]
        counts = [
            make_raw_row('data_companies_employee_counts_raw', company_id='1',
                         employee_count='10', follower_count='1',
                         time_recorded='2024-04-01 10:00:00'),
            make_raw_row('data_companies_employee_counts_raw', company_id='1.0',
                         employee_count='20', follower_count='2',
                         time_recorded='2024-05-01 09:00:00'),
            make_raw_row('data_companies_employee_counts_raw', company_id='1',
                         employee_count='30', follower_count='3',
                         time_recorded=None),
        ]

        company = build_companies(companies, counts, coerce_count)[0]

        assert company['employee_count'] == Decimal('20')
        assert company['follower_count'] == Decimal('2')

    def test_company_without_id_is_dropped(self, raw_tables, coerce_count):
        companies = build_companies(
            raw_tables['data_companies_companies_raw'], [], coerce_count
        )
        assert 'Ghost Co' not in {c['company_name'] for c in companies}

    def test_skills_unique_by_abbreviation(self, raw_tables):
        skills = build_skills(raw_tables['data_mappings_skills_raw'])

        assert skills == [
            {'skill_abr': 'PYTH', 'skill_name': 'Python'},
            {'skill_abr': 'SQL', 'skill_name': 'SQL'},
        ]

    def test_industries_unique_by_id(self):
        raw = [
            {'industry_id': '4', 'industry_name': 'Software Development'},
            {'industry_id': '4', 'industry_name': None},
            {'industry_id': '4', 'industry_name': 'Computer Software'},
        ]

        industries = build_industries(raw)

        assert industries == [{'industry_id': '4', 'industry_name': 'Computer Software'}]


# ============================================================================
# Job fact
# ============================================================================

class TestJobs:
    """Tests for build_jobs"""

    @pytest.fixture
    def companies(self, raw_tables, coerce_count):
        return build_companies(
            raw_tables['data_companies_companies_raw'],
            raw_tables['data_companies_employee_counts_raw'],
            coerce_count,
        )

    def test_unknown_company_and_missing_id_excluded(
        self, raw_tables, companies, coerce_count, coerce_salary
    ):
        jobs = build_jobs(raw_tables['data_postings_raw'], companies, coerce_count, coerce_salary)

        assert [j['job_id'] for j in jobs] == ['101', '102', '103', '105']
        assert len(jobs) == len(raw_tables['data_postings_raw']) - 2

    def test_empty_job_id_treated_as_missing(self, companies, coerce_count, coerce_salary):
        postings = [
            make_raw_row('data_postings_raw', job_id='', company_id='55'),
            make_raw_row('data_postings_raw', job_id='7', company_id='55'),
        ]

        jobs = build_jobs(postings, companies, coerce_count, coerce_salary)

        assert [j['job_id'] for j in jobs] == ['7']

    def test_company_id_is_canonical(self, raw_tables, companies, coerce_count, coerce_salary):
        jobs = build_jobs(raw_tables['data_postings_raw'], companies, coerce_count, coerce_salary)
        by_id = {j['job_id']: j for j in jobs}

        assert by_id['101']['company_id'] == '2774458'
        assert by_id['105']['company_id'] == '1016'

    def test_numeric_coercion(self, raw_tables, companies, coerce_count, coerce_salary):
        jobs = build_jobs(raw_tables['data_postings_raw'], companies, coerce_count, coerce_salary)
        job = jobs[0]

        assert job['views'] == Decimal('25')
        assert job['applies'] is None  # empty string means unknown, not zero
        assert job['max_salary_raw'] == Decimal('120000')
        assert job['min_salary_raw'] == Decimal('90000')
        assert job['med_salary_raw'] is None
        assert job['normalized_salary'] == Decimal('105000')

    def test_timestamps_kept_as_text(self, raw_tables, companies, coerce_count, coerce_salary):
        jobs = build_jobs(raw_tables['data_postings_raw'], companies, coerce_count, coerce_salary)

        assert jobs[0]['original_listed_time'] == '1713397508000.0'

    def test_strict_rejects_non_numeric_views(self, companies, coerce_count, coerce_salary):
        postings = [make_raw_row('data_postings_raw', job_id='1', company_id='55', views='many')]

        with pytest.raises(CoercionError):
            build_jobs(postings, companies, coerce_count, coerce_salary)

    def test_lenient_nulls_non_numeric_views(self, companies, coerce_salary):
        postings = [make_raw_row('data_postings_raw', job_id='1', company_id='55', views='many')]
        lenient = NumericCoercer(LENIENT)

        jobs = build_jobs(postings, companies, lenient, coerce_salary)

        assert jobs[0]['views'] is None
        assert lenient.nulled_count == 1

    def test_dropped_postings_are_not_coerced(self, companies, coerce_count, coerce_salary):
        """Bad numbers on postings of unknown companies do not fail the build"""
        postings = [make_raw_row('data_postings_raw', job_id='1', company_id='404', views='many')]

        assert build_jobs(postings, companies, coerce_count, coerce_salary) == []

    def test_duplicate_job_id_is_fatal(self, companies, coerce_count, coerce_salary):
        postings = [
            make_raw_row('data_postings_raw', job_id='1', company_id='55'),
            make_raw_row('data_postings_raw', job_id='1', company_id='1016'),
        ]

        with pytest.raises(NormalizationError):
            build_jobs(postings, companies, coerce_count, coerce_salary)


# ============================================================================
# Links and salaries
# ============================================================================

class TestLinksAndSalaries:
    """Tests for link, benefit and salary builders"""

    @pytest.fixture
    def jobs(self):
        return [{'job_id': '101'}, {'job_id': '102'}, {'job_id': '103'}]

    def test_job_skills_distinct_and_resolved(self, raw_tables, jobs):
        skills = [{'skill_abr': 'PYTH'}, {'skill_abr': 'SQL'}]

        links = build_job_skills(raw_tables['data_jobs_job_skills_raw'], jobs, skills)

        assert links == [
            {'job_id': '101', 'skill_abr': 'PYTH'},
            {'job_id': '101', 'skill_abr': 'SQL'},
            {'job_id': '102', 'skill_abr': 'PYTH'},
            {'job_id': '103', 'skill_abr': 'PYTH'},
        ]

    def test_job_industries_distinct_and_resolved(self, raw_tables, jobs):
        industries = [{'industry_id': '4'}, {'industry_id': '96'}]

        links = build_job_industries(raw_tables['data_jobs_job_industries_raw'], jobs, industries)

        assert links == [
            {'job_id': '101', 'industry_id': '4'},
            {'job_id': '102', 'industry_id': '4'},
            {'job_id': '103', 'industry_id': '4'},
            {'job_id': '103', 'industry_id': '96'},
        ]

    def test_job_benefits(self, raw_tables, jobs):
        benefits = build_job_benefits(raw_tables['data_jobs_benefits_raw'], jobs)

        assert benefits == [
            {'job_id': '101', 'inferred': '1', 'type': '401(K)'},
            {'job_id': '103', 'inferred': '0', 'type': 'Medical insurance'},
        ]

    def test_job_benefits_with_null_fields(self, jobs):
        raw = [
            {'job_id': '101', 'inferred': None, 'type': 'Vision'},
            {'job_id': '101', 'inferred': '1', 'type': None},
        ]

        benefits = build_job_benefits(raw, jobs)

        assert benefits == [
            {'job_id': '101', 'inferred': '1', 'type': None},
            {'job_id': '101', 'inferred': None, 'type': 'Vision'},
        ]

    def test_job_salaries_keep_multiplicity(self, raw_tables, jobs, coerce_salary):
        salaries = build_job_salaries(raw_tables['data_jobs_salaries_raw'], jobs, coerce_salary)

        assert [s['salary_id'] for s in salaries] == ['s1', 's2', 's3', 's5']
        assert [s['job_id'] for s in salaries].count('102') == 2

        s1 = salaries[0]
        assert s1['max_salary'] == Decimal('120000')
        assert s1['med_salary'] is None
        assert s1['min_salary'] == Decimal('90000')
        assert s1['pay_period'] == 'YEARLY'

    def test_salary_without_id_dropped(self, jobs, coerce_salary):
        raw = [{'salary_id': None, 'job_id': '101', 'med_salary': '10'}]

        assert build_job_salaries(raw, jobs, coerce_salary) == []

    def test_duplicate_salary_id_is_fatal(self, jobs, coerce_salary):
        raw = [
            {'salary_id': 's1', 'job_id': '101'},
            {'salary_id': 's1', 'job_id': '102'},
        ]

        with pytest.raises(NormalizationError):
            build_job_salaries(raw, jobs, coerce_salary)

    def test_negative_salary_rejected(self, jobs, coerce_salary):
        raw = [{'salary_id': 's1', 'job_id': '101', 'min_salary': '-5'}]

        with pytest.raises(CoercionError):
            build_job_salaries(raw, jobs, coerce_salary)

    def test_company_links_use_canonical_ids(self, raw_tables):
        companies = [{'company_id': '1016'}, {'company_id': '2774458'}]

        links = build_company_links(
            raw_tables['data_companies_company_industries_raw'], companies, 'industry'
        )

        assert links == [{'company_id': '2774458', 'industry': 'Software Development'}]


# ============================================================================
# Whole clean model
# ============================================================================

class TestCleanModel:
    """Invariants over the complete clean model"""

    def test_tables_built(self, raw_tables):
        model = build_clean_model(raw_tables, CoercionPolicy())

        assert set(model.tables) == {
            'industries', 'skills', 'companies', 'jobs', 'job_industries',
            'job_skills', 'job_benefits', 'job_salaries',
            'company_industries', 'company_specialities',
        }
        assert len(model.tables['jobs']) == 4
        assert model.tables['company_specialities'] == [
            {'company_id': '1016', 'speciality': 'coffee'}
        ]

    @pytest.mark.parametrize("table,key", [
        ('companies', 'company_id'),
        ('industries', 'industry_id'),
        ('skills', 'skill_abr'),
        ('jobs', 'job_id'),
        ('job_salaries', 'salary_id'),
    ])
    def test_primary_keys_unique(self, raw_tables, table, key):
        rows = build_clean_model(raw_tables, CoercionPolicy()).tables[table]
        keys = [row[key] for row in rows]

        assert None not in keys
        assert len(keys) == len(set(keys))

    def test_no_dangling_references(self, raw_tables):
        tables = build_clean_model(raw_tables, CoercionPolicy()).tables
        company_ids = {c['company_id'] for c in tables['companies']}
        job_ids = {j['job_id'] for j in tables['jobs']}
        skill_abrs = {s['skill_abr'] for s in tables['skills']}
        industry_ids = {i['industry_id'] for i in tables['industries']}

        assert all(j['company_id'] in company_ids for j in tables['jobs'])
        assert all(link['job_id'] in job_ids and link['skill_abr'] in skill_abrs
                   for link in tables['job_skills'])
        assert all(link['job_id'] in job_ids and link['industry_id'] in industry_ids
                   for link in tables['job_industries'])
        assert all(b['job_id'] in job_ids for b in tables['job_benefits'])
        assert all(s['job_id'] in job_ids for s in tables['job_salaries'])
        assert all(c['company_id'] in company_ids for c in tables['company_industries'])

    def test_salaries_non_negative_or_null(self, raw_tables):
        salaries = build_clean_model(raw_tables, CoercionPolicy()).tables['job_salaries']

        for salary in salaries:
            for column in ('min_salary', 'med_salary', 'max_salary'):
                assert salary[column] is None or salary[column] >= 0

    def test_strict_failure_wrapped(self, raw_tables):
        raw_tables['data_postings_raw'][0]['applies'] = 'a few'

        with pytest.raises(NormalizationError) as exc_info:
            build_clean_model(raw_tables, CoercionPolicy())
        assert 'applies' in str(exc_info.value)

    def test_lenient_counts_reported(self, raw_tables):
        raw_tables['data_postings_raw'][0]['applies'] = 'a few'
        raw_tables['data_jobs_salaries_raw'][0]['max_salary'] = 'DOE'

        model = build_clean_model(
            raw_tables, CoercionPolicy(counts=LENIENT, salaries=LENIENT)
        )

        assert model.nulled_counts == 1
        assert model.nulled_salaries == 1
        assert model.tables['job_salaries'][0]['max_salary'] is None

    def test_policies_apply_per_field_group(self, raw_tables):
        """Lenient counts do not relax salary checks"""
        raw_tables['data_jobs_salaries_raw'][0]['max_salary'] = 'DOE'

        with pytest.raises(NormalizationError):
            build_clean_model(raw_tables, CoercionPolicy(counts=LENIENT, salaries=STRICT))

    def test_rebuild_is_deterministic(self, raw_tables):
        first = build_clean_model(raw_tables, CoercionPolicy()).tables

        shuffled = {table: list(rows) for table, rows in raw_tables.items()}
        for rows in shuffled.values():
            random.Random(42).shuffle(rows)
        second = build_clean_model(shuffled, CoercionPolicy()).tables

        assert repr(first) == repr(second)
