"""Unit tests for the predicate builder.

Predicates are evaluated against a small SQLite data set so the
assertions check behaviour rather than generated SQL text.
"""

from datetime import date

import pytest
from sqlalchemy import select

from pastcare_core.domain.models import Member
from pastcare_core.domain.search.errors import TenantScopeViolationError
from pastcare_core.domain.search.fields import FieldType, SearchField, resolve
from pastcare_core.domain.search.operators import FilterOperator
from pastcare_core.domain.search.predicates import PredicateBuilder, _years_before
from pastcare_core.domain.search.validator import OperatorValidator
from tests.factories import (
    create_church,
    create_fellowship,
    create_location,
    create_member,
)


TODAY = date(2025, 6, 15)


@pytest.fixture
def builder():
    return PredicateBuilder(model=Member, today=TODAY)


@pytest.fixture
def people(db_session):
    """Members covering nulls, blanks, locations, tags and fellowships."""
    church = create_church(db_session)
    youth = create_fellowship(db_session, church, name="Youth")
    choir = create_fellowship(db_session, church, name="Choir")
    accra = create_location(db_session, city="Accra", suburb="Osu")
    kumasi = create_location(db_session, city="Kumasi", suburb=None)

    members = {
        "john": create_member(
            db_session,
            church,
            "John",
            "Mensah",
            email="John.Mensah@Example.org",
            date_of_birth=date(2000, 6, 15),  # turns 25 today
            status="member",
            is_verified=True,
            profile_completeness=80.0,
            location=accra,
            tags=["Choir", "usher"],
            fellowships=[youth, choir],
        ),
        "ama": create_member(
            db_session,
            church,
            "Ama",
            "Owusu",
            email="",
            date_of_birth=date(2000, 6, 16),  # still 24
            status="visitor",
            is_verified=False,
            profile_completeness=40.0,
            location=kumasi,
            tags=["usher"],
            fellowships=[youth],
        ),
        "kofi": create_member(
            db_session,
            church,
            "Kofi",
            "100%_Sure",
            email=None,
            date_of_birth=None,
            status=None,
            is_verified=None,
            profile_completeness=None,
        ),
    }
    db_session.commit()
    return members, {"youth": youth, "choir": choir}


def _matches(db_session, builder, field_name, operator, value=None, max_value=None):
    outcome = OperatorValidator().validate(resolve(field_name), operator, value, max_value)
    predicate = builder.build(outcome)
    rows = db_session.execute(select(Member.first_name).where(predicate)).scalars().all()
    return set(rows)


class TestTextPredicates:
    def test_equals_is_case_insensitive(self, db_session, builder, people):
        assert _matches(db_session, builder, "firstName", FilterOperator.EQUALS, "JOHN") == {"John"}

    def test_contains_starts_ends(self, db_session, builder, people):
        assert _matches(db_session, builder, "email", FilterOperator.CONTAINS, "MENSAH") == {"John"}
        assert _matches(
            db_session, builder, "lastName", FilterOperator.STARTS_WITH, "ow"
        ) == {"Ama"}
        assert _matches(
            db_session, builder, "lastName", FilterOperator.ENDS_WITH, "SAH"
        ) == {"John"}

    def test_wildcards_in_values_are_literal(self, db_session, builder, people):
        assert _matches(db_session, builder, "lastName", FilterOperator.CONTAINS, "%_s") == {"Kofi"}
        assert _matches(db_session, builder, "lastName", FilterOperator.CONTAINS, "_") == {"Kofi"}

    def test_not_equals_includes_missing_values(self, db_session, builder, people):
        assert _matches(db_session, builder, "status", FilterOperator.NOT_EQUALS, "member") == {
            "Ama",
            "Kofi",
        }

    def test_in_and_not_in(self, db_session, builder, people):
        assert _matches(
            db_session, builder, "status", FilterOperator.IN, ["MEMBER", "visitor"]
        ) == {"John", "Ama"}
        assert _matches(db_session, builder, "status", FilterOperator.NOT_IN, ["member"]) == {
            "Ama",
            "Kofi",
        }

    def test_is_null_treats_blank_as_missing(self, db_session, builder, people):
        assert _matches(db_session, builder, "email", FilterOperator.IS_NULL) == {"Ama", "Kofi"}
        assert _matches(db_session, builder, "email", FilterOperator.IS_NOT_NULL) == {"John"}


class TestNonAsciiText:
    @pytest.fixture
    def accented(self, db_session):
        church = create_church(db_session)
        create_member(db_session, church, "Élodie", "Ångström")
        create_member(db_session, church, "Elodie", "Angstrom")
        db_session.commit()

    @pytest.mark.parametrize("value", ["Élodie", "élodie", "ÉLODIE"])
    def test_equals_folds_non_ascii_capitals(self, db_session, builder, accented, value):
        assert _matches(db_session, builder, "firstName", FilterOperator.EQUALS, value) == {
            "Élodie"
        }

    def test_patterns_fold_non_ascii_capitals(self, db_session, builder, accented):
        assert _matches(
            db_session, builder, "lastName", FilterOperator.STARTS_WITH, "åNG"
        ) == {"Élodie"}
        assert _matches(
            db_session, builder, "lastName", FilterOperator.CONTAINS, "ÖM"
        ) == {"Élodie"}

    def test_in_folds_non_ascii_capitals(self, db_session, builder, accented):
        assert _matches(
            db_session, builder, "firstName", FilterOperator.IN, ["ÉLODIE", "nobody"]
        ) == {"Élodie"}


class TestOrderedPredicates:
    def test_number_comparisons(self, db_session, builder, people):
        assert _matches(
            db_session, builder, "profileCompleteness", FilterOperator.GREATER_THAN, 40
        ) == {"John"}
        assert _matches(
            db_session, builder, "profileCompleteness", FilterOperator.LESS_OR_EQUAL, 40
        ) == {"Ama"}

    def test_between_is_inclusive(self, db_session, builder, people):
        assert _matches(
            db_session, builder, "profileCompleteness", FilterOperator.BETWEEN, 40, 80
        ) == {"John", "Ama"}
        assert _matches(
            db_session,
            builder,
            "dateOfBirth",
            FilterOperator.BETWEEN,
            "2000-06-15",
            "2000-06-15",
        ) == {"John"}

    def test_date_comparison(self, db_session, builder, people):
        assert _matches(
            db_session, builder, "dateOfBirth", FilterOperator.GREATER_THAN, "2000-06-15"
        ) == {"Ama"}

    def test_boolean_predicates(self, db_session, builder, people):
        assert _matches(db_session, builder, "isVerified", FilterOperator.EQUALS, True) == {"John"}
        assert _matches(db_session, builder, "isVerified", FilterOperator.NOT_EQUALS, True) == {
            "Ama",
            "Kofi",
        }
        assert _matches(db_session, builder, "isVerified", FilterOperator.IS_NULL) == {"Kofi"}


class TestAgePredicates:
    def test_birthday_boundary(self, db_session, builder, people):
        assert _matches(db_session, builder, "age", FilterOperator.EQUALS, 25) == {"John"}
        assert _matches(db_session, builder, "age", FilterOperator.EQUALS, 24) == {"Ama"}

    @pytest.mark.parametrize(
        "operator,value,expected",
        [
            (FilterOperator.GREATER_OR_EQUAL, 25, {"John"}),
            (FilterOperator.GREATER_THAN, 24, {"John"}),
            (FilterOperator.LESS_THAN, 25, {"Ama"}),
            (FilterOperator.LESS_OR_EQUAL, 24, {"Ama"}),
            (FilterOperator.NOT_EQUALS, 25, {"Ama", "Kofi"}),
        ],
    )
    def test_age_comparisons(self, db_session, builder, people, operator, value, expected):
        assert _matches(db_session, builder, "age", operator, value) == expected

    def test_age_between_and_in(self, db_session, builder, people):
        assert _matches(db_session, builder, "age", FilterOperator.BETWEEN, 24, 25) == {
            "John",
            "Ama",
        }
        assert _matches(db_session, builder, "age", FilterOperator.IN, [25, 60]) == {"John"}
        assert _matches(db_session, builder, "age", FilterOperator.NOT_IN, [25]) == {"Ama", "Kofi"}

    def test_age_is_null_follows_date_of_birth(self, db_session, builder, people):
        assert _matches(db_session, builder, "age", FilterOperator.IS_NULL) == {"Kofi"}

    def test_years_before_handles_leap_day(self):
        assert _years_before(date(2024, 2, 29), 1) == date(2023, 2, 28)
        assert _years_before(date(2024, 2, 29), 4) == date(2020, 2, 29)

    def test_years_before_clamps_to_min_date(self):
        assert _years_before(date(2024, 1, 1), 5000) == date.min


class TestRelatedPredicates:
    def test_location_city(self, db_session, builder, people):
        assert _matches(db_session, builder, "location.city", FilterOperator.EQUALS, "accra") == {
            "John"
        }

    def test_location_missing_counts_as_null(self, db_session, builder, people):
        assert _matches(db_session, builder, "location.suburb", FilterOperator.IS_NULL) == {
            "Ama",
            "Kofi",
        }
        assert _matches(
            db_session, builder, "location.city", FilterOperator.NOT_EQUALS, "accra"
        ) == {"Ama", "Kofi"}

    def test_tags_contains_is_case_insensitive(self, db_session, builder, people):
        assert _matches(db_session, builder, "tags", FilterOperator.CONTAINS, "CHOIR") == {"John"}

    def test_tags_set_operators(self, db_session, builder, people):
        assert _matches(db_session, builder, "tags", FilterOperator.IN, ["usher", "deacon"]) == {
            "John",
            "Ama",
        }
        assert _matches(db_session, builder, "tags", FilterOperator.NOT_IN, ["choir"]) == {
            "Ama",
            "Kofi",
        }
        assert _matches(db_session, builder, "tags", FilterOperator.IS_NULL) == {"Kofi"}
        assert _matches(db_session, builder, "tags", FilterOperator.IS_NOT_NULL) == {"John", "Ama"}

    def test_fellowships_membership(self, db_session, builder, people):
        _, fellowships = people
        choir_id = fellowships["choir"].id

        assert _matches(db_session, builder, "fellowships", FilterOperator.CONTAINS, choir_id) == {
            "John"
        }
        assert _matches(
            db_session, builder, "fellowships", FilterOperator.NOT_IN, [choir_id]
        ) == {"Ama", "Kofi"}


class TestGuards:
    def test_tenant_storage_path_is_refused(self, builder):
        leaking = SearchField("CHURCH", "parish", "church_id", FieldType.NUMBER)

        with pytest.raises(TenantScopeViolationError):
            builder.expression_for(leaking)

    def test_collection_has_no_scalar_expression(self, builder):
        with pytest.raises(ValueError):
            builder.expression_for(resolve("tags"))
