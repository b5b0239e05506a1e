"""Tests for filter expression parsing and evaluation."""

from __future__ import annotations

import pytest

from otelmcp.contracts import FilterParseError, SpanKind, SpanStatus
from otelmcp.store.filter_parser import (
    Condition,
    compare,
    matches_filter,
    parse_filter,
    resolve_field,
)
from tests.fixtures.factories import make_span


class TestParseFilter:
    def test_round_trip_two_conditions(self) -> None:
        parsed = parse_filter("duration > 50 AND status = error")

        assert parsed.conditions == (
            Condition(field="duration", operator=">", value=50),
            Condition(field="status", operator="=", value="error"),
        )

    def test_and_is_case_insensitive(self) -> None:
        parsed = parse_filter("duration > 50 and status = error AnD kind = server")
        assert len(parsed.conditions) == 3

    def test_and_inside_a_value_does_not_split(self) -> None:
        parsed = parse_filter("brand = android")

        assert parsed.conditions == (Condition(field="brand", operator="=", value="android"),)

    def test_and_inside_a_field_does_not_split(self) -> None:
        parsed = parse_filter("operand >= 1")
        assert parsed.conditions == (Condition(field="operand", operator=">=", value=1),)

    @pytest.mark.parametrize(
        ("expression", "operator"),
        [
            ("x >= 1", ">="),
            ("x <= 1", "<="),
            ("x != 1", "!="),
            ("x = 1", "="),
            ("x > 1", ">"),
            ("x < 1", "<"),
        ],
    )
    def test_operators(self, expression: str, operator: str) -> None:
        [condition] = parse_filter(expression).conditions
        assert condition.operator == operator
        assert condition.value == 1

    def test_whitespace_around_operator_is_optional(self) -> None:
        [condition] = parse_filter("http.status_code>=400").conditions
        assert condition == Condition(field="http.status_code", operator=">=", value=400)

    def test_dotted_field_names(self) -> None:
        [condition] = parse_filter("db.system = postgresql").conditions
        assert condition.field == "db.system"

    def test_value_keeps_inner_spaces(self) -> None:
        [condition] = parse_filter("name = GET /api/users").conditions
        assert condition.value == "GET /api/users"

    def test_numeric_values_become_numbers(self) -> None:
        [condition] = parse_filter("duration >= 12.5").conditions
        assert condition.value == 12.5

    def test_non_numeric_values_stay_strings(self) -> None:
        [condition] = parse_filter("version = 1.2.3").conditions
        assert condition.value == "1.2.3"

    @pytest.mark.parametrize("segment", ["duration", "= 5", "duration >", "duration ~ 5"])
    def test_invalid_condition_names_segment(self, segment: str) -> None:
        with pytest.raises(FilterParseError) as exc_info:
            parse_filter(f"status = error AND {segment}")

        assert exc_info.value.message == f'Invalid condition: "{segment}"'
        assert exc_info.value.segment == segment

    @pytest.mark.parametrize("expression", ["", "   ", "AND", " and "])
    def test_no_conditions(self, expression: str) -> None:
        with pytest.raises(FilterParseError, match="No valid conditions found"):
            parse_filter(expression)

    def test_parse_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_filter("nonsense")


class TestResolveField:
    def test_builtin_fields(self) -> None:
        span = make_span(
            name="SELECT users",
            kind=SpanKind.CLIENT,
            status=SpanStatus.ERROR,
            duration=75,
            service_name="db",
        )

        assert resolve_field(span, "duration") == 75
        assert resolve_field(span, "status") == "error"
        assert resolve_field(span, "name") == "SELECT users"
        assert resolve_field(span, "service") == "db"
        assert resolve_field(span, "kind") == "client"

    def test_span_attributes_before_resource_attributes(self) -> None:
        span = make_span(attributes={"env": "span"}, resource_attributes={"env": "resource", "region": "eu"})

        assert resolve_field(span, "env") == "span"
        assert resolve_field(span, "region") == "eu"

    def test_builtin_fields_shadow_attributes(self) -> None:
        span = make_span(duration=5, attributes={"duration": 999})
        assert resolve_field(span, "duration") == 5

    def test_missing_field(self) -> None:
        assert resolve_field(make_span(), "nope") is None


class TestCompare:
    def test_numeric_comparison(self) -> None:
        assert compare(500, ">=", 400)
        assert not compare(399, ">=", 400)

    def test_numeric_strings_compare_as_numbers(self) -> None:
        # Lexicographically "9" > "10"; numerically it is not
        assert not compare("9", ">", 10)
        assert compare("10", ">", 9)

    def test_lexicographic_when_not_both_numbers(self) -> None:
        assert compare("beta", ">", "alpha")
        assert compare("200ms", "!=", 200)

    def test_equality_across_int_and_float(self) -> None:
        assert compare(200, "=", 200.0)

    def test_booleans_compare_by_string_form(self) -> None:
        assert compare(True, "=", "true")
        assert compare(False, "!=", "true")

    def test_booleans_compare_as_numbers_against_numbers(self) -> None:
        assert compare(True, "=", 1)

    def test_missing_never_matches(self) -> None:
        assert not compare(None, "!=", "x")
        assert not compare(None, "=", "x")


class TestMatchesFilter:
    def test_all_conditions_must_hold(self) -> None:
        parsed = parse_filter("duration > 50 AND status = error")

        assert matches_filter(make_span(duration=75, status=SpanStatus.ERROR), parsed)
        assert not matches_filter(make_span(duration=75, status=SpanStatus.OK), parsed)
        assert not matches_filter(make_span(duration=10, status=SpanStatus.ERROR), parsed)

    def test_attribute_condition(self) -> None:
        parsed = parse_filter("http.status_code >= 400")

        assert matches_filter(make_span(attributes={"http.status_code": 503}), parsed)
        assert not matches_filter(make_span(attributes={"http.status_code": 200}), parsed)
        assert not matches_filter(make_span(), parsed)

    def test_resource_attribute_condition(self) -> None:
        parsed = parse_filter("deployment.environment = staging")
        span = make_span(resource_attributes={"deployment.environment": "staging"})

        assert matches_filter(span, parsed)
