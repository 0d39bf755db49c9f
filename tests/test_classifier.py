"""Tests for threshold-rule colour classification."""

from __future__ import annotations

import math
import random

import pytest

from regionweather._types import DatasetKind
from regionweather.classifier import (
    NO_DATA_COLOR,
    ColorRule,
    classify,
    default_color_rules,
    fill_color,
    is_valid_rule,
    validate_rule,
)
from regionweather.exceptions import RegionValidationError
from regionweather.store import Region


def rule(condition: str, value: float, color: str) -> ColorRule:
    return ColorRule(condition=condition, value=value, color=color)


THREE_BANDS = [rule("<", 10, "A"), rule(">=", 10, "B"), rule(">", 20, "C")]


@pytest.mark.unit
class TestClassifyPrecedence:
    """Verify the most restrictive matching rule wins."""

    def test_lower_bound_band(self) -> None:
        assert classify(15, THREE_BANDS) == "B"

    def test_below_all_thresholds(self) -> None:
        assert classify(5, THREE_BANDS) == "A"

    def test_tightest_lower_bound_wins(self) -> None:
        assert classify(25, [rule(">", 10, "X"), rule(">", 20, "Y")]) == "Y"

    def test_tightest_upper_bound_wins(self) -> None:
        assert classify(3, [rule("<", 10, "X"), rule("<", 5, "Y")]) == "Y"

    def test_equality_has_priority(self) -> None:
        assert classify(10.0, [rule(">=", 10, "B"), rule("=", 10, "Z")]) == "Z"

    def test_equality_tolerance(self) -> None:
        assert classify(10.0005, [rule("=", 10, "Z")]) == "Z"
        assert classify(10.01, [rule("=", 10, "Z")]) == NO_DATA_COLOR

    def test_upper_bounds_before_lower_bounds(self) -> None:
        assert classify(15, [rule(">", 10, "L"), rule("<", 20, "U")]) == "U"

    def test_inclusive_and_exclusive_boundaries(self) -> None:
        assert classify(20, THREE_BANDS) == "B"
        assert classify(20.01, THREE_BANDS) == "C"
        assert classify(10, THREE_BANDS) == "B"

    def test_no_match_is_sentinel(self) -> None:
        assert classify(5, [rule(">", 10, "X")]) == NO_DATA_COLOR

    def test_list_order_does_not_matter(self) -> None:
        rules = THREE_BANDS + [rule("=", 15, "E"), rule("<=", 12, "U")]
        rng = random.Random(7)
        for value in (-5, 9.99, 10, 12, 15, 20, 21, 100):
            expected = classify(value, rules)
            for _ in range(5):
                shuffled = list(rules)
                rng.shuffle(shuffled)
                assert classify(value, shuffled) == expected


@pytest.mark.unit
class TestClassifySentinel:
    """Verify missing data and malformed rules map to the sentinel."""

    @pytest.mark.parametrize("value", [None, math.nan, math.inf, -math.inf])
    def test_non_finite_value(self, value: float | None) -> None:
        assert classify(value, THREE_BANDS) == NO_DATA_COLOR

    @pytest.mark.parametrize("value", [-1e9, 0.0, 15.0, 1e9])
    def test_empty_rules(self, value: float) -> None:
        assert classify(value, []) == NO_DATA_COLOR

    @pytest.mark.parametrize("value", [-1e9, 0.0, 15.0, 1e9])
    def test_all_invalid_rules(self, value: float) -> None:
        rules = [
            rule("!=", 10, "A"),
            rule(">", math.nan, "B"),
            rule("<", 10, "  "),
            None,
        ]
        assert classify(value, rules) == NO_DATA_COLOR

    def test_invalid_rules_ignored_among_valid(self) -> None:
        rules = [rule(">", math.nan, "BAD"), rule(">", 0, "OK")]
        assert classify(5, rules) == "OK"


@pytest.mark.unit
class TestRuleValidation:
    """Verify malformed rules are rejected at input boundaries."""

    def test_valid_rule(self) -> None:
        r = rule(">=", 1.5, "#FFFFFF")
        assert is_valid_rule(r)
        assert validate_rule(r) is r

    @pytest.mark.parametrize(
        ("condition", "value", "color", "message"),
        [
            ("~", 1, "#FFF", "Unknown condition"),
            ("<", math.inf, "#FFF", "not a finite number"),
            ("<", 1, "", "Colour is empty"),
        ],
    )
    def test_invalid_rule(
        self, condition: str, value: float, color: str, message: str
    ) -> None:
        bad = rule(condition, value, color)
        assert not is_valid_rule(bad)
        with pytest.raises(RegionValidationError, match=message):
            validate_rule(bad)

    def test_rule_ids_are_unique(self) -> None:
        ids = {r.id for r in default_color_rules() + default_color_rules()}
        assert len(ids) == 6


@pytest.mark.unit
class TestDefaultRulesAndFill:
    """Verify the default rule set and region fill colour."""

    @pytest.mark.parametrize(
        ("value", "color"),
        [
            (-3.0, "#EF4444"),
            (9.99, "#EF4444"),
            (10.0, "#F59E0B"),
            (20.0, "#F59E0B"),
            (20.5, "#10B981"),
        ],
    )
    def test_default_bands(self, value: float, color: str) -> None:
        assert classify(value, default_color_rules()) == color

    def test_unresolved_region_fill(self, square: list[tuple[float, float]]) -> None:
        region = Region(name="R", points=square)
        assert fill_color(region) == NO_DATA_COLOR

    def test_resolved_region_fill(self, square: list[tuple[float, float]]) -> None:
        region = Region(name="R", points=square, current_value=25.0)
        assert fill_color(region) == "#10B981"

    def test_rebound_region_uses_own_rules(
        self, square: list[tuple[float, float]]
    ) -> None:
        region = Region(
            name="R",
            points=square,
            dataset=DatasetKind.WIND,
            color_rules=(rule(">", 30, "#000000"),),
            current_value=31.0,
        )
        assert fill_color(region) == "#000000"
