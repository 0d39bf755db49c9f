"""Threshold-rule colour classification.

Maps a resolved scalar to exactly one display colour. When a value
satisfies several rules the most restrictive one wins:

* equality rules first (absolute tolerance ``1e-3``),
* then upper bounds (``<``, ``<=``) in ascending threshold order,
* then lower bounds (``>``, ``>=``) in descending threshold order.

List position never matters, so two rule sets with the same members
always classify identically.

Example:
    >>> rules = default_color_rules()
    >>> classify(15.0, rules)
    '#F59E0B'
    >>> classify(float("nan"), rules)
    '#94A3B8'
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field

from regionweather.exceptions import RegionValidationError

if TYPE_CHECKING:
    from regionweather.store import Region

NO_DATA_COLOR = "#94A3B8"
"""Sentinel fill for non-finite values, empty rule sets, and no match."""

EQUALITY_TOLERANCE = 1e-3

Condition = Literal["<", "<=", "=", ">=", ">"]
VALID_CONDITIONS: frozenset[str] = frozenset({"<", "<=", "=", ">=", ">"})
_UPPER_BOUND = frozenset({"<", "<="})
_LOWER_BOUND = frozenset({">", ">="})


def _new_rule_id() -> str:
    return uuid.uuid4().hex[:12]


class ColorRule(BaseModel):
    """A ``(condition, threshold, colour)`` triple.

    The model does not reject malformed content on its own: the classifier
    must cope with whatever rules it is handed. Use ``validate_rule`` at
    input boundaries.

    Args:
        id: Stable rule identifier.
        condition: Comparison operator applied as ``value <op> threshold``.
        value: Threshold scalar.
        color: Display colour, usually ``#RRGGBB``.

    Example:
        >>> ColorRule(condition="<", value=10, color="#EF4444").condition
        '<'
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_rule_id)
    condition: str
    value: float
    color: str

    def matches(self, value: float) -> bool:
        """Return ``True`` if *value* satisfies this rule's comparison."""
        if self.condition == "<":
            return value < self.value
        if self.condition == "<=":
            return value <= self.value
        if self.condition == "=":
            return abs(value - self.value) < EQUALITY_TOLERANCE
        if self.condition == ">=":
            return value >= self.value
        if self.condition == ">":
            return value > self.value
        return False


def is_valid_rule(rule: object) -> bool:
    """Return ``True`` if *rule* can take part in classification."""
    return (
        isinstance(rule, ColorRule)
        and math.isfinite(rule.value)
        and rule.condition in VALID_CONDITIONS
        and bool(rule.color.strip())
    )


def validate_rule(rule: ColorRule) -> ColorRule:
    """Reject a malformed rule before it enters the store.

    Args:
        rule: Candidate rule.

    Returns:
        The same rule, for chaining.

    Raises:
        RegionValidationError: If the operator is unknown, the threshold
            is not finite, or the colour is empty.
    """
    if rule.condition not in VALID_CONDITIONS:
        raise RegionValidationError(
            what=f"Invalid colour rule {rule.id}",
            cause=f"Unknown condition {rule.condition!r}",
            fix="Use one of: <, <=, =, >=, >",
        )
    if not math.isfinite(rule.value):
        raise RegionValidationError(
            what=f"Invalid colour rule {rule.id}",
            cause=f"Threshold {rule.value} is not a finite number",
            fix="Enter a numeric threshold",
        )
    if not rule.color.strip():
        raise RegionValidationError(
            what=f"Invalid colour rule {rule.id}",
            cause="Colour is empty",
            fix="Pick a colour such as '#EF4444'",
        )
    return rule


def classify(value: float | None, rules: Iterable[ColorRule | None]) -> str:
    """Return the display colour for *value* under *rules*.

    Args:
        value: Resolved scalar. ``None`` and non-finite values map to the
            no-data colour.
        rules: Colour rules in any order; malformed entries are ignored.

    Returns:
        The winning rule's colour, or ``NO_DATA_COLOR`` when nothing
        applies.

    Example:
        >>> rules = [
        ...     ColorRule(condition=">", value=10, color="#X"),
        ...     ColorRule(condition=">", value=20, color="#Y"),
        ... ]
        >>> classify(25, rules)
        '#Y'
    """
    if value is None or not math.isfinite(value):
        return NO_DATA_COLOR

    valid = [rule for rule in rules if is_valid_rule(rule)]
    if not valid:
        return NO_DATA_COLOR

    equality = [r for r in valid if r.condition == "="]
    upper = [r for r in valid if r.condition in _UPPER_BOUND]
    lower = [r for r in valid if r.condition in _LOWER_BOUND]

    for rule in equality:
        if rule.matches(value):
            return rule.color

    # sorted() is stable: equal thresholds keep insertion order
    for rule in sorted(upper, key=lambda r: r.value):
        if rule.matches(value):
            return rule.color

    for rule in sorted(lower, key=lambda r: r.value, reverse=True):
        if rule.matches(value):
            return rule.color

    return NO_DATA_COLOR


def default_color_rules() -> list[ColorRule]:
    """Return the rule set given to newly drawn regions.

    ``< 10`` red, ``>= 10`` amber, ``> 20`` green, each with a fresh id.
    """
    return [
        ColorRule(condition="<", value=10, color="#EF4444"),
        ColorRule(condition=">=", value=10, color="#F59E0B"),
        ColorRule(condition=">", value=20, color="#10B981"),
    ]


def fill_color(region: Region) -> str:
    """Return the overlay fill for a region.

    Regions never resolved keep the no-data sentinel; resolved ones are
    classified against their own rules.
    """
    return classify(region.current_value, region.color_rules)
