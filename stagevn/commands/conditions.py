"""
Condition evaluation shared by the replay fold, choice filtering and buttons.

Values follow the loose comparison rules authors expect from the editor:
equality and text operators compare case-insensitively on the display form
of a value, ordering operators coerce both sides to numbers.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from stagevn.commands.models import Condition

LOGGER = logging.getLogger(__name__)

__all__ = [
    "CONDITION_OPERATORS",
    "compare",
    "conditions_met",
    "display_text",
    "to_number",
]

CONDITION_OPERATORS: tuple[str, ...] = (
    "is_true",
    "is_false",
    "==",
    "!=",
    ">",
    "<",
    ">=",
    "<=",
    "contains",
    "starts_with",
)


def display_text(value: Any) -> str:
    """Render ``value`` the way the editor prints it (``true``, ``15``, ``1.5``)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def to_number(value: Any) -> float:
    """Numeric coercion; unparseable text becomes NaN so ordering tests fail."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return math.nan


def _truthy(value: Any) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def compare(current: Any, operator: str, expected: Any) -> bool:
    if operator == "is_true":
        return _truthy(current)
    if operator == "is_false":
        return not _truthy(current)
    if operator in ("==", "!="):
        same = display_text(current).lower() == display_text(expected).lower()
        return same if operator == "==" else not same
    if operator in (">", "<", ">=", "<="):
        left, right = to_number(current), to_number(expected)
        if operator == ">":
            return left > right
        if operator == "<":
            return left < right
        if operator == ">=":
            return left >= right
        return left <= right
    if operator == "contains":
        return display_text(expected).lower() in display_text(current).lower()
    if operator == "starts_with":
        return display_text(current).lower().startswith(display_text(expected).lower())
    LOGGER.debug("Unknown condition operator %r", operator)
    return False


def conditions_met(
    conditions: Optional[Sequence["Condition"]], env: Mapping[str, Any]
) -> bool:
    """AND of every condition; an empty list passes, unknown variables fail."""
    if not conditions:
        return True
    for condition in conditions:
        if env.get(condition.variable_id) is None:
            LOGGER.debug(
                "Condition references unknown variable '%s'", condition.variable_id
            )
            return False
        if not condition.evaluate(env):
            return False
    return True
