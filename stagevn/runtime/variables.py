from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, Mapping, Union

from stagevn.commands.conditions import display_text, to_number
from stagevn.commands.models import Variable

LOGGER = logging.getLogger(__name__)

VariableTable = Union[Mapping[str, Variable], Iterable[Variable]]

__all__ = [
    "VariableTable",
    "apply_set_variable",
    "coerce_assignment",
    "index_variables",
    "number_or_zero",
    "seed_environment",
]


def index_variables(variables: VariableTable | None) -> Dict[str, Variable]:
    if not variables:
        return {}
    if isinstance(variables, Mapping):
        return {
            key: value if isinstance(value, Variable) else Variable.model_validate(value)
            for key, value in variables.items()
        }
    table: Dict[str, Variable] = {}
    for item in variables:
        variable = item if isinstance(item, Variable) else Variable.model_validate(item)
        table[variable.id] = variable
    return table


def seed_environment(variables: Mapping[str, Variable]) -> Dict[str, Any]:
    """Fresh environment holding every variable's default."""
    return {variable.id: variable.default for variable in variables.values()}


def number_or_zero(value: Any) -> Union[int, float]:
    """Numeric value with NaN/inf falling back to 0; integral results become ints."""
    number = to_number(value)
    if not math.isfinite(number):
        return 0
    if number.is_integer():
        return int(number)
    return number


def coerce_assignment(variable: Variable, value: Any) -> Union[bool, int, float, str]:
    if variable.type == "number":
        return number_or_zero(value)
    if variable.type == "boolean":
        return display_text(value).strip().lower() == "true"
    return display_text(value)


def apply_set_variable(
    env: Dict[str, Any],
    variables: Mapping[str, Variable],
    variable_id: str,
    operator: str,
    value: Any,
) -> bool:
    """Write the result of one set/add/subtract into ``env``.

    Returns ``False`` (and leaves ``env`` untouched) for unknown variables.
    """
    variable = variables.get(variable_id)
    if variable is None:
        LOGGER.debug("SetVariable skipped: unknown variable '%s'", variable_id)
        return False
    current = env.get(variable_id, variable.default)
    if operator == "add":
        result: Any = number_or_zero(number_or_zero(current) + number_or_zero(value))
    elif operator == "subtract":
        result = number_or_zero(number_or_zero(current) - number_or_zero(value))
    else:
        result = coerce_assignment(variable, value)
    env[variable_id] = result
    return True
