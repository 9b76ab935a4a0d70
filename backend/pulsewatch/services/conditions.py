"""
Condition evaluation for alert rules.

A sample breaches an alert when ``value <operator> threshold`` holds.
Values and thresholds arrive as strings and are parsed as floats here.
Anything that does not parse is treated as not breaching (fail-open).
"""

import logging
import math
import operator
from typing import Any

from pulsewatch.core.exceptions import AlertConfigError

logger = logging.getLogger(__name__)

OPERATORS = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


def parse_number(raw: Any) -> float | None:
    """Parse a sample value or threshold. Returns None for non-numeric input."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        number = float(str(raw).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def evaluate_condition(value: Any, condition: str, threshold: Any) -> bool:
    """Return True when value breaches ``condition threshold``.

    Unknown operators and non-numeric values or thresholds never breach.
    """
    compare = OPERATORS.get(condition)
    if compare is None:
        logger.warning("Unknown alert condition %r, treating sample as not breaching", condition)
        return False

    parsed_value = parse_number(value)
    if parsed_value is None:
        logger.warning("Non-numeric sample value %r, treating as not breaching", value)
        return False

    parsed_threshold = parse_number(threshold)
    if parsed_threshold is None:
        logger.warning("Non-numeric alert threshold %r, treating sample as not breaching", threshold)
        return False

    return compare(parsed_value, parsed_threshold)


def validate_rule(condition: str, threshold: Any) -> None:
    """Reject malformed rules before they are stored."""
    if condition not in OPERATORS:
        raise AlertConfigError("condition", f"must be one of {', '.join(OPERATORS)}")
    if parse_number(threshold) is None:
        raise AlertConfigError("threshold", "must be numeric")
