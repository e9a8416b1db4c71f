"""
Domain: state list and threshold parsing.

Orders arrive with two string-encoded composite fields:
- states:     "fl, TX,FL,xyz"   -> ("FL", "TX")
- thresholds: "FL=3,TX=4"       -> {"FL": 3, "TX": 4}

Both are parsed exactly once at the edge into typed values. The storage form of
the state list (comma-joined codes) is produced by `format_states`.

A state with no threshold is capped at DEFAULT_STATE_THRESHOLD. This is a cap of
999 leads per order for that state, not an unlimited allowance.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Tuple

DEFAULT_STATE_THRESHOLD: int = 999

# Products whose name contains this marker may only be processed once per
# external reference number.
ONE_TIME_PRODUCT_MARKER: str = "One Time"

StateCode = str


def parse_states(states_input: Optional[str]) -> Tuple[StateCode, ...]:
    """
    Parse a comma-separated state list.

    Rules:
    - split on comma, trim, uppercase
    - keep only tokens of exactly 2 characters
    - deduplicate, preserving first occurrence

    Example:
        parse_states(" fl,tx ,FL,Texas")  # ("FL", "TX")
    """

    if not states_input:
        return ()

    result: list[StateCode] = []
    for token in states_input.split(","):
        code = token.strip().upper()
        if len(code) != 2:
            continue
        if code not in result:
            result.append(code)
    return tuple(result)


def parse_thresholds(thresholds_input: Optional[str]) -> Dict[StateCode, int]:
    """
    Parse a "STATE=N,STATE=N" threshold string.

    Malformed items (no '=', empty state, empty or non-integer value) are
    skipped silently. Non-positive values are skipped too, so the state falls
    back to DEFAULT_STATE_THRESHOLD.
    """

    thresholds: Dict[StateCode, int] = {}
    if not thresholds_input:
        return thresholds

    for item in thresholds_input.split(","):
        parts = item.split("=")
        if len(parts) < 2:
            continue
        state, raw_value = parts[0].strip().upper(), parts[1].strip()
        if not state or not raw_value:
            continue
        try:
            value = int(raw_value)
        except ValueError:
            continue
        if value <= 0:
            continue
        thresholds[state] = value

    return thresholds


def threshold_for(state: StateCode, thresholds: Mapping[StateCode, int]) -> int:
    return thresholds.get(state, DEFAULT_STATE_THRESHOLD)


def format_states(states: Iterable[StateCode]) -> str:
    """Storage form of a parsed state list."""

    return ",".join(states)


def is_one_time_product(product_name: Optional[str]) -> bool:
    return bool(product_name) and ONE_TIME_PRODUCT_MARKER in product_name


__all__ = [
    "DEFAULT_STATE_THRESHOLD",
    "ONE_TIME_PRODUCT_MARKER",
    "StateCode",
    "format_states",
    "is_one_time_product",
    "parse_states",
    "parse_thresholds",
    "threshold_for",
]
