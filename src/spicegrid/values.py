from __future__ import annotations

import math
import re
from enum import Enum


class SuffixPolicy(str, Enum):
    """How a bare ``m``/``M`` suffix is resolved.

    SPICE reads ``m`` as milli, but hand-written crossbar netlists routinely
    write ``Res=10M`` for ten megaohms. ``CONTEXT`` reads ``m`` as mega when
    the value is a resistance and as milli everywhere else.
    """

    MILLI = "milli"
    MEGA = "mega"
    CONTEXT = "context"

    @classmethod
    def parse(cls, raw: str | SuffixPolicy) -> SuffixPolicy:
        if isinstance(raw, SuffixPolicy):
            return raw
        text = str(raw).strip().lower()
        for policy in cls:
            if policy.value == text:
                return policy
        valid = ", ".join(policy.value for policy in cls)
        raise ValueError(f"suffix policy must be one of: {valid}")


_SUFFIX_MULTIPLIERS: dict[str, float] = {
    "k": 1e3,
    "u": 1e-6,
    "n": 1e-9,
    "p": 1e-12,
    "f": 1e-15,
}
_MEGA = 1e6
_MILLI = 1e-3

_LITERAL_RE = re.compile(r"^([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)([a-zA-Z]*)$")

# Formatting walks from large to small; "Meg" keeps the output unambiguous.
_FORMAT_STEPS: tuple[tuple[float, str], ...] = (
    (1e6, "Meg"),
    (1e3, "k"),
    (1.0, ""),
    (1e-3, "m"),
    (1e-6, "u"),
    (1e-9, "n"),
    (1e-12, "p"),
    (1e-15, "f"),
)


def parse_number(token: str) -> float | None:
    """Plain finite float, or None. No suffixes, no names."""
    text = token.strip()
    if not text or "_" in text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def suffix_multiplier(
    suffix: str,
    *,
    resistance: bool = False,
    policy: SuffixPolicy = SuffixPolicy.CONTEXT,
) -> float:
    lowered = suffix.lower()
    if not lowered:
        return 1.0
    if lowered.startswith("meg"):
        return _MEGA
    lead = lowered[0]
    if lead == "m":
        if policy is SuffixPolicy.MEGA:
            return _MEGA
        if policy is SuffixPolicy.CONTEXT and resistance:
            return _MEGA
        return _MILLI
    # Unknown letters are unit labels (V, A, Ohm) and scale by one.
    return _SUFFIX_MULTIPLIERS.get(lead, 1.0)


def parse_literal(
    text: str,
    *,
    resistance: bool = False,
    policy: SuffixPolicy = SuffixPolicy.CONTEXT,
) -> float | None:
    """Number with an optional engineering suffix, or None if none can be read."""
    cleaned = text.strip().strip("'\"{}")
    match = _LITERAL_RE.match(cleaned)
    if match is not None:
        base = parse_number(match.group(1))
        if base is not None:
            value = base * suffix_multiplier(match.group(2), resistance=resistance, policy=policy)
            if math.isfinite(value):
                return value
    return parse_number(cleaned)


def parse_value(
    text: str | None,
    *,
    resistance: bool = False,
    policy: SuffixPolicy = SuffixPolicy.CONTEXT,
) -> float:
    """Normalize a netlist value to SI units, defaulting to 0 when unreadable."""
    if not text:
        return 0.0
    value = parse_literal(text, resistance=resistance, policy=policy)
    return 0.0 if value is None else value


def format_engineering(value: float, unit: str = "", *, digits: int = 3) -> str:
    if value == 0 or not math.isfinite(value):
        return f"{value:g}{unit}"
    magnitude = abs(value)
    for scale, suffix in _FORMAT_STEPS:
        if magnitude >= scale * (1 - 1e-9):
            return f"{value / scale:.{digits}g}{suffix}{unit}"
    scale, suffix = _FORMAT_STEPS[-1]
    return f"{value / scale:.{digits}g}{suffix}{unit}"
