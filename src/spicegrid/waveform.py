from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from .models import PwlPoint
from .values import SuffixPolicy, parse_literal, parse_number


PWL_KEYWORD = "pwl"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_]\w*$")
_ENCLOSERS = {"'": "'", '"': '"', "{": "}"}


def _strip_token(token: str) -> str:
    return token.strip().strip("(){}'\"")


def _unwrap_binding(value: str) -> str:
    text = value.strip()
    if len(text) >= 2 and _ENCLOSERS.get(text[0]) == text[-1]:
        return text[1:-1].strip()
    return text


def find_pwl_tokens(tokens: Sequence[str]) -> list[str] | None:
    """Tokens following the ``pwl`` keyword, or None if the keyword is absent.

    ``pwl(0 0 1n 1)`` style groups are accepted; the parentheses are dropped.
    """
    for index, token in enumerate(tokens):
        lowered = token.lower()
        if lowered == PWL_KEYWORD:
            rest = list(tokens[index + 1 :])
        elif lowered.startswith(PWL_KEYWORD + "("):
            rest = [token[len(PWL_KEYWORD) :], *tokens[index + 1 :]]
        else:
            continue
        return [stripped for stripped in (_strip_token(item) for item in rest) if stripped]
    return None


def extract_pwl(tokens: Sequence[str]) -> list[PwlPoint]:
    """Decode (time, voltage) pairs, stopping at the first non-numeric pair.

    Points gathered before the stop are returned; later pairs are dropped even
    when they are numeric. A dangling unpaired token is ignored.
    """
    points: list[PwlPoint] = []
    for index in range(0, len(tokens) - 1, 2):
        time = parse_number(_strip_token(tokens[index]))
        voltage = parse_number(_strip_token(tokens[index + 1]))
        if time is None or voltage is None:
            break
        points.append(PwlPoint(time=time, voltage=voltage))
    return points


def first_unparsed_token(tokens: Sequence[str], points: Sequence[PwlPoint]) -> str | None:
    """Token that stopped extraction, or None when every pair was consumed."""
    start = 2 * len(points)
    for token in tokens[start : start + 2]:
        if parse_number(_strip_token(token)) is None:
            return token
    return None


def resolve_parameters(
    parameters: Mapping[str, str],
    *,
    policy: SuffixPolicy = SuffixPolicy.CONTEXT,
) -> dict[str, float]:
    """Fold ``.PARAM`` bindings that are literals or alias other literals.

    Names are matched case-insensitively. Expressions are left unresolved.
    """
    raw = {name.lower(): value for name, value in parameters.items()}
    resolved: dict[str, float] = {}
    for name in raw:
        seen: set[str] = set()
        current = name
        while current in raw and current not in seen:
            seen.add(current)
            text = _unwrap_binding(raw[current])
            value = parse_literal(text, policy=policy)
            if value is not None:
                resolved[name] = value
                break
            if not _IDENTIFIER_RE.match(text):
                break
            current = text.lower()
    return resolved


def substitute_parameters(tokens: Sequence[str], constants: Mapping[str, float]) -> list[str]:
    if not constants:
        return list(tokens)
    substituted: list[str] = []
    for token in tokens:
        key = _strip_token(token).lower()
        if key in constants:
            substituted.append(repr(constants[key]))
        else:
            substituted.append(token)
    return substituted


def interpolate_waveform(points: Sequence[PwlPoint], time: float) -> float:
    """Linear interpolation, held flat before the first and after the last point."""
    if not points:
        raise ValueError("waveform has no points")
    if time <= points[0].time:
        return points[0].voltage
    for left, right in zip(points, points[1:]):
        if time <= right.time:
            span = right.time - left.time
            if span <= 0:
                return right.voltage
            ratio = (time - left.time) / span
            return left.voltage + ratio * (right.voltage - left.voltage)
    return points[-1].voltage


def sample_waveform(points: Sequence[PwlPoint], count: int) -> list[PwlPoint]:
    if count < 2:
        raise ValueError("count must be >= 2")
    if not points:
        return []
    start = points[0].time
    stop = points[-1].time
    if stop <= start:
        return [PwlPoint(time=start, voltage=points[-1].voltage)]
    step = (stop - start) / (count - 1)
    samples: list[PwlPoint] = []
    for index in range(count):
        time = stop if index == count - 1 else start + index * step
        samples.append(PwlPoint(time=time, voltage=interpolate_waveform(points, time)))
    return samples


def waveform_bounds(points: Sequence[PwlPoint]) -> dict[str, Any]:
    if not points:
        return {"points": 0}
    voltages = [point.voltage for point in points]
    return {
        "points": len(points),
        "t_start": points[0].time,
        "t_stop": points[-1].time,
        "v_min": min(voltages),
        "v_max": max(voltages),
        "v_initial": voltages[0],
        "v_final": voltages[-1],
    }
