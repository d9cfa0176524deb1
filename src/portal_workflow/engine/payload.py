"""Helpers for reading event payloads."""

from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType

_MISSING = object()

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+(?:\.\w+)*)\}\}")


def lookup(payload: Mapping[str, object], path: str) -> object:
    """Resolve ``path`` in ``payload``.

    An exact key wins over a dotted path, so a payload key that itself contains
    dots is still reachable. Use :func:`is_missing` to detect an unresolved path.
    """

    if path in payload:
        return payload[path]

    current: object = payload
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def is_missing(value: object) -> bool:
    return value is _MISSING


def interpolate(template: str, payload: Mapping[str, object]) -> str:
    """Replace ``{{field}}`` / ``{{nested.field}}`` with payload values.

    Unknown placeholders are left verbatim.
    """

    def _replace(match: re.Match[str]) -> str:
        value = lookup(payload, match.group(1))
        if value is _MISSING or value is None:
            return match.group(0)
        return str(value)

    return _PLACEHOLDER_RE.sub(_replace, template)


def coerce_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def freeze(value: object) -> object:
    """Read-only deep copy of a payload value: mappings become proxies, lists tuples."""

    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, list | tuple):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: object) -> object:
    """Inverse of :func:`freeze`, producing plain JSON-friendly containers."""

    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [thaw(item) for item in value]
    return value
