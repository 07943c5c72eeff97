"""Tri-state field values.

A persisted field is either unmanaged (the user never mentioned it),
cleared (the user asked for the empty value) or a concrete value.
Desired configuration may additionally hold an unknown placeholder for
values that are only computable at apply time.
"""

from collections.abc import Callable, Mapping, Set
from dataclasses import dataclass
from typing import Any, Generic, TypeAlias, TypeVar

T = TypeVar("T")
U = TypeVar("U")

UNKNOWN_TOKEN = "(known after apply)"


@dataclass(frozen=True, slots=True)
class Unmanaged:
    """Field not mentioned by the user; the remote value is preserved."""

    def __repr__(self) -> str:
        return "UNMANAGED"


@dataclass(frozen=True, slots=True)
class Cleared:
    """Field explicitly set to its empty value."""

    def __repr__(self) -> str:
        return "CLEARED"


@dataclass(frozen=True, slots=True)
class Unknown:
    """Placeholder for a value not known until apply time."""

    def __repr__(self) -> str:
        return "UNKNOWN"


@dataclass(frozen=True, slots=True)
class Value(Generic[T]):
    """A concrete, non-empty value."""

    value: T


UNMANAGED = Unmanaged()
CLEARED = Cleared()
UNKNOWN = Unknown()

Tri: TypeAlias = Unmanaged | Cleared | Value[T]
Desired: TypeAlias = Unmanaged | Cleared | Unknown | Value[T]


def is_managed(v: Any) -> bool:
    """True for anything the user mentioned, including unknown placeholders."""
    return not isinstance(v, Unmanaged)


def is_known(v: Any) -> bool:
    return not isinstance(v, Unknown)


def is_concrete(v: Any) -> bool:
    """Managed and known: a value or an explicit clear."""
    return isinstance(v, Value | Cleared)


def unwrap(v: Any, default: Any = None) -> Any:
    """Return the wrapped value, or default for every other state."""
    if isinstance(v, Value):
        return v.value
    return default


def map_value(v: Any, fn: Callable[[Any], Any]) -> Any:
    """Apply fn inside a Value, leaving the other states untouched."""
    if isinstance(v, Value):
        return Value(fn(v.value))
    return v


def _is_empty(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw == ""
    if isinstance(raw, list | tuple | Set | Mapping):
        return len(raw) == 0
    return False


def from_raw(raw: Any, convert: Callable[[Any], Any] | None = None) -> Any:
    """Decode a plain value into its tri-state form.

    None means unmanaged, an empty string or collection means cleared,
    and the unknown token means unknown. Zero and False are values.
    """
    if raw is None:
        return UNMANAGED
    if isinstance(raw, str) and raw == UNKNOWN_TOKEN:
        return UNKNOWN
    if _is_empty(raw):
        return CLEARED
    return Value(convert(raw) if convert else raw)


def to_raw(
    v: Any,
    empty: Callable[[], Any] = lambda: None,
    convert: Callable[[Any], Any] | None = None,
) -> Any:
    """Encode a tri-state value; empty builds the cleared representation."""
    if isinstance(v, Unmanaged):
        return None
    if isinstance(v, Cleared):
        return empty()
    if isinstance(v, Unknown):
        return UNKNOWN_TOKEN
    return convert(v.value) if convert else v.value


__all__ = [
    "CLEARED",
    "UNKNOWN",
    "UNKNOWN_TOKEN",
    "UNMANAGED",
    "Cleared",
    "Desired",
    "Tri",
    "Unknown",
    "Unmanaged",
    "Value",
    "from_raw",
    "is_concrete",
    "is_known",
    "is_managed",
    "map_value",
    "to_raw",
    "unwrap",
]
