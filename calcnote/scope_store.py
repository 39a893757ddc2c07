"""
CalcNote Scope Store - copy-on-write variable scopes threaded through lines.

A Scope is a read-only snapshot. Evaluation happens against a plain dict
obtained from ``working_copy`` and is frozen again with ``freeze`` once the
line succeeded, so no two lines ever share a mutable binding.
"""

import copy
import math
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, Iterator, Optional


def clone_value(value: Any) -> Any:
    """
    Deep-copy a bound value.

    Function-like values are re-bound as they are; their executable state is
    never copied.
    """
    if callable(value):
        return value
    return copy.deepcopy(value)


def values_equal(a: Any, b: Any) -> bool:
    """Deep equality between two bound values."""
    if a is b:
        return True
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True

    try:
        result = a == b
    except Exception:
        return False

    if isinstance(result, bool):
        return result

    # Element-wise comparisons (arrays, matrices) return a container of booleans
    reduce_all = getattr(result, 'all', None)
    try:
        if callable(reduce_all):
            return bool(reduce_all())
        return bool(result)
    except Exception:
        return False


class Scope(Mapping):
    """Immutable mapping from variable name to value."""

    __slots__ = ('_bindings',)

    def __init__(self, bindings: Optional[Mapping] = None):
        self._bindings: Dict[str, Any] = dict(bindings or {})

    def __getitem__(self, name: str) -> Any:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return scopes_equal(self, other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"Scope({self._bindings!r})"

    def with_bindings(self, bindings: Mapping) -> "Scope":
        """Return a new snapshot with ``bindings`` applied on top of this one."""
        merged = dict(self._bindings)
        merged.update(bindings)
        return Scope(merged)


EMPTY_SCOPE = Scope()


def empty_scope() -> Scope:
    return EMPTY_SCOPE


def scopes_equal(a: Mapping, b: Mapping) -> bool:
    """Structural equality: same key set and value-wise deep equality."""
    if a.keys() != b.keys():
        return False
    return all(values_equal(a[name], b[name]) for name in a)


def clone(scope: Mapping, clone_fn: Callable[[Any], Any] = clone_value) -> Scope:
    """
    Deep-copy every bound value into a new snapshot.

    Args:
        scope (Mapping): Scope to copy
        clone_fn (callable): Value-clone contract of the expression runtime

    Returns:
        Scope: Independent snapshot
    """
    return Scope({name: clone_fn(value) for name, value in scope.items()})


def working_copy(scope: Mapping, clone_fn: Callable[[Any], Any] = clone_value) -> Dict[str, Any]:
    """Mutable deep copy handed to the runtime for evaluating one line."""
    return {name: clone_fn(value) for name, value in scope.items()}


def freeze(bindings: Mapping, clone_fn: Callable[[Any], Any] = clone_value) -> Scope:
    """Snapshot a working dict after evaluation."""
    return clone(bindings, clone_fn)


def filter_to_symbols(scope: Mapping, symbols: Iterable[str]) -> Scope:
    """Project the scope onto the given names, dropping unbound ones."""
    return Scope({name: scope[name] for name in symbols if name in scope})
