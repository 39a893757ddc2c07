"""
Tests for CalcNote scope snapshots.
"""

import pytest

from calcnote.scope_store import (
    Scope, clone, empty_scope, filter_to_symbols, freeze, scopes_equal, values_equal, working_copy
)


def test_clone_is_deep():
    scope = Scope({"v": [1, 2], "m": {"k": [3]}})
    copied = clone(scope)

    copied["v"].append(3)
    copied["m"]["k"].append(4)

    assert scope["v"] == [1, 2]
    assert scope["m"] == {"k": [3]}


def test_clone_rebinds_functions():
    def square(x):
        return x * x

    scope = Scope({"f": square, "g": len})
    copied = clone(scope)

    assert copied["f"] is square
    assert copied["g"] is len


def test_scope_is_read_only():
    scope = Scope({"a": 1})
    with pytest.raises(TypeError):
        scope["a"] = 2


def test_with_bindings_returns_new_snapshot():
    scope = Scope({"a": 1})
    updated = scope.with_bindings({"b": 2})

    assert dict(scope) == {"a": 1}
    assert dict(updated) == {"a": 1, "b": 2}


def test_filter_to_symbols():
    scope = Scope({"a": 1, "b": 2})
    assert filter_to_symbols(scope, {"a", "missing"}) == Scope({"a": 1})
    assert filter_to_symbols(scope, set()) == empty_scope()


def test_unrelated_bindings_do_not_break_filtered_equality():
    """Fifty unrelated variables must not make two scopes differ for a line reading x"""
    first = Scope({**{f"v{i}": i for i in range(50)}, "x": 1})
    second = Scope({**{f"v{i}": -i for i in range(50)}, "x": 1})

    assert first != second
    assert filter_to_symbols(first, {"x"}) == filter_to_symbols(second, {"x"})


def test_structural_equality():
    assert scopes_equal(Scope({"a": [1, 2]}), {"a": [1, 2]})
    assert not scopes_equal(Scope({"a": 1}), Scope({"a": 1, "b": 2}))
    assert not scopes_equal(Scope({"a": 1}), Scope({"a": 2}))


def test_values_equal_handles_nan_and_bad_comparisons():
    class Unorderable:
        def __eq__(self, other):
            raise TypeError("no comparison")

    assert values_equal(float("nan"), float("nan"))
    assert not values_equal(Unorderable(), 1)
    assert values_equal([1, 2.0], [1, 2])


def test_working_copy_and_freeze_are_independent():
    scope = Scope({"v": [1]})
    working = working_copy(scope)
    working["v"].append(2)
    working["w"] = 3

    frozen = freeze(working)
    working["v"].append(99)

    assert scope["v"] == [1]
    assert frozen == Scope({"v": [1, 2], "w": 3})
