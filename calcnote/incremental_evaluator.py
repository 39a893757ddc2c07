"""
CalcNote Incremental Evaluator - per-line memoized evaluation with cascading invalidation.

Each line is a transition ``(scope_before, text) -> (scope_after, result)``.
A line is reused from the previous pass when its source is unchanged and the
previous pass saw the same values for every symbol the line reads. Since the
scope is threaded from line to line, a change upstream reaches exactly the
downstream lines that read an affected symbol.
"""

import ast
import dataclasses
import time
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from . import constants
from .expression_runtime import ExpressionRuntime, CalcNoteError, EvaluationFailure, ParseFailure
from .line_segmenter import Line, segment_lines
from .performance import PerformanceMonitoringMixin
from .scope_store import Scope, clone, empty_scope, filter_to_symbols, freeze, working_copy


@dataclass(eq=False)
class CachedResult:
    line: Line
    scope_before: Scope
    scope_after: Scope
    value: Any = None
    failure: Optional[CalcNoteError] = None
    used_symbols: FrozenSet[str] = frozenset()
    tree: Optional[ast.Module] = field(default=None, repr=False)
    reused: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class PassStats:
    lines: int = 0
    reused: int = 0
    evaluated: int = 0
    failed: int = 0
    duration_ms: float = 0.0


class IncrementalEvaluator(PerformanceMonitoringMixin):
    """
    Walks the document lines against the previous pass's results.

    Only the previous generation of results is kept; it is replaced at the
    end of every pass.
    """

    def __init__(self, runtime=None, compare_trees=False, line_timeout=constants.LINE_TIMEOUT,
                 debug_enabled=None):
        """
        Args:
            runtime: Expression runtime, an ExpressionRuntime by default
            compare_trees (bool): Reuse a line when its syntax tree is unchanged,
                even if whitespace differs
            line_timeout (float): Seconds a line may take before it is failed
            debug_enabled (bool): Print diagnostics, defaults to constants.DEBUG
        """
        self.runtime = runtime or ExpressionRuntime()
        self.compare_trees = compare_trees
        self.line_timeout = line_timeout
        self.prev_results: Dict[int, CachedResult] = {}
        self.last_stats = PassStats()
        self._init_perf(debug_enabled)

    @property
    def results(self) -> List[CachedResult]:
        return [self.prev_results[index] for index in sorted(self.prev_results)]

    def reset(self):
        """Forget the previous pass so the next one recomputes everything"""
        self.prev_results = {}

    def evaluate_text(self, text: str) -> List[CachedResult]:
        return self.evaluate_lines(segment_lines(text))

    def evaluate_lines(self, lines: List[Line]) -> List[CachedResult]:
        """
        Run one recompute pass.

        Blank lines produce no result but keep their slot in the line
        sequence. A failing line never aborts the pass.

        Args:
            lines (list): Current Line sequence

        Returns:
            list: CachedResult per non-blank line, in document order
        """
        start_time = self._log_perf('evaluate_lines')
        started = time.perf_counter()
        stats = PassStats()

        scope = empty_scope()
        results = []

        for line in lines:
            if line.is_blank:
                continue

            result = self._evaluate_line(line, scope)
            scope = result.scope_after
            results.append(result)

            stats.lines += 1
            if result.reused:
                stats.reused += 1
            else:
                stats.evaluated += 1
            if result.failure is not None:
                stats.failed += 1

        self.prev_results = {result.line.index: result for result in results}

        stats.duration_ms = (time.perf_counter() - started) * 1000
        self.last_stats = stats
        self._debug(f"pass over {stats.lines} lines: {stats.reused} reused, "
                    f"{stats.evaluated} evaluated, {stats.failed} failed")
        if start_time is not None:
            self._log_perf('evaluate_lines', start_time)

        return results

    def _evaluate_line(self, line: Line, scope: Scope) -> CachedResult:
        scope_before = clone(scope, self.runtime.clone)
        prev = self.prev_results.get(line.index)

        tree = None
        parse_error = None
        try:
            tree = self.runtime.parse(line.text)
            used_symbols = frozenset(self.runtime.symbols(tree))
        except ParseFailure as e:
            parse_error = e
            used_symbols = frozenset()

        if prev is not None and self._is_reusable(prev, line, tree, scope_before, used_symbols):
            return self._reuse(prev, line, tree, scope_before, used_symbols)

        if parse_error is not None:
            return CachedResult(line=line, scope_before=scope_before, scope_after=scope_before,
                                failure=parse_error, used_symbols=used_symbols)

        return self._compute(line, tree, scope_before, used_symbols)

    def _is_reusable(self, prev, line, tree, scope_before, used_symbols) -> bool:
        if self.compare_trees and prev.tree is not None and tree is not None:
            same_source = self.runtime.trees_equal(prev.tree, tree)
        else:
            same_source = prev.line.text == line.text
        if not same_source:
            return False

        return (filter_to_symbols(scope_before, used_symbols)
                == filter_to_symbols(prev.scope_before, used_symbols))

    def _reuse(self, prev, line, tree, scope_before, used_symbols) -> CachedResult:
        # Only names the line read or bound can differ from its incoming scope
        touched = set(used_symbols)
        if tree is not None:
            touched |= self.runtime.assigned_symbols(tree)
        effects = {
            name: self.runtime.clone(prev.scope_after[name])
            for name in touched if name in prev.scope_after
        }

        return dataclasses.replace(
            prev,
            line=line,
            scope_before=scope_before,
            scope_after=scope_before.with_bindings(effects),
            tree=tree if tree is not None else prev.tree,
            reused=True,
        )

    def _compute(self, line, tree, scope_before, used_symbols) -> CachedResult:
        working = working_copy(scope_before, self.runtime.clone)
        started = time.perf_counter()

        try:
            value = self.runtime.evaluate(line.text, working)
        except CalcNoteError as e:
            return self._failed(line, tree, scope_before, used_symbols, e)
        except Exception as e:
            failure = EvaluationFailure(f"{type(e).__name__}: {e}")
            return self._failed(line, tree, scope_before, used_symbols, failure)

        elapsed = time.perf_counter() - started
        if self.line_timeout is not None and elapsed > self.line_timeout:
            failure = EvaluationFailure(
                f"TimeoutError: evaluation took {elapsed:.3f}s, limit is {self.line_timeout}s"
            )
            return self._failed(line, tree, scope_before, used_symbols, failure)

        return CachedResult(
            line=line,
            scope_before=scope_before,
            scope_after=freeze(working, self.runtime.clone),
            value=value,
            used_symbols=used_symbols,
            tree=tree,
        )

    def _failed(self, line, tree, scope_before, used_symbols, failure) -> CachedResult:
        self._debug(f"line {line.index + 1} failed: {failure}")
        return CachedResult(
            line=line,
            scope_before=scope_before,
            scope_after=scope_before,
            failure=failure,
            used_symbols=used_symbols,
            tree=tree,
        )
