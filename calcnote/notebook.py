"""
CalcNote Notebook - wires segmentation, evaluation, markers and debouncing together.

An edit transaction shifts the current markers immediately and restarts the
quiescence window; when it elapses, one recompute pass runs and its results
replace the provisional markers.
"""

from typing import Callable, Iterable, List, Optional

from . import constants
from .document_store import DocumentStore
from .expression_runtime import ExpressionRuntime
from .incremental_evaluator import CachedResult, IncrementalEvaluator
from .line_segmenter import Change, apply_changes
from .performance import PerformanceMonitoringMixin
from .position_tracker import AnnotationPositionTracker, Marker
from .recompute_scheduler import RecomputeScheduler


class Notebook(PerformanceMonitoringMixin):
    """
    A live calculator document.

    Listeners registered with ``add_listener`` are called as
    ``listener(results, changed_slots)`` after every recompute pass.
    """

    def __init__(self, text: Optional[str] = None, runtime=None, store: Optional[DocumentStore] = None,
                 delay_ms: int = constants.DEBOUNCE_DELAY_MS, precision: int = constants.DEFAULT_PRECISION,
                 compare_trees: bool = False, line_timeout=constants.LINE_TIMEOUT, loop=None,
                 debug_enabled=None):
        self._init_perf(debug_enabled)
        self.runtime = runtime or ExpressionRuntime(precision=precision)
        self.precision = precision
        self.store = store

        self.evaluator = IncrementalEvaluator(self.runtime, compare_trees=compare_trees,
                                              line_timeout=line_timeout, debug_enabled=debug_enabled)
        self.tracker = AnnotationPositionTracker(self.format_value)
        self.scheduler = RecomputeScheduler(self.recompute, delay_ms, loop)
        self._listeners: List[Callable] = []

        if text is None and store is not None:
            text = store.load()
        if text is None:
            text = constants.INITIAL_TEXT
        self._text = text
        self.passes = 0

    @property
    def text(self) -> str:
        return self._text

    @property
    def results(self) -> List[CachedResult]:
        return self.evaluator.results

    def format_value(self, value) -> str:
        return self.runtime.format(value, self.precision)

    def markers(self) -> List[Marker]:
        return self.tracker.markers()

    def add_listener(self, listener: Callable) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def apply_transaction(self, changes: Iterable[Change], schedule: bool = True) -> List[Marker]:
        """
        Handle a document-changed transaction from the editing surface.

        Args:
            changes (iterable): Change records of the transaction
            schedule (bool): Arm the debounced recompute

        Returns:
            list: Provisional markers after shifting
        """
        changes = list(changes)
        if not changes:
            return self.markers()

        self._text = apply_changes(self._text, changes)
        self.tracker.apply_transaction(changes)

        if schedule:
            self.scheduler.schedule()
        return self.markers()

    def set_text(self, text: str) -> List[CachedResult]:
        """Replace the whole document and recompute right away"""
        if not isinstance(text, str):
            raise TypeError(f"Document text must be a string, not {type(text).__name__}")
        self.scheduler.cancel()
        self._text = text
        return self.recompute()

    def reset(self) -> List[CachedResult]:
        """Drop every cached result and evaluate the document from scratch"""
        self.evaluator.reset()
        return self.recompute()

    def recompute(self) -> List[CachedResult]:
        """
        Run one recompute pass over the current document.

        Installs the results as markers, persists the text and notifies
        listeners.
        """
        start_time = self._log_perf('recompute')
        self.scheduler.cancel()

        results = self.evaluator.evaluate_text(self._text)
        changed = self.tracker.install(results)
        self.passes += 1

        if self.store is not None:
            self.store.save(self._text)

        for listener in list(self._listeners):
            listener(results, changed)

        if start_time is not None:
            self._log_perf('recompute', start_time)
        return results
