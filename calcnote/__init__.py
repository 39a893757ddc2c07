"""
CalcNote - live calculator notebook with incremental per-line evaluation.
"""

from .constants import APP_VERSION as __version__
from .document_store import DocumentStore
from .expression_runtime import CalcNoteError, EvaluationFailure, ExpressionRuntime, ParseFailure
from .incremental_evaluator import CachedResult, IncrementalEvaluator, PassStats
from .line_segmenter import Change, Line, apply_changes, segment_lines
from .notebook import Notebook
from .position_tracker import AnnotationPositionTracker, Marker, ResultAnnotation
from .recompute_scheduler import RecomputeScheduler
from .scope_store import Scope, clone, filter_to_symbols, scopes_equal

__all__ = [
    "AnnotationPositionTracker",
    "CachedResult",
    "CalcNoteError",
    "Change",
    "DocumentStore",
    "EvaluationFailure",
    "ExpressionRuntime",
    "IncrementalEvaluator",
    "Line",
    "Marker",
    "Notebook",
    "ParseFailure",
    "PassStats",
    "RecomputeScheduler",
    "ResultAnnotation",
    "Scope",
    "apply_changes",
    "clone",
    "filter_to_symbols",
    "scopes_equal",
    "segment_lines",
]
