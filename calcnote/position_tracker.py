"""
CalcNote Annotation Position Tracker - keeps result markers anchored while text shifts.

Markers live in a flat table: one list of offsets and a parallel list of
payloads. Shifting for an edit only rewrites offsets; payloads are replaced
wholesale when a recompute pass installs fresh results.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from .line_segmenter import Change


@dataclass(frozen=True)
class ResultAnnotation:
    """Rendered content of one marker; equal annotations need no redraw"""
    text: str
    is_error: bool = False
    result: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Marker:
    offset: int
    payload: ResultAnnotation


def annotate(result, format_value: Callable[[Any], str]) -> ResultAnnotation:
    """Build the marker payload for a CachedResult"""
    if result.failure is not None:
        return ResultAnnotation(text=str(result.failure), is_error=True, result=result)
    return ResultAnnotation(text=format_value(result.value), is_error=False, result=result)


class AnnotationPositionTracker:
    """
    Ordered set of result markers keyed by ascending document offset.
    """

    def __init__(self, format_value: Optional[Callable[[Any], str]] = None):
        self.format_value = format_value or str
        self._offsets: List[int] = []
        self._payloads: List[ResultAnnotation] = []

    def __len__(self) -> int:
        return len(self._offsets)

    @property
    def offsets(self) -> List[int]:
        return list(self._offsets)

    def markers(self) -> List[Marker]:
        return [Marker(offset, payload) for offset, payload in zip(self._offsets, self._payloads)]

    def clear(self):
        self._offsets = []
        self._payloads = []

    def shift(self, change: Change) -> None:
        """
        Move markers for one change record, before fresh results exist.

        ``from_a``/``to_a`` are pre-edit positions, but markers have already
        moved for the earlier changes of the transaction, so the change is
        located at ``from_b`` and spans ``to_a - from_a`` characters in the
        markers' frame. Markers inside a removed span are dropped. Markers at
        or after the change move by the net length difference; a lone line
        break inserted right at a marker opens a new line below it, so that
        marker stays put.
        """
        start = change.from_b
        removed_end = start + (change.to_a - change.from_a)
        delta = (change.to_b - change.from_b) - (change.to_a - change.from_a)
        removing = delta < 0
        step_over = change.inserted == '\n'

        offsets = []
        keep = []
        for slot, offset in enumerate(self._offsets):
            if removing and start <= offset <= removed_end:
                continue

            if step_over and not removing:
                moves = offset > start
            else:
                moves = offset >= start

            offsets.append(offset + delta if moves else offset)
            keep.append(slot)

        if len(keep) != len(self._payloads):
            self._payloads = [self._payloads[slot] for slot in keep]
        self._offsets = offsets

    def apply_transaction(self, changes: Iterable[Change]) -> None:
        """Apply the change records of one transaction in document order"""
        for change in sorted(changes, key=lambda c: (c.from_a, c.to_a)):
            self.shift(change)

    def install(self, results) -> List[int]:
        """
        Replace every marker with one per non-blank result.

        Args:
            results (list): CachedResult objects of a finished pass

        Returns:
            list: Slots whose payload differs from the marker previously
            in that slot and therefore has to be redrawn
        """
        previous = self._payloads

        offsets = []
        payloads = []
        for result in results:
            if result.line.is_blank:
                continue
            offsets.append(result.line.end_offset)
            payloads.append(annotate(result, self.format_value))

        self._offsets = offsets
        self._payloads = payloads

        return [
            slot for slot, payload in enumerate(payloads)
            if slot >= len(previous) or previous[slot] != payload
        ]
