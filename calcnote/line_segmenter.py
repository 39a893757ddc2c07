"""
CalcNote Line Segmenter - splits a document snapshot into offset-carrying lines.
"""

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class Line:
    """One newline-delimited segment of the document."""
    index: int
    start_offset: int
    end_offset: int
    text: str

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class Change:
    """
    A single change record of an edit transaction.

    ``from_a``/``to_a`` delimit the replaced span in the document before the
    edit, ``from_b``/``to_b`` the span the inserted text occupies after it.
    """
    from_a: int
    to_a: int
    from_b: int
    to_b: int
    inserted: str = ""

    @classmethod
    def insertion(cls, pos: int, text: str) -> "Change":
        return cls(pos, pos, pos, pos + len(text), text)

    @classmethod
    def deletion(cls, start: int, end: int) -> "Change":
        return cls(start, end, start, start, "")

    @classmethod
    def replacement(cls, start: int, end: int, text: str) -> "Change":
        return cls(start, end, start, start + len(text), text)


def segment_lines(text: str) -> List[Line]:
    """
    Split the full document text into lines.

    Every ``\\n``-delimited segment produces a Line, empty ones included.
    ``end_offset`` is the absolute position right after the line's last
    character: ``previous.end_offset + 1 + len(text)``, with the first line
    based at 0.

    Args:
        text (str): Full document text

    Returns:
        list: Ordered Line objects
    """
    lines = []
    end_offset = -1

    for index, line_text in enumerate(text.split('\n')):
        end_offset = end_offset + 1 + len(line_text)
        lines.append(Line(
            index=index,
            start_offset=end_offset - len(line_text),
            end_offset=end_offset,
            text=line_text,
        ))

    return lines


def apply_changes(text: str, changes: Iterable[Change]) -> str:
    """
    Apply the change records of one transaction to a document string.

    Positions are taken from the pre-edit document, so changes are spliced
    in from the end of the document towards its start.
    """
    for change in sorted(changes, key=lambda c: (c.from_a, c.to_a), reverse=True):
        if not 0 <= change.from_a <= change.to_a <= len(text):
            raise ValueError(
                f"Change [{change.from_a}, {change.to_a}) is outside a document of length {len(text)}"
            )
        text = text[:change.from_a] + change.inserted + text[change.to_a:]
    return text
