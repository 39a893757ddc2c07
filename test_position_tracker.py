"""
Tests for CalcNote marker position tracking.
"""

from calcnote.expression_runtime import ExpressionRuntime
from calcnote.incremental_evaluator import IncrementalEvaluator
from calcnote.line_segmenter import Change
from calcnote.position_tracker import AnnotationPositionTracker, Marker, ResultAnnotation

TEXT = "1 + 1\n2 + 2\n3 + 3"


def make_tracker(text=TEXT):
    evaluator = IncrementalEvaluator()
    tracker = AnnotationPositionTracker(evaluator.runtime.format)
    tracker.install(evaluator.evaluate_text(text))
    return evaluator, tracker


def texts(tracker):
    return [marker.payload.text for marker in tracker.markers()]


def test_install_anchors_markers_at_line_ends():
    _, tracker = make_tracker()

    assert tracker.offsets == [5, 11, 17]
    assert texts(tracker) == ["2", "4", "6"]
    assert len(tracker) == 3


def test_insertion_shifts_markers_at_or_after_position():
    """Test insertion shifts every marker at or after the edit by the inserted length"""
    print("Testing marker shifting...")
    _, tracker = make_tracker()

    tracker.shift(Change.insertion(6, "XYZ"))
    assert tracker.offsets == [5, 14, 20]

    tracker.shift(Change.insertion(5, "0"))
    assert tracker.offsets == [6, 15, 21]
    print("✓ Marker shifting passed")


def test_insertion_before_every_marker_shifts_all():
    for position in range(0, 5):
        _, tracker = make_tracker()
        tracker.shift(Change.insertion(position, "12"))
        assert tracker.offsets == [7, 13, 19]


def test_line_break_at_marker_keeps_it_on_the_line_above():
    _, tracker = make_tracker()

    tracker.shift(Change.insertion(5, "\n"))

    assert tracker.offsets == [5, 12, 18]


def test_line_break_elsewhere_shifts_normally():
    _, tracker = make_tracker()

    tracker.shift(Change.insertion(3, "\n"))

    assert tracker.offsets == [6, 12, 18]


def test_deleting_a_line_removes_its_marker():
    """Test deletion removes the marker instead of moving it to a neighbour"""
    print("\nTesting marker deletion...")
    _, tracker = make_tracker()

    tracker.shift(Change.deletion(6, 12))

    assert tracker.offsets == [5, 11]
    assert texts(tracker) == ["2", "6"]
    print("✓ Marker deletion passed")


def test_transaction_uses_pre_edit_positions():
    """Test a multi-change transaction places each change where the editor reports it"""
    print("\nTesting multi-change transaction...")
    _, tracker = make_tracker()

    # "10" inserted at 0, then "2 + 2\n" (pre-edit [6, 12)) deleted, now at 8
    changes = [Change(0, 0, 0, 2, "10"), Change(6, 12, 8, 8, "")]
    tracker.apply_transaction(changes)

    assert tracker.offsets == [7, 13]
    assert texts(tracker) == ["2", "6"]
    print("✓ Multi-change transaction passed")


def test_transaction_order_of_records_does_not_matter():
    _, tracker = make_tracker()

    tracker.apply_transaction([Change(6, 12, 8, 8, ""), Change(0, 0, 0, 2, "10")])

    assert tracker.offsets == [7, 13]
    assert texts(tracker) == ["2", "6"]


def test_transaction_deletion_matches_single_change():
    _, single = make_tracker()
    single.shift(Change.deletion(5, 11))

    _, tracker = make_tracker()
    tracker.apply_transaction([Change(0, 0, 0, 2, "10"), Change(5, 11, 7, 7, "")])

    assert texts(tracker) == texts(single) == ["6"]
    assert tracker.offsets == [single.offsets[0] + 2]


def test_install_reports_changed_slots():
    evaluator, tracker = make_tracker()

    assert tracker.install(evaluator.evaluate_text(TEXT)) == []

    changed = tracker.install(evaluator.evaluate_text("1 + 1\n2 + 2\n3 + 4"))
    assert changed == [2]

    changed = tracker.install(evaluator.evaluate_text("1 + 1\n2 + 2\n3 + 4\n5"))
    assert changed == [3]


def test_install_replaces_provisional_markers():
    evaluator, tracker = make_tracker()
    tracker.shift(Change.insertion(0, "1"))
    assert texts(tracker) == ["2", "4", "6"]

    tracker.install(evaluator.evaluate_text("11 + 1\n2 + 2\n3 + 3"))

    assert tracker.offsets == [6, 12, 18]
    assert texts(tracker) == ["12", "4", "6"]


def test_error_annotations():
    _, tracker = make_tracker("1 +\n2")
    first, second = tracker.markers()

    assert first.payload.is_error
    assert first.payload.text.startswith("SyntaxError")
    assert second == Marker(5, ResultAnnotation("2"))


def test_payload_equality_ignores_result_identity():
    runtime = ExpressionRuntime()
    assert ResultAnnotation("4", result=object()) == ResultAnnotation("4", result=None)
    assert ResultAnnotation("4") != ResultAnnotation("4", is_error=True)
    assert runtime.format(4) == "4"


def test_clear():
    _, tracker = make_tracker()
    tracker.clear()
    assert tracker.markers() == []
