import numpy as np
import pytest

from detkit.boxes import Box, Rect, nms, nms_boxes, sigmoid


def test_rect_right_and_bottom_are_consistent():
    r = Rect(2, 3, 4, 5)
    assert r.right() - r.width == r.x
    assert r.bottom() - r.height == r.y


def test_sigmoid_midpoint_and_symmetry():
    assert sigmoid(0.0) == pytest.approx(0.5)
    for x in (-3.0, 0.7, 5.0):
        assert sigmoid(x) + sigmoid(-x) == pytest.approx(1.0)


def test_sigmoid_array_is_monotone_and_bounded():
    values = sigmoid(np.array([-10.0, -1.0, 0.0, 1.0, 10.0]))
    assert np.all(np.diff(values) > 0)
    assert np.all((values > 0) & (values < 1))


def test_nms_removes_identical_lower_score():
    a = Box(0, 0, 10, 10, 0.9, 1)
    b = Box(0, 0, 10, 10, 0.5, 1)
    assert nms([b, a], 0.5) == [a]


def test_nms_keeps_disjoint_boxes_sorted_by_score():
    a = Box(0, 0, 10, 10, 0.4)
    b = Box(100, 100, 110, 110, 0.8)
    result = nms([a, b], 0.5)
    assert result == [b, a]


def test_nms_threshold_controls_suppression():
    a = Box(0, 0, 9, 9, 0.9)
    b = Box(5, 0, 14, 9, 0.8)
    assert len(nms([a, b], 0.2)) == 1
    assert len(nms([a, b], 0.9)) == 2


def test_nms_empty():
    assert nms([], 0.5) == []


def test_nms_boxes_filters_scores_and_orders():
    rects = [Rect(0, 0, 10, 10), Rect(50, 50, 10, 10), Rect(100, 100, 10, 10)]
    scores = [0.3, 0.9, 0.6]
    assert nms_boxes(rects, scores, 0.5, 0.5) == [1, 2]


def test_nms_boxes_suppresses_overlap():
    rects = [Rect(0, 0, 10, 10), Rect(0, 0, 10, 10), Rect(1, 1, 10, 10)]
    scores = [0.7, 0.8, 0.6]
    assert nms_boxes(rects, scores, 0.1, 0.5) == [1]


def test_nms_boxes_top_k_limits_candidates():
    rects = [Rect(i * 20, 0, 10, 10) for i in range(4)]
    scores = [0.6, 0.7, 0.8, 0.9]
    assert nms_boxes(rects, scores, 0.0, 0.5, 1.0, 2) == [3, 2]


def test_nms_boxes_length_mismatch():
    with pytest.raises(ValueError):
        nms_boxes([Rect(0, 0, 1, 1)], [0.5, 0.6], 0.1, 0.5)


def test_rect_overlap_of_empty_rects_is_full():
    assert Rect(0, 0, 0, 0).overlap(Rect(3, 3, 0, 0)) == 1.0