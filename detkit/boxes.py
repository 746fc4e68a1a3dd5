"""Detection boxes, non-maximum suppression and the logistic function."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass
class Box:
    """A corner-form detection box with its score and class label."""

    x1: float
    y1: float
    x2: float
    y2: float
    score: float
    label: int = 0

    @property
    def area(self) -> float:
        """Pixel area counting both edges, as used by :func:`nms`."""
        return (self.x2 - self.x1 + 1) * (self.y2 - self.y1 + 1)


@dataclass
class Rect:
    """An integer rectangle given by its top-left corner and size."""

    x: int
    y: int
    width: int
    height: int

    def right(self) -> int:
        """The x coordinate just past the right edge."""
        return self.x + self.width

    def bottom(self) -> int:
        """The y coordinate just past the bottom edge."""
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height if self.width > 0 and self.height > 0 else 0

    def intersection(self, other: "Rect") -> "Rect":
        """The overlapping rectangle, empty when the two do not meet."""
        x = max(self.x, other.x)
        y = max(self.y, other.y)
        width = min(self.right(), other.right()) - x
        height = min(self.bottom(), other.bottom()) - y
        if width <= 0 or height <= 0:
            return Rect(0, 0, 0, 0)
        return Rect(x, y, width, height)

    def overlap(self, other: "Rect") -> float:
        """Intersection over union; two empty rectangles overlap fully."""
        total = self.area + other.area
        if total <= 0:
            return 1.0
        inter = self.intersection(other).area
        return inter / (total - inter)


def sigmoid(x):
    """The logistic function, for a number or a numpy array."""
    if isinstance(x, np.ndarray):
        return 1.0 / (1.0 + np.exp(-x))
    return 1.0 / (1.0 + float(np.exp(-float(x))))


def nms(boxes: Sequence[Box], threshold: float) -> list[Box]:
    """Greedy suppression by descending score; overlap counts edge pixels.

    A box is dropped when its overlap with a kept, higher-scoring box is at
    least ``threshold``.
    """
    ordered = sorted(boxes, key=lambda b: b.score, reverse=True)
    kept: list[Box] = []
    for candidate in ordered:
        if all(_corner_overlap(chosen, candidate) < threshold for chosen in kept):
            kept.append(candidate)
    return kept


def _corner_overlap(a: Box, b: Box) -> float:
    w = max(0.0, min(a.x2, b.x2) - max(a.x1, b.x1) + 1)
    h = max(0.0, min(a.y2, b.y2) - max(a.y1, b.y1) + 1)
    inter = w * h
    return inter / (a.area + b.area - inter)


def nms_boxes(
    rects: Sequence[Rect],
    scores: Sequence[float],
    score_threshold: float,
    nms_threshold: float,
    eta: float = 1.0,
    top_k: int = 0,
) -> list[int]:
    """Indices of the rectangles kept by score filtering and suppression.

    Candidates scoring above ``score_threshold`` are taken in descending
    score order (at most ``top_k`` when positive); each is kept when its
    overlap with every kept rectangle is at most the running threshold,
    which shrinks by ``eta`` after each keep while above 0.5.
    """
    if len(rects) != len(scores):
        raise ValueError("rects and scores must have the same length")
    candidates = sorted(
        (i for i, s in enumerate(scores) if s > score_threshold),
        key=lambda i: scores[i],
        reverse=True,
    )
    if 0 < top_k < len(candidates):
        candidates = candidates[:top_k]

    kept: list[int] = []
    adaptive = nms_threshold
    for idx in candidates:
        if all(rects[k].overlap(rects[idx]) <= adaptive for k in kept):
            kept.append(idx)
            if eta < 1 and adaptive > 0.5:
                adaptive *= eta
    return kept