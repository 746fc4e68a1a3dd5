"""YOLOv5 face detection with five facial landmarks per face."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from detkit.boxes import Rect, nms_boxes, sigmoid
from detkit.drawing import draw_circle, draw_rectangle, draw_text
from detkit.imaging import blob_from_image

Model = Callable[[list], Sequence[np.ndarray]]

STRIDES = (8.0, 16.0, 32.0)

ANCHORS = (
    (4.0, 5.0, 8.0, 10.0, 13.0, 16.0),
    (23.0, 29.0, 43.0, 55.0, 73.0, 105.0),
    (146.0, 217.0, 231.0, 300.0, 335.0, 433.0),
)

# Columns: box (4), objectness, five landmarks (10), face score.
NOUT = 16
NUM_LANDMARKS = 5

BOX_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 255, 0)
POINT_COLOR = (0, 255, 0)

# Approximate label height at font scale 0.5, used to keep labels inside the frame.
_LABEL_HEIGHT = 11


class LandmarkMode(enum.Enum):
    """How landmark outputs are turned into cell offsets.

    ``RAW`` uses the outputs as offsets in anchor units; ``SIGMOID`` maps each
    output through the logistic function onto the range (-4, 4) first.
    """

    RAW = "raw"
    SIGMOID = "sigmoid"


@dataclass
class FaceDetection:
    """A face box in frame pixels, its score and five (x, y) landmarks."""

    rect: Rect
    score: float
    landmarks: tuple[tuple[int, int], ...]


def _landmark(value: float, anchor: float, offset: float, ratio: float, mode: LandmarkMode) -> int:
    if mode is LandmarkMode.RAW:
        return int(int(value * anchor + offset) * ratio)
    shifted = sigmoid(value) * 8 - 4
    return int((shifted * anchor + offset) * ratio)


def decode_faces(
    preds,
    input_size: int = 640,
    obj_threshold: float = 0.3,
    ratio_h: float = 1.0,
    ratio_w: float = 1.0,
    landmark_mode: LandmarkMode = LandmarkMode.RAW,
) -> list[FaceDetection]:
    """Faces from rows of 16 raw logits over a square ``input_size`` grid.

    A row is kept when the logistic of its objectness exceeds
    ``obj_threshold``; its score is the logistic of the last column. The
    ratios scale input pixels into frame pixels.
    """
    arr = np.asarray(preds, dtype=np.float64)
    if arr.ndim == 0 or arr.shape[-1] != NOUT:
        raise ValueError(f"face rows must have {NOUT} columns")
    rows = arr.reshape(-1, NOUT)

    faces: list[FaceDetection] = []
    start = 0
    for stride, level in zip(STRIDES, ANCHORS):
        grid = int(input_size / stride)
        cell_i, cell_j = np.divmod(np.arange(grid * grid), grid)
        for q in range(3):
            end = start + grid * grid
            if end > len(rows):
                raise ValueError(f"model output has {len(rows)} rows, fewer than the grid needs")
            block = rows[start:end]
            start = end
            anchor_w, anchor_h = level[2 * q], level[2 * q + 1]
            keep = sigmoid(block[:, 4]) > obj_threshold
            for i, j, row in zip(cell_i[keep], cell_j[keep], block[keep]):
                sx, sy, sw, sh = sigmoid(row[:4])
                cx = (sx * 2.0 - 0.5 + j) * stride
                cy = (sy * 2.0 - 0.5 + i) * stride
                w = (sw * 2.0) ** 2 * anchor_w
                h = (sh * 2.0) ** 2 * anchor_h
                left = int((cx - 0.5 * w) * ratio_w)
                top = int((cy - 0.5 * h) * ratio_h)
                rect = Rect(left, top, int(w * ratio_w), int(h * ratio_h))
                landmarks = tuple(
                    (
                        _landmark(float(row[k]), anchor_w, j * stride, ratio_w, landmark_mode),
                        _landmark(float(row[k + 1]), anchor_h, i * stride, ratio_h, landmark_mode),
                    )
                    for k in range(5, 5 + 2 * NUM_LANDMARKS, 2)
                )
                faces.append(FaceDetection(rect, sigmoid(float(row[15])), landmarks))
    return faces


class YoloV5Face:
    """Runs a YOLOv5 face model given as a callable on a list of input arrays.

    The model takes ``[blob (1, 3, S, S)]`` of RGB values in [0, 1] and
    returns ``[predictions (1, N, 16)]`` of raw logits.
    """

    def __init__(
        self,
        model: Model,
        conf_threshold: float = 0.3,
        nms_threshold: float = 0.5,
        obj_threshold: float = 0.3,
        input_size: int = 640,
        landmark_mode: LandmarkMode = LandmarkMode.RAW,
    ):
        self.model = model
        self.conf_threshold = conf_threshold
        self.nms_threshold = nms_threshold
        self.obj_threshold = obj_threshold
        self.input_size = input_size
        self.landmark_mode = landmark_mode

    def detect(self, frame: np.ndarray) -> list[FaceDetection]:
        """Faces in a BGR frame, in frame pixels, after suppression."""
        frame = np.asarray(frame)
        size = self.input_size
        blob = blob_from_image(frame, 1 / 255.0, (size, size), swap_rb=True)
        preds = self.model([blob])[0]
        height, width = frame.shape[:2]
        faces = decode_faces(
            preds,
            size,
            self.obj_threshold,
            height / size,
            width / size,
            self.landmark_mode,
        )
        kept = nms_boxes(
            [face.rect for face in faces],
            [face.score for face in faces],
            self.conf_threshold,
            self.nms_threshold,
        )
        return [faces[i] for i in kept]

    def draw(self, frame: np.ndarray, faces: Sequence[FaceDetection]) -> np.ndarray:
        """Draw boxes, scores and landmarks onto ``frame`` in place."""
        for face in faces:
            rect = face.rect
            draw_rectangle(frame, (rect.x, rect.y), (rect.right(), rect.bottom()), BOX_COLOR, 2)
            top = max(rect.y, _LABEL_HEIGHT)
            draw_text(frame, f"{face.score:.2f}", (rect.x, top), TEXT_COLOR, 0.75)
            for point in face.landmarks:
                draw_circle(frame, point, 1, POINT_COLOR)
        return frame