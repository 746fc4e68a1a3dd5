"""YOLOv5-Lite object detection and YOLOv5 licence-plate corner detection."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence

import numpy as np

from detkit.boxes import Box, nms, sigmoid
from detkit.drawing import draw_circle, draw_rectangle, draw_text
from detkit.imaging import Interpolation, Letterbox, letterbox, to_chw

Model = Callable[[list], Sequence[np.ndarray]]

STRIDES = (8.0, 16.0, 32.0)

LITE_ANCHORS = (
    (10.0, 13.0, 16.0, 30.0, 33.0, 23.0),
    (30.0, 61.0, 62.0, 45.0, 59.0, 119.0),
    (116.0, 90.0, 156.0, 198.0, 373.0, 326.0),
)

PLATE_ANCHORS = (
    (4.0, 5.0, 8.0, 10.0, 13.0, 16.0),
    (23.0, 29.0, 43.0, 55.0, 73.0, 105.0),
    (146.0, 217.0, 231.0, 300.0, 335.0, 433.0),
)

# Columns: box (4), objectness, four corner points (8), plate score.
PLATE_MIN_COLUMNS = 14

BOX_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 255, 0)
POINT_COLOR = (0, 255, 0)


@dataclass
class CornerBox(Box):
    """A detection box with the four corner points of the object inside it."""

    corners: tuple = field(default=())


def _as_rows(preds, columns: int) -> np.ndarray:
    arr = np.asarray(preds, dtype=np.float64)
    return arr.reshape(-1, columns)


def _blocks(
    rows: np.ndarray, anchors, input_height: int, input_width: int
) -> Iterator[tuple[float, float, float, np.ndarray, np.ndarray, np.ndarray]]:
    """Per anchor: stride, anchor size, cell rows, cell columns and their output rows."""
    start = 0
    for stride, level in zip(STRIDES, anchors):
        grid_x = int(input_width / stride)
        grid_y = int(input_height / stride)
        cell_i, cell_j = np.divmod(np.arange(grid_x * grid_y), grid_x)
        for q in range(3):
            end = start + len(cell_i)
            if end > len(rows):
                raise ValueError(
                    f"model output has {len(rows)} rows, fewer than the grid needs"
                )
            yield stride, level[2 * q], level[2 * q + 1], cell_i, cell_j, rows[start:end]
            start = end


def decode_yolov5_lite(
    preds,
    num_class: int,
    input_height: int,
    input_width: int,
    obj_threshold: float,
    letterbox: Letterbox,
) -> list[Box]:
    """Boxes from rows of (x, y, w, h, objectness, class scores...) with activations applied.

    Rows above ``obj_threshold`` are kept; the class is the best positive class
    score. Coordinates are in the pixels of the letterboxed content with the
    padding removed; scale by frame size over content size for frame pixels.
    """
    rows = _as_rows(preds, num_class + 5)
    boxes: list[Box] = []
    for stride, anchor_w, anchor_h, cell_i, cell_j, block in _blocks(
        rows, LITE_ANCHORS, input_height, input_width
    ):
        keep = block[:, 4] > obj_threshold
        for i, j, row in zip(cell_i[keep], cell_j[keep], block[keep]):
            class_id, class_score = 0, 0.0
            classes = row[5 : 5 + num_class]
            if classes.size:
                best = int(np.argmax(classes))
                if classes[best] > 0:
                    class_id, class_score = best, float(classes[best])
            cx = (row[0] * 2.0 - 0.5 + j) * stride
            cy = (row[1] * 2.0 - 0.5 + i) * stride
            w = (row[2] * 2.0) ** 2 * anchor_w
            h = (row[3] * 2.0) ** 2 * anchor_h
            boxes.append(
                Box(
                    float(cx - letterbox.pad_left - 0.5 * w),
                    float(cy - letterbox.pad_top - 0.5 * h),
                    float(cx - letterbox.pad_left + 0.5 * w),
                    float(cy - letterbox.pad_top + 0.5 * h),
                    class_score,
                    class_id,
                )
            )
    return boxes


def decode_plate_corners(
    preds,
    nout: int,
    input_height: int,
    input_width: int,
    obj_threshold: float,
    letterbox: Letterbox,
) -> list[CornerBox]:
    """Plate boxes and corners from raw rows of ``nout`` logits.

    Coordinates, corners included, are in the pixels of the letterboxed
    content with the padding removed, as floats.
    """
    if nout < PLATE_MIN_COLUMNS:
        raise ValueError(f"plate rows need at least {PLATE_MIN_COLUMNS} columns, got {nout}")
    rows = _as_rows(preds, nout)
    boxes: list[CornerBox] = []
    for stride, anchor_w, anchor_h, cell_i, cell_j, block in _blocks(
        rows, PLATE_ANCHORS, input_height, input_width
    ):
        keep = sigmoid(block[:, 4]) > obj_threshold
        for i, j, row in zip(cell_i[keep], cell_j[keep], block[keep]):
            plate_score = sigmoid(float(row[13]))
            sx, sy, sw, sh = sigmoid(row[:4])
            cx = (sx * 2.0 - 0.5 + j) * stride
            cy = (sy * 2.0 - 0.5 + i) * stride
            w = (sw * 2.0) ** 2 * anchor_w
            h = (sh * 2.0) ** 2 * anchor_h
            corners = tuple(
                (
                    float(row[k] * anchor_w + j * stride - letterbox.pad_left),
                    float(row[k + 1] * anchor_h + i * stride - letterbox.pad_top),
                )
                for k in (5, 7, 9, 11)
            )
            boxes.append(
                CornerBox(
                    float(cx - letterbox.pad_left - 0.5 * w),
                    float(cy - letterbox.pad_top - 0.5 * h),
                    float(cx - letterbox.pad_left + 0.5 * w),
                    float(cy - letterbox.pad_top + 0.5 * h),
                    plate_score,
                    0,
                    corners,
                )
            )
    return boxes


def _to_frame(box: Box, ratio_h: float, ratio_w: float) -> Box:
    scaled = dataclasses.replace(
        box,
        x1=box.x1 * ratio_w,
        y1=box.y1 * ratio_h,
        x2=box.x2 * ratio_w,
        y2=box.y2 * ratio_h,
    )
    if isinstance(box, CornerBox):
        scaled.corners = tuple((int(x * ratio_w), int(y * ratio_h)) for x, y in box.corners)
    return scaled


def _prepare(frame: np.ndarray, input_height: int, input_width: int) -> tuple[Letterbox, np.ndarray]:
    fitted = letterbox(frame, input_height, input_width, True, Interpolation.AREA)
    blob = to_chw(fitted.image, swap_rb=True, scale=1 / 255.0)[None, ...]
    return fitted, blob


class YoloV5Lite:
    """Runs a YOLOv5-Lite model given as a callable on a list of input arrays.

    The model takes ``[image (1, 3, H, W)]`` of RGB values in [0, 1] and
    returns ``[predictions (1, N, 5 + classes)]`` with activations applied.
    """

    def __init__(
        self,
        model: Model,
        conf_threshold: float = 0.5,
        nms_threshold: float = 0.6,
        obj_threshold: float = 0.5,
        class_names: Optional[Sequence[str]] = None,
        input_height: int = 320,
        input_width: int = 320,
    ):
        self.model = model
        self.conf_threshold = conf_threshold
        self.nms_threshold = nms_threshold
        self.obj_threshold = obj_threshold
        self.class_names = list(class_names) if class_names is not None else None
        self.input_height = input_height
        self.input_width = input_width

    def detect(self, frame: np.ndarray) -> list[Box]:
        """Detections in a BGR frame, in frame pixels, after suppression."""
        frame = np.asarray(frame)
        fitted, blob = _prepare(frame, self.input_height, self.input_width)
        output = np.asarray(self.model([blob])[0], dtype=np.float32)
        if self.class_names is not None:
            num_class = len(self.class_names)
        else:
            num_class = output.shape[-1] - 5
        decoded = decode_yolov5_lite(
            output, num_class, self.input_height, self.input_width, self.obj_threshold, fitted
        )
        height, width = frame.shape[:2]
        ratio_h = height / fitted.new_height
        ratio_w = width / fitted.new_width
        return nms([_to_frame(b, ratio_h, ratio_w) for b in decoded], self.nms_threshold)

    def draw(self, frame: np.ndarray, boxes: Sequence[Box]) -> np.ndarray:
        """Draw boxes and ``name:score`` labels onto ``frame`` in place."""
        for box in boxes:
            xmin, ymin = int(box.x1), int(box.y1)
            draw_rectangle(frame, (xmin, ymin), (int(box.x2), int(box.y2)), BOX_COLOR, 2)
            name = self.class_names[box.label] if self.class_names is not None else str(box.label)
            draw_text(frame, f"{name}:{box.score:.2f}", (xmin, ymin - 5), TEXT_COLOR, 0.75)
        return frame


class PlateCornerDetector:
    """Finds licence plates and their four corners with a YOLOv5 model.

    The model takes ``[image (1, 3, H, W)]`` of RGB values in [0, 1] and
    returns ``[predictions (1, N, 14)]`` of raw logits.
    """

    def __init__(
        self,
        model: Model,
        conf_threshold: float = 0.3,
        nms_threshold: float = 0.5,
        obj_threshold: float = 0.3,
        input_height: int = 640,
        input_width: int = 640,
    ):
        self.model = model
        self.conf_threshold = conf_threshold
        self.nms_threshold = nms_threshold
        self.obj_threshold = obj_threshold
        self.input_height = input_height
        self.input_width = input_width

    def detect(self, frame: np.ndarray) -> list[CornerBox]:
        """Plates in a BGR frame, in frame pixels, after suppression."""
        frame = np.asarray(frame)
        fitted, blob = _prepare(frame, self.input_height, self.input_width)
        output = np.asarray(self.model([blob])[0], dtype=np.float32)
        decoded = decode_plate_corners(
            output, output.shape[-1], self.input_height, self.input_width, self.obj_threshold, fitted
        )
        height, width = frame.shape[:2]
        ratio_h = height / fitted.new_height
        ratio_w = width / fitted.new_width
        return nms([_to_frame(b, ratio_h, ratio_w) for b in decoded], self.nms_threshold)

    def draw(self, frame: np.ndarray, boxes: Sequence[CornerBox]) -> np.ndarray:
        """Draw plate boxes and corner points onto ``frame`` in place."""
        for box in boxes:
            draw_rectangle(
                frame, (int(box.x1), int(box.y1)), (int(box.x2), int(box.y2)), BOX_COLOR, 2
            )
            for point in box.corners:
                draw_circle(frame, point, 2, POINT_COLOR)
        return frame