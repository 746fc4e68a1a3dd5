"""YOLOv7 detection on a model that returns one row per proposal."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import numpy as np

from detkit.boxes import Box, nms
from detkit.drawing import draw_rectangle, draw_text
from detkit.imaging import Interpolation, resize, to_chw

Model = Callable[[list], Sequence[np.ndarray]]

BOX_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 255, 0)


def decode_yolov7(
    predictions,
    conf_threshold: float,
    num_class: int,
    ratio_h: float,
    ratio_w: float,
) -> list[Box]:
    """Boxes from rows of (cx, cy, w, h, objectness, class scores...).

    A row is kept when its objectness and its objectness times its best
    positive class score both exceed ``conf_threshold``. Coordinates are
    scaled by the ratios into frame pixels.
    """
    rows = np.asarray(predictions, dtype=np.float32)
    if rows.ndim != 2:
        rows = rows.reshape(-1, rows.shape[-1])
    boxes: list[Box] = []
    for row in rows:
        box_score = row[4]
        if not box_score > conf_threshold:
            continue
        classes = row[5 : 5 + num_class]
        class_id = 0
        class_score = np.float32(0.0)
        if classes.size:
            best = int(np.argmax(classes))
            if classes[best] > 0:
                class_id, class_score = best, classes[best]
        score = np.float32(class_score * box_score)
        if score > conf_threshold:
            cx = float(row[0]) * ratio_w
            cy = float(row[1]) * ratio_h
            w = float(row[2]) * ratio_w
            h = float(row[3]) * ratio_h
            boxes.append(Box(cx - 0.5 * w, cy - 0.5 * h, cx + 0.5 * w, cy + 0.5 * h, float(score), class_id))
    return boxes


class YoloV7:
    """Runs a YOLOv7 model given as a callable on a list of input arrays.

    The model takes ``[image (1, 3, H, W)]`` of RGB values in [0, 1] and
    returns ``[proposals (1, N, 5 + classes)]``.
    """

    def __init__(
        self,
        model: Model,
        conf_threshold: float = 0.3,
        nms_threshold: float = 0.5,
        class_names: Optional[Sequence[str]] = None,
        input_height: int = 640,
        input_width: int = 640,
    ):
        self.model = model
        self.conf_threshold = conf_threshold
        self.nms_threshold = nms_threshold
        self.class_names = list(class_names) if class_names is not None else None
        self.input_height = input_height
        self.input_width = input_width

    def detect(self, frame: np.ndarray) -> list[Box]:
        """Detections in a BGR frame after non-maximum suppression."""
        frame = np.asarray(frame)
        resized = resize(frame, self.input_width, self.input_height, Interpolation.LINEAR)
        blob = to_chw(resized, swap_rb=True, scale=1 / 255.0)[None, ...]
        output = np.asarray(self.model([blob])[0], dtype=np.float32)
        rows = output.reshape(-1, output.shape[-1])
        num_class = len(self.class_names) if self.class_names is not None else rows.shape[1] - 5
        height, width = frame.shape[:2]
        boxes = decode_yolov7(
            rows,
            self.conf_threshold,
            num_class,
            height / self.input_height,
            width / self.input_width,
        )
        return nms(boxes, self.nms_threshold)

    def draw(self, frame: np.ndarray, boxes: Sequence[Box]) -> np.ndarray:
        """Draw boxes and ``name:score`` labels onto ``frame`` in place."""
        for box in boxes:
            xmin, ymin = int(box.x1), int(box.y1)
            draw_rectangle(frame, (xmin, ymin), (int(box.x2), int(box.y2)), BOX_COLOR, 2)
            name = self.class_names[box.label] if self.class_names is not None else str(box.label)
            draw_text(frame, f"{name}:{box.score:.2f}", (xmin, ymin - 5), TEXT_COLOR, 0.75)
        return frame