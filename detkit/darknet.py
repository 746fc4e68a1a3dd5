"""YOLOv3/v4-style detectors whose outputs are rows of box, objectness and class scores."""

from __future__ import annotations

import time
from dataclasses import dataclass
from os import PathLike
from typing import Callable, Optional, Sequence, Union

import numpy as np

from detkit.boxes import Box, Rect, nms_boxes
from detkit.drawing import draw_rectangle, draw_text
from detkit.imaging import blob_from_image
from detkit.labels import load_class_names

Model = Callable[[list], Sequence[np.ndarray]]

BOX_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 255, 0)
TIME_COLOR = (0, 0, 255)

# Approximate label height at font scale 0.5, used to keep labels inside the frame.
_LABEL_HEIGHT = 11


@dataclass(frozen=True)
class NetConfig:
    """Thresholds, input size and file locations of one detector."""

    conf_threshold: float
    nms_threshold: float
    inp_width: int
    inp_height: int
    classes_file: str
    model_configuration: str
    model_weights: str
    netname: str


YOLO_NETS: tuple[NetConfig, ...] = (
    NetConfig(0.5, 0.4, 416, 416, "coco.names", "yolov3/yolov3.cfg", "yolov3/yolov3.weights", "yolov3"),
    NetConfig(0.5, 0.4, 608, 608, "coco.names", "yolov4/yolov4.cfg", "yolov4/yolov4.weights", "yolov4"),
    NetConfig(
        0.5, 0.4, 320, 320, "coco.names",
        "yolo-fastest/yolo-fastest-xl.cfg", "yolo-fastest/yolo-fastest-xl.weights", "yolo-fastest",
    ),
    NetConfig(
        0.5, 0.4, 320, 320, "coco.names",
        "yolobile/csdarknet53s-panet-spp.cfg", "yolobile/yolobile.weights", "yolobile",
    ),
)


def _truncating_half(value: int) -> int:
    """Integer half rounded toward zero."""
    return int(value / 2)


def postprocess(
    outs: Sequence[np.ndarray],
    frame_width: int,
    frame_height: int,
    conf_threshold: float,
    nms_threshold: float,
) -> list[Box]:
    """Boxes kept after thresholding and suppression, in frame pixels.

    Each output holds rows of (cx, cy, w, h, objectness, class scores...) with
    coordinates relative to the frame. The class is the best class score, which
    is also the confidence.
    """
    class_ids: list[int] = []
    confidences: list[float] = []
    rects: list[Rect] = []
    for out in outs:
        arr = np.asarray(out, dtype=np.float32)
        arr = arr.reshape(-1, arr.shape[-1])
        for row in arr:
            scores = row[5:]
            if scores.size == 0:
                continue
            class_id = int(np.argmax(scores))
            confidence = float(scores[class_id])
            if confidence > conf_threshold:
                center_x = int(row[0] * frame_width)
                center_y = int(row[1] * frame_height)
                width = int(row[2] * frame_width)
                height = int(row[3] * frame_height)
                left = center_x - _truncating_half(width)
                top = center_y - _truncating_half(height)
                class_ids.append(class_id)
                confidences.append(confidence)
                rects.append(Rect(left, top, width, height))

    kept = nms_boxes(rects, confidences, conf_threshold, nms_threshold)
    return [
        Box(rects[i].x, rects[i].y, rects[i].right(), rects[i].bottom(), confidences[i], class_ids[i])
        for i in kept
    ]


def _read_classes(path: Union[str, PathLike]) -> list[str]:
    try:
        return load_class_names(path)
    except OSError:
        return []


class DarknetYolo:
    """A YOLO detector configured by a :class:`NetConfig`.

    The model is a callable taking ``[blob (1, 3, H, W)]`` of RGB values in
    [0, 1] and returning the list of its output arrays.
    """

    def __init__(
        self,
        model: Model,
        config: NetConfig = YOLO_NETS[2],
        class_names: Optional[Sequence[str]] = None,
    ):
        self.model = model
        self.config = config
        self.conf_threshold = config.conf_threshold
        self.nms_threshold = config.nms_threshold
        self.inp_width = config.inp_width
        self.inp_height = config.inp_height
        self.netname = config.netname
        if class_names is None:
            self.classes = _read_classes(config.classes_file)
        else:
            self.classes = list(class_names)
        self.inference_time_ms: Optional[float] = None

    def detect(self, frame: np.ndarray) -> list[Box]:
        """Detections in a BGR frame; also records the inference time."""
        frame = np.asarray(frame)
        blob = blob_from_image(frame, 1 / 255.0, (self.inp_width, self.inp_height), swap_rb=True)
        start = time.perf_counter()
        outs = self.model([blob])
        self.inference_time_ms = (time.perf_counter() - start) * 1000.0
        height, width = frame.shape[:2]
        return postprocess(outs, width, height, self.conf_threshold, self.nms_threshold)

    def draw(self, frame: np.ndarray, detections: Sequence[Box]) -> np.ndarray:
        """Draw boxes, labels and the last inference time onto ``frame`` in place."""
        for det in detections:
            label = f"{det.score:.2f}"
            if self.classes:
                if not 0 <= det.label < len(self.classes):
                    raise ValueError(f"class id {det.label} has no name")
                label = f"{self.classes[det.label]}:{label}"
            left, top = int(det.x1), int(det.y1)
            draw_rectangle(frame, (left, top), (int(det.x2), int(det.y2)), BOX_COLOR, 3)
            draw_text(frame, label, (left, max(top, _LABEL_HEIGHT)), TEXT_COLOR, 0.75)
        if self.inference_time_ms is not None:
            text = f"{self.netname} Inference time : {self.inference_time_ms:.2f} ms"
            draw_text(frame, text, (0, 30), TIME_COLOR, 1.0)
        return frame


class QRCodeYolo:
    """A single-class tiny-YOLO detector of QR codes on a 416×416 input."""

    inp_width = 416
    inp_height = 416

    def __init__(self, model: Model, conf_threshold: float = 0.6, nms_threshold: float = 0.5):
        self.model = model
        self.conf_threshold = conf_threshold
        self.nms_threshold = nms_threshold

    def detect(self, frame: np.ndarray) -> list[Box]:
        """QR code detections in a BGR frame."""
        frame = np.asarray(frame)
        blob = blob_from_image(frame, 1 / 255.0, (self.inp_width, self.inp_height), swap_rb=True)
        outs = self.model([blob])
        height, width = frame.shape[:2]
        return postprocess(outs, width, height, self.conf_threshold, self.nms_threshold)

    def draw(self, frame: np.ndarray, detections: Sequence[Box]) -> np.ndarray:
        """Draw boxes and ``qrcode:score`` labels onto ``frame`` in place."""
        for det in detections:
            left, top = int(det.x1), int(det.y1)
            draw_rectangle(frame, (left, top), (int(det.x2), int(det.y2)), BOX_COLOR, 3)
            top = max(top, _LABEL_HEIGHT)
            draw_text(frame, f"qrcode:{det.score:.2f}", (left, top - 20), TEXT_COLOR, 1.0)
        return frame