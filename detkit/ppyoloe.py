"""PP-YOLOE object detection on a model that returns decoded boxes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from detkit.drawing import draw_rectangle, draw_text
from detkit.imaging import Interpolation, resize, to_chw

Model = Callable[[list], Sequence[np.ndarray]]

INPUT_SIZE = (640, 640)
MEAN = (0.485, 0.456, 0.406)
STD = (0.229, 0.224, 0.225)

BOX_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 255, 0)


@dataclass
class Detection:
    """A detected object in image pixels."""

    xmin: int
    ymin: int
    xmax: int
    ymax: int
    score: float
    name: str


def decode_ppyoloe(
    outputs,
    box_count: int,
    image_height: int,
    image_width: int,
    conf_threshold: float,
    class_names: Optional[Sequence[str]] = None,
    input_size: tuple[int, int] = INPUT_SIZE,
) -> list[Detection]:
    """Detections from rows of (class, score, x1, y1, x2, y2) in input-size pixels.

    ``input_size`` is (height, width). Without ``class_names`` a detection is
    named by its class index.
    """
    rows = np.asarray(outputs, dtype=np.float32).reshape(-1, 6)[: max(int(box_count), 0)]
    ratio_h = image_height / input_size[0]
    ratio_w = image_width / input_size[1]
    detections = []
    for cls, score, x1, y1, x2, y2 in rows.tolist():
        if cls > -1 and score > conf_threshold:
            class_id = int(cls)
            name = class_names[class_id] if class_names is not None else str(class_id)
            detections.append(
                Detection(
                    int(x1 * ratio_w),
                    int(y1 * ratio_h),
                    int(x2 * ratio_w),
                    int(y2 * ratio_h),
                    score,
                    name,
                )
            )
    return detections


class PPYoloE:
    """Runs a PP-YOLOE model given as a callable on a list of input arrays.

    The model takes ``[image (1, 3, 640, 640), scale_factor (1, 2)]`` and
    returns ``[boxes (N, 6), box_count]``.
    """

    def __init__(
        self,
        model: Model,
        conf_threshold: float = 0.7,
        class_names: Optional[Sequence[str]] = None,
    ):
        self.model = model
        self.conf_threshold = conf_threshold
        self.class_names = list(class_names) if class_names is not None else None
        self.input_height, self.input_width = INPUT_SIZE
        self.scale_factor = np.ones((1, 2), dtype=np.float32)

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """BGR to RGB, resized to the network input size."""
        rgb = np.ascontiguousarray(np.asarray(image)[..., ::-1])
        return resize(rgb, self.input_width, self.input_height, Interpolation.LINEAR)

    def normalize(self, image: np.ndarray) -> np.ndarray:
        """Planar (3, H, W) float32 scaled to [0, 1] and standardised with ImageNet statistics."""
        return to_chw(image, scale=1 / 255.0, mean=MEAN, std=STD)

    def detect(self, image: np.ndarray) -> list[Detection]:
        """Detections above the confidence threshold in a BGR image."""
        blob = self.normalize(self.preprocess(image))[None, ...]
        outputs = self.model([blob, self.scale_factor])
        box_count = int(np.ravel(outputs[1])[0])
        height, width = np.asarray(image).shape[:2]
        return decode_ppyoloe(
            outputs[0],
            box_count,
            height,
            width,
            self.conf_threshold,
            self.class_names,
            (self.input_height, self.input_width),
        )

    def draw(self, image: np.ndarray, detections: Sequence[Detection]) -> np.ndarray:
        """Draw boxes and ``name:score`` labels onto ``image`` in place."""
        for det in detections:
            draw_rectangle(image, (det.xmin, det.ymin), (det.xmax, det.ymax), BOX_COLOR, 2)
            draw_text(image, f"{det.name}:{det.score:.2f}", (det.xmin, det.ymin - 5), TEXT_COLOR, 0.75)
        return image