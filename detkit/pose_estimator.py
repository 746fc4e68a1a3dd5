"""Person detection followed by per-person keypoint heatmap estimation."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from detkit.boxes import Rect
from detkit.drawing import draw_circle, draw_rectangle, draw_text
from detkit.imaging import Interpolation, letterbox, resize, to_chw
from detkit.pose import get_final_preds
from detkit.ppyoloe import INPUT_SIZE, Detection, decode_ppyoloe

Model = Callable[[list], Sequence[np.ndarray]]

POSE_INPUT_HEIGHT = 256
POSE_INPUT_WIDTH = 192

BOX_COLOR = (0, 0, 255)
POINT_COLOR = (0, 255, 0)


@dataclass
class PersonPose:
    """A detected person and its keypoints as an (N, 2) array of image (x, y)."""

    box: Detection
    keypoints: np.ndarray


class HumanPoseEstimator:
    """Detects people with one model and their keypoints with another.

    The detector takes ``[image (1, 3, 640, 640), scale_factor (1, 2)]`` with
    raw RGB pixel values and returns ``[boxes (N, 6), box_count]``. The pose
    model takes ``[crop (1, 3, 256, 192)]`` with raw BGR pixel values and
    returns ``[heatmaps (1, joints, H, W)]``.
    """

    def __init__(self, detector_model: Model, pose_model: Model, conf_threshold: float = 0.7):
        self.detector_model = detector_model
        self.pose_model = pose_model
        self.conf_threshold = conf_threshold
        self.input_height, self.input_width = INPUT_SIZE
        self.scale_factor = np.ones((1, 2), dtype=np.float32)
        self.center = (POSE_INPUT_WIDTH * 0.5, POSE_INPUT_HEIGHT * 0.5)
        self.scale = (POSE_INPUT_WIDTH / 200, POSE_INPUT_HEIGHT / 200)

    def key_points(self, image: np.ndarray, box: Rect) -> np.ndarray:
        """Keypoints (N, 2) in image coordinates for the person inside ``box``."""
        height, width = image.shape[:2]
        if (
            box.width <= 0
            or box.height <= 0
            or box.x < 0
            or box.y < 0
            or box.right() > width
            or box.bottom() > height
        ):
            raise ValueError(f"box {box} does not lie inside a {width}x{height} image")
        crop = image[box.y : box.bottom(), box.x : box.right()]
        fitted = letterbox(crop, POSE_INPUT_HEIGHT, POSE_INPUT_WIDTH, True, Interpolation.LINEAR)
        blob = to_chw(fitted.image)[None, ...]
        heatmaps = self.pose_model([blob])[0]
        preds = get_final_preds(heatmaps, self.center, self.scale)
        xs = box.x + (preds[:, 0] - fitted.pad_left) * box.width / fitted.new_width
        ys = box.y + (preds[:, 1] - fitted.pad_top) * box.height / fitted.new_height
        return np.stack([xs, ys], axis=1)

    def _detect_people(self, image: np.ndarray) -> list[Detection]:
        rgb = np.ascontiguousarray(image[..., ::-1])
        resized = resize(rgb, self.input_width, self.input_height, Interpolation.LINEAR)
        blob = to_chw(resized)[None, ...]
        outputs = self.detector_model([blob, self.scale_factor])
        box_count = int(np.ravel(outputs[1])[0])
        height, width = image.shape[:2]
        found = decode_ppyoloe(
            outputs[0],
            box_count,
            height,
            width,
            self.conf_threshold,
            None,
            (self.input_height, self.input_width),
        )
        return [dataclasses.replace(det, name="person") for det in found]

    def detect(self, image: np.ndarray) -> list[PersonPose]:
        """People above the confidence threshold with their keypoints."""
        image = np.asarray(image)
        results = []
        for det in self._detect_people(image):
            rect = Rect(det.xmin, det.ymin, det.xmax - det.xmin, det.ymax - det.ymin)
            results.append(PersonPose(det, self.key_points(image, rect)))
        return results

    def draw(self, image: np.ndarray, results: Sequence[PersonPose]) -> np.ndarray:
        """Draw boxes, labels and keypoints onto ``image`` in place."""
        for person in results:
            det = person.box
            draw_rectangle(image, (det.xmin, det.ymin), (det.xmax, det.ymax), BOX_COLOR, 2)
            draw_text(image, f"{det.name}:{det.score:.2f}", (det.xmin, det.ymin - 5), POINT_COLOR, 0.75)
            for x, y in person.keypoints:
                draw_circle(image, (int(x), int(y)), 3, POINT_COLOR)
        return image