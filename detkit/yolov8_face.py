"""YOLOv8 face detection with distribution-focal box regression and five landmarks."""

from __future__ import annotations

import math
from typing import Callable, Sequence

import numpy as np

from detkit.boxes import Rect, nms_boxes, sigmoid
from detkit.drawing import draw_circle, draw_rectangle, draw_text
from detkit.imaging import Interpolation, blob_from_image, letterbox
from detkit.yolov5_face import FaceDetection

Model = Callable[[list], Sequence[np.ndarray]]

INPUT_SIZE = 640
REG_MAX = 16
NUM_CLASS = 1
NUM_KEYPOINTS = 5
# Channels per output: box distributions, class logits, keypoints as (x, y, conf).
MIN_CHANNELS = REG_MAX * 4 + NUM_CLASS + NUM_KEYPOINTS * 3

BOX_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 255, 0)
POINT_COLOR = (0, 255, 0)


def softmax(x) -> np.ndarray:
    """Softmax along the last axis."""
    arr = np.asarray(x, dtype=np.float64)
    exp = np.exp(arr - arr.max(axis=-1, keepdims=True))
    return exp / exp.sum(axis=-1, keepdims=True)


def generate_proposals(
    out,
    conf_threshold: float,
    input_height: int,
    image_height: int,
    image_width: int,
    ratio_h: float,
    ratio_w: float,
    pad_h: int,
    pad_w: int,
) -> list[FaceDetection]:
    """Faces from one output level of shape (1, C, H, W) or (C, H, W).

    A cell is kept when the logistic of its best class logit exceeds
    ``conf_threshold``. Boxes are clipped to the image; padding is removed
    and coordinates scaled by the ratios into image pixels.
    """
    arr = np.asarray(out, dtype=np.float64)
    if arr.ndim == 4:
        arr = arr[0]
    if arr.ndim != 3:
        raise ValueError("output must have shape (1, C, H, W) or (C, H, W)")
    channels, feat_h, feat_w = arr.shape
    if channels < MIN_CHANNELS:
        raise ValueError(f"output needs at least {MIN_CHANNELS} channels, got {channels}")
    stride = math.ceil(input_height / feat_h)
    flat = arr.reshape(channels, feat_h * feat_w)
    box_channels = REG_MAX * 4
    cls = flat[box_channels : box_channels + NUM_CLASS]
    kp = flat[box_channels + NUM_CLASS :]
    probs = sigmoid(cls.max(axis=0))
    bins = np.arange(REG_MAX, dtype=np.float64)

    faces: list[FaceDetection] = []
    for index in np.flatnonzero(probs > conf_threshold):
        i, j = divmod(int(index), feat_w)
        dist = softmax(flat[:box_channels, index].reshape(4, REG_MAX))
        left, top, right, bottom = (dist @ bins) * stride
        cx = (j + 0.5) * stride
        cy = (i + 0.5) * stride
        xmin = max((cx - left - pad_w) * ratio_w, 0.0)
        ymin = max((cy - top - pad_h) * ratio_h, 0.0)
        xmax = min((cx + right - pad_w) * ratio_w, float(image_width - 1))
        ymax = min((cy + bottom - pad_h) * ratio_h, float(image_height - 1))
        rect = Rect(int(xmin), int(ymin), int(xmax - xmin), int(ymax - ymin))
        landmarks = tuple(
            (
                int(((kp[3 * k, index] * 2 + j) * stride - pad_w) * ratio_w),
                int(((kp[3 * k + 1, index] * 2 + i) * stride - pad_h) * ratio_h),
            )
            for k in range(NUM_KEYPOINTS)
        )
        faces.append(FaceDetection(rect, float(probs[index]), landmarks))
    return faces


class YoloV8Face:
    """Runs a YOLOv8 face model given as a callable on a list of input arrays.

    The model takes ``[blob (1, 3, 640, 640)]`` of RGB values in [0, 1] and
    returns three outputs of shape (1, C, H, W), one per stride.
    """

    def __init__(self, model: Model, conf_threshold: float = 0.45, nms_threshold: float = 0.5):
        self.model = model
        self.conf_threshold = conf_threshold
        self.nms_threshold = nms_threshold
        self.input_height = INPUT_SIZE
        self.input_width = INPUT_SIZE

    def detect(self, frame: np.ndarray) -> list[FaceDetection]:
        """Faces in a BGR frame, in frame pixels, after suppression."""
        frame = np.asarray(frame)
        fitted = letterbox(frame, self.input_height, self.input_width, True, Interpolation.AREA)
        blob = blob_from_image(
            fitted.image, 1 / 255.0, (self.input_width, self.input_height), swap_rb=True
        )
        outs = self.model([blob])
        if len(outs) < 3:
            raise ValueError("the model must return three outputs")
        height, width = frame.shape[:2]
        ratio_h = height / fitted.new_height
        ratio_w = width / fitted.new_width
        faces: list[FaceDetection] = []
        for out in outs[:3]:
            faces.extend(
                generate_proposals(
                    out,
                    self.conf_threshold,
                    self.input_height,
                    height,
                    width,
                    ratio_h,
                    ratio_w,
                    fitted.pad_top,
                    fitted.pad_left,
                )
            )
        kept = nms_boxes(
            [face.rect for face in faces],
            [face.score for face in faces],
            self.conf_threshold,
            self.nms_threshold,
        )
        return [faces[i] for i in kept]

    def draw(self, frame: np.ndarray, faces: Sequence[FaceDetection]) -> np.ndarray:
        """Draw boxes, ``face:score`` labels and landmarks onto ``frame`` in place."""
        for face in faces:
            rect = face.rect
            draw_rectangle(frame, (rect.x, rect.y), (rect.right(), rect.bottom()), BOX_COLOR, 3)
            draw_text(frame, f"face:{face.score:.2f}", (rect.x, rect.y - 5), TEXT_COLOR, 1.0)
            for point in face.landmarks:
                draw_circle(frame, point, 4, POINT_COLOR)
        return frame