"""YOLACT instance segmentation: prior boxes, box decoding and mask assembly."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from detkit.boxes import Rect, nms_boxes, sigmoid
from detkit.drawing import blend_mask, draw_rectangle, draw_text
from detkit.imaging import Interpolation, resize, to_chw
from detkit.labels import COCO_CLASSES, COLORS

Model = Callable[[list], Sequence[np.ndarray]]

TARGET_SIZE = 550
MEANS = (123.68, 116.78, 103.94)
STD = (58.40, 57.12, 57.38)
CONV_SIZES = (69, 35, 18, 9, 5)
ASPECT_RATIOS = (1.0, 0.5, 2.0)
SCALES = (24.0, 48.0, 96.0, 192.0, 384.0)
VARIANCES = (0.1, 0.1, 0.2, 0.2)
MASK_SIZE = 138

BOX_COLOR = (0, 0, 255)
TEXT_COLOR = (0, 255, 0)

# Approximate label height at font scale 0.5, used to keep labels inside the image.
_LABEL_HEIGHT = 11


@dataclass
class InstanceMask:
    """A detected instance: box, class index (background excluded), score and mask.

    The mask holds per-pixel foreground probabilities at image size.
    """

    box: Rect
    class_id: int
    score: float
    mask: np.ndarray

    @property
    def name(self) -> str:
        return COCO_CLASSES[self.class_id + 1]


def make_priors() -> np.ndarray:
    """Prior boxes (N, 4) as relative (cx, cy, w, h), square by construction."""
    parts = []
    for size, scale in zip(CONV_SIZES, SCALES):
        centers = (np.arange(size) + 0.5) / size
        cy, cx = np.meshgrid(centers, centers, indexing="ij")
        widths = np.array([scale * math.sqrt(ar) / TARGET_SIZE for ar in ASPECT_RATIOS])
        cells = size * size
        cxr = np.repeat(cx.ravel(), len(ASPECT_RATIOS))
        cyr = np.repeat(cy.ravel(), len(ASPECT_RATIOS))
        wr = np.tile(widths, cells)
        parts.append(np.stack([cxr, cyr, wr, wr], axis=1))
    return np.concatenate(parts).astype(np.float32)


def decode_boxes(loc, priors, img_w: int, img_h: int) -> list[Rect]:
    """Rectangles in image pixels from location offsets against prior boxes.

    Corners are clipped to the image before the size is taken, inclusive of
    both edges.
    """
    loc = np.asarray(loc, dtype=np.float64).reshape(-1, 4)
    priors = np.asarray(priors, dtype=np.float64).reshape(-1, 4)
    if len(loc) != len(priors):
        raise ValueError("loc and priors must have the same number of rows")
    pcx, pcy, pw, ph = priors.T
    cx = VARIANCES[0] * loc[:, 0] * pw + pcx
    cy = VARIANCES[1] * loc[:, 1] * ph + pcy
    w = np.exp(VARIANCES[2] * loc[:, 2]) * pw
    h = np.exp(VARIANCES[3] * loc[:, 3]) * ph
    x1 = np.clip((cx - w * 0.5) * img_w, 0.0, img_w - 1)
    y1 = np.clip((cy - h * 0.5) * img_h, 0.0, img_h - 1)
    x2 = np.clip((cx + w * 0.5) * img_w, 0.0, img_w - 1)
    y2 = np.clip((cy + h * 0.5) * img_h, 0.0, img_h - 1)
    return [
        Rect(int(a), int(b), int(c - a + 1), int(d - b + 1))
        for a, b, c, d in zip(x1.tolist(), y1.tolist(), x2.tolist(), y2.tolist())
    ]


class Yolact:
    """Runs a YOLACT model given as a callable on a list of input arrays.

    The model takes ``[blob (1, 3, 550, 550)]`` of standardised RGB values and
    returns ``[loc (N, 4), conf (N, classes), coefficients (N, C),
    prototypes (138 * 138, C)]``, with N the number of priors.
    """

    def __init__(
        self,
        model: Model,
        conf_threshold: float = 0.5,
        nms_threshold: float = 0.5,
        keep_top_k: int = 200,
    ):
        self.model = model
        self.conf_threshold = conf_threshold
        self.nms_threshold = nms_threshold
        self.keep_top_k = keep_top_k
        self.priors = make_priors()

    @property
    def num_priors(self) -> int:
        return len(self.priors)

    def normalize(self, image: np.ndarray) -> np.ndarray:
        """Float32 copy standardised per channel with the training statistics."""
        arr = np.asarray(image, dtype=np.float32)
        return (arr - np.asarray(MEANS, dtype=np.float32)) / np.asarray(STD, dtype=np.float32)

    def detect(self, image: np.ndarray) -> list[InstanceMask]:
        """Instances in a BGR image after suppression, with image-size masks."""
        image = np.asarray(image)
        img_h, img_w = image.shape[:2]
        resized = resize(image, TARGET_SIZE, TARGET_SIZE, Interpolation.LINEAR)
        rgb = np.ascontiguousarray(resized[..., ::-1])
        blob = to_chw(self.normalize(rgb))[None, ...]
        outputs = self.model([blob])
        if len(outputs) < 4:
            raise ValueError("the model must return four outputs")
        loc, conf, coeffs, proto = (np.asarray(o, dtype=np.float32) for o in outputs[:4])

        conf = conf.reshape(self.num_priors, -1)
        loc = loc.reshape(self.num_priors, 4)
        scores = conf[:, 1:]
        if scores.shape[1] == 0:
            return []
        class_ids = scores.argmax(axis=1)
        best = scores[np.arange(self.num_priors), class_ids]
        candidates = np.flatnonzero(best > self.conf_threshold)
        rects = decode_boxes(loc[candidates], self.priors[candidates], img_w, img_h)
        confidences = [float(best[i]) for i in candidates]
        kept = nms_boxes(
            rects, confidences, self.conf_threshold, self.nms_threshold, 1.0, self.keep_top_k
        )
        if not kept:
            return []

        channel = coeffs.shape[-1]
        coeffs = coeffs.reshape(self.num_priors, channel)
        proto = proto.reshape(-1, channel)
        if len(proto) != MASK_SIZE * MASK_SIZE:
            raise ValueError(f"prototypes must cover a {MASK_SIZE}x{MASK_SIZE} grid")

        instances = []
        for k in kept:
            prior = int(candidates[k])
            logits = (proto @ coeffs[prior]).reshape(MASK_SIZE, MASK_SIZE)
            mask = resize(sigmoid(logits).astype(np.float32), img_w, img_h, Interpolation.LINEAR)
            instances.append(InstanceMask(rects[k], int(class_ids[prior]), confidences[k], mask))
        return instances

    def draw(self, image: np.ndarray, instances: Sequence[InstanceMask]) -> np.ndarray:
        """Draw boxes, labels and coloured masks onto ``image`` in place."""
        for inst in instances:
            box = inst.box
            draw_rectangle(image, (box.x, box.y), (box.right(), box.bottom()), BOX_COLOR, 3)
            top = max(box.y, _LABEL_HEIGHT)
            draw_text(image, f"{inst.name}: {inst.score:.2f}", (box.x, top), TEXT_COLOR, 0.75)
            blend_mask(image, inst.mask, COLORS[inst.class_id + 1])
        return image