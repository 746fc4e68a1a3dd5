import numpy as np
import pytest

from detkit.ppyoloe import Detection, PPYoloE, decode_ppyoloe


class FakeModel:
    def __init__(self, boxes, count):
        self.boxes = np.asarray(boxes, dtype=np.float32)
        self.count = count
        self.calls = []

    def __call__(self, inputs):
        self.calls.append(inputs)
        return [self.boxes, np.array([self.count], dtype=np.int32)]


NAMES = ["cat", "dog", "bird"]


def test_decode_scales_to_image():
    rows = [[1, 0.9, 10, 20, 30, 40]]
    dets = decode_ppyoloe(rows, 1, 640, 1280, 0.5, NAMES)
    assert dets == [Detection(20, 20, 60, 40, pytest.approx(0.9), "dog")]


def test_decode_filters_class_and_score():
    rows = [
        [-1, 0.99, 0, 0, 10, 10],
        [0, 0.2, 0, 0, 10, 10],
        [2, 0.8, 0, 0, 10, 10],
    ]
    dets = decode_ppyoloe(rows, 3, 640, 640, 0.5, NAMES)
    assert [d.name for d in dets] == ["bird"]


def test_decode_respects_box_count():
    rows = [[0, 0.9, 0, 0, 10, 10], [1, 0.9, 0, 0, 10, 10]]
    dets = decode_ppyoloe(rows, 1, 640, 640, 0.5, NAMES)
    assert [d.name for d in dets] == ["cat"]


def test_decode_without_names_uses_index():
    dets = decode_ppyoloe([[2, 0.9, 0, 0, 10, 10]], 1, 640, 640, 0.5)
    assert dets[0].name == "2"


def test_preprocess_swaps_channels_and_resizes():
    net = PPYoloE(FakeModel(np.zeros((0, 6)), 0), 0.5, NAMES)
    image = np.zeros((100, 50, 3), dtype=np.uint8)
    image[..., 0] = 255
    out = net.preprocess(image)
    assert out.shape == (640, 640, 3)
    assert out[..., 2].min() == 255
    assert out[..., 0].max() == 0


def test_normalize_uses_imagenet_statistics():
    net = PPYoloE(FakeModel(np.zeros((0, 6)), 0), 0.5, NAMES)
    out = net.normalize(np.zeros((4, 4, 3), dtype=np.uint8))
    assert out.shape == (3, 4, 4)
    assert out[0, 0, 0] == pytest.approx(-0.485 / 0.229, rel=1e-5)


def test_detect_feeds_model_and_decodes():
    model = FakeModel([[1, 0.95, 64, 64, 320, 320], [0, 0.1, 0, 0, 5, 5]], 2)
    net = PPYoloE(model, 0.7, NAMES)
    image = np.zeros((320, 320, 3), dtype=np.uint8)
    dets = net.detect(image)
    blob, scale = model.calls[0]
    assert blob.shape == (1, 3, 640, 640)
    assert scale.tolist() == [[1.0, 1.0]]
    assert [(d.xmin, d.ymin, d.xmax, d.ymax, d.name) for d in dets] == [(32, 32, 160, 160, "dog")]


def test_draw_marks_box_corner():
    net = PPYoloE(FakeModel(np.zeros((0, 6)), 0), 0.5, NAMES)
    image = np.zeros((100, 100, 3), dtype=np.uint8)
    net.draw(image, [Detection(20, 30, 60, 70, 0.9, "cat")])
    assert image[30, 20].tolist() == [0, 0, 255]
    assert image[70, 60].tolist() == [0, 0, 255]