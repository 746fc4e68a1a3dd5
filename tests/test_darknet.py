import numpy as np
import pytest

from detkit.boxes import Box
from detkit.darknet import YOLO_NETS, DarknetYolo, NetConfig, QRCodeYolo, postprocess


def _row(cx, cy, w, h, *scores):
    return [cx, cy, w, h, 1.0, *scores]


class _FakeModel:
    def __init__(self, outs):
        self.outs = outs
        self.inputs = None

    def __call__(self, inputs):
        self.inputs = inputs
        return self.outs


def test_postprocess_single_box_coordinates():
    outs = [np.array([_row(0.5, 0.5, 0.2, 0.4, 0.1, 0.9)], dtype=np.float32)]
    boxes = postprocess(outs, 100, 100, 0.5, 0.4)
    assert len(boxes) == 1
    box = boxes[0]
    assert (box.x1, box.y1, box.x2, box.y2) == (40, 30, 60, 70)
    assert box.label == 1
    assert box.score == pytest.approx(0.9)


def test_postprocess_filters_low_confidence():
    outs = [np.array([_row(0.5, 0.5, 0.2, 0.2, 0.3, 0.4)], dtype=np.float32)]
    assert postprocess(outs, 100, 100, 0.5, 0.4) == []


def test_postprocess_suppresses_duplicates_across_outputs():
    first = np.array([_row(0.5, 0.5, 0.3, 0.3, 0.8, 0.0)], dtype=np.float32)
    second = np.array([_row(0.5, 0.5, 0.3, 0.3, 0.95, 0.0)], dtype=np.float32)
    boxes = postprocess([first, second], 200, 200, 0.5, 0.4)
    assert len(boxes) == 1
    assert boxes[0].score == pytest.approx(0.95)


def test_postprocess_keeps_separate_boxes_in_score_order():
    outs = [
        np.array(
            [
                _row(0.2, 0.2, 0.1, 0.1, 0.0, 0.7),
                _row(0.8, 0.8, 0.1, 0.1, 0.9, 0.0),
            ],
            dtype=np.float32,
        )
    ]
    boxes = postprocess(outs, 100, 100, 0.5, 0.4)
    assert [b.label for b in boxes] == [0, 1]
    assert boxes[0].score > boxes[1].score


def test_postprocess_box_centre_follows_frame_size():
    outs = [np.array([_row(0.25, 0.75, 0.1, 0.1, 0.9)], dtype=np.float32)]
    small = postprocess(outs, 100, 100, 0.5, 0.4)[0]
    large = postprocess(outs, 400, 400, 0.5, 0.4)[0]
    assert (large.x2 - large.x1) == 4 * (small.x2 - small.x1)
    assert (large.x1 + large.x2) / 2 == pytest.approx(4 * (small.x1 + small.x2) / 2)


def test_darknet_detect_feeds_rgb_blob_of_config_size():
    config = YOLO_NETS[2]
    model = _FakeModel([np.array([_row(0.5, 0.5, 0.2, 0.2, 0.0, 0.9)], dtype=np.float32)])
    net = DarknetYolo(model, config, class_names=["a", "b"])
    frame = np.zeros((50, 80, 3), dtype=np.uint8)
    frame[..., 0] = 10
    frame[..., 2] = 200
    boxes = net.detect(frame)
    blob = model.inputs[0]
    assert blob.shape == (1, 3, config.inp_height, config.inp_width)
    assert blob[0, 0, 0, 0] == pytest.approx(200 / 255.0)
    assert blob[0, 2, 0, 0] == pytest.approx(10 / 255.0)
    assert len(boxes) == 1 and boxes[0].label == 1
    assert net.inference_time_ms >= 0


def test_darknet_missing_classes_file_gives_no_names(tmp_path):
    config = NetConfig(0.5, 0.4, 32, 32, str(tmp_path / "absent.names"), "a.cfg", "a.weights", "tiny")
    net = DarknetYolo(_FakeModel([]), config)
    assert net.classes == []


def test_darknet_reads_classes_file(tmp_path):
    names = tmp_path / "classes.names"
    names.write_text("cat\ndog\n", encoding="utf-8")
    config = NetConfig(0.5, 0.4, 32, 32, str(names), "a.cfg", "a.weights", "tiny")
    net = DarknetYolo(_FakeModel([]), config)
    assert net.classes == ["cat", "dog"]


def test_darknet_draw_marks_box_edge():
    net = DarknetYolo(_FakeModel([]), YOLO_NETS[0], class_names=["thing"])
    frame = np.zeros((60, 60, 3), dtype=np.uint8)
    net.draw(frame, [Box(10, 10, 40, 40, 0.9, 0)])
    assert tuple(frame[25, 10]) == (0, 0, 255)
    assert tuple(frame[25, 25]) == (0, 0, 0)


def test_darknet_draw_rejects_unknown_class():
    net = DarknetYolo(_FakeModel([]), YOLO_NETS[0], class_names=["thing"])
    frame = np.zeros((60, 60, 3), dtype=np.uint8)
    with pytest.raises(ValueError):
        net.draw(frame, [Box(10, 10, 40, 40, 0.9, 3)])


def test_qrcode_detect_uses_416_input():
    model = _FakeModel([np.array([_row(0.5, 0.5, 0.5, 0.5, 0.95)], dtype=np.float32)])
    net = QRCodeYolo(model)
    frame = np.full((100, 100, 3), 255, dtype=np.uint8)
    boxes = net.detect(frame)
    assert model.inputs[0].shape == (1, 3, 416, 416)
    assert len(boxes) == 1
    assert boxes[0].score == pytest.approx(0.95)


def test_qrcode_threshold_defaults_filter():
    model = _FakeModel([np.array([_row(0.5, 0.5, 0.5, 0.5, 0.55)], dtype=np.float32)])
    net = QRCodeYolo(model)
    assert net.detect(np.zeros((40, 40, 3), dtype=np.uint8)) == []


def test_qrcode_draw_marks_box_edge():
    net = QRCodeYolo(_FakeModel([]))
    frame = np.zeros((80, 80, 3), dtype=np.uint8)
    net.draw(frame, [Box(20, 30, 60, 70, 0.8, 0)])
    assert tuple(frame[50, 60]) == (0, 0, 255)
    assert tuple(frame[50, 40]) == (0, 0, 0)