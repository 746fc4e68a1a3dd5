import numpy as np
import pytest

from detkit.boxes import Rect, sigmoid
from detkit.yolov5_face import (
    FaceDetection,
    LandmarkMode,
    YoloV5Face,
    decode_faces,
)


def _preds(input_size=32):
    rows = 3 * sum((input_size // s) ** 2 for s in (8, 16, 32))
    arr = np.zeros((1, rows, 16))
    arr[..., 4] = -10.0
    return arr


def _one_face(landmark_value):
    arr = _preds()
    arr[0, 1, 4] = 5.0
    arr[0, 1, 5:15] = landmark_value
    arr[0, 1, 15] = 0.0
    return arr


def test_raw_landmarks_and_box():
    faces = decode_faces(_one_face(0.5), 32, 0.3, 1.0, 1.0, LandmarkMode.RAW)
    assert len(faces) == 1
    face = faces[0]
    assert face.rect == Rect(10, 1, 4, 5)
    assert face.landmarks == ((10, 2),) * 5
    assert face.score == pytest.approx(sigmoid(0.0))


def test_sigmoid_landmarks():
    faces = decode_faces(_one_face(0.0), 32, 0.3, 1.0, 1.0, LandmarkMode.SIGMOID)
    assert len(faces) == 1
    assert faces[0].landmarks == ((8, 0),) * 5


def test_ratio_scales_box():
    base = decode_faces(_one_face(0.5), 32, 0.3, 1.0, 1.0)[0]
    doubled = decode_faces(_one_face(0.5), 32, 0.3, 2.0, 2.0)[0]
    assert doubled.rect.width == 2 * base.rect.width
    assert doubled.rect.height == 2 * base.rect.height
    assert doubled.rect.x == 2 * base.rect.x


def test_low_objectness_is_dropped():
    assert decode_faces(_preds(), 32, 0.3) == []


def test_too_few_rows_raises():
    with pytest.raises(ValueError):
        decode_faces(np.zeros((1, 10, 16)), 32, 0.3)


def test_wrong_columns_raises():
    with pytest.raises(ValueError):
        decode_faces(np.zeros((1, 63, 15)), 32, 0.3)


def test_detect_suppresses_overlap():
    arr = _preds()
    arr[0, 0, 4] = 5.0
    arr[0, 0, 15] = 2.0
    arr[0, 16, 4] = 5.0
    arr[0, 16, 15] = 1.0
    seen = []

    def model(inputs):
        seen.append(inputs[0].shape)
        return [arr]

    detector = YoloV5Face(model, 0.3, 0.1, 0.3, input_size=32)
    faces = detector.detect(np.zeros((32, 32, 3), dtype=np.uint8))
    assert seen == [(1, 3, 32, 32)]
    assert len(faces) == 1
    assert faces[0].score == pytest.approx(sigmoid(2.0))


def test_detect_keeps_separate_faces():
    arr = _preds()
    arr[0, 0, 4] = 5.0
    arr[0, 0, 15] = 2.0
    arr[0, 16, 4] = 5.0
    arr[0, 16, 15] = 1.0
    detector = YoloV5Face(lambda inputs: [arr], 0.3, 0.5, 0.3, input_size=32)
    faces = detector.detect(np.zeros((32, 32, 3), dtype=np.uint8))
    assert len(faces) == 2
    assert faces[0].score > faces[1].score


def test_draw_marks_box_and_landmarks():
    frame = np.zeros((40, 40, 3), dtype=np.uint8)
    face = FaceDetection(Rect(5, 5, 20, 20), 0.9, ((30, 35),) * 5)
    detector = YoloV5Face(lambda inputs: [], input_size=32)
    detector.draw(frame, [face])
    assert tuple(frame[35, 30]) == (0, 255, 0)
    assert tuple(frame[25, 15]) == (0, 0, 255)