import numpy as np
import pytest

from detkit.boxes import Rect
from detkit.yolact import (
    MASK_SIZE,
    MEANS,
    STD,
    InstanceMask,
    Yolact,
    decode_boxes,
    make_priors,
)


def test_priors_count_and_square():
    priors = make_priors()
    assert priors.shape == (19248, 4)
    assert np.allclose(priors[:, 2], priors[:, 3])


def test_priors_centres_inside_unit_square():
    priors = make_priors()
    centres = priors[:, :2]
    assert float(centres.min()) > 0.0
    assert float(centres.max()) < 1.0
    assert float(priors[0, 0]) == pytest.approx(0.5 / 69)


def test_decode_centred_prior():
    rects = decode_boxes(np.zeros((1, 4)), [[0.5, 0.5, 0.5, 0.5]], 100, 100)
    assert rects == [Rect(25, 25, 51, 51)]


def test_decode_clips_to_image():
    rects = decode_boxes([[0, 0, 20, 20]], [[0.5, 0.5, 0.5, 0.5]], 100, 80)
    rect = rects[0]
    assert rect.x >= 0 and rect.y >= 0
    assert rect.right() <= 100 and rect.bottom() <= 80


def test_decode_length_mismatch():
    with pytest.raises(ValueError):
        decode_boxes(np.zeros((2, 4)), np.zeros((1, 4)), 10, 10)


def test_normalize_uses_statistics():
    net = Yolact(lambda inputs: [])
    image = np.empty((2, 2, 3), dtype=np.float32)
    image[...] = MEANS
    assert np.allclose(net.normalize(image), 0.0)
    image[...] = np.add(MEANS, STD)
    assert np.allclose(net.normalize(image), 1.0, atol=1e-5)


def _outputs(score=0.9, prior=100):
    n = 19248
    loc = np.zeros((n, 4), dtype=np.float32)
    conf = np.zeros((n, 81), dtype=np.float32)
    conf[prior, 2] = score
    coeffs = np.zeros((n, 32), dtype=np.float32)
    coeffs[prior, 0] = 10.0
    proto = np.ones((MASK_SIZE * MASK_SIZE, 32), dtype=np.float32)
    return [loc, conf, coeffs, proto]


def test_detect_finds_instance():
    seen = []

    def model(inputs):
        seen.append(inputs[0].shape)
        return _outputs()

    net = Yolact(model, 0.5, 0.5)
    instances = net.detect(np.zeros((20, 30, 3), dtype=np.uint8))
    assert seen == [(1, 3, 550, 550)]
    assert len(instances) == 1
    inst = instances[0]
    assert inst.class_id == 1
    assert inst.name == "bicycle"
    assert inst.score == pytest.approx(0.9)
    assert inst.box == decode_boxes(np.zeros((1, 4)), make_priors()[100:101], 30, 20)[0]
    assert inst.mask.shape == (20, 30)
    assert float(inst.mask.min()) > 0.5


def test_detect_below_threshold_is_empty():
    net = Yolact(lambda inputs: _outputs(score=0.4), 0.5, 0.5)
    assert net.detect(np.zeros((20, 30, 3), dtype=np.uint8)) == []


def test_detect_needs_four_outputs():
    net = Yolact(lambda inputs: _outputs()[:3])
    with pytest.raises(ValueError):
        net.detect(np.zeros((20, 30, 3), dtype=np.uint8))


def test_draw_blends_mask_colour():
    image = np.zeros((60, 60, 3), dtype=np.uint8)
    inst = InstanceMask(Rect(0, 0, 10, 10), 1, 0.8, np.ones((60, 60), dtype=np.float32))
    Yolact(lambda inputs: []).draw(image, [inst])
    assert tuple(image[50, 50]) == (0, 47, 127)