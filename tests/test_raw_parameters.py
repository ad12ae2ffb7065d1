import math

import numpy as np
import pytest

from hdrstack.raw_parameters import (
    RGB_XYZ,
    RawParameters,
    normalize_flip,
    pseudoinverse,
    tiff_orientation,
)


def bayer(x, y):
    return (y % 2) * 2 + (x % 2)


@pytest.mark.parametrize(
    "flip, expected", [(270, 5), (180, 3), (90, 6), (-90, 5), (0, 0), (3, 3)]
)
def test_normalize_flip(flip, expected):
    assert normalize_flip(flip) == expected


@pytest.mark.parametrize(
    "flip, expected", [(0, 1), (3, 3), (5, 8), (6, 6), (7, 9)]
)
def test_tiff_orientation(flip, expected):
    assert tiff_orientation(flip) == expected
    assert RawParameters(flip=flip).tiff_orientation == expected


def test_pseudoinverse_of_identity():
    ident = [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
    assert np.allclose(pseudoinverse(ident, 3), ident)


def test_pseudoinverse_is_left_inverse():
    a = np.array([[2.0, 1.0, 0.5], [0.3, 1.5, 0.2], [0.1, 0.4, 3.0], [1.0, 1.0, 1.0]])
    out = np.array(pseudoinverse(a.tolist(), 4))
    assert out.shape == (4, 3)
    assert np.allclose(a.T @ out, np.eye(3))


def test_pseudoinverse_singular():
    with pytest.raises(ValueError):
        pseudoinverse([[1.0, 0.0, 0.0], [2.0, 0.0, 0.0]], 2)


def test_log_exp():
    p = RawParameters(iso_speed=100, shutter=1.0, aperture=1.0)
    assert p.log_exp() == 0.0
    q = RawParameters(iso_speed=100, shutter=2.0, aperture=1.0)
    assert math.isclose(q.log_exp() - p.log_exp(), 1.0)


def test_adjust_black_invariants():
    original = [1, 2, 3, 4]
    p = RawParameters(black=10, cblack=list(original))
    p.adjust_black()
    assert p.cblack == [c + 10 for c in original]
    assert p.black == min(p.cblack)
    assert p.max_black == max(p.cblack)


def test_black_at_and_has_black():
    p = RawParameters(cfa=bayer, cblack=[5, 6, 7, 8])
    assert p.black_at(0, 0) == 5
    assert p.black_at(1, 1) == 8
    assert p.has_black()
    assert not RawParameters().has_black()


def test_white_mult_at():
    p = RawParameters(cfa=bayer, cam_mul=[2.0, 1.0, 1.0, 1.5])
    assert p.white_mult_at(0, 0) == 2.0
    assert p.white_mult_at(1, 1) == 1.5


def test_is_same_format():
    a = RawParameters(width=10, height=5, cfa=bayer, cdesc="RGBG")
    b = RawParameters(width=10, height=5, cfa=bayer, cdesc="RGBG", iso_speed=400)
    c = RawParameters(width=10, height=6, cfa=bayer, cdesc="RGBG")
    assert a.is_same_format(b)
    assert not a.is_same_format(c)


def test_adjust_white_normalises_and_copies_green():
    p = RawParameters(colors=3, cam_mul=[4.0, 2.0, 3.0, 0.0])
    p.adjust_white(np.zeros((2, 2)))
    assert min(p.cam_mul) == 1.0
    assert p.cam_mul[3] == p.cam_mul[1]
    assert math.isclose(p.cam_mul[0] / p.cam_mul[2], 4.0 / 3.0)


def test_adjust_white_fills_missing_fourth():
    p = RawParameters(colors=4, cam_mul=[2.0, 0.0, 3.0, 0.0])
    p.adjust_white(np.zeros((2, 2)))
    assert p.cam_mul[1] == 1.0
    assert p.cam_mul[3] == 1.0


def test_auto_wb_uniform_image():
    p = RawParameters(cfa=bayer, maximum=1000)
    image = np.full((16, 16), 100, dtype=np.uint16)
    p.auto_wb(image)
    assert np.allclose(p.cam_mul, [1 / 100] * 4)


def test_auto_wb_skips_saturated_blocks():
    p = RawParameters(cfa=bayer, maximum=1000)
    image = np.full((16, 16), 100, dtype=np.uint16)
    image[0:8, 0:8] = 1000
    image[0, 0] = 5
    p.auto_wb(image)
    assert np.allclose(p.cam_mul, [1 / 100] * 4)


def test_auto_wb_falls_back_to_pre_mul():
    pre = [2.0, 1.0, 1.5, 1.0]
    p = RawParameters(cfa=bayer, maximum=1000, pre_mul=list(pre))
    p.auto_wb(np.full((8, 8), 1000, dtype=np.uint16))
    assert p.cam_mul == pre


def test_adjust_white_runs_auto_wb():
    p = RawParameters(cfa=bayer, maximum=1000, colors=4)
    p.adjust_white(np.full((16, 16), 200, dtype=np.uint16))
    assert np.allclose(p.cam_mul, [1.0] * 4)


def test_cam_xyz_from_rgb_cam_identity():
    p = RawParameters(
        colors=3,
        pre_mul=[1.0, 1.0, 1.0, 1.0],
        rgb_cam=[[1.0, 0, 0, 0], [0, 1.0, 0, 0], [0, 0, 1.0, 0]],
    )
    p.cam_xyz_from_rgb_cam()
    assert np.allclose(p.cam_xyz[:3], RGB_XYZ)
    assert np.allclose(p.cam_xyz[0], [3.240481, -1.537152, -0.498536])
    assert p.cam_xyz[3] == [0.0, 0.0, 0.0]


def test_cam_xyz_from_rgb_cam_without_matrix():
    p = RawParameters(colors=3, pre_mul=[1.0] * 4)
    p.cam_xyz_from_rgb_cam()
    assert p.cam_xyz == [[0.0] * 3 for _ in range(4)]