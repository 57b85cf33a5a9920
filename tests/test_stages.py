# tests/test_stages.py
import numpy as np
import pytest

from lidar2depth.errors import ConfigError
from lidar2depth.filters import PassThrough, SpatialFilter
from lidar2depth.registry import available, build
from conftest import make_cloud


# ------------------------------- filter -------------------------------

def test_filter_bounds_are_inclusive_and_keep_order():
    pts = [[0, 0, 5.0], [0, 0, 0.99], [0, 0, 1.0], [2, 0, 3.0], [0, 0, 5.01], [-2, 0, 2.0]]
    out = SpatialFilter((1.0, 5.0), (-2.0, 2.0)).filter(make_cloud(pts))
    assert out.points.tolist() == [[0, 0, 5.0], [0, 0, 1.0], [2, 0, 3.0], [-2, 0, 2.0]]


def test_filter_applies_both_bounds_to_same_input():
    # mix of points failing the forward bound, the lateral bound, both, or neither
    pts = np.array([[0, 0, 10], [9, 0, 3], [0, 0, 3], [-9, 0, -1], [1, 1, 4]], dtype=float)
    cloud = make_cloud(pts)
    before = cloud.points.copy()
    out = SpatialFilter((0.5, 6.0), (-1.0, 1.0)).filter(cloud)
    expected = pts[(pts[:, 2] >= 0.5) & (pts[:, 2] <= 6.0) & (pts[:, 0] >= -1) & (pts[:, 0] <= 1)]
    assert np.array_equal(out.points, expected)
    assert np.array_equal(cloud.points, before)
    assert out is not cloud
    assert not cloud.points.flags.writeable


def test_passthrough_single_axis():
    out = PassThrough("y", (-1, 1)).filter(make_cloud([[0, 2, 1], [0, -1, 1], [0, 0.5, 1]]))
    assert out.points[:, 1].tolist() == [-1, 0.5]
    assert out.header == make_cloud([[0, 0, 1]]).header


@pytest.mark.parametrize("fwd,lat,axes", [
    ((0.0, 6.0), (-1, 1), ("z", "x")),
    ((-1.0, 6.0), (-1, 1), ("z", "x")),
    ((6.0, 1.0), (-1, 1), ("z", "x")),
    ((0.1, 6.0), (1, -1), ("z", "x")),
    ((0.1, 6.0), (-1, 1), ("z", "z")),
    ((0.1, 6.0), (-1, 1), ("w", "x")),
    ((0.1,), (-1, 1), ("z", "x")),
])
def test_filter_rejects_bad_config(fwd, lat, axes):
    with pytest.raises(ConfigError):
        SpatialFilter(fwd, lat, *axes)


def test_filter_repr_is_plain_ascii():
    text = repr(SpatialFilter((0.1, 6.0), (-6.0, 6.0)))
    assert text == "SpatialFilter(z in [0.1, 6.0], x in [-6.0, 6.0])"
    assert text.isascii()


# ------------------------------- projection -------------------------------

def test_project_on_axis(intr):
    P = build("proj", "pinhole").project(np.array([[0.0, 0.0, 10.0]]), intr)
    assert P["uv"].tolist() == [[320, 240]]
    assert P["idx"].tolist() == [0]


def test_project_masks_points_behind_camera(intr):
    P = build("proj", "pinhole").project(np.array([[0, 0, -5.0], [0, 0, 0.0], [0, 0, 5.0]]), intr)
    assert P["idx"].tolist() == [2]


def test_project_discards_out_of_frame(intr):
    pts = np.array([
        [-6.4, 0, 10],     # u = 0, kept
        [6.38, 0, 10],     # u = 639, kept
        [6.4, 0, 10],      # u = 640, out
        [0, -4.82, 10],    # v = -1, out
        [0, 4.8, 10],      # v = 480, out
        [0, 4.78, 10],     # v = 479, kept
    ])
    P = build("proj", "pinhole").project(pts, intr)
    assert P["idx"].tolist() == [0, 1, 5]
    assert P["uv"].tolist() == [[0, 240], [639, 240], [320, 479]]


def test_project_pixel_halves_round_to_even():
    from lidar2depth.frames import CameraIntrinsics
    intr = CameraIntrinsics(512.0, 512.0, 320.0, 240.0, 640, 480, "cam")
    # u = 320.5 and 321.5 exactly; depth still encodes half up
    P = build("proj", "pinhole").project(np.array([[1.0, 0, 1024.0], [3.0, 0, 1024.0]]), intr)
    assert P["uv"].tolist() == [[320, 240], [322, 240]]
    raw, _ = build("enc", "kitti_u16").encode(np.array([[0, 0, 2.5 / 256]]))
    assert raw.tolist() == [3]


def test_project_empty(intr):
    P = build("proj", "pinhole").project(np.zeros((0, 3)), intr)
    assert P["uv"].shape == (0, 2)


# ------------------------------- encoder -------------------------------

def test_encode_known_distances():
    enc = build("enc", "kitti_u16")
    raw, valid = enc.encode(np.array([[0, 0, 10.0], [0, 0, 2.0], [3.0, 4.0, 0.0], [0, 0, 5.0]]))
    assert raw.tolist() == [2560, 512, 1280, 1280]
    assert valid.all()
    assert raw.dtype == np.uint16


def test_decode_recovers_distance():
    enc = build("enc", "kitti_u16")
    for d in (0.01, 0.7, 1.234, 17.3, 99.999, 255.99):
        raw = enc.encode_distance(d)
        assert raw == int(np.floor(d * 256 + 0.5))
        assert abs(enc.decode(raw) - d) <= 1.0 / 256


def test_encode_clamps_far_points():
    enc = build("enc", "kitti_u16")
    raw, valid = enc.encode(np.array([[0, 0, 300.0], [0, 0, 256.0], [0, 0, 255.999]]))
    assert raw.tolist() == [65535, 65535, 65535]
    assert valid.all()
    assert enc.encode_distance(1e6) == 65535


def test_encode_zero_and_tiny_distance():
    enc = build("enc", "kitti_u16")
    raw, valid = enc.encode(np.array([[0, 0, 0.0], [0, 0, 1e-4], [np.nan, 0, 1]]))
    assert valid.tolist() == [False, True, False]
    assert raw.tolist() == [0, 1, 0]
    assert enc.encode_distance(0.0) == 0


# ------------------------------- rasterizer -------------------------------

def test_zbuffer_min_wins_and_row_col():
    uv = np.array([[3, 1], [3, 1], [0, 2], [1, 0]])
    img = build("rast", "zbuffer").rasterize(uv, np.array([900, 400, 7, 65535]), (3, 4))
    assert img.dtype == np.uint16 and img.shape == (3, 4)
    assert img[1, 3] == 400
    assert img[2, 0] == 7
    assert img[0, 1] == 65535
    assert np.count_nonzero(img) == 3


def test_zbuffer_empty():
    img = build("rast", "zbuffer").rasterize(np.zeros((0, 2), np.int64), np.zeros(0, np.uint16), (5, 7))
    assert img.shape == (5, 7) and not img.any()


def test_registry():
    assert available("proj") == ["pinhole"]
    assert "kitti_u16" in available("enc")
    with pytest.raises(KeyError):
        build("rast", "bilinear")
