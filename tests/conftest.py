# tests/conftest.py
import sys
from pathlib import Path

import numpy as np
import pytest

# Resolve repo root no matter where pytest is run from
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from lidar2depth.frames import CameraIntrinsics, Header, PointCloudFrame  # noqa: E402
from lidar2depth.transforms import RigidTransform  # noqa: E402

# velodyne (x fwd, y left, z up) -> camera optical (x right, y down, z fwd)
VELO_TO_OPTICAL = np.array([[0.0, -1.0, 0.0],
                            [0.0, 0.0, -1.0],
                            [1.0, 0.0, 0.0]])


@pytest.fixture
def intr():
    return CameraIntrinsics(fx=500.0, fy=500.0, cx=320.0, cy=240.0, width=640, height=480, frame_id="cam")


@pytest.fixture
def velo_to_cam():
    return RigidTransform(VELO_TO_OPTICAL, np.zeros(3), "velodyne", "cam")


def make_cloud(points, frame_id="cam", stamp=1.0):
    return PointCloudFrame(np.asarray(points, dtype=np.float64).reshape(-1, 3), Header(stamp, frame_id))
