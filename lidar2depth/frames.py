# lidar2depth/frames.py
"""
Messages flowing through the pipeline.

  Header            stamp (s) + frame_id
  PointCloudFrame   (N,3) float64 xyz in header.frame_id, read-only
  CameraIntrinsics  rectified pinhole intrinsics + image size
  ProjectedSamples  parallel arrays u, v, depth_raw (one invocation only)
  DepthImage        (H,W) uint16, KITTI convention: meters = value / 256, 0 = no data
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .errors import ConfigError

DEPTH_SCALE = 256.0
DEPTH_MAX_RAW = 65535
DEPTH_INVALID = 0


@dataclass(frozen=True)
class Header:
    stamp: float = 0.0
    frame_id: str = ""


class PointCloudFrame:
    def __init__(self, points, header: Header):
        pts = np.array(points, dtype=np.float64, copy=True)
        if pts.size == 0:
            pts = pts.reshape(0, 3)
        if pts.ndim != 2 or pts.shape[1] < 3:
            raise ValueError(f"points must be (N,3+), got shape {pts.shape}")
        pts = np.ascontiguousarray(pts[:, :3])  # drop intensity/ring/etc.
        pts.setflags(write=False)
        self.points = pts
        self.header = header

    @property
    def frame_id(self):
        return self.header.frame_id

    @property
    def stamp(self):
        return self.header.stamp

    def __len__(self):
        return self.points.shape[0]

    def with_points(self, points, frame_id=None) -> "PointCloudFrame":
        hdr = self.header if frame_id is None else Header(self.header.stamp, frame_id)
        return PointCloudFrame(points, hdr)

    def __repr__(self):
        return f"PointCloudFrame(n={len(self)}, frame_id={self.frame_id!r}, stamp={self.stamp})"


@dataclass(frozen=True)
class CameraIntrinsics:
    fx: float
    fy: float
    cx: float
    cy: float
    width: int
    height: int
    frame_id: str = ""

    def __post_init__(self):
        for name in ("fx", "fy", "cx", "cy"):
            val = getattr(self, name)
            if not isinstance(val, (int, float, np.floating, np.integer)) or not math.isfinite(val):
                raise ConfigError(f"camera intrinsic {name} must be a finite number, got {val!r}")
        if self.fx <= 0 or self.fy <= 0:
            raise ConfigError(f"focal lengths must be > 0 (fx={self.fx}, fy={self.fy})")
        if int(self.width) != self.width or int(self.height) != self.height:
            raise ConfigError(f"image size must be integral, got {self.width}x{self.height}")
        if self.width <= 0 or self.height <= 0:
            raise ConfigError(f"image size must be > 0, got {self.width}x{self.height}")
        object.__setattr__(self, "width", int(self.width))
        object.__setattr__(self, "height", int(self.height))

    @property
    def shape(self):
        # numpy (rows, cols)
        return (self.height, self.width)

    @property
    def K(self):
        return np.array([[self.fx, 0.0, self.cx],
                         [0.0, self.fy, self.cy],
                         [0.0, 0.0, 1.0]], dtype=np.float64)

    @classmethod
    def from_matrix(cls, K, width, height, frame_id=""):
        K = np.asarray(K, dtype=np.float64)
        if K.shape == (9,):
            K = K.reshape(3, 3)
        if K.shape not in ((3, 3), (3, 4)):
            raise ConfigError(f"camera matrix must be 3x3 or 3x4, got {K.shape}")
        return cls(fx=float(K[0, 0]), fy=float(K[1, 1]), cx=float(K[0, 2]), cy=float(K[1, 2]),
                   width=width, height=height, frame_id=frame_id)


@dataclass
class ProjectedSamples:
    u: np.ndarray          # column index, int
    v: np.ndarray          # row index, int
    depth_raw: np.ndarray  # uint16, never 0

    def __len__(self):
        return int(self.u.shape[0])

    @classmethod
    def empty(cls):
        return cls(np.zeros(0, np.int64), np.zeros(0, np.int64), np.zeros(0, np.uint16))


@dataclass
class DepthImage:
    data: np.ndarray
    header: Header
    encoding: str = "mono16"
    meta: Optional[dict] = field(default=None, repr=False)

    @property
    def height(self):
        return self.data.shape[0]

    @property
    def width(self):
        return self.data.shape[1]

    @property
    def valid(self):
        return self.data > DEPTH_INVALID

    def to_meters(self):
        return self.data.astype(np.float32) / np.float32(DEPTH_SCALE)
