# lidar2depth/projections/pinhole.py
import numpy as np
from .base import Projection
from ..registry import register

@register("proj", "pinhole")
class Pinhole(Projection):
    """Ideal (rectified) pinhole: u = fx*x/z + cx, v = fy*y/z + cy."""

    def project(self, points_xyz, intrinsics):
        H, W = intrinsics.shape
        X = np.asarray(points_xyz, dtype=np.float64)
        if X.shape[0] == 0:
            return {"uv": np.zeros((0, 2), np.int64), "idx": np.zeros(0, np.int64)}
        x, y, z = X[:, 0], X[:, 1], X[:, 2]
        # z <= 0 is already cut by the forward bound; keep the projector safe on its own
        front = np.flatnonzero(z > 0)
        x, y, z = x[front], y[front], z[front]
        # pixel halves round to even here; depth rounds half up in the encoder
        u = np.round(intrinsics.fx * (x / z) + intrinsics.cx)
        v = np.round(intrinsics.fy * (y / z) + intrinsics.cy)
        m = (u >= 0) & (u < W) & (v >= 0) & (v < H)
        uv = np.stack([u[m], v[m]], 1).astype(np.int64)
        return {"uv": uv, "idx": front[m]}
