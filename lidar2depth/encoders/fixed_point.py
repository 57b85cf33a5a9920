# lidar2depth/encoders/fixed_point.py
#
# KITTI depth-map convention: uint16, meters = value / 256.0, 0 = no measurement.
# Depth is the euclidean range from the camera center, not the z coordinate.
import numpy as np
from .base import Encoder
from ..frames import DEPTH_SCALE, DEPTH_MAX_RAW
from ..registry import register

@register("enc", "kitti_u16")
class FixedPointDepth(Encoder):
    def __init__(self, scale=DEPTH_SCALE, max_raw=DEPTH_MAX_RAW):
        self.scale = float(scale)
        self.max_raw = int(max_raw)

    def encode(self, points_xyz):
        X = np.asarray(points_xyz, dtype=np.float64)
        dist = np.sqrt((X[:, :3] ** 2).sum(axis=1)) if X.shape[0] else np.zeros(0)
        valid = np.isfinite(dist) & (dist > 0)
        raw = np.floor(np.where(valid, dist, 0.0) * self.scale + 0.5)
        # far points saturate instead of wrapping; tiny non-zero ranges never become "no data"
        raw = np.clip(raw, 1, self.max_raw)
        raw[~valid] = 0
        return raw.astype(np.uint16), valid

    def encode_distance(self, distance):
        """Scalar helper: meters -> raw, or 0 for a non-positive distance."""
        if not distance > 0:
            return 0
        return int(min(max(np.floor(distance * self.scale + 0.5), 1), self.max_raw))

    def decode(self, raw):
        return np.asarray(raw, dtype=np.float64) / self.scale
