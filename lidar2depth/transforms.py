# lidar2depth/transforms.py
"""
Rigid transforms, a small transform buffer and the FrameTransformer stage.

Lookup convention: lookup(source_frame, target_frame, stamp) returns T with
    p_target = T.R @ p_source + T.t
"""
from __future__ import annotations

import bisect
import threading
from typing import Dict, List, Optional, Tuple

import numpy as np

from .errors import ConfigError, TransformUnavailable
from .frames import PointCloudFrame


def quat_to_matrix(q):
    """(x, y, z, w) -> 3x3 rotation. The quaternion is normalized first."""
    x, y, z, w = np.asarray(q, dtype=np.float64)
    n = x*x + y*y + z*z + w*w
    if not np.isfinite(n) or n < 1e-12:
        raise ConfigError(f"degenerate quaternion: {q}")
    s = 2.0 / n
    return np.array([
        [1 - s*(y*y + z*z), s*(x*y - z*w),     s*(x*z + y*w)],
        [s*(x*y + z*w),     1 - s*(x*x + z*z), s*(y*z - x*w)],
        [s*(x*z - y*w),     s*(y*z + x*w),     1 - s*(x*x + y*y)],
    ], dtype=np.float64)


class RigidTransform:
    def __init__(self, R, t, source_frame="", target_frame="", stamp=None):
        R = np.asarray(R, dtype=np.float64)
        t = np.asarray(t, dtype=np.float64).reshape(-1)
        if R.shape != (3, 3) or t.shape != (3,):
            raise ConfigError(f"rotation must be 3x3 and translation 3-vector, got {R.shape} / {t.shape}")
        if not (np.isfinite(R).all() and np.isfinite(t).all()):
            raise ConfigError("transform contains non-finite values")
        self.R = R
        self.t = t
        self.source_frame = source_frame
        self.target_frame = target_frame
        self.stamp = stamp

    @classmethod
    def identity(cls, frame_id="", stamp=None):
        return cls(np.eye(3), np.zeros(3), frame_id, frame_id, stamp)

    @classmethod
    def from_quaternion(cls, translation, quat_xyzw, source_frame="", target_frame="", stamp=None):
        return cls(quat_to_matrix(quat_xyzw), translation, source_frame, target_frame, stamp)

    @classmethod
    def from_matrix(cls, M, source_frame="", target_frame="", stamp=None):
        M = np.asarray(M, dtype=np.float64)
        if M.shape == (12,):
            M = M.reshape(3, 4)
        if M.shape == (16,):
            M = M.reshape(4, 4)
        if M.shape not in ((3, 4), (4, 4)):
            raise ConfigError(f"transform matrix must be 3x4 or 4x4, got {M.shape}")
        return cls(M[:3, :3], M[:3, 3], source_frame, target_frame, stamp)

    @property
    def matrix(self):
        M = np.eye(4)
        M[:3, :3] = self.R
        M[:3, 3] = self.t
        return M

    def apply(self, points):
        pts = np.asarray(points, dtype=np.float64)
        if pts.shape[0] == 0:
            return pts.reshape(0, 3).copy()
        return pts[:, :3] @ self.R.T + self.t

    def inverse(self):
        Rt = self.R.T
        return RigidTransform(Rt, -Rt @ self.t, self.target_frame, self.source_frame, self.stamp)

    def compose(self, other: "RigidTransform"):
        """self ∘ other: apply `other` first, then `self`."""
        return RigidTransform(self.R @ other.R, self.R @ other.t + self.t,
                              other.source_frame, self.target_frame, self.stamp)

    def __repr__(self):
        return (f"RigidTransform({self.source_frame!r} -> {self.target_frame!r}, "
                f"t={self.t.round(4).tolist()}, stamp={self.stamp})")


class TransformBuffer:
    """
    In-memory transform provider.
    - static edges are valid for every stamp
    - stamped edges are matched to the closest sample within `tolerance` seconds
    - inverse edges are resolved automatically; no multi-hop chaining
    Reads and writes are serialized by a lock so pipelines may share one buffer.
    """

    def __init__(self, tolerance=0.05):
        self.tolerance = float(tolerance)
        self._static: Dict[Tuple[str, str], RigidTransform] = {}
        self._stamped: Dict[Tuple[str, str], Tuple[List[float], List[RigidTransform]]] = {}
        self._lock = threading.Lock()

    def set_transform(self, tf: RigidTransform, static: Optional[bool] = None):
        if not tf.source_frame or not tf.target_frame:
            raise ConfigError(f"transform needs source and target frames: {tf}")
        if static is None:
            static = tf.stamp is None
        key = (tf.source_frame, tf.target_frame)
        with self._lock:
            if static:
                self._static[key] = tf
                return
            stamps, tfs = self._stamped.setdefault(key, ([], []))
            i = bisect.bisect_left(stamps, float(tf.stamp))
            if i < len(stamps) and stamps[i] == float(tf.stamp):
                tfs[i] = tf
            else:
                stamps.insert(i, float(tf.stamp))
                tfs.insert(i, tf)

    def _closest(self, key, stamp):
        entry = self._stamped.get(key)
        if entry is None:
            return None
        stamps, tfs = entry
        i = bisect.bisect_left(stamps, stamp)
        best = None
        for j in (i - 1, i):
            if 0 <= j < len(stamps) and abs(stamps[j] - stamp) <= self.tolerance:
                if best is None or abs(stamps[j] - stamp) < abs(stamps[best] - stamp):
                    best = j
        return None if best is None else tfs[best]

    def _direct(self, key, stamp):
        tf = self._static.get(key)
        if tf is not None:
            return tf
        if stamp is None:
            return None
        return self._closest(key, float(stamp))

    def lookup(self, source_frame, target_frame, stamp=None) -> RigidTransform:
        if source_frame == target_frame:
            return RigidTransform.identity(source_frame, stamp)
        with self._lock:
            tf = self._direct((source_frame, target_frame), stamp)
            if tf is not None:
                return tf
            tf = self._direct((target_frame, source_frame), stamp)
            if tf is not None:
                return tf.inverse()
            known = (source_frame, target_frame) in self._stamped or (target_frame, source_frame) in self._stamped
        reason = f"no sample within {self.tolerance}s" if known else "frames not connected"
        raise TransformUnavailable(source_frame, target_frame, stamp, reason)

    def frames(self):
        with self._lock:
            keys = list(self._static) + list(self._stamped)
        return sorted({f for k in keys for f in k})


class FrameTransformer:
    def __init__(self, provider):
        self.provider = provider

    def transform(self, cloud: PointCloudFrame, target_frame: str) -> PointCloudFrame:
        tf = self.provider.lookup(cloud.frame_id, target_frame, cloud.stamp)
        # anonymous transforms (no frame names) are taken at face value
        if (tf.source_frame and tf.source_frame != cloud.frame_id) or \
           (tf.target_frame and tf.target_frame != target_frame):
            raise TransformUnavailable(cloud.frame_id, target_frame, cloud.stamp,
                                       f"provider returned {tf.source_frame!r} -> {tf.target_frame!r}")
        return cloud.with_points(tf.apply(cloud.points), frame_id=target_frame)
