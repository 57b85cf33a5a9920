# lidar2depth/filters.py
"""
Pass-through filtering in the camera optical frame (x right, y down, z forward).

Both bounds are evaluated on the same input cloud and combined into one mask;
every stage returns a fresh cloud and never writes into its input.
"""
import numpy as np

from .errors import ConfigError
from .frames import PointCloudFrame

AXES = {"x": 0, "y": 1, "z": 2}


def _check_limits(name, limits):
    try:
        lo, hi = (float(v) for v in limits)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a pair [min, max], got {limits!r}") from None
    if not (np.isfinite(lo) and np.isfinite(hi)):
        raise ConfigError(f"{name} must be finite, got {limits!r}")
    if lo > hi:
        raise ConfigError(f"{name} min > max: {limits!r}")
    return lo, hi


def _check_axis(axis):
    if axis not in AXES:
        raise ConfigError(f"unknown axis {axis!r} (expected one of {sorted(AXES)})")
    return AXES[axis]


class PassThrough:
    """Keep points whose `axis` coordinate lies in the inclusive [lo, hi]."""

    def __init__(self, axis, limits):
        self.axis = axis
        self._col = _check_axis(axis)
        self.limits = _check_limits(f"{axis}_limits", limits)

    def mask(self, points):
        c = points[:, self._col]
        return (c >= self.limits[0]) & (c <= self.limits[1])

    def filter(self, cloud: PointCloudFrame) -> PointCloudFrame:
        return cloud.with_points(cloud.points[self.mask(cloud.points)])


class SpatialFilter:
    def __init__(self, forward_limits, lateral_limits, forward_axis="z", lateral_axis="x"):
        if forward_axis == lateral_axis:
            raise ConfigError(f"forward and lateral axis must differ (both {forward_axis!r})")
        self.forward = PassThrough(forward_axis, forward_limits)
        self.lateral = PassThrough(lateral_axis, lateral_limits)
        if self.forward.limits[0] <= 0.0:
            raise ConfigError(f"forward_limits min must be > 0 (points on/behind the camera plane "
                              f"cannot be projected), got {self.forward.limits[0]}")

    def filter(self, cloud: PointCloudFrame) -> PointCloudFrame:
        pts = cloud.points
        keep = self.forward.mask(pts) & self.lateral.mask(pts)
        return cloud.with_points(pts[keep])

    def __repr__(self):
        return (f"SpatialFilter({self.forward.axis} in {list(self.forward.limits)}, "
                f"{self.lateral.axis} in {list(self.lateral.limits)})")
