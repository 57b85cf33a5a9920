# lidar2depth/errors.py


class Lidar2DepthError(Exception):
    """Base class for errors raised by lidar2depth."""


class ConfigError(Lidar2DepthError, ValueError):
    """Invalid static configuration (bounds, intrinsics, transforms). Fatal at startup."""


class TransformUnavailable(Lidar2DepthError, LookupError):
    """No transform for the requested (source, target, stamp). Aborts one invocation only."""

    def __init__(self, source_frame, target_frame, stamp, reason=""):
        self.source_frame = source_frame
        self.target_frame = target_frame
        self.stamp = stamp
        self.reason = reason
        msg = f"no transform {source_frame!r} -> {target_frame!r} at t={stamp}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)
