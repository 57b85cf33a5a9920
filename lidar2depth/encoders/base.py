# lidar2depth/encoders/base.py
class Encoder:
    def encode(self, points_xyz):
        """
        points_xyz: (N,3) camera-frame points (before projection)
        Returns: (raw, valid)
          raw:   (N,) fixed-point depth, ready to rasterize
          valid: (N,) bool, False for points that must not reach the image
        """
        raise NotImplementedError

    def decode(self, raw):
        """Inverse of encode for a single value or an array, in meters."""
        raise NotImplementedError
