# lidar2depth/projections/base.py
class Projection:
    def project(self, points_xyz, intrinsics):
        """
        points_xyz: (N,3) in the camera optical frame (x right, y down, z forward)
        intrinsics: CameraIntrinsics
        Returns: dict with keys:
          'uv':  (M,2) integer pixel coords (0..W-1, 0..H-1), column first
          'idx': (M,) index of each surviving point into points_xyz
        """
        raise NotImplementedError
