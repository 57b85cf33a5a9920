# lidar2depth/rasterizers/base.py
class Rasterizer:
    def rasterize(self, uv, values, out_hw):
        """
        uv: (M,2) integer pixels, column (u) first
        values: (M,) fixed-point depth, all non-zero
        out_hw: (H,W)
        Returns: dense 2D map (H,W) uint16 with 0 for empty pixels
        """
        raise NotImplementedError
