# lidar2depth/rasterizers/zbuffer.py
import numpy as np
from .base import Rasterizer
from ..frames import DEPTH_INVALID
from ..registry import register

_EMPTY = np.iinfo(np.uint32).max

@register("rast", "zbuffer")
class ZBuffer(Rasterizer):
    """Nearest surface wins: a pixel hit by several points keeps the smallest depth."""

    def rasterize(self, uv, values, out_hw):
        H, W = out_hw
        buf = np.full((H, W), _EMPTY, dtype=np.uint32)
        if len(values):
            u = uv[:, 0]
            v = uv[:, 1]
            # row = v, column = u
            np.minimum.at(buf, (v, u), np.asarray(values, dtype=np.uint32))
        img = np.where(buf == _EMPTY, DEPTH_INVALID, buf).astype(np.uint16)
        return img
