# lidar2depth/pipeline.py
import numpy as np
from .registry import build
from .errors import TransformUnavailable
from .filters import SpatialFilter
from .frames import DepthImage, ProjectedSamples
from .transforms import FrameTransformer

class Lidar2Depth:
    """
    One call to process() turns a synchronized (cloud, camera info) pair into one
    DepthImage, or returns None when the transform lookup fails. No state is kept
    between calls, so one instance can serve several threads.
    """

    def __init__(self, transformer, spatial_filter, proj, enc, rast,
                 target_frame="", publisher=None, verbose=False):
        self.transformer = transformer
        self.filter = spatial_filter
        self.proj = proj
        self.enc = enc
        self.rast = rast
        self.target_frame = target_frame
        self.publisher = publisher
        self.verbose = verbose

    @classmethod
    def from_config(cls, cfg, provider, publisher=None, verbose=False):
        p = cfg.pipeline
        return cls(
            FrameTransformer(provider),
            SpatialFilter(p.forward_limits, p.lateral_limits, p.forward_axis, p.lateral_axis),
            build("proj", p.projection),
            build("enc", p.encoder),
            build("rast", p.rasterizer),
            target_frame=p.target_frame,
            publisher=publisher,
            verbose=verbose,
        )

    def project(self, points, intrinsics) -> ProjectedSamples:
        if points.shape[0] == 0:
            return ProjectedSamples.empty()
        P = self.proj.project(points, intrinsics)
        raw, valid = self.enc.encode(points[P["idx"]])
        return ProjectedSamples(u=P["uv"][valid, 0], v=P["uv"][valid, 1], depth_raw=raw[valid])

    def process(self, cloud, intrinsics):
        if self.verbose:
            print(f"[INFO] cloud: n={len(cloud)} frame={cloud.frame_id!r} t={cloud.stamp:.6f}")
            print(f"[INFO] camera: width={intrinsics.width} height={intrinsics.height}")

        target = self.target_frame or intrinsics.frame_id
        try:
            cam_cloud = self.transformer.transform(cloud, target)
        except TransformUnavailable as ex:
            print(f"[WARN] {ex}; skipping frame")
            return None

        kept = self.filter.filter(cam_cloud)
        S = self.project(kept.points, intrinsics)
        img = self.rast.rasterize(np.stack([S.u, S.v], 1), S.depth_raw, intrinsics.shape)

        out = DepthImage(img, cloud.header, meta={
            "points_in": len(cloud),
            "points_kept": len(kept),
            "samples": len(S),
            "pixels_valid": int(np.count_nonzero(img)),
        })
        if self.publisher is not None:
            self.publisher(out)
        return out

    __call__ = process
