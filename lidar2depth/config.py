# lidar2depth/config.py
"""
Static configuration, read once at startup from YAML.

    pipeline:
      target_frame: camera_optical   # "" -> use the camera info frame
      forward_axis: z
      lateral_axis: x
      forward_limits: [0.1, 6.0]
      lateral_limits: [-6.0, 6.0]
      projection: pinhole
      encoder: kitti_u16
      rasterizer: zbuffer
    camera:
      info: camera_info.yaml          # ROS camera_info YAML or KITTI calib .txt
      frame_id: camera_optical        # optional override
    transforms:
      - source: velodyne
        target: camera_optical
        translation: [0.0, 0.0, 0.0]
        rotation: [0.0, 0.0, 0.0, 1.0]  # quaternion x,y,z,w, or 3x3 / 3x4 matrix rows
        stamp: null                     # null -> static
    tolerance: 0.05

Anything wrong here raises ConfigError before the first frame is processed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import yaml

from .errors import ConfigError
from .filters import SpatialFilter
from .registry import available
from .transforms import RigidTransform, TransformBuffer

DEFAULT_FORWARD_LIMITS = (0.1, 6.0)
DEFAULT_LATERAL_LIMITS = (-6.0, 6.0)


@dataclass
class PipelineConfig:
    target_frame: str = ""
    forward_axis: str = "z"
    lateral_axis: str = "x"
    forward_limits: Tuple[float, float] = DEFAULT_FORWARD_LIMITS
    lateral_limits: Tuple[float, float] = DEFAULT_LATERAL_LIMITS
    projection: str = "pinhole"
    encoder: str = "kitti_u16"
    rasterizer: str = "zbuffer"


@dataclass
class CameraConfig:
    info: Optional[Path] = None
    frame_id: str = ""


@dataclass
class Config:
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    transforms: List[RigidTransform] = field(default_factory=list)
    tolerance: float = 0.05
    source: Optional[Path] = None

    def make_provider(self) -> TransformBuffer:
        buf = TransformBuffer(tolerance=self.tolerance)
        for tf in self.transforms:
            buf.set_transform(tf)
        return buf


def _section(cfg, key):
    sec = cfg.get(key) or {}
    if not isinstance(sec, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(sec).__name__}")
    return sec


def parse_transform(entry, i=0) -> RigidTransform:
    if not isinstance(entry, dict):
        raise ConfigError(f"transforms[{i}] must be a mapping")
    try:
        src, dst = str(entry["source"]), str(entry["target"])
    except KeyError as ex:
        raise ConfigError(f"transforms[{i}] missing key {ex}") from None
    try:
        stamp = entry.get("stamp")
        stamp = None if stamp is None else float(stamp)
        rot = np.asarray(entry.get("rotation", [0.0, 0.0, 0.0, 1.0]), dtype=np.float64)
        t = np.asarray(entry.get("translation", [0.0, 0.0, 0.0]), dtype=np.float64)
    except (TypeError, ValueError) as ex:
        raise ConfigError(f"transforms[{i}]: {ex}") from None
    if rot.shape == (4,):
        return RigidTransform.from_quaternion(t, rot, src, dst, stamp)
    if rot.shape == (3, 3) or rot.size == 9:
        return RigidTransform(rot.reshape(3, 3), t, src, dst, stamp)
    if rot.shape == (3, 4) or rot.size == 12:
        return RigidTransform.from_matrix(rot.reshape(3, 4), src, dst, stamp)
    raise ConfigError(f"transforms[{i}].rotation must be a quaternion, 3x3 or 3x4 matrix, got shape {rot.shape}")


def validate(cfg: Config) -> Config:
    p = cfg.pipeline
    # constructing the filter runs every bound/axis check
    sf = SpatialFilter(p.forward_limits, p.lateral_limits, p.forward_axis, p.lateral_axis)
    p.forward_limits, p.lateral_limits = sf.forward.limits, sf.lateral.limits
    for kind, name in (("proj", p.projection), ("enc", p.encoder), ("rast", p.rasterizer)):
        if name not in available(kind):
            raise ConfigError(f"unknown {kind} {name!r} (available: {available(kind)})")
    if cfg.tolerance < 0:
        raise ConfigError(f"tolerance must be >= 0, got {cfg.tolerance}")
    return cfg


def from_dict(raw, base_dir: Optional[Path] = None) -> Config:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")
    pipe = _section(raw, "pipeline")
    cam = _section(raw, "camera")

    p = PipelineConfig(
        target_frame=str(pipe.get("target_frame", "") or ""),
        forward_axis=str(pipe.get("forward_axis", "z")),
        lateral_axis=str(pipe.get("lateral_axis", "x")),
        forward_limits=pipe.get("forward_limits", DEFAULT_FORWARD_LIMITS),
        lateral_limits=pipe.get("lateral_limits", DEFAULT_LATERAL_LIMITS),
        projection=str(pipe.get("projection", "pinhole")),
        encoder=str(pipe.get("encoder", "kitti_u16")),
        rasterizer=str(pipe.get("rasterizer", "zbuffer")),
    )

    info = cam.get("info")
    if info is not None:
        info = Path(info)
        if base_dir is not None and not info.is_absolute():
            info = base_dir / info
    c = CameraConfig(info=info, frame_id=str(cam.get("frame_id", "") or ""))

    tfs = raw.get("transforms") or []
    if not isinstance(tfs, list):
        raise ConfigError("'transforms' must be a list")
    try:
        tolerance = float(raw.get("tolerance", 0.05))
    except (TypeError, ValueError):
        raise ConfigError(f"tolerance must be a number, got {raw.get('tolerance')!r}") from None

    cfg = Config(pipeline=p, camera=c,
                 transforms=[parse_transform(e, i) for i, e in enumerate(tfs)],
                 tolerance=tolerance)
    return validate(cfg)


def load_config(path) -> Config:
    path = Path(path).resolve()
    if not path.is_file():
        raise FileNotFoundError(f"config not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as ex:
        raise ConfigError(f"cannot parse {path}: {ex}") from ex
    cfg = from_dict(raw, base_dir=path.parent)
    cfg.source = path
    return cfg
