# lidar2depth/io_frames.py
from datetime import datetime, timezone
from pathlib import Path
import cv2
import numpy as np
import yaml

from .frames import CameraIntrinsics, DepthImage, Header, PointCloudFrame
from .transforms import RigidTransform

CLOUD_EXTS = (".bin", ".npy")

# ------------------------------- point clouds -------------------------------

def read_velodyne(bin_path: Path):
    pts = np.fromfile(bin_path, dtype=np.float32)
    if pts.size % 4 != 0:
        raise ValueError(f"Velodyne file has unexpected size: {bin_path}")
    return pts.reshape(-1, 4)  # x,y,z,intensity

def read_points(path: Path):
    path = Path(path)
    if path.suffix == ".bin":
        return read_velodyne(path)
    if path.suffix == ".npy":
        pts = np.load(path)
        if pts.ndim != 2 or pts.shape[1] < 3:
            raise ValueError(f"Expected (N,3+) array in {path}, got {pts.shape}")
        return pts
    raise ValueError(f"Unsupported point cloud format: {path}")

def read_cloud(path: Path, frame_id: str, stamp=0.0) -> PointCloudFrame:
    return PointCloudFrame(read_points(path), Header(float(stamp), frame_id))

def parse_stamp(s: str) -> float:
    """'12.5' (seconds) or KITTI raw '2011-09-26 13:02:25.964389445' (read as UTC)."""
    s = s.strip()
    try:
        return float(s)
    except ValueError:
        pass
    head, _, frac = s.partition(".")
    t = datetime.strptime(head, "%Y-%m-%d %H:%M:%S").replace(tzinfo=timezone.utc).timestamp()
    return t + (float("0." + frac) if frac else 0.0)

def read_timestamps(path: Path):
    return [parse_stamp(x) for x in Path(path).read_text().splitlines() if x.strip()]

def list_clouds(cloud_dir: Path):
    return sorted(p for p in Path(cloud_dir).iterdir() if p.suffix in CLOUD_EXTS)

# ------------------------------- calibration --------------------------------

def read_calib(calib_path: Path):
    # KITTI calib files: P2, R0_rect, Tr_velo_to_cam
    mats = {}
    with open(calib_path, "r") as f:
        for line in f:
            if ":" not in line: continue
            k, v = line.split(":", 1)
            k = k.strip()
            try:
                arr = np.array([float(x) for x in v.split()], dtype=np.float64)
            except ValueError:
                continue  # calib_time etc.
            if k == "P2" or k == "P_rect_02": mats["P2"] = arr.reshape(3, 4)
            if k in ("R0_rect", "R_rect_00"): mats["R0"] = arr.reshape(3, 3)
            if k in ("Tr_velo_to_cam", "Tr_velo_cam"): mats["Tr"] = arr.reshape(3, 4)
    if "P2" not in mats:
        raise KeyError(f"P2 not found in calib: {calib_path}")
    return mats  # {'P2','R0','Tr'}

def kitti_camera(calib, width, height, lidar_frame="velodyne", camera_frame="camera_optical"):
    """
    Intrinsics of the rectified left colour camera plus the velodyne -> camera transform.
    P2 = K @ [I | t_baseline]; the baseline offset is folded into the transform so the
    pinhole model stays u = fx*x/z + cx.
    """
    P2 = calib["P2"]
    K = P2[:, :3]
    intr = CameraIntrinsics.from_matrix(K, width, height, frame_id=camera_frame)
    if "Tr" not in calib:
        return intr, None
    R0 = calib.get("R0", np.eye(3))
    Tr = calib["Tr"]
    baseline = np.linalg.solve(K, P2[:, 3])
    tf = RigidTransform(R0 @ Tr[:, :3], R0 @ Tr[:, 3] + baseline, lidar_frame, camera_frame)
    return intr, tf

def _matrix(node):
    # ROS camera_info YAML stores matrices as {rows, cols, data}
    if isinstance(node, dict):
        return np.asarray(node["data"], dtype=np.float64).reshape(int(node["rows"]), int(node["cols"]))
    return np.asarray(node, dtype=np.float64)

def read_camera_info(path: Path, frame_id=""):
    """
    ROS camera_info YAML (camera_calibration output) or a CameraInfo message dump.
    Uses the projection matrix when present: images are assumed rectified.
    """
    info = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    width = info.get("image_width", info.get("width"))
    height = info.get("image_height", info.get("height"))
    P = info.get("projection_matrix", info.get("P"))
    K = info.get("camera_matrix", info.get("K"))
    if width is None or height is None or (P is None and K is None):
        raise KeyError(f"camera info needs width, height and a camera/projection matrix: {path}")
    M = _matrix(P if P is not None else K)
    if M.size in (9, 12) and M.ndim == 1:
        M = M.reshape(3, -1)
    if not frame_id:
        frame_id = (info.get("header") or {}).get("frame_id") or info.get("camera_name", "")
    return CameraIntrinsics.from_matrix(M, width, height, frame_id=frame_id)

def load_camera(path: Path, width=None, height=None, frame_id="", lidar_frame="velodyne"):
    """Returns (intrinsics, transform or None). KITTI .txt needs the image size."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"camera info not found: {path}")
    if path.suffix == ".txt":
        if width is None or height is None:
            raise ValueError("KITTI calib has no image size; pass width and height")
        return kitti_camera(read_calib(path), width, height, lidar_frame, frame_id or "camera_optical")
    return read_camera_info(path, frame_id), None

# ------------------------------- depth images -------------------------------

def write_depth_png(path: Path, image: DepthImage):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ok = cv2.imwrite(str(path), image.data)
    if not ok:
        raise IOError(f"Failed to write image: {path}")

def read_depth_png(path: Path):
    img = cv2.imread(str(path), cv2.IMREAD_ANYDEPTH)
    if img is None:
        raise FileNotFoundError(f"Failed to read image: {path}")
    if img.dtype != np.uint16:
        raise ValueError(f"Expected 16-bit depth PNG, got {img.dtype}: {path}")
    return img

def colorize(image: DepthImage, rgb=None):
    """JET preview of valid pixels, optionally blended over an RGB frame."""
    m = image.valid
    vis = np.zeros(image.data.shape, np.uint8)
    if m.any():
        d = image.data[m].astype(np.float32)
        lo, hi = float(d.min()), float(d.max())
        # near = bright
        vis[m] = (255 - (d - lo) / max(1.0, hi - lo) * 254).astype(np.uint8)
    heat = cv2.applyColorMap(vis, cv2.COLORMAP_JET)
    heat[~m] = 0
    if rgb is None:
        return heat
    if rgb.shape[:2] != heat.shape[:2]:
        heat = cv2.resize(heat, (rgb.shape[1], rgb.shape[0]), interpolation=cv2.INTER_NEAREST)
        m = cv2.resize(m.astype(np.uint8), (rgb.shape[1], rgb.shape[0]), interpolation=cv2.INTER_NEAREST) > 0
    over = rgb.copy()
    over[m] = cv2.addWeighted(rgb, 0.45, heat, 0.55, 0)[m]
    return over

class PngImageSink:
    """Writes each DepthImage as {out}/{name}.png (mono16), optionally .npy meters and a preview."""

    def __init__(self, out_dir: Path, save_npy=False, preview_dir: Path = None):
        self.out_dir = Path(out_dir)
        self.out_dir.mkdir(parents=True, exist_ok=True)
        self.save_npy = save_npy
        self.preview_dir = Path(preview_dir) if preview_dir else None
        if self.preview_dir:
            self.preview_dir.mkdir(parents=True, exist_ok=True)

    def write(self, image: DepthImage, name: str, rgb=None, preview=False):
        write_depth_png(self.out_dir / f"{name}.png", image)
        if self.save_npy:
            np.save(self.out_dir / f"{name}.npy", image.to_meters())
        if preview and self.preview_dir is not None:
            cv2.imwrite(str(self.preview_dir / f"{name}.png"), colorize(image, rgb))
