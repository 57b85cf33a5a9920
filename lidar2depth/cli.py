# lidar2depth/cli.py
import argparse
import datetime
import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import cv2
from tqdm import tqdm

from .config import load_config
from .errors import ConfigError
from .io_frames import PngImageSink, list_clouds, load_camera, read_cloud, read_timestamps
from .pipeline import Lidar2Depth

def find_timestamps(cloud_dir: Path, n: int):
    # KITTI raw keeps timestamps.txt next to data/ (velodyne_points/{timestamps.txt,data/})
    for cand in (cloud_dir / "timestamps.txt", cloud_dir.parent / "timestamps.txt"):
        if cand.is_file():
            stamps = read_timestamps(cand)
            if len(stamps) == n:
                return stamps
            print(f"[WARN] {cand} has {len(stamps)} stamps for {n} clouds; using t=0")
            break
    return [0.0] * n

def build_parser():
    ap = argparse.ArgumentParser(prog="lidar2depth",
        description="Project LiDAR point clouds into 16-bit depth images (meters*256, 0 = no data)")
    ap.add_argument("--config", required=True, help="Pipeline YAML")
    ap.add_argument("--clouds", required=True, help="Directory of point clouds (*.bin KITTI velodyne or *.npy)")
    ap.add_argument("--out", required=True, help="Output directory for mono16 PNG depth images")
    ap.add_argument("--camera-info", default=None, help="ROS camera_info YAML or KITTI calib .txt (overrides config)")
    ap.add_argument("--lidar-frame", default="velodyne", help="Frame id of the input clouds")
    ap.add_argument("--target-frame", default=None, help="Camera frame (overrides config)")
    ap.add_argument("--W", type=int, default=1242, help="Image width (KITTI calib only)")
    ap.add_argument("--H", type=int, default=375, help="Image height (KITTI calib only)")
    ap.add_argument("--images", default=None, help="RGB directory for preview overlays (same stems)")
    ap.add_argument("--workers", type=int, default=1, help="Frames processed in parallel")
    ap.add_argument("--limit", type=int, default=0, help="Process at most N clouds (0 = all)")
    ap.add_argument("--save-npy", action="store_true", help="Save depth in meters as .npy alongside PNG")
    ap.add_argument("--preview", type=int, default=0, help="Save N colour previews for sanity check")
    ap.add_argument("--verbose", action="store_true", help="Print per-frame cloud/camera sizes")
    return ap

def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config)
        info_path = Path(args.camera_info) if args.camera_info else cfg.camera.info
        if info_path is None:
            raise ConfigError("no camera info: set camera.info in the config or pass --camera-info")
        intr, cam_tf = load_camera(info_path, args.W, args.H, cfg.camera.frame_id, args.lidar_frame)
    except (ConfigError, FileNotFoundError, KeyError, ValueError) as ex:
        print(f"[ERROR] {ex}")
        return 2

    if args.target_frame:
        cfg.pipeline.target_frame = args.target_frame
    provider = cfg.make_provider()
    if cam_tf is not None:
        provider.set_transform(cam_tf)
    pipe = Lidar2Depth.from_config(cfg, provider, verbose=args.verbose)
    target = cfg.pipeline.target_frame or intr.frame_id
    print(f"[INFO] camera {intr.width}x{intr.height} fx={intr.fx:.2f} fy={intr.fy:.2f} "
          f"cx={intr.cx:.2f} cy={intr.cy:.2f} target_frame={target!r}")
    print(f"[INFO] {pipe.filter} known frames={provider.frames()}")

    cloud_dir = Path(args.clouds)
    files = list_clouds(cloud_dir)
    # timestamps.txt lines up with the full directory, so match before --limit
    stamps = find_timestamps(cloud_dir, len(files))
    if args.limit > 0:
        files, stamps = files[:args.limit], stamps[:args.limit]
    n = len(files)
    print(f"[INFO] {n} clouds from {cloud_dir}")

    out_dir = Path(args.out)
    sink = PngImageSink(out_dir, save_npy=args.save_npy,
                        preview_dir=out_dir / "_preview" if args.preview > 0 else None)
    rgb_dir = Path(args.images) if args.images else None

    def run(job):
        i, path = job
        try:
            cloud = read_cloud(path, args.lidar_frame, stamps[i])
        except (ValueError, OSError) as ex:
            print(f"[WARN] {path.name}: {ex}. Skipping.")
            return path.stem, None
        img = pipe.process(cloud, intr)
        if img is None:
            return path.stem, None
        rgb = None
        preview = i < args.preview
        if preview and rgb_dir is not None:
            rgb = cv2.imread(str(rgb_dir / f"{path.stem}.png"), cv2.IMREAD_COLOR)
        sink.write(img, path.stem, rgb=rgb, preview=preview)
        return path.stem, img.meta

    jobs = list(enumerate(files))
    wrote, skipped, empty = 0, 0, 0
    with ThreadPoolExecutor(max_workers=max(1, args.workers)) as ex:
        for stem, meta in tqdm(ex.map(run, jobs), total=n, desc="lidar2depth"):
            if meta is None:
                skipped += 1
                continue
            wrote += 1
            empty += meta["pixels_valid"] == 0

    meta = {
        "created": datetime.datetime.now().isoformat(timespec="seconds"),
        "config": str(cfg.source),
        "clouds": str(cloud_dir.resolve()),
        "camera_info": str(info_path),
        "frames_requested": n,
        "frames_written": wrote,
        "frames_skipped": skipped,
        "frames_empty": int(empty),
        "W": intr.width,
        "H": intr.height,
        "target_frame": target,
        "forward_limits": list(cfg.pipeline.forward_limits),
        "lateral_limits": list(cfg.pipeline.lateral_limits),
        "encoding": "mono16, meters = value / 256, 0 = no data",
    }
    (out_dir / "meta.json").write_text(json.dumps(meta, indent=2))

    print(f"[DONE] Out: {out_dir} | wrote={wrote}/{n} skipped={skipped} empty={empty} | HxW={intr.height}x{intr.width}")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
