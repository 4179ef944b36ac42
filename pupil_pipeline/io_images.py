# pupil_pipeline/io_images.py

import logging
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from pupil_ops import settings as S

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetItem:
    path: Path
    category: str   # "real" / "synthetic"
    mode: str       # "eye" / "face" / "video"


def decode(data: bytes, flags: int = cv2.IMREAD_COLOR):
    """Encoded image bytes -> ndarray, or None if OpenCV cannot decode them."""
    buf = np.frombuffer(data, dtype=np.uint8)
    if buf.size == 0:
        return None
    return cv2.imdecode(buf, flags)


def encode(raster, ext: str = ".png") -> bytes:
    ok, buf = cv2.imencode(ext, raster)
    if not ok:
        raise ValueError(f"OpenCV could not encode raster as {ext}")
    return buf.tobytes()


def read_image(path):
    """Read a file into memory and decode it; None when unreadable."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        logger.warning("could not read %s: %s", path, exc)
        return None
    img = decode(data)
    if img is None:
        logger.warning("could not decode %s", path)
    return img


def read_video_frames(path, max_frames: int | None = None):
    """First `max_frames` frames of a video as in-memory BGR arrays."""
    max_frames = int(S.VIDEO_MAX_FRAMES if max_frames is None else max_frames)
    cap = cv2.VideoCapture(str(path))
    frames = []
    try:
        if not cap.isOpened():
            logger.warning("could not open video %s", path)
            return frames
        while len(frames) < max_frames:
            ok, frame = cap.read()
            if not ok or frame is None:
                break
            frames.append(frame)
    finally:
        cap.release()
    return frames


def _accepts(path: Path, mode: str) -> bool:
    ext = path.suffix.lower()
    if mode == "video":
        return ext in S.VIDEO_EXTS
    return ext in S.IMAGE_EXTS


def list_dataset(root):
    """
    Walk <root>/<real|synthetic>/<eye|face|video>/ and return DatasetItems.

    Missing category/mode folders are skipped; a missing root is an error.
    """
    root = Path(root)
    if not root.exists():
        raise RuntimeError(f"Dataset directory does not exist: {root}")

    items = []
    for category in S.CATEGORIES:
        for mode in S.MODES:
            d = root / category / mode
            if not d.is_dir():
                continue
            for p in sorted(d.iterdir()):
                if p.is_file() and _accepts(p, mode):
                    items.append(DatasetItem(p, category, mode))

    logger.info("found %d items under %s", len(items), root.resolve())
    return items
