# pupil_pipeline/batch.py
"""
Batch runner over a <root>/<real|synthetic>/<eye|face|video>/ dataset.

Each item is independent: it is read into memory, scored, and turned into
an ItemOutcome. With workers > 1 items are spread over a process pool.
"""
from __future__ import annotations

import importlib
import logging
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import lru_cache

from pupil_ops.pupil import HoughParams

from .io_images import DatasetItem, list_dataset, read_image, read_video_frames
from .pipeline import EyeScore, is_correct, process_eye_image, process_face_image, process_video

logger = logging.getLogger(__name__)


@dataclass
class ItemOutcome:
    filename: str
    category: str
    mode: str
    biou: float | None = None
    correct: bool | None = None
    reason: str = ""
    seconds: float = 0.0

    @property
    def scored(self) -> bool:
        return self.biou is not None


def parse_landmarker_spec(spec: str):
    """Split "package.module:factory" into (module, factory); ValueError if malformed."""
    mod_name, _, attr = spec.partition(":")
    if not mod_name or not attr:
        raise ValueError(f"landmarker must look like 'module:factory', got {spec!r}")
    return mod_name, attr


@lru_cache(maxsize=None)
def load_landmarker(spec: str | None):
    """
    "package.module:factory" -> factory() result, built once per process.
    None -> None (face / video items are then skipped).
    """
    if not spec:
        return None
    mod_name, attr = parse_landmarker_spec(spec)
    factory = getattr(importlib.import_module(mod_name), attr)
    return factory()


def score_item(item: DatasetItem, landmarker_spec: str | None = None,
               params: HoughParams | None = None, threshold: float | None = None,
               max_frames: int | None = None) -> ItemOutcome:
    t0 = time.perf_counter()
    out = ItemOutcome(item.path.name, item.category, item.mode)

    score: EyeScore | None = None
    if item.mode == "eye":
        img = read_image(item.path)
        if img is None:
            out.reason = "unreadable image"
        else:
            score = process_eye_image(img, params)
    else:
        landmarker = load_landmarker(landmarker_spec)
        if landmarker is None:
            out.reason = "no landmarker configured"
        elif item.mode == "face":
            img = read_image(item.path)
            if img is None:
                out.reason = "unreadable image"
            else:
                score = process_face_image(img, landmarker, params)
        elif item.mode == "video":
            frames = read_video_frames(item.path, max_frames)
            if not frames:
                out.reason = "no frames decoded"
            else:
                score = process_video(frames, landmarker, params, max_frames)
        else:
            out.reason = f"unknown mode {item.mode!r}"

    if score is not None:
        if score.ok:
            out.biou = float(score.biou)
            out.correct = is_correct(item.category, out.biou, threshold)
        else:
            out.reason = str(score.failure)

    out.seconds = time.perf_counter() - t0
    if not out.scored:
        logger.info("skipped %s/%s/%s: %s", item.category, item.mode, out.filename, out.reason)
    return out


def run_batch(items, *, workers: int = 1, landmarker_spec: str | None = None,
              params: HoughParams | None = None, threshold: float | None = None,
              max_frames: int | None = None):
    """
    Returns (outcomes in input order, wall seconds).

    A malformed landmarker_spec raises ValueError before any item runs.
    """
    if landmarker_spec:
        parse_landmarker_spec(landmarker_spec)
    items = list(items)
    t_start = time.perf_counter()

    if int(workers) <= 1 or len(items) <= 1:
        outcomes = [score_item(it, landmarker_spec, params, threshold, max_frames) for it in items]
    else:
        n = len(items)
        with ProcessPoolExecutor(max_workers=int(workers)) as pool:
            outcomes = list(pool.map(
                score_item, items,
                [landmarker_spec] * n, [params] * n, [threshold] * n, [max_frames] * n,
            ))

    return outcomes, time.perf_counter() - t_start


def run_dataset(root, **kwargs):
    return run_batch(list_dataset(root), **kwargs)


def accuracy(outcomes):
    """(total scored, correct, accuracy) over scored outcomes only."""
    scored = [o for o in outcomes if o.scored]
    correct = sum(1 for o in scored if o.correct)
    total = len(scored)
    return total, correct, (correct / total if total else 0.0)

