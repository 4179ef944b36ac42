# pupil_ops/settings.py
"""
Pupil / BIoU pipeline settings
Organized in execution order (PREPROCESS -> EDGES -> HOUGH -> SCORE -> MASK -> FIT -> BIoU)

Tip:
- Hough/Canny defaults are snapshotted into HoughParams; pass your own
  HoughParams to locate_pupil() instead of editing this file per-run.
- Radii are in eye-crop pixels (after pad-to-square, before any resize).
"""

# ============================================================
# 1) PREPROCESS : contrast equalization + speckle suppression
# ============================================================
# CLAHE params (tile-based, clip-limited)
CLAHE_CLIP = 3.0
# CLAHE_CLIP = 2.0
CLAHE_TILE = (8, 8)

# Median blur kernel (odd; code will fix if even)
MEDIAN_K = 5
# MEDIAN_K = 3


# ============================================================
# 2) EDGES : Canny + streak cleanup
# ============================================================
CANNY_LOW = 30
CANNY_HIGH = 90
CANNY_APERTURE = 3

# Elliptical kernel used for dilate -> close -> open on the edge map
EDGE_MORPH_K = 3
# Thicken Canny output before close -> open
EDGE_DILATE = True


# ============================================================
# 3) HOUGH : circle candidates
# ============================================================
HOUGH_MIN_RADIUS = 10
HOUGH_MAX_RADIUS = 120
HOUGH_DP = 1.2
HOUGH_MIN_DIST = 30
HOUGH_PARAM1 = 80
HOUGH_PARAM2 = 30

# Relaxed retry when the first pass returns nothing
# (half min-dist / thresholds / min radius, doubled max radius)
HOUGH_RELAXED_DP = 1.0


# ============================================================
# 4) SCORE : candidate ranking
# ============================================================
MIN_CANDIDATE_RADIUS = 2          # radius <= this is ignored
DARKNESS_WEIGHT = 0.6
EDGE_WEIGHT = 0.4
CENTER_PENALTY = 0.05
MIN_EDGE_SAMPLES = 20             # circumference samples = max(this, radius)


# ============================================================
# 5) MASK : specular restore / erase + cleanup
# ============================================================
# Pass 1: bright blobs inside the disk smaller than this are put back
USE_SPECULAR_RESTORE = True
SPECULAR_OFFSET = 10              # highlight = pixel > otsu + offset
SPECULAR_OPEN_K = 3
SPECULAR_MAX_AREA = 300

# Pass 2: residual bright pixels inside the disk erase a small disk
USE_BRIGHT_ERASE = True
BRIGHT_ERASE_OFFSET = 10
BRIGHT_ERASE_RADIUS = 2
BRIGHT_ERASE_MIN_ROI = 10         # ROI must be wider/taller than this

# Final cleanup (0 disables)
FINAL_OPEN_K = 3
FINAL_CLOSE_K = 5

# Sanity: reject masks smaller than this many pixels
MIN_MASK_AREA = 10


# ============================================================
# 6) FIT : direct least-squares ellipse
# ============================================================
MIN_CONTOUR_POINTS = 5
DET_EPS = 1e-12                   # |det| below this = singular
EIG_EPS = 1e-18                   # |lambda| below this = degenerate axis
NORM_TARGET = 100.0               # scale = NORM_TARGET / mean abs deviation
NORM_FLOOR = 1e-8

# Fall back to cv2.fitEllipse when the direct fit fails
USE_OPENCV_FALLBACK = True


# ============================================================
# 7) CLASSIFY / BATCH
# ============================================================
REAL_THRESHOLD = 0.5              # biou > thr -> real, biou < thr -> synthetic
VIDEO_MAX_FRAMES = 5
EYE_BOX_MARGIN = 30               # px added around landmark eye boxes

IMAGE_EXTS = {".jpg", ".jpeg", ".png"}
VIDEO_EXTS = {".mp4", ".avi", ".mov"}

CATEGORIES = ("real", "synthetic")
MODES = ("eye", "face", "video")

RESULTS_CSV = "biou_results.csv"
