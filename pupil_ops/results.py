# pupil_ops/results.py
"""Result values returned across component boundaries (no exceptions)."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .geometry import Ellipse


class FailureKind(str, Enum):
    INVALID_INPUT = "invalid_input"   # empty image, wrong channels, <5 contour points
    NOT_FOUND = "not_found"           # no usable circle / no face
    DEGENERATE_FIT = "degenerate_fit" # both ellipse fits failed


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    detail: str = ""

    def __str__(self):
        return f"{self.kind.value}: {self.detail}" if self.detail else self.kind.value


@dataclass(frozen=True)
class PupilResult:
    """
    Outcome of locate_pupil().

    On success `mask` (uint8 0/255, same shape as the input) and its outer
    `contour`, plus `center`, `radius` and `score` of the winning circle.
    On failure only `failure` is set.
    """
    mask: np.ndarray | None = None
    contour: np.ndarray | None = None
    center: tuple[int, int] | None = None
    radius: int | None = None
    score: float | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def fail(cls, kind: FailureKind, detail: str = "") -> "PupilResult":
        return cls(failure=Failure(kind, detail))


@dataclass(frozen=True)
class FitResult:
    """Outcome of fit_ellipse(); `method` is "direct" or "opencv"."""
    ellipse: Ellipse | None = None
    method: str | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def fail(cls, kind: FailureKind, detail: str = "") -> "FitResult":
        return cls(failure=Failure(kind, detail))
