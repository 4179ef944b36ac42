# pupil_ops/linalg.py
"""
Small dense-matrix helpers for the ellipse fitter (<= 6x6, float64).

Every function is pure. Anything that cannot be computed (empty input,
singular matrix, non-finite values) returns None instead of an
approximation; the caller decides whether that ends the fit.
"""
import numpy as np
from . import settings as S


def _as_square(m):
    a = np.asarray(m, dtype=np.float64)
    if a.ndim != 2 or a.size == 0 or a.shape[0] != a.shape[1]:
        return None
    if not np.all(np.isfinite(a)):
        return None
    return a


def determinant(m):
    a = _as_square(m)
    if a is None:
        return None
    return float(np.linalg.det(a))


def invert(m, eps: float | None = None):
    """Inverse of a square matrix, or None if |det| < eps (default DET_EPS)."""
    a = _as_square(m)
    if a is None:
        return None
    eps = float(S.DET_EPS if eps is None else eps)
    det = np.linalg.det(a)
    if not np.isfinite(det) or abs(det) < eps:
        return None
    try:
        return np.linalg.inv(a)
    except np.linalg.LinAlgError:
        return None


def eig_general(m, imag_tol: float = 1e-9):
    """
    Real eigenpairs of a (possibly non-symmetric) square matrix.

    Returns (eigenvalues, eigenvectors) as parallel lists, eigenvector i
    belonging to eigenvalue i. Complex pairs are dropped.
    """
    a = _as_square(m)
    if a is None:
        return None
    try:
        w, v = np.linalg.eig(a)
    except np.linalg.LinAlgError:
        return None

    vals, vecs = [], []
    for i in range(w.shape[0]):
        scale = max(1.0, abs(w[i]))
        if abs(w[i].imag) > imag_tol * scale:
            continue
        vec = v[:, i]
        if np.any(np.abs(vec.imag) > imag_tol):
            continue
        vals.append(float(w[i].real))
        vecs.append(np.real(vec).astype(np.float64))
    return vals, vecs


def eig_symmetric(m):
    """Symmetric eigendecomposition, eigenvalues descending, parallel eigenvector list."""
    a = _as_square(m)
    if a is None:
        return None
    try:
        w, v = np.linalg.eigh(a)
    except np.linalg.LinAlgError:
        return None
    order = np.argsort(w)[::-1]
    return [float(w[i]) for i in order], [v[:, i].copy() for i in order]


def matmul(*ms):
    out = np.asarray(ms[0], dtype=np.float64)
    for m in ms[1:]:
        out = out @ np.asarray(m, dtype=np.float64)
    return out


def subtract(a, b):
    return np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)


def transpose(m):
    return np.asarray(m, dtype=np.float64).T.copy()


def block(m, r0: int, r1: int, c0: int, c1: int):
    """Copy of rows r0..r1-1, cols c0..c1-1."""
    return np.array(np.asarray(m, dtype=np.float64)[r0:r1, c0:c1])
