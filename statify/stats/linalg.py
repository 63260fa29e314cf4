"""Dense linear-algebra kernel for the regression and diagnostics engine.

Matrices are small (design cross-products of a handful of regressors), so the
routines favour transparent, deterministic algorithms over LAPACK calls:
Gauss-Jordan inversion with partial pivoting, a closed-form 2x2 symmetric
eigen-decomposition, and cyclic Jacobi rotations for larger symmetric
matrices.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from ..errors import SingularMatrixError

PIVOT_EPSILON = 1e-10
JACOBI_TOL = 1e-14
JACOBI_MAX_SWEEPS = 100


def _as_matrix(a, name: str = "matrix") -> np.ndarray:
    arr = np.array(a, dtype=float)
    if arr.ndim != 2:
        raise ValueError(f"{name} must be two-dimensional; got shape {arr.shape}.")
    return arr


def transpose(a) -> np.ndarray:
    return _as_matrix(a).T.copy()


def matmul(a, b) -> np.ndarray:
    """Matrix product with an explicit conformability check."""
    left = _as_matrix(a, "left operand")
    right = _as_matrix(b, "right operand")
    if left.shape[1] != right.shape[0]:
        raise ValueError(
            f"Cannot multiply {left.shape} by {right.shape}: inner dimensions differ."
        )
    return left @ right


def matvec(a, v) -> np.ndarray:
    mat = _as_matrix(a)
    vec = np.asarray(v, dtype=float).reshape(-1)
    if mat.shape[1] != vec.shape[0]:
        raise ValueError(
            f"Cannot multiply {mat.shape} by vector of length {vec.shape[0]}."
        )
    return mat @ vec


def invert(a, epsilon: float = PIVOT_EPSILON) -> np.ndarray:
    """Invert a square matrix by Gauss-Jordan elimination with partial pivoting.

    Args:
        a: Square matrix (array-like). It is copied, never modified.
        epsilon (float, optional): Pivot threshold relative to the largest
            absolute entry of ``a``. Defaults to ``1e-10``.

    Returns:
        numpy.ndarray: The inverse matrix.

    Raises:
        SingularMatrixError: If no pivot in some column exceeds the threshold.
        ValueError: If ``a`` is not square.
    """
    mat = _as_matrix(a)
    n, m = mat.shape
    if n != m:
        raise ValueError(f"Only square matrices can be inverted; got {mat.shape}.")
    if n == 0:
        return mat.copy()

    scale = float(np.max(np.abs(mat)))
    if scale == 0.0 or not np.isfinite(scale):
        raise SingularMatrixError()
    threshold = epsilon * scale

    aug = np.hstack([mat, np.eye(n)])
    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(aug[col:, col])))
        if abs(aug[pivot_row, col]) < threshold:
            raise SingularMatrixError()
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]
        aug[col] /= aug[col, col]
        for row in range(n):
            if row != col:
                factor = aug[row, col]
                if factor != 0.0:
                    aug[row] -= factor * aug[col]
    return aug[:, n:]


def _orient(vectors: np.ndarray) -> np.ndarray:
    # Deterministic sign: largest-magnitude component of each column positive.
    out = vectors.copy()
    for j in range(out.shape[1]):
        k = int(np.argmax(np.abs(out[:, j])))
        if out[k, j] < 0:
            out[:, j] = -out[:, j]
    return out


def _sorted_descending(values: np.ndarray, vectors: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    order = np.argsort(-values, kind="mergesort")
    return values[order], _orient(vectors[:, order])


def eigen_2x2(a) -> Tuple[np.ndarray, np.ndarray]:
    """Closed-form eigenvalues/eigenvectors of a symmetric 2x2 matrix."""
    mat = _as_matrix(a)
    p, b, c = float(mat[0, 0]), float(mat[0, 1]), float(mat[1, 1])
    half_trace = 0.5 * (p + c)
    disc = math.hypot(0.5 * (p - c), b)
    values = np.array([half_trace + disc, half_trace - disc])
    if b == 0.0:
        vectors = np.eye(2)
        if c > p:
            vectors = vectors[:, ::-1].copy()
        return values, _orient(vectors)

    columns = []
    for lam in values:
        # Two algebraically equivalent choices; keep the better-scaled one.
        v1 = np.array([lam - c, b])
        v2 = np.array([b, lam - p])
        v = v1 if np.linalg.norm(v1) >= np.linalg.norm(v2) else v2
        columns.append(v / np.linalg.norm(v))
    return values, _orient(np.column_stack(columns))


def jacobi_eigen(
    a,
    tol: float = JACOBI_TOL,
    max_sweeps: int = JACOBI_MAX_SWEEPS,
) -> Tuple[np.ndarray, np.ndarray]:
    """Eigen-decomposition of a real symmetric matrix by cyclic Jacobi rotations.

    Returns:
        tuple[numpy.ndarray, numpy.ndarray]: Eigenvalues in descending order
        and the matching unit eigenvectors as columns.

    References:
        Classical cyclic Jacobi method (Numerical Recipes, sec. 11.1).
    """
    mat = _as_matrix(a)
    n = mat.shape[0]
    work = mat.copy()
    vectors = np.eye(n)
    norm = float(np.linalg.norm(work))
    if norm == 0.0:
        return np.zeros(n), np.eye(n)

    for _ in range(max_sweeps):
        off = float(np.sqrt(np.sum(np.square(np.triu(work, 1)))))
        if off <= tol * norm:
            break
        for p in range(n - 1):
            for q in range(p + 1, n):
                apq = work[p, q]
                if abs(apq) <= tol * norm * 1e-3:
                    continue
                theta = (work[q, q] - work[p, p]) / (2.0 * apq)
                t = math.copysign(1.0, theta) / (abs(theta) + math.sqrt(theta * theta + 1.0))
                c = 1.0 / math.sqrt(t * t + 1.0)
                s = t * c

                col_p = work[:, p].copy()
                col_q = work[:, q].copy()
                work[:, p] = c * col_p - s * col_q
                work[:, q] = s * col_p + c * col_q
                row_p = work[p, :].copy()
                row_q = work[q, :].copy()
                work[p, :] = c * row_p - s * row_q
                work[q, :] = s * row_p + c * row_q
                work[p, q] = work[q, p] = 0.0

                vec_p = vectors[:, p].copy()
                vec_q = vectors[:, q].copy()
                vectors[:, p] = c * vec_p - s * vec_q
                vectors[:, q] = s * vec_p + c * vec_q

    return _sorted_descending(np.diag(work).copy(), vectors)


def symmetric_eigen(a) -> Tuple[np.ndarray, np.ndarray]:
    """Dispatch to the closed form for 2x2 and Jacobi rotations otherwise."""
    mat = _as_matrix(a)
    n, m = mat.shape
    if n != m:
        raise ValueError(f"Eigen-decomposition requires a square matrix; got {mat.shape}.")
    if not np.allclose(mat, mat.T, rtol=1e-10, atol=1e-12):
        raise ValueError("Eigen-decomposition requires a symmetric matrix.")
    if n == 1:
        return mat[0].copy(), np.ones((1, 1))
    if n == 2:
        return eigen_2x2(mat)
    return jacobi_eigen(mat)
