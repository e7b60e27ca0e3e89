"""Small dense linear algebra helpers used by the regression step of LSMC."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import InvalidInputError, NumericalInfeasibilityError

# Pivots are compared against this fraction of the largest entry of the matrix.
PIVOT_TOLERANCE = 1e-13


def _square(matrix: np.ndarray, name: str = "matrix") -> np.ndarray:
    array = np.array(matrix, dtype=float)
    if array.ndim != 2 or array.shape[0] != array.shape[1]:
        raise InvalidInputError(f"{name} must be square")
    return array


def _pivot_threshold(matrix: np.ndarray) -> float:
    scale = float(np.max(np.abs(matrix))) if matrix.size else 0.0
    return PIVOT_TOLERANCE * scale


def transpose(matrix: np.ndarray) -> np.ndarray:
    return np.asarray(matrix, dtype=float).T.copy()


def mat_vec(matrix: np.ndarray, vector: np.ndarray) -> np.ndarray:
    matrix = np.asarray(matrix, dtype=float)
    vector = np.asarray(vector, dtype=float)
    if matrix.ndim != 2 or matrix.shape[1] != vector.shape[0]:
        raise InvalidInputError("matrix and vector dimensions do not match")
    return matrix @ vector


def gaussian_elimination(matrix: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve ``matrix @ x = rhs`` with partial pivoting.

    Raises :class:`NumericalInfeasibilityError` when a pivot is not larger
    than ``PIVOT_TOLERANCE`` times the largest entry of ``matrix``, so the
    test does not depend on the units the matrix is expressed in.
    """

    a = _square(matrix)
    b = np.array(rhs, dtype=float).reshape(-1)
    n = a.shape[0]
    if b.shape[0] != n:
        raise InvalidInputError("right-hand side length does not match the matrix")

    threshold = _pivot_threshold(a)
    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(a[col:, col])))
        if abs(a[pivot_row, col]) <= threshold:
            raise NumericalInfeasibilityError("matrix is singular to working precision")
        if pivot_row != col:
            a[[col, pivot_row]] = a[[pivot_row, col]]
            b[[col, pivot_row]] = b[[pivot_row, col]]
        factors = a[col + 1 :, col] / a[col, col]
        a[col + 1 :, col:] -= np.outer(factors, a[col, col:])
        b[col + 1 :] -= factors * b[col]

    solution = np.zeros(n, dtype=float)
    for row in range(n - 1, -1, -1):
        solution[row] = (b[row] - a[row, row + 1 :] @ solution[row + 1 :]) / a[row, row]
    return solution


def solve_normal_equations(design: np.ndarray, targets: np.ndarray) -> np.ndarray:
    """Least-squares coefficients of ``design @ beta ~ targets`` via ``X'X beta = X'y``.

    Columns are scaled to unit Euclidean norm before the normal matrix is
    formed and the coefficients are rescaled afterwards. A column of zeros
    makes the system singular.
    """

    design = np.asarray(design, dtype=float)
    targets = np.asarray(targets, dtype=float)
    if design.ndim != 2:
        raise InvalidInputError("design matrix must be two-dimensional")
    norms = np.linalg.norm(design, axis=0)
    if np.any(norms == 0.0):
        raise NumericalInfeasibilityError("design matrix has an empty column")
    scaled = design / norms
    gram = scaled.T @ scaled
    moment = scaled.T @ targets
    return gaussian_elimination(gram, moment) / norms


def lu_decompose(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(P, L, U)`` with ``P @ matrix == L @ U`` (partial pivoting)."""

    u = _square(matrix)
    n = u.shape[0]
    lower = np.eye(n)
    permutation = np.eye(n)
    threshold = _pivot_threshold(u)
    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(u[col:, col])))
        if abs(u[pivot_row, col]) <= threshold:
            raise NumericalInfeasibilityError("matrix is singular to working precision")
        if pivot_row != col:
            u[[col, pivot_row]] = u[[pivot_row, col]]
            permutation[[col, pivot_row]] = permutation[[pivot_row, col]]
            lower[[col, pivot_row], :col] = lower[[pivot_row, col], :col]
        for row in range(col + 1, n):
            factor = u[row, col] / u[col, col]
            lower[row, col] = factor
            u[row, col:] -= factor * u[col, col:]
    return permutation, lower, u


def cholesky(matrix: np.ndarray) -> np.ndarray:
    """Lower-triangular ``L`` with ``L @ L.T == matrix`` for symmetric positive-definite input."""

    a = _square(matrix)
    if not np.allclose(a, a.T, atol=1e-12):
        raise InvalidInputError("matrix must be symmetric")
    n = a.shape[0]
    lower = np.zeros_like(a)
    for row in range(n):
        for col in range(row + 1):
            partial = lower[row, :col] @ lower[col, :col]
            if row == col:
                remainder = a[row, row] - partial
                if remainder <= 0.0:
                    raise NumericalInfeasibilityError("matrix is not positive definite")
                lower[row, col] = np.sqrt(remainder)
            else:
                lower[row, col] = (a[row, col] - partial) / lower[col, col]
    return lower
