# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Resizable dense storage
=======================

Thin wrappers over flat NumPy buffers so that a destination matrix can be
resized in place and keep its allocation across repeated calls.

- `Dense`          : row-major r-by-c matrix over a flat float64 buffer
- `Vector`         : length-n vector over a flat float64 buffer
- `TriangularView` : read-only upper-triangular view of another matrix
"""

import logging
from typing import Tuple, Union

import numpy as np

from .errors import ShapeError

logger = logging.getLogger(__name__)


class Dense:
    """
    Row-major float64 matrix with reuse-or-reallocate resizing.

    The matrix owns a flat buffer ``_data``; ``array`` is a 2-D view onto its
    leading ``rows * cols`` entries.
    """

    def __init__(self, rows: int = 0, cols: int = 0):
        if rows < 0 or cols < 0:
            raise ShapeError(f"negative dimension ({rows}, {cols})")
        self._data = np.zeros(rows * cols, dtype=float)
        self._mat = self._data.reshape(rows, cols)

    @classmethod
    def from_array(cls, a) -> "Dense":
        """Copy a 2-D array-like into a new Dense."""
        a = np.asarray(a, dtype=float)
        if a.ndim != 2:
            raise ShapeError(f"expected a 2-D array, got ndim={a.ndim}")
        d = cls(*a.shape)
        d._mat[...] = a
        return d

    @classmethod
    def _over(cls, data: np.ndarray, rows: int, cols: int) -> "Dense":
        # Shares `data`; used for zero-copy reinterpretation.
        d = cls.__new__(cls)
        d._data = data
        d._mat = data[: rows * cols].reshape(rows, cols)
        return d

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._mat!r})"

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self._mat
        return self._mat.astype(dtype)

    @property
    def array(self) -> np.ndarray:
        return self._mat

    @property
    def rows(self) -> int:
        return self._mat.shape[0]

    @property
    def cols(self) -> int:
        return self._mat.shape[1]

    @property
    def capacity(self) -> int:
        return self._data.size

    def dims(self) -> Tuple[int, int]:
        return self._mat.shape

    def at(self, i: int, j: int) -> float:
        return float(self._mat[i, j])

    def is_empty(self) -> bool:
        return self._mat.size == 0

    def reuse_as(self, r: int, c: int) -> None:
        """
        Resize to exactly r-by-c.

        The existing buffer is kept when it holds at least r*c entries,
        otherwise a new zeroed buffer is allocated. Contents after a reuse
        are unspecified; callers overwrite every entry they read.
        """
        if r < 0 or c < 0:
            raise ShapeError(f"negative dimension ({r}, {c})")
        if self._mat.shape == (r, c):
            return
        if r * c > self._data.size:
            logger.debug(f"Dense.reuse_as: allocating {r}x{c} (capacity was {self._data.size})")
            self._data = np.zeros(r * c, dtype=float)
        self._mat = self._data[: r * c].reshape(r, c)

    def clone(self, src) -> None:
        """Resize to the shape of `src` and copy it."""
        a = _as_2d(src)
        self.reuse_as(*a.shape)
        self._mat[...] = a

    def copy(self, src) -> Tuple[int, int]:
        """
        Copy the overlapping top-left block of `src` into the receiver.

        A `TriangularView` source copies its upper triangle and writes zeros
        below the diagonal. Returns the number of rows and columns copied.
        """
        if isinstance(src, TriangularView):
            a = src.to_array()
        else:
            a = _as_2d(src)
        r = min(self.rows, a.shape[0])
        c = min(self.cols, a.shape[1])
        self._mat[:r, :c] = a[:r, :c]
        return r, c


class Vector:
    """Float64 vector with reuse-or-reallocate resizing."""

    def __init__(self, n: int = 0):
        if n < 0:
            raise ShapeError(f"negative length {n}")
        self._data = np.zeros(n, dtype=float)
        self._vec = self._data[:n]

    @classmethod
    def from_array(cls, a) -> "Vector":
        a = np.asarray(a, dtype=float)
        if a.ndim != 1:
            raise ShapeError(f"expected a 1-D array, got ndim={a.ndim}")
        v = cls(a.size)
        v._vec[...] = a
        return v

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._vec!r})"

    def __len__(self) -> int:
        return self._vec.size

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self._vec
        return self._vec.astype(dtype)

    @property
    def array(self) -> np.ndarray:
        return self._vec

    def at(self, i: int) -> float:
        return float(self._vec[i])

    def reuse_as(self, n: int) -> None:
        if n < 0:
            raise ShapeError(f"negative length {n}")
        if n > self._data.size:
            self._data = np.zeros(n, dtype=float)
        self._vec = self._data[:n]

    def as_dense(self) -> Dense:
        """Single-column Dense sharing this vector's storage."""
        return Dense._over(self._data, len(self), 1)


class TriangularView:
    """
    Read-only upper-triangular n-by-n view of another matrix's storage.

    Nothing is copied: the view aliases the leading n-by-n block of the
    source buffer with writes disabled. Only entries on or above the
    diagonal are meaningful; the view has no resize operation.
    """

    uplo = "U"
    unit_diag = False

    def __init__(self, mat: np.ndarray, n: int):
        if mat.ndim != 2 or mat.shape[0] < n or mat.shape[1] < n:
            raise ShapeError(f"cannot take a {n}x{n} triangle of a {mat.shape} matrix")
        view = mat[:n, :n].view()
        view.flags.writeable = False
        self._mat = view

    @property
    def n(self) -> int:
        return self._mat.shape[0]

    @property
    def array(self) -> np.ndarray:
        """The aliased block, including the meaningless strict lower part."""
        return self._mat

    def to_array(self) -> np.ndarray:
        """Fresh copy with the strict lower triangle zeroed."""
        return np.triu(self._mat)


def _as_2d(src: Union[Dense, np.ndarray]) -> np.ndarray:
    a = src.array if isinstance(src, (Dense, Vector)) else np.asarray(src, dtype=float)
    if a.ndim == 1:
        a = a[:, None]
    if a.ndim != 2:
        raise ShapeError(f"expected a matrix, got ndim={a.ndim}")
    return a
