# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Householder QR factorization and the solvers built on it.

A `QR` holds the compact form produced by LAPACK geqrf: the input matrix
overwritten with R on and above the diagonal and the Householder vectors
below it, plus one scalar tau per reflector. Q is never formed unless
`q_from_qr` is asked for it.
"""

import logging
from typing import Optional, Tuple, Union

import numpy as np

from .dense import Dense, TriangularView, Vector
from .errors import ConditionError, ShapeError
from .kernels import LapackKernels
from .workspace import WorkspacePool

logger = logging.getLogger(__name__)

MatrixLike = Union[Dense, np.ndarray]


class QR:
    """
    QR factorization A = Q R of an m-by-n matrix with m >= n.

    Parameters
    ----------
    kernels : LapackKernels, optional
        Numeric kernels to run on. Defaults to SciPy LAPACK/BLAS.
    pool : WorkspacePool, optional
        Where scratch matrices are borrowed from. Defaults to a pool private
        to this object; pass a shared (synchronized) pool to pool across
        factorizations.

    Example
    -------
    >>> import numpy as np
    >>> from qrlinalg import QR
    >>> A = np.random.randn(5, 3)
    >>> f = QR().factorize(A)
    >>> np.allclose(f.q() @ f.r(), A)
    True
    """

    def __init__(self, kernels: Optional[LapackKernels] = None, pool: Optional[WorkspacePool] = None):
        self.kernels = kernels if kernels is not None else LapackKernels()
        self.pool = pool if pool is not None else WorkspacePool()
        self._qr: Optional[Dense] = None
        self._tau: Optional[np.ndarray] = None

    def __repr__(self) -> str:
        if self._qr is None:
            return f"{self.__class__.__name__}()"
        return f"{self.__class__.__name__}(dims={self.dims()})"

    def factorize(self, a: MatrixLike) -> "QR":
        """
        Compute the QR factorization of `a`. The input is not modified.

        The factorization always exists, even for singular `a`; singularity
        only shows up when solving.

        Raises
        ------
        ShapeError : if `a` has fewer rows than columns.
        """
        m, n = _dims(a)
        if m < n:
            raise ShapeError(f"QR factorization requires rows >= cols, got {m}x{n}")
        k = min(m, n)
        # Build the new pair aside so factor and tau are only ever replaced
        # together and views of the previous factor stay valid.
        qr = Dense()
        qr.clone(a)
        tau = np.zeros(k, dtype=float)

        geqrf = self.kernels.factorize
        lwork = geqrf.workspace_size(qr.array)
        geqrf.execute(qr.array, tau, lwork=lwork)
        self._qr, self._tau = qr, tau
        logger.debug(f"QR.factorize: {m}x{n}, {k} reflectors")
        return self

    def dims(self) -> Tuple[int, int]:
        """Shape (m, n) of the factorized matrix."""
        return self._compact()[0].dims()

    @property
    def factor(self) -> np.ndarray:
        """Read-only view of the compact factor (R above, reflectors below)."""
        view = self._compact()[0].array.view()
        view.flags.writeable = False
        return view

    @property
    def tau(self) -> np.ndarray:
        """Read-only view of the reflector scalars."""
        view = self._compact()[1].view()
        view.flags.writeable = False
        return view

    def _compact(self) -> Tuple[Dense, np.ndarray]:
        if self._qr is None:
            raise ValueError("QR has not been factorized")
        return self._qr, self._tau

    # -----------------------------------------------------------------
    # ndarray conveniences
    # -----------------------------------------------------------------
    def r(self, reduced: bool = False) -> np.ndarray:
        """R as a new array, m-by-n (or n-by-n when `reduced`)."""
        return r_from_qr(Dense(), self, reduced=reduced).array

    def q(self, reduced: bool = False) -> np.ndarray:
        """Q as a new array, m-by-m (or m-by-n when `reduced`)."""
        return q_from_qr(Dense(), self, reduced=reduced).array

    def solve(self, b: np.ndarray, trans: bool = False) -> np.ndarray:
        """
        Solve with `solve_qr` / `solve_qr_vec` and return the solution.

        A 1-D `b` gives a 1-D result.

        Raises
        ------
        ShapeError : if `b` does not match the factorization.
        ConditionError : if R is singular or near-singular.
        """
        b = np.asarray(b, dtype=float)
        if b.ndim == 1:
            x = Vector()
            err = solve_qr_vec(x, self, trans, b)
        elif b.ndim == 2:
            x = Dense()
            err = solve_qr(x, self, trans, b)
        else:
            raise ShapeError(f"right-hand side must be 1-D or 2-D, got ndim={b.ndim}")
        if err is not None:
            raise err
        return x.array


def r_from_qr(dst: Dense, qr: QR, reduced: bool = False) -> Dense:
    """
    Extract the m-by-n upper trapezoidal R into `dst`; with `reduced` only
    the leading n-by-n triangle. Returns `dst`.
    """
    factor, _ = qr._compact()
    r, c = factor.dims()
    dst.reuse_as(c if reduced else r, c)

    # Disguise the compact factor as an upper triangular matrix.
    t = TriangularView(factor.array, c)
    dst.copy(t)
    dst.array[c:, :] = 0.0
    return dst


def q_from_qr(dst: Dense, qr: QR, reduced: bool = False) -> Dense:
    """
    Extract the m-by-m orthogonal Q into `dst`; with `reduced` only its
    first n columns. Returns `dst`.

    Q is rebuilt reflector by reflector as Q = H_0 H_1 ... H_{k-1} with
    explicit m-by-m products, so this is O(m^3 k). Use `solve_qr` rather
    than forming Q when only products with Q are needed.
    """
    factor, _ = qr._compact()
    r, c = factor.dims()
    if not reduced:
        dst.reuse_as(r, r)
        _accumulate_q(dst.array, qr)
        return dst
    with qr.pool.borrow(r, r) as q:
        _accumulate_q(q.array, qr)
        dst.reuse_as(r, c)
        dst.copy(q)
    return dst


def _accumulate_q(q: np.ndarray, qr: QR) -> None:
    factor, tau = qr._compact()
    a = factor.array
    r, c = a.shape
    k = min(r, c)
    kern = qr.kernels

    # Set Q = I.
    q.fill(0.0)
    np.fill_diagonal(q, 1.0)

    v = np.empty(r, dtype=float)
    with qr.pool.borrow(r, r) as h, qr.pool.borrow(r, r) as q_copy:
        for i in range(k):
            # Set h = I.
            h.array.fill(0.0)
            np.fill_diagonal(h.array, 1.0)

            # v is the i-th elementary reflector.
            v[:i] = 0.0
            v[i] = 1.0
            v[i + 1 :] = a[i + 1 :, i]

            # h = I - tau_i v vᵀ, then Q = Q h. Order matters: the H_i do
            # not commute.
            kern.rank_one.execute(-tau[i], v, v, h.array)
            q_copy.copy(q)
            kern.gemm.execute(False, False, 1.0, q_copy.array, h.array, 0.0, q)


def solve_qr(dst: Dense, qr: QR, trans: bool, b: MatrixLike) -> Optional[ConditionError]:
    """
    Solve a linear system from the QR factorization of the m-by-n A and
    store X in `dst`.

    The problem solved depends on the shape of A and `trans`:
      1. m >= n, trans False : X minimizing ||A X - B||_2.
      2. m <  n, trans False : minimum-norm X with A X = B.
      3. m >= n, trans True  : minimum-norm X with Aᵀ X = B.
      4. m <  n, trans True  : X minimizing ||Aᵀ X - B||_2.

    Returns
    -------
    None on success, or a ConditionError when R is singular or
    near-singular. The contents of `dst` are unspecified in that case.

    Raises
    ------
    ShapeError : if B has the wrong number of rows.
    """
    factor, tau = qr._compact()
    r, c = factor.dims()
    b = b.array if isinstance(b, Dense) else np.asarray(b, dtype=float)
    if b.ndim != 2:
        raise ShapeError(f"right-hand side must be a matrix, got ndim={b.ndim}")
    br, bc = b.shape

    # The result overwrites B in place and needs room for both B and X, but
    # dst must come out the size of X. Solve in scratch and copy at the end.
    if trans:
        if c != br:
            raise ShapeError(f"Aᵀ X = B: A is {r}x{c} but B has {br} rows")
        dst.reuse_as(r, bc)
    else:
        if r != br:
            raise ShapeError(f"A X = B: A is {r}x{c} but B has {br} rows")
        dst.reuse_as(c, bc)

    kern = qr.kernels
    a = factor.array
    t = TriangularView(a, c)
    with qr.pool.borrow(max(r, c), bc) as x:
        x.copy(b)
        xa = x.array
        if trans:
            if not kern.tri_solve.execute(True, t, xa[:c], rows=r):
                return _condition_failure(kern, t)
            xa[c:r] = 0.0
            ormqr = kern.apply_q
            lwork = ormqr.workspace_size("L", "N", a, tau, xa[:r])
            ormqr.execute("L", "N", a, tau, xa[:r], lwork=lwork)
        else:
            ormqr = kern.apply_q
            lwork = ormqr.workspace_size("L", "T", a, tau, xa[:r])
            ormqr.execute("L", "T", a, tau, xa[:r], lwork=lwork)
            if not kern.tri_solve.execute(False, t, xa[:c], rows=r):
                return _condition_failure(kern, t)
        # dst was sized for X above; copy takes the top rows.
        dst.copy(x)
    return None


def solve_qr_vec(dst: Vector, qr: QR, trans: bool, b: Union[Vector, np.ndarray]) -> Optional[ConditionError]:
    """
    `solve_qr` for a single right-hand side vector. `dst` is resized to m
    (trans) or n and solved through single-column views of both vectors.
    """
    r, c = qr.dims()
    if isinstance(b, Vector):
        bm = b.as_dense()
    else:
        b = np.asarray(b, dtype=float)
        if b.ndim != 1:
            raise ShapeError(f"right-hand side must be a vector, got ndim={b.ndim}")
        bm = b[:, None]
    dst.reuse_as(r if trans else c)
    return solve_qr(dst.as_dense(), qr, trans, bm)


def _condition_failure(kern, t: TriangularView) -> ConditionError:
    err = ConditionError(kern.tri_solve.condition(t))
    logger.debug(f"solve_qr: triangular factor is singular ({err.condition:.3e})")
    return err


def _dims(a: MatrixLike) -> Tuple[int, int]:
    if isinstance(a, Dense):
        return a.dims()
    shape = np.shape(a)
    if len(shape) != 2:
        raise ShapeError(f"expected a matrix, got shape {shape}")
    return shape


def least_squares_qr(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Solve min ‖Ax – b‖₂ for a tall (m ≥ n), full column rank A using the
    Householder QR factorization.

    Returns
    -------
    x : (n,) or (n, k) ndarray
        The least squares solution to Ax = b

    Raises
    ------
    ConditionError : if A is (numerically) rank deficient.
    """
    return QR().factorize(A).solve(b)


def min_norm_qr(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Minimum-norm solution of Ax = b for a wide (m ≤ n), full row rank A.

    Factorizes Aᵀ (which is tall) and solves the transposed system.

    Returns
    -------
    x : (n,) or (n, k) ndarray
    """
    A = np.asarray(A, dtype=float)
    if A.ndim != 2:
        raise ShapeError(f"expected a matrix, got ndim={A.ndim}")
    return QR().factorize(A.T).solve(b, trans=True)
