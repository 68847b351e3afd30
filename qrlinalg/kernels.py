# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Numeric kernels used by the QR routines.

Every kernel follows the same two-step protocol:

    lwork = kernel.workspace_size(...)
    kernel.execute(..., lwork=lwork)

Kernels that manage their own scratch report 0 and ignore `lwork`. The
defaults below wrap LAPACK/BLAS through SciPy; arrays passed as outputs are
overwritten in place.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from scipy.linalg import blas, lapack

from .dense import TriangularView

logger = logging.getLogger(__name__)


class Kernel(ABC):
    def workspace_size(self, *args) -> int:
        """Scratch entries `execute` needs for these arguments."""
        return 0

    @abstractmethod
    def execute(self, *args, **kwargs):
        ...


def _check_info(name: str, info: int) -> None:
    if info < 0:
        raise ValueError(f"{name}: illegal value in argument {-info}")


def _query(work: np.ndarray) -> int:
    return max(1, int(work[0]))


class Factorize(Kernel):
    """Householder QR (LAPACK geqrf): overwrite `a` and fill `tau`."""

    def workspace_size(self, a: np.ndarray) -> int:
        _, _, work, info = lapack.dgeqrf(a, lwork=-1)
        _check_info("dgeqrf", info)
        lwork = _query(work)
        logger.debug(f"dgeqrf workspace for {a.shape}: {lwork}")
        return lwork

    def execute(self, a: np.ndarray, tau: np.ndarray, lwork: Optional[int] = None) -> None:
        if lwork is None:
            lwork = self.workspace_size(a)
        qr, t, _, info = lapack.dgeqrf(a, lwork=lwork)
        _check_info("dgeqrf", info)
        a[...] = qr
        tau[...] = t


class ApplyQ(Kernel):
    """
    Multiply `c` by Q or Qᵀ (LAPACK ormqr) where Q is held as reflectors in
    `factor` and `tau`. `side` is "L" or "R", `trans` is "N" or "T".
    """

    def workspace_size(self, side: str, trans: str, factor, tau, c) -> int:
        if np.size(c) == 0:
            return 1
        _, work, info = lapack.dormqr(side, trans, factor, tau, c, lwork=-1)
        _check_info("dormqr", info)
        lwork = _query(work)
        logger.debug(f"dormqr workspace for side={side} trans={trans} c={c.shape}: {lwork}")
        return lwork

    def execute(self, side: str, trans: str, factor, tau, c: np.ndarray, lwork: Optional[int] = None) -> None:
        if c.size == 0:
            return
        if lwork is None:
            lwork = self.workspace_size(side, trans, factor, tau, c)
        cq, _, info = lapack.dormqr(side, trans, factor, tau, c, lwork=lwork)
        _check_info("dormqr", info)
        c[...] = cq


class TriangularKernel(Kernel):
    """
    Triangular solves with a singularity report.

    `execute(trans, t, b, rows=None)` overwrites b with the solution and
    returns True, or returns False when T is singular or numerically
    singular. `condition` is asked for the condition number only after a
    failure.
    """

    def condition(self, t: TriangularView) -> float:
        return math.inf

    @abstractmethod
    def execute(self, trans: bool, t: TriangularView, b: np.ndarray, rows: Optional[int] = None) -> bool:
        ...


class TriangularSolve(TriangularKernel):
    """
    Solve T·X = B or Tᵀ·X = B (LAPACK trtrs) for upper triangular T,
    overwriting B.

    Returns False without touching B when T has a zero on its diagonal or
    its reciprocal 1-norm condition estimate (LAPACK trcon) is below
    max(rows, n)·eps, `rows` being the row count of the factorized matrix.
    Passing `tolerance` replaces that test with cond(T) > tolerance.
    """

    def __init__(self, tolerance: Optional[float] = None):
        self.tolerance = tolerance

    def rcond(self, t: TriangularView) -> float:
        """Reciprocal 1-norm condition estimate of T; 0 when singular."""
        if t.n == 0:
            return 1.0
        if np.any(np.diag(t.array) == 0):
            return 0.0
        rcond, info = lapack.dtrcon(np.array(t.array, order="F"), norm="1", uplo="U", diag="N")
        _check_info("dtrcon", info)
        return float(rcond)

    def condition(self, t: TriangularView) -> float:
        """1-norm condition estimate of T; inf when singular."""
        rcond = self.rcond(t)
        if rcond == 0:
            return math.inf
        return 1.0 / rcond

    def execute(self, trans: bool, t: TriangularView, b: np.ndarray, rows: Optional[int] = None) -> bool:
        if t.n == 0 or b.size == 0:
            return True
        rcond = self.rcond(t)
        if self.tolerance is None:
            limit = max(rows or 0, t.n) * np.finfo(float).eps
        else:
            limit = 1.0 / self.tolerance
        if rcond == 0 or rcond < limit:
            logger.debug(f"dtrcon: rcond {rcond:.3e} below {limit:.3e}")
            return False
        x, info = lapack.dtrtrs(np.array(t.array, order="F"), b, lower=0, trans=1 if trans else 0)
        _check_info("dtrtrs", info)
        if info > 0:
            return False
        b[...] = x
        return True


class RankOneUpdate(Kernel):
    """a += alpha · x · yᵀ (BLAS ger)."""

    def execute(self, alpha: float, x: np.ndarray, y: np.ndarray, a: np.ndarray) -> None:
        a[...] = blas.dger(alpha, x, y, a=a)


class Gemm(Kernel):
    """c = alpha · op(a) · op(b) + beta · c (BLAS gemm)."""

    def execute(
        self,
        trans_a: bool,
        trans_b: bool,
        alpha: float,
        a: np.ndarray,
        b: np.ndarray,
        beta: float,
        c: np.ndarray,
    ) -> None:
        c[...] = blas.dgemm(alpha, a, b, beta=beta, c=c, trans_a=int(trans_a), trans_b=int(trans_b))


@dataclass
class LapackKernels:
    """The kernel set a `QR` routes its work through."""

    factorize: Kernel = field(default_factory=Factorize)
    apply_q: Kernel = field(default_factory=ApplyQ)
    tri_solve: TriangularKernel = field(default_factory=TriangularSolve)
    rank_one: Kernel = field(default_factory=RankOneUpdate)
    gemm: Kernel = field(default_factory=Gemm)
