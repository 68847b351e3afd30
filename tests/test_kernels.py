# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging

import numpy as np
import pytest
from scipy.linalg import solve_triangular

from qrlinalg.dense import Dense, TriangularView
from qrlinalg.errors import ConditionError
from qrlinalg.kernels import (
    ApplyQ,
    Factorize,
    Gemm,
    LapackKernels,
    RankOneUpdate,
    TriangularKernel,
    TriangularSolve,
)
from qrlinalg.qr import QR, solve_qr
from qrlinalg.utils import random_full_rank

logger = logging.getLogger(__name__)


def _factorize(A):
    a = A.copy()
    tau = np.zeros(min(A.shape))
    k = Factorize()
    k.execute(a, tau, lwork=k.workspace_size(a))
    return a, tau


def test_factorize_overwrites_in_place():
    A = random_full_rank(6, 4, seed=0)
    a, tau = _factorize(A)
    _, R_np = np.linalg.qr(A)
    assert np.allclose(np.triu(a[:4]), R_np, atol=1e-12)
    assert np.all(np.abs(tau) <= 2.0)


def test_factorize_without_workspace_hint():
    A = random_full_rank(5, 3, seed=1)
    a, tau = A.copy(), np.zeros(3)
    Factorize().execute(a, tau)
    np.testing.assert_allclose(a, _factorize(A)[0])


@pytest.mark.parametrize("side,trans", [("L", "N"), ("L", "T"), ("R", "N"), ("R", "T")])
def test_apply_q_matches_explicit_q(side, trans):
    A = random_full_rank(5, 3, seed=2)
    a, tau = _factorize(A)
    Q, _ = np.linalg.qr(A, mode="complete")
    op = Q.T if trans == "T" else Q

    rng = np.random.default_rng(2)
    C = rng.standard_normal((5, 2)) if side == "L" else rng.standard_normal((2, 5))
    expected = op @ C if side == "L" else C @ op

    kernel = ApplyQ()
    c = C.copy()
    kernel.execute(side, trans, a, tau, c, lwork=kernel.workspace_size(side, trans, a, tau, c))
    assert np.allclose(c, expected, atol=1e-12)


@pytest.mark.parametrize("trans", [False, True])
def test_triangular_solve(trans):
    rng = np.random.default_rng(3)
    T = np.triu(rng.standard_normal((4, 4))) + 4 * np.eye(4)
    B = rng.standard_normal((4, 2))

    b = B.copy()
    assert TriangularSolve().execute(trans, TriangularView(T, 4), b)
    expected = solve_triangular(T, B, lower=False, trans=1 if trans else 0)
    assert np.allclose(b, expected, atol=1e-12)


def test_triangular_solve_singular_leaves_rhs():
    T = np.triu(np.ones((3, 3)))
    T[1, 1] = 0.0
    t = TriangularView(T, 3)
    b = np.ones((3, 1))
    assert not TriangularSolve().execute(False, t, b)
    np.testing.assert_array_equal(b, np.ones((3, 1)))
    assert TriangularSolve().condition(t) == np.inf


def test_triangular_solve_ignores_lower_part():
    rng = np.random.default_rng(4)
    T = np.triu(rng.standard_normal((3, 3))) + 3 * np.eye(3)
    noisy = T + np.tril(rng.standard_normal((3, 3)), -1)
    b1, b2 = np.ones((3, 1)), np.ones((3, 1))
    TriangularSolve().execute(False, TriangularView(T, 3), b1)
    TriangularSolve().execute(False, TriangularView(noisy, 3), b2)
    np.testing.assert_allclose(b1, b2)


def test_rank_one_update():
    rng = np.random.default_rng(5)
    A = rng.standard_normal((4, 3))
    x, y = rng.standard_normal(4), rng.standard_normal(3)
    a = A.copy()
    RankOneUpdate().execute(-0.5, x, y, a)
    assert np.allclose(a, A - 0.5 * np.outer(x, y))


@pytest.mark.parametrize("trans_a,trans_b", [(False, False), (True, False), (False, True), (True, True)])
def test_gemm(trans_a, trans_b):
    rng = np.random.default_rng(6)
    A = rng.standard_normal((3, 3))
    B = rng.standard_normal((3, 3))
    C = rng.standard_normal((3, 3))
    opA = A.T if trans_a else A
    opB = B.T if trans_b else B

    c = C.copy()
    Gemm().execute(trans_a, trans_b, 2.0, A, B, 0.5, c)
    assert np.allclose(c, 2.0 * opA @ opB + 0.5 * C)


class _CountingFactorize(Factorize):
    def __init__(self):
        self.queries = 0
        self.hints = []

    def workspace_size(self, a):
        self.queries += 1
        return super().workspace_size(a)

    def execute(self, a, tau, lwork=None):
        self.hints.append(lwork)
        super().execute(a, tau, lwork=lwork)


class _CountingApplyQ(ApplyQ):
    def __init__(self):
        self.calls = []

    def execute(self, side, trans, factor, tau, c, lwork=None):
        self.calls.append((side, trans))
        super().execute(side, trans, factor, tau, c, lwork=lwork)


def test_qr_queries_workspace_before_executing():
    factorize = _CountingFactorize()
    f = QR(kernels=LapackKernels(factorize=factorize)).factorize(random_full_rank(6, 3, seed=7))
    assert factorize.queries == 1
    assert len(factorize.hints) == 1 and factorize.hints[0] >= 1
    assert f.dims() == (6, 3)


def test_solver_applies_q_by_branch():
    apply_q = _CountingApplyQ()
    f = QR(kernels=LapackKernels(apply_q=apply_q)).factorize(random_full_rank(6, 3, seed=8))
    assert solve_qr(Dense(), f, False, np.ones((6, 1))) is None
    assert solve_qr(Dense(), f, True, np.ones((3, 1))) is None
    logger.debug(f"apply_q calls: {apply_q.calls}")
    assert apply_q.calls == [("L", "T"), ("L", "N")]


class _RefusingSolve(TriangularKernel):
    def execute(self, trans, t, b, rows=None):
        return False


def test_custom_triangular_kernel_without_condition():
    f = QR(kernels=LapackKernels(tri_solve=_RefusingSolve())).factorize(random_full_rank(5, 2, seed=9))
    err = solve_qr(Dense(), f, False, np.ones((5, 1)))
    assert isinstance(err, ConditionError)
    assert err.condition == np.inf
    assert f.pool.outstanding == 0


def test_triangular_solve_rejects_numerically_singular():
    # Exactly rank 2 in exact arithmetic, roundoff leaves a tiny R[2, 2].
    T = np.array([[3.0, 1.0, 4.0], [0.0, 1.0, 1.0], [0.0, 0.0, 1e-17]])
    t = TriangularView(T, 3)
    b = np.ones((3, 1))
    assert not TriangularSolve().execute(False, t, b, rows=6)
    np.testing.assert_array_equal(b, np.ones((3, 1)))
    assert TriangularSolve().condition(t) > 1e16


def test_triangular_solve_tolerance_override():
    T = np.diag([1.0, 1e-6])
    t = TriangularView(T, 2)
    assert TriangularSolve().execute(False, t, np.ones((2, 1)))
    assert not TriangularSolve(tolerance=1e3).execute(False, t, np.ones((2, 1)))
    assert TriangularSolve().condition(t) == pytest.approx(1e6, rel=1e-6)
