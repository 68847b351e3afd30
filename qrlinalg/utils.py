# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np

EPS: float = 1e-12


def random_full_rank(m, n, seed=None) -> np.ndarray:
    """
    Random m-by-n matrix of full rank min(m, n).

    Gaussian entries are full rank with probability one; the loop only
    guards against the measure-zero case.

    Returns
    -------
    Matrix with float64 dtype
    """
    rng = np.random.default_rng(seed)
    while True:
        A = rng.standard_normal((m, n))
        if np.linalg.matrix_rank(A) == min(m, n):
            return np.asarray(A)
