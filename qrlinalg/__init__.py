# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
qrlinalg
========

Householder QR factorization with explicit factor extraction and
least-squares / minimum-norm solvers, running on LAPACK through SciPy.

Public API
~~~~~~~~~~
- Factorization
    - `QR` (`factorize`, `r`, `q`, `solve`)
- Extraction into reusable storage
    - `r_from_qr`, `q_from_qr`
- Linear systems
    - `solve_qr`, `solve_qr_vec`, `least_squares_qr`, `min_norm_qr`
- Storage and scratch
    - `Dense`, `Vector`, `TriangularView`, `WorkspacePool`
- Kernels
    - `LapackKernels`
- Errors
    - `ShapeError` (raised), `ConditionError` (returned by the solvers)

Everything else lives in sub-modules and is **not** considered part of the
stable interface.

Example
-------
>>> import numpy as np, qrlinalg as ql
>>> A = np.random.randn(5, 3)
>>> f = ql.QR().factorize(A)
>>> np.allclose(f.q() @ f.r(), A)
True
"""

from importlib.metadata import version as _pkg_version

from .dense import Dense, TriangularView, Vector
from .errors import ConditionError, ShapeError
from .kernels import LapackKernels

# ---------------------------------------------------------------------
# Re-export the high-level functions users are expected to call.
# Each of these names is implemented in one of the internal sub-modules.
# ---------------------------------------------------------------------
from .qr import (
    QR,
    least_squares_qr,
    min_norm_qr,
    q_from_qr,
    r_from_qr,
    solve_qr,
    solve_qr_vec,
)
from .utils import EPS
from .workspace import WorkspacePool

__all__ = [
    "QR",
    "r_from_qr",
    "q_from_qr",
    "solve_qr",
    "solve_qr_vec",
    "least_squares_qr",
    "min_norm_qr",
    "Dense",
    "Vector",
    "TriangularView",
    "WorkspacePool",
    "LapackKernels",
    "ShapeError",
    "ConditionError",
    "EPS",
]

# ---------------------------------------------------------------------
# Version string (helps “pip show qrlinalg”, Sphinx, etc.)
# ---------------------------------------------------------------------
try:  # installed via pip / build backend
    __version__ = _pkg_version(__name__)
except Exception:  # running from a checkout
    __version__ = "0.0.0.dev0"

# ---------------------------------------------------------------------
# Library logging stays silent unless the application configures it.
# ---------------------------------------------------------------------
import logging as _logging

_logging.getLogger(__name__).addHandler(_logging.NullHandler())
