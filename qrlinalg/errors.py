# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Error kinds raised or returned by the QR routines.

ShapeError is a programmer error and is raised. ConditionError describes an
ill-posed numerical problem and is *returned* by the solvers so callers can
inspect it (and raise it themselves if they wish).
"""

import math


class ShapeError(ValueError):
    """Matrix dimensions do not agree with the operation."""


class ConditionError(Exception):
    """
    The triangular factor is singular or numerically singular.

    Attributes
    ----------
    condition : float
        Estimated condition number; ``inf`` for an exactly singular factor.
    """

    def __init__(self, condition: float = math.inf):
        self.condition = float(condition)
        super().__init__(f"matrix singular or near-singular with condition number {self.condition:.4e}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.condition!r})"
