# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Scratch-matrix pool.

Buffers are bucketed by the next power of two of their element count, so a
request for r-by-c reuses any free buffer of the same bucket.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

import numpy as np

from .dense import Dense
from .errors import ShapeError

logger = logging.getLogger(__name__)


class WorkspacePool:
    """
    Pool of flat float64 buffers handed out as `Dense` scratch matrices.

    Parameters
    ----------
    synchronized : bool
        Guard get/put with a lock so the pool can be shared between
        threads. Without it each thread needs its own pool.
    """

    def __init__(self, synchronized: bool = False):
        self._free: Dict[int, List[np.ndarray]] = {}
        self._lock = threading.Lock() if synchronized else None
        self.outstanding = 0

    @staticmethod
    def _bucket(size: int) -> int:
        return max(size - 1, 0).bit_length()

    def get(self, r: int, c: int, clear: bool) -> Dense:
        """
        Borrow an r-by-c scratch matrix. With `clear` every entry is zero,
        otherwise the contents are whatever the last user left behind.
        """
        if r < 0 or c < 0:
            raise ShapeError(f"negative dimension ({r}, {c})")
        bucket = self._bucket(r * c)
        if self._lock is not None:
            with self._lock:
                buf = self._pop(bucket)
        else:
            buf = self._pop(bucket)
        if buf is None:
            logger.debug(f"WorkspacePool.get: new buffer of {1 << bucket} for {r}x{c}")
            buf = np.zeros(1 << bucket, dtype=float)
        d = Dense._over(buf, r, c)
        if clear:
            d.array[...] = 0.0
        return d

    def put(self, d: Dense) -> None:
        """Return a matrix obtained from `get`."""
        buf = d._data
        bucket = self._bucket(buf.size)
        if (1 << bucket) != buf.size:
            raise ShapeError(f"buffer of size {buf.size} was not issued by this pool")
        if self._lock is not None:
            with self._lock:
                self._push(bucket, buf)
        else:
            self._push(bucket, buf)

    @contextmanager
    def borrow(self, r: int, c: int, clear: bool = False) -> Iterator[Dense]:
        """`get` a scratch matrix and `put` it back however the block exits."""
        d = self.get(r, c, clear)
        try:
            yield d
        finally:
            self.put(d)

    def _pop(self, bucket):
        self.outstanding += 1
        free = self._free.get(bucket)
        if free:
            return free.pop()
        return None

    def _push(self, bucket, buf):
        self.outstanding -= 1
        self._free.setdefault(bucket, []).append(buf)
