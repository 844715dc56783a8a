"""pyfetransfer.transfer.patch
Coarse element → fine elements ("ho2lor") grouping.
"""
import logging
from dataclasses import dataclass

import numpy as np
import numba as _nb

logger = logging.getLogger(__name__)


@_nb.njit(cache=True)
def _counting_sort(parents, nel_ho):
    """Two passes over the fine elements; keeps discovery order per parent."""
    indptr = np.zeros(nel_ho + 1, dtype=np.int64)
    for i in range(parents.shape[0]):
        indptr[parents[i] + 1] += 1
    for i in range(nel_ho):
        indptr[i + 1] += indptr[i]
    fill = indptr[:-1].copy()
    indices = np.empty(parents.shape[0], dtype=np.int64)
    for i in range(parents.shape[0]):
        p = parents[i]
        indices[fill[p]] = i
        fill[p] += 1
    return indptr, indices


@dataclass(frozen=True)
class PatchMap:
    indptr: np.ndarray
    indices: np.ndarray

    @property
    def n_rows(self) -> int:
        return len(self.indptr) - 1

    def row(self, iho: int) -> np.ndarray:
        return self.indices[self.indptr[iho]:self.indptr[iho + 1]]

    def row_size(self, iho: int) -> int:
        return int(self.indptr[iho + 1] - self.indptr[iho])


def build_ho2lor(nel_ho: int, nel_lor: int, cf_tr) -> PatchMap:
    if nel_ho == 0:
        indptr, indices = np.zeros(1, dtype=np.int64), np.zeros(0, dtype=np.int64)
    else:
        parents = np.ascontiguousarray(cf_tr.parents[:nel_lor], dtype=np.int64)
        if parents.size and (parents.min() < 0 or parents.max() >= nel_ho):
            raise ValueError("Refinement parents out of range for the coarse mesh.")
        indptr, indices = _counting_sort(parents, nel_ho)
    indptr.flags.writeable = False
    indices.flags.writeable = False
    logger.debug(f"ho2lor: {nel_ho} coarse ← {nel_lor} fine elements")
    return PatchMap(indptr, indices)
