"""pyfetransfer.core.refinement
Coarse → fine relations produced by mesh refinement.
"""
from dataclasses import dataclass, field
from typing import Dict, NamedTuple

import numpy as np

from pyfetransfer.fem.reference import REF_VERTICES


class Embedding(NamedTuple):
    parent: int
    matrix: int


@dataclass(frozen=True)
class CoarseFineTransformations:
    """
    For every fine element: its parent coarse element and the index of the
    point matrix embedding it in the parent's reference domain.

    ``point_matrices[geom]`` has shape (n_children, n_vertices, dim): the
    child vertices expressed in parent reference coordinates.
    """
    parents: np.ndarray
    matrices: np.ndarray
    point_matrices: Dict[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self):
        if len(self.parents) != len(self.matrices):
            raise ValueError("parents and matrices must have the same length.")

    @property
    def n_fine(self) -> int:
        return len(self.parents)

    def embedding(self, ilor: int) -> Embedding:
        return Embedding(int(self.parents[ilor]), int(self.matrices[ilor]))

    def max_children(self) -> int:
        return max((pm.shape[0] for pm in self.point_matrices.values()), default=0)


def uniform_point_matrices(element_type: str, factor: int = 2) -> np.ndarray:
    """Child vertices (in parent reference coords) for a uniform split by ``factor``."""
    if factor < 1:
        raise ValueError("Refinement factor must be >= 1.")
    k = int(factor)
    if element_type == 'tri':
        children = []
        for j in range(k):
            for i in range(k - j):
                children.append([(i, j), (i + 1, j), (i, j + 1)])
                if i + j < k - 1:
                    children.append([(i + 1, j), (i + 1, j + 1), (i, j + 1)])
        return np.array(children, dtype=float) / k

    t = np.linspace(-1.0, 1.0, k + 1)
    ref = REF_VERTICES[element_type]          # corners of [-1,1]^d
    corner = (ref > 0).astype(int)             # which end of the sub-interval
    dim = ref.shape[1]
    children = []
    for idx in np.ndindex(*([k] * dim)):
        lo = idx[::-1]                         # x fastest
        verts = [[t[lo[a] + corner[v, a]] for a in range(dim)] for v in range(ref.shape[0])]
        children.append(verts)
    return np.array(children, dtype=float)
