import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from pyfetransfer.core.refinement import CoarseFineTransformations, uniform_point_matrices
from pyfetransfer.fem.reference import DIM_OF, REF_VERTICES
from pyfetransfer.fem.transform import ElementTransformation

logger = logging.getLogger(__name__)


def _q(x: float, ndp: int = 12) -> float:
    return float(round(x, ndp))


class Mesh:
    """
    Conforming mesh of a single element geometry.

    Vertices are the linear (P1/Q1) geometry nodes, ``elements`` lists the
    vertex ids of every element in reference vertex order (see
    :mod:`pyfetransfer.fem.reference.linear`). A mesh produced by
    :meth:`refine_uniform` remembers how it was obtained from its parent in
    ``refinement_transforms``.
    """

    def __init__(self,
                 vertices: np.ndarray,
                 elements: np.ndarray,
                 *,
                 element_type: str = 'quad',
                 refinement_transforms: Optional[CoarseFineTransformations] = None):
        if element_type not in DIM_OF:
            raise KeyError(element_type)
        self.element_type = element_type
        self.dim = DIM_OF[element_type]
        self.vertices = np.atleast_2d(np.asarray(vertices, dtype=float))
        if self.vertices.shape[0] and self.vertices.shape[1] < self.dim:
            raise ValueError(f"'{element_type}' mesh needs at least {self.dim} coordinates per vertex.")
        nverts = REF_VERTICES[element_type].shape[0]
        self.elements = np.asarray(elements, dtype=np.int64).reshape(-1, nverts)
        self.n_elements = len(self.elements)
        self.spatial_dim = self.vertices.shape[1] if self.vertices.size else self.dim
        self.refinement_transforms = refinement_transforms
        self._trans_cache: Dict[int, ElementTransformation] = {}

    # ------------------------------------------------------------------
    # Geometry queries
    # ------------------------------------------------------------------
    def geometries(self) -> List[str]:
        return [self.element_type] if self.n_elements else []

    def element_base_geometry(self, eid: int) -> str:
        return self.element_type

    def element_vertices(self, eid: int) -> np.ndarray:
        return self.vertices[self.elements[eid]]

    def element_transformation(self, eid: int) -> ElementTransformation:
        tr = self._trans_cache.get(eid)
        if tr is None:
            tr = ElementTransformation(self.element_type, self.element_vertices(eid))
            self._trans_cache[eid] = tr
        return tr

    def element_volumes(self) -> np.ndarray:
        from pyfetransfer.integration.quadrature import volume
        pts, wts = volume(self.element_type, 2 * self.dim)
        out = np.zeros(self.n_elements)
        for e in range(self.n_elements):
            tr = self.element_transformation(e)
            out[e] = sum(w * tr.weight(p) for p, w in zip(pts, wts))
        return out

    def bounding_box(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.vertices.min(axis=0), self.vertices.max(axis=0)

    # ------------------------------------------------------------------
    # Refinement
    # ------------------------------------------------------------------
    def refine_uniform(self, factor: int = 2) -> "Mesh":
        """
        Split every element into ``factor**dim`` children (``factor**2`` for
        triangles). Children of element ``e`` are numbered ``e*nchild + k``
        where ``k`` indexes the point matrix embedding them in ``e``.
        """
        pmats = uniform_point_matrices(self.element_type, factor)
        nchild, nverts, _ = pmats.shape

        coords: List[np.ndarray] = []
        lookup: Dict[Tuple[float, ...], int] = {}

        def vid(X):
            key = tuple(_q(float(c)) for c in X)
            i = lookup.get(key)
            if i is None:
                i = len(coords)
                lookup[key] = i
                coords.append(np.asarray(X, dtype=float))
            return i

        # keep coarse vertex ids stable
        for X in self.vertices:
            vid(X)

        new_elems = np.empty((self.n_elements * nchild, nverts), dtype=np.int64)
        flat_ref = pmats.reshape(-1, pmats.shape[2])
        for e in range(self.n_elements):
            phys = self.element_transformation(e).transform(flat_ref).reshape(nchild, nverts, -1)
            for k in range(nchild):
                new_elems[e * nchild + k] = [vid(X) for X in phys[k]]

        parents = np.repeat(np.arange(self.n_elements, dtype=np.int64), nchild)
        matrices = np.tile(np.arange(nchild, dtype=np.int64), self.n_elements)
        cf = CoarseFineTransformations(parents, matrices, {self.element_type: pmats})

        vertices = np.array(coords) if coords else np.zeros((0, self.spatial_dim))
        logger.debug(f"refine_uniform: {self.n_elements} {self.element_type} → "
                     f"{len(new_elems)} elements, {len(vertices)} vertices (factor={factor})")
        return Mesh(vertices, new_elems, element_type=self.element_type,
                    refinement_transforms=cf)

    def __repr__(self):
        return f"<Mesh {self.element_type} n_elements={self.n_elements} n_vertices={len(self.vertices)}>"
