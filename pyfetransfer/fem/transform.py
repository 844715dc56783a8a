"""pyfetransfer.fem.transform
Reference → physical mapping for linear (P1/Q1) element geometries.

The same isoparametric map describes a mesh element (point matrix = its
vertex coordinates) and the embedding of a refined child inside its parent's
reference domain (point matrix = child vertices in parent reference coords).
"""
import numpy as np

from pyfetransfer.fem.reference import vertex_basis, REF_VERTICES, DIM_OF


class ElementTransformation:
    """Isoparametric map x(ξ) = Σ_v N_v(ξ) X_v."""

    def __init__(self, element_type: str, point_matrix):
        self.element_type = element_type
        self.point_matrix = np.asarray(point_matrix, dtype=float)   # (nverts, sdim)
        self.dim = DIM_OF[element_type]
        self._shape, self._grad, _ = vertex_basis(element_type)

    @property
    def order_w(self) -> int:
        """Polynomial order of the weight |det J| for a linear geometry."""
        if self.element_type in ('segment', 'tri'):
            return 0
        return self.dim - 1

    def transform(self, points) -> np.ndarray:
        points = np.atleast_2d(np.asarray(points, dtype=float))
        N = np.array([self._shape(*p) for p in points])          # (nP, nverts)
        return N @ self.point_matrix

    def jacobian(self, xi) -> np.ndarray:
        """(dim, sdim) transposed Jacobian dN^T X, as in the reference → physical map."""
        dN = self._grad(*xi)                                      # (nverts, dim)
        return dN.T @ self.point_matrix

    def weight(self, xi) -> float:
        J = self.jacobian(xi)
        if J.shape[0] == J.shape[1]:
            return abs(np.linalg.det(J))
        return float(np.sqrt(np.linalg.det(J @ J.T)))

    def __repr__(self):
        return f"<ElementTransformation {self.element_type} verts={self.point_matrix.shape[0]}>"


def identity_transformation(element_type: str) -> ElementTransformation:
    return ElementTransformation(element_type, REF_VERTICES[element_type])

