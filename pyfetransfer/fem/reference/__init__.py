# pyfetransfer.fem.reference
"""
Order-agnostic reference-element factory.
"""
from functools import lru_cache
from importlib import import_module
import numpy as np

from .linear import vertex_basis, REF_VERTICES

__all__ = ["Ref", "get_reference", "vertex_basis", "REF_VERTICES", "DIM_OF", "TENSOR_TYPES"]

DIM_OF = {"segment": 1, "tri": 2, "quad": 2, "hex": 3}
TENSOR_TYPES = ("segment", "quad", "hex")


class Ref:
    """Nodal Lagrange element on a reference geometry."""

    def __init__(self, element_type, order, shape_lambda, deriv_lambdas, nodes,
                 nodes_1d=None, map_type="value"):
        self.element_type = element_type
        self.order = order
        self.dim = DIM_OF[element_type]
        self.shape_lambda = shape_lambda
        self.deriv_lambdas = deriv_lambdas
        self.nodes = np.asarray(nodes, dtype=float)
        self.ndof = self.nodes.shape[0]
        self.nodes_1d = nodes_1d
        self.map_type = map_type

    @property
    def is_tensor(self) -> bool:
        return self.nodes_1d is not None

    @lru_cache(maxsize=None)
    def shape(self, *xi):
        return np.asarray(self.shape_lambda(*xi), dtype=float).ravel()

    @lru_cache(maxsize=None)
    def derivative(self, xi, alpha):
        if alpha not in self.deriv_lambdas:
            raise ValueError(f"Derivative order {alpha} not computed. "
                             f"Adjust max_deriv_order >= {sum(alpha)}.")
        vals = np.asarray(self.deriv_lambdas[alpha](*xi), dtype=float).ravel()
        # constant derivatives lambdify to scalars
        return np.broadcast_to(vals, (self.ndof,)) if vals.size == 1 else vals

    def grad(self, *xi):
        cols = []
        for k in range(self.dim):
            alpha = tuple(1 if a == k else 0 for a in range(self.dim))
            cols.append(self.derivative(tuple(xi), alpha)[:, None])
        return np.hstack(cols)  # (ndof, dim)

    def shape_at(self, points) -> np.ndarray:
        """Basis values at many reference points: (n_points, ndof)."""
        points = np.atleast_2d(np.asarray(points, dtype=float))
        return np.array([self.shape(*map(float, p)) for p in points]).reshape(len(points), self.ndof)

    def basis_1d(self, points) -> np.ndarray:
        """1‑D Lagrange factor of a tensor basis at 1‑D points: (n_points, order+1)."""
        if not self.is_tensor:
            raise ValueError(f"'{self.element_type}' is not a tensor-product element.")
        lagrange = import_module("pyfetransfer.fem.reference.tensor_qn")._lagrange_basis_1d
        _, L, _ = lagrange(self.order, 1)
        points = np.asarray(points, dtype=float).ravel()
        return np.array([[f(z) for f in L] for z in points], dtype=float).reshape(len(points), len(L))

    def transfer_matrix(self, coarse: "Ref", trans=None) -> np.ndarray:
        """Matrix taking ``coarse`` DOF values to this element's DOF values.

        Nodal elements sample the coarse basis at their nodes; ``trans`` maps
        this element's reference domain into the coarse one (identity if None).
        """
        if trans is None:
            trans = import_module("pyfetransfer.fem.transform").identity_transformation(self.element_type)
        pts = trans.transform(self.nodes)
        return coarse.shape_at(pts)  # (ndof, coarse.ndof)

    def __repr__(self):
        return f"<Ref {self.element_type} order={self.order} ndof={self.ndof}>"


@lru_cache(maxsize=None)
def get_reference(element_type: str, poly_order: int = 1, max_deriv_order: int = 1):
    if element_type in TENSOR_TYPES:
        mod = import_module("pyfetransfer.fem.reference.tensor_qn")
        shape_l, deriv_lambdas, nodes = mod.tensor_qn(poly_order, DIM_OF[element_type], max_deriv_order)
        nodes_1d = mod.lagrange_nodes_1d(poly_order)
    elif element_type == "tri":
        shape_l, deriv_lambdas, nodes = import_module("pyfetransfer.fem.reference.tri_pn").tri_pn(poly_order, max_deriv_order)
        nodes_1d = None
    else:
        raise KeyError(element_type)

    return Ref(element_type, poly_order, shape_l, deriv_lambdas, nodes, nodes_1d=nodes_1d)
