"""pyfetransfer.core.fespace
Nodal Lagrange spaces on a :class:`~pyfetransfer.core.mesh.Mesh`.

DOF numbering
-------------
* ``cg``: DOFs are identified by their (quantised) physical coordinates, so
  nodes shared between elements share a DOF.
* ``dg``: every element owns a contiguous block of DOFs.

Vector spaces are ordered by nodes: ``vdof = d * ndofs + dof``.
Periodic identifications (``cg`` only) reduce the local DOFs to the *true*
DOFs; the space then carries a prolongation ``P`` (local ← true) and a boolean
restriction ``R`` (true ← local).
"""
import logging
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import scipy.sparse as sp

from pyfetransfer.fem.reference import get_reference, Ref
from pyfetransfer.core.mesh import Mesh, _q

logger = logging.getLogger(__name__)


class FECollection(NamedTuple):
    continuity: str
    order: int


class FESpace:
    def __init__(self,
                 mesh: Mesh,
                 order: int = 1,
                 continuity: str = "cg",
                 vdim: int = 1,
                 periodic: Optional[Sequence[Tuple[int, float]]] = None,
                 element_orders: Optional[Sequence[int]] = None):
        if continuity not in ("cg", "dg"):
            raise ValueError(f"Unknown continuity '{continuity}'. Use 'cg' or 'dg'.")
        if vdim < 1:
            raise ValueError("vdim must be >= 1.")
        self.mesh = mesh
        self.continuity = continuity
        self.vdim = int(vdim)
        self.periodic = [(int(a), float(L)) for a, L in (periodic or [])]
        self.parallel = False

        if element_orders is None:
            self._orders = np.full(mesh.n_elements, int(order), dtype=np.int64)
        else:
            self._orders = np.asarray(element_orders, dtype=np.int64).reshape(-1)
            if len(self._orders) != mesh.n_elements:
                raise ValueError("element_orders must give one order per element.")
        self.order = int(self._orders.max()) if len(self._orders) else int(order)
        self._variable = len(np.unique(self._orders)) > 1
        self._scalar = None

        if continuity == "cg":
            if self._variable:
                raise ValueError("Variable order is only supported for 'dg' spaces.")
            if self.order < 1:
                raise ValueError("Continuous spaces need order >= 1.")
        elif self.periodic:
            raise ValueError("Periodic identification is only supported for 'cg' spaces.")

        self._build_dof_map()
        self._build_true_dofs()
        logger.debug(f"FESpace({continuity}, p={self.order}, vdim={self.vdim}) on "
                     f"{mesh.n_elements} {mesh.element_type}: ndofs={self.ndofs}, "
                     f"true={self.true_vsize}")

    # ------------------------------------------------------------------
    # DOF maps
    # ------------------------------------------------------------------
    def _build_dof_map(self):
        mesh = self.mesh
        coords: List[np.ndarray] = []
        elem_dofs: List[np.ndarray] = []
        lookup: Dict[Tuple[float, ...], int] = {}
        for e in range(mesh.n_elements):
            X = mesh.element_transformation(e).transform(self.fe(e).nodes)
            if self.continuity == "dg":
                start = len(coords)
                coords.extend(X)
                elem_dofs.append(np.arange(start, start + len(X), dtype=np.int64))
                continue
            row = []
            for x in X:
                key = tuple(_q(float(c)) for c in x)
                d = lookup.get(key)
                if d is None:
                    d = len(coords)
                    lookup[key] = d
                    coords.append(x)
                row.append(d)
            elem_dofs.append(np.asarray(row, dtype=np.int64))

        self._elem_dofs = elem_dofs
        self.ndofs = len(coords)
        self._dof_coords = np.array(coords) if coords else np.zeros((0, mesh.spatial_dim))

    def _build_true_dofs(self):
        self._P = None
        self._R = None
        self.n_true_dofs = self.ndofs
        if not self.periodic or self.ndofs == 0:
            return

        canon = self._dof_coords.copy()
        for axis, period in self.periodic:
            lo = self._dof_coords[:, axis].min()
            hit = np.isclose(canon[:, axis] - lo, period, rtol=0.0, atol=1e-10)
            canon[hit, axis] -= period

        keys = [tuple(_q(float(c)) for c in row) for row in canon]
        tdof_of = np.empty(self.ndofs, dtype=np.int64)
        master: List[int] = []
        seen: Dict[Tuple[float, ...], int] = {}
        for d, k in enumerate(keys):
            t = seen.get(k)
            if t is None:
                t = len(master)
                seen[k] = t
                master.append(d)
            tdof_of[d] = t
        ntrue = len(master)
        self.n_true_dofs = ntrue

        P = sp.csr_matrix((np.ones(self.ndofs), (np.arange(self.ndofs), tdof_of)),
                          shape=(self.ndofs, ntrue))
        R = sp.csr_matrix((np.ones(ntrue), (np.arange(ntrue), np.asarray(master))),
                          shape=(ntrue, self.ndofs))
        if self.vdim > 1:
            eye = sp.identity(self.vdim, format="csr")
            P = sp.kron(eye, P, format="csr")
            R = sp.kron(eye, R, format="csr")
        self._P, self._R = P, R
        logger.debug(f"periodic identification: {self.ndofs} local → {ntrue} true DOFs")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def ne(self) -> int:
        return self.mesh.n_elements

    @property
    def vsize(self) -> int:
        return self.vdim * self.ndofs

    @property
    def true_vsize(self) -> int:
        return self.vdim * self.n_true_dofs

    @property
    def collection(self) -> FECollection:
        return FECollection(self.continuity, self.order)

    def is_variable_order(self) -> bool:
        return self._variable

    def element_order(self, eid: int) -> int:
        return int(self._orders[eid])

    def fe(self, eid: int) -> Ref:
        return get_reference(self.mesh.element_type, int(self._orders[eid]))

    def element_dofs(self, eid: int) -> np.ndarray:
        return self._elem_dofs[eid]

    def dofs_to_vdofs(self, dofs, vd: int) -> np.ndarray:
        return np.asarray(dofs, dtype=np.int64) + vd * self.ndofs

    def vdofs(self, vd: int) -> np.ndarray:
        return np.arange(vd * self.ndofs, (vd + 1) * self.ndofs, dtype=np.int64)

    def element_vdofs(self, eid: int) -> np.ndarray:
        dofs = self._elem_dofs[eid]
        return np.concatenate([dofs + vd * self.ndofs for vd in range(self.vdim)])

    def element_dof_table(self) -> sp.csr_matrix:
        """Sparse (ne, ndofs) element → DOF incidence (ones)."""
        if self.ne == 0:
            return sp.csr_matrix((0, self.ndofs))
        lens = np.array([len(d) for d in self._elem_dofs], dtype=np.int64)
        indptr = np.concatenate([[0], np.cumsum(lens)])
        indices = np.concatenate(self._elem_dofs)
        return sp.csr_matrix((np.ones(len(indices)), indices, indptr),
                             shape=(self.ne, self.ndofs))

    def prolongation_matrix(self) -> Optional[sp.csr_matrix]:
        return self._P

    def restriction_matrix(self) -> Optional[sp.csr_matrix]:
        return self._R

    def dof_coords(self) -> np.ndarray:
        return self._dof_coords

    def interpolate(self, func: Callable) -> np.ndarray:
        """Nodal interpolant of ``func(*x)``; vector spaces expect ``vdim`` components."""
        vals = np.array([np.atleast_1d(func(*x)) for x in self._dof_coords], dtype=float)
        vals = vals.reshape(self.ndofs, -1)
        if vals.shape[1] != self.vdim:
            raise ValueError(f"Function returns {vals.shape[1]} components, space has vdim={self.vdim}.")
        return vals.T.reshape(-1).copy()

    def scalar_space(self) -> "FESpace":
        if self.vdim == 1:
            return self
        if self._scalar is None:
            self._scalar = FESpace(self.mesh, self.order, self.continuity, 1, self.periodic,
                                   None if not self._variable else self._orders)
        return self._scalar

    def element_restriction(self) -> Optional["ElementRestriction"]:
        """Lexicographic gather/scatter; None for non-tensor or variable-order spaces."""
        if self.ne == 0 or self._variable or not self.fe(0).is_tensor:
            return None
        return ElementRestriction(self)

    def get_transfer_operator(self, coarse: "FESpace"):
        """Operator taking ``coarse`` local vectors to this space (same collection)."""
        from pyfetransfer.transfer.operator import IdentityOperator
        from pyfetransfer.transfer.interpolation import RefinementOperator
        if coarse.mesh is self.mesh:
            if coarse.vsize != self.vsize:
                raise ValueError("Spaces on the same mesh have different sizes.")
            return IdentityOperator(self.vsize)
        return RefinementOperator(self, coarse)

    def __repr__(self):
        return (f"<FESpace {self.continuity} p={self.order} vdim={self.vdim} "
                f"ndofs={self.ndofs} true_vsize={self.true_vsize}>")


class ElementRestriction:
    """
    Global ↔ element-contiguous arrays for a scalar tensor-product space.

    ``mult`` gathers a global vector into (ne, ndof) lexicographic element
    arrays; ``mult_transpose`` scatter-adds them back.
    """

    def __init__(self, fes: FESpace):
        self.fes = fes
        self.ne = fes.ne
        self.ndof = fes.fe(0).ndof
        self.offsets = np.stack([fes.element_dofs(e) for e in range(fes.ne)]).astype(np.int64)

    @property
    def shape(self):
        return (self.ne * self.ndof, self.fes.ndofs)

    def mult(self, x: np.ndarray) -> np.ndarray:
        return np.asarray(x)[self.offsets]

    def mult_transpose(self, y: np.ndarray) -> np.ndarray:
        out = np.zeros(self.fes.ndofs)
        np.add.at(out, self.offsets, np.asarray(y).reshape(self.ne, self.ndof))
        return out

    def boolean_mask(self) -> np.ndarray:
        """1 on the first element-local occurrence of every DOF, 0 on repeats."""
        flat = self.offsets.ravel()
        _, first = np.unique(flat, return_index=True)
        mask = np.zeros(flat.size, dtype=np.float64)
        mask[first] = 1.0
        return mask.reshape(self.ne, self.ndof)
