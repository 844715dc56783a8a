"""pyfetransfer.transfer.l2_global
L2 projection between continuous spaces.

``R = M_L⁻¹ M_LH`` uses the lumped (row-sum) LOR mass, so it is explicit and
sparse. The exact prolongation solves

    (Rᵗ M_LH) y = M_LHᵗ x

with preconditioned CG. Both matrices are built on the scalar spaces and
applied per vector component on true DOFs.
"""
import logging
from typing import Optional

import numpy as np
import scipy.sparse as sp

from pyfetransfer.config import SolverOptions
from pyfetransfer.integration.quadrature import volume
from pyfetransfer.solvers.cg import CGSolver
from pyfetransfer.solvers.preconditioners import make_preconditioner
from pyfetransfer.transfer.l2_base import L2Projection
from pyfetransfer.transfer.mixed_mass import elem_mixed_mass
from pyfetransfer.transfer.operator import TransferKind

logger = logging.getLogger(__name__)


def _get_tdofs(fes, x):
    R = fes.restriction_matrix()
    return R @ x if R is not None else np.array(x, dtype=float, copy=True)


def _set_from_tdofs(fes, X):
    P = fes.prolongation_matrix()
    return P @ X if P is not None else np.array(X, dtype=float, copy=True)


def _get_tdofs_transpose(fes, x):
    P = fes.prolongation_matrix()
    return P.T @ x if P is not None else np.array(x, dtype=float, copy=True)


def _set_from_tdofs_transpose(fes, X):
    R = fes.restriction_matrix()
    return R.T @ X if R is not None else np.array(X, dtype=float, copy=True)


def tdofs_list_by_vdim(fes, vd: int) -> np.ndarray:
    """True-DOF indices of component ``vd``."""
    R = fes.restriction_matrix()
    if R is None:
        return fes.vdofs(vd)
    marker = np.zeros(fes.vsize)
    marker[fes.vdofs(vd)] = 1.0
    return np.flatnonzero((abs(R) @ marker) != 0.0)


class L2ProjectionH1Space(L2Projection):
    def __init__(self, fes_ho, fes_lor, *, preconditioner: str = "auto",
                 solver_options: Optional[SolverOptions] = None):
        super().__init__(fes_ho, fes_lor, TransferKind.GLOBAL_PROJECTION)
        self._ML_inv = np.zeros(0)
        self._pattern = None
        self.R = None
        self.M_LH = None
        self.RTxM_LH = None
        self.precon = None
        self.solver: Optional[CGSolver] = None

        R_mat, M_LH_mat = self._compute_sparse_R_and_M_LH()
        if fes_ho.ne == 0:
            self.R, self.M_LH = R_mat, M_LH_mat
            return

        P_ho = fes_ho.scalar_space().prolongation_matrix()
        P_lor = fes_lor.scalar_space().prolongation_matrix()
        if P_ho is not None and P_lor is not None:
            R_mat = P_lor.T @ R_mat @ P_ho
            M_LH_mat = P_lor.T @ M_LH_mat @ P_ho
        elif P_ho is not None:
            R_mat = R_mat @ P_ho
            M_LH_mat = M_LH_mat @ P_ho
        elif P_lor is not None:
            R_mat = P_lor.T @ R_mat
            M_LH_mat = P_lor.T @ M_LH_mat

        self.R = sp.csr_matrix(R_mat)
        self.M_LH = sp.csr_matrix(M_LH_mat)
        self.RTxM_LH = sp.csr_matrix(self.R.T @ self.M_LH)

        parallel = getattr(fes_ho, "parallel", False)
        self.precon = make_preconditioner(self.RTxM_LH, preconditioner, parallel)
        self.solver = CGSolver(self.RTxM_LH, self.precon, solver_options or SolverOptions())
        logger.debug(f"L2ProjectionH1Space: R {self.R.shape} nnz={self.R.nnz}, "
                     f"RᵗM_LH nnz={self.RTxM_LH.nnz}, preconditioner={preconditioner}")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def _compute_sparse_R_and_M_LH(self):
        fes_ho, fes_lor = self.fes_ho, self.fes_lor
        nel_ho = fes_ho.ne
        ndof_ho = fes_ho.ndofs
        ndof_lor = fes_lor.ndofs
        if nel_ho == 0:
            return sp.csr_matrix((0, 0)), sp.csr_matrix((0, 0))

        ho2lor = self.build_ho2lor()
        mesh_ho = fes_ho.mesh
        mesh_lor = fes_lor.mesh

        # lumped LOR mass, scalar DOFs
        ML = np.zeros(ndof_lor)
        for iho in range(nel_ho):
            geom = mesh_ho.element_base_geometry(iho)
            for ilor in ho2lor.row(iho):
                fe_lor = fes_lor.fe(ilor)
                el_tr = mesh_lor.element_transformation(ilor)
                pts, wts = volume(geom, 2 * fe_lor.order + el_tr.order_w)
                w = wts * np.array([el_tr.weight(xi) for xi in pts])
                np.add.at(ML, fes_lor.element_dofs(ilor), w @ fe_lor.shape_at(pts))
        self._ML_inv = self._lumped_mass_inverse(ML)

        pattern = self.sparsity_pattern()
        rows, cols, vals_M, vals_R = [], [], [], []
        for iho in range(nel_ho):
            geom = mesh_ho.element_base_geometry(iho)
            fe_ho = fes_ho.fe(iho)
            dofs_ho = fes_ho.element_dofs(iho)
            for ilor in ho2lor.row(iho):
                fe_lor = fes_lor.fe(ilor)
                el_tr = mesh_lor.element_transformation(ilor)
                ip_tr = self.embedding_transformation(geom, ilor)
                M_LH_el = elem_mixed_mass(geom, fe_ho, fe_lor, el_tr, ip_tr)
                dofs_lor = fes_lor.element_dofs(ilor)
                R_el = self._ML_inv[dofs_lor][:, None] * M_LH_el
                rows.append(np.repeat(dofs_lor, len(dofs_ho)))
                cols.append(np.tile(dofs_ho, len(dofs_lor)))
                vals_M.append(M_LH_el.ravel())
                vals_R.append(R_el.ravel())

        # add the element blocks into the preallocated pattern
        pat_rows = np.repeat(np.arange(ndof_lor), np.diff(pattern.indptr))
        pat_keys = pat_rows * ndof_ho + pattern.indices
        pos = np.searchsorted(pat_keys, np.concatenate(rows) * ndof_ho + np.concatenate(cols))

        M_LH_data = np.zeros(pattern.nnz)
        R_data = np.zeros(pattern.nnz)
        np.add.at(M_LH_data, pos, np.concatenate(vals_M))
        np.add.at(R_data, pos, np.concatenate(vals_R))
        shape = (ndof_lor, ndof_ho)
        M_LH = sp.csr_matrix((M_LH_data, pattern.indices.copy(), pattern.indptr.copy()), shape=shape)
        R = sp.csr_matrix((R_data, pattern.indices.copy(), pattern.indptr.copy()), shape=shape)
        return R, M_LH

    def _lumped_mass_inverse(self, ML):
        """Accumulate on true DOFs, invert non-zero entries, distribute back."""
        fes = self.fes_lor
        ML_full = np.zeros(fes.vsize)
        vdofs0 = fes.vdofs(0)
        ML_full[vdofs0] = ML
        ML_true = _get_tdofs_transpose(fes, ML_full)
        nz = ML_true != 0.0
        ML_true[nz] = 1.0 / ML_true[nz]
        return _set_from_tdofs(fes, ML_true)[vdofs0]

    def sparsity_pattern(self) -> sp.csr_matrix:
        """Boolean (ndof_lor, ndof_ho) pattern of R and M_LH."""
        if self._pattern is None:
            fes_ho, fes_lor = self.fes_ho, self.fes_lor
            if fes_ho.ne == 0:
                self._pattern = sp.csr_matrix((fes_lor.ndofs, fes_ho.ndofs), dtype=bool)
                return self._pattern
            if self.ho2lor is None:
                self.build_ho2lor()
            parents = self._cf_tr.parents[:fes_lor.ne]
            C = sp.csr_matrix((np.ones(len(parents)), (np.arange(len(parents)), parents)),
                              shape=(fes_lor.ne, fes_ho.ne))
            dof_elem_lor = fes_lor.element_dof_table().T.tocsr()
            pat = sp.csr_matrix(dof_elem_lor @ C @ fes_ho.element_dof_table()).astype(bool)
            pat.sort_indices()
            self._pattern = pat
        return self._pattern

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def lumped_mass_inverse(self) -> np.ndarray:
        return self._ML_inv

    def set_rel_tol(self, tol: float):
        if self.solver is not None:
            self.solver.set_rel_tol(tol)

    def set_abs_tol(self, tol: float):
        if self.solver is not None:
            self.solver.set_abs_tol(tol)

    # ------------------------------------------------------------------
    # Action
    # ------------------------------------------------------------------
    def mult(self, x):
        if self.fes_ho.ne == 0:
            return np.zeros(self.shape[0])
        X = _get_tdofs(self.fes_ho, x)
        Y = np.zeros(self.fes_lor.true_vsize)
        for d in range(self.vdim):
            Y[tdofs_list_by_vdim(self.fes_lor, d)] = self.R @ X[tdofs_list_by_vdim(self.fes_ho, d)]
        return _set_from_tdofs(self.fes_lor, Y)

    def mult_transpose(self, x):
        if self.fes_ho.ne == 0:
            return np.zeros(self.shape[1])
        X = _get_tdofs_transpose(self.fes_lor, x)
        Y = np.zeros(self.fes_ho.true_vsize)
        for d in range(self.vdim):
            Y[tdofs_list_by_vdim(self.fes_ho, d)] = self.R.T @ X[tdofs_list_by_vdim(self.fes_lor, d)]
        return _set_from_tdofs_transpose(self.fes_ho, Y)

    def prolongate(self, x):
        if self.fes_ho.ne == 0:
            return np.zeros(self.shape[1])
        X = _get_tdofs(self.fes_lor, x)
        Y = np.zeros(self.fes_ho.true_vsize)
        for d in range(self.vdim):
            Xbar = self.M_LH.T @ X[tdofs_list_by_vdim(self.fes_lor, d)]
            Y[tdofs_list_by_vdim(self.fes_ho, d)] = self.solver.mult(Xbar)
        return _set_from_tdofs(self.fes_ho, Y)

    def prolongate_transpose(self, x):
        if self.fes_ho.ne == 0:
            return np.zeros(self.shape[0])
        X = _get_tdofs_transpose(self.fes_ho, x)
        Y = np.zeros(self.fes_lor.true_vsize)
        for d in range(self.vdim):
            Xbar = self.solver.mult(X[tdofs_list_by_vdim(self.fes_ho, d)])
            Y[tdofs_list_by_vdim(self.fes_lor, d)] = self.M_LH @ Xbar
        return _set_from_tdofs_transpose(self.fes_lor, Y)
