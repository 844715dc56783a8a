"""pyfetransfer.transfer.interpolation
Interpolation between nested spaces on a coarse mesh and its refinement.

Forward (coarse → fine) evaluates the coarse function at the fine nodes via
per-geometry local refinement matrices. Every fine DOF is owned by the first
fine element that touches it. Backward is the mass-weighted left inverse,
per coarse element

    R_k = (Σ_j P_jᵗ M_j P_j)⁻¹ P_kᵗ M_k

with ``M_j`` the fine mass matrix of child ``j`` in coarse reference space.
"""
import logging
from typing import Dict

import numpy as np
import scipy.sparse as sp
from scipy.linalg import cho_factor, cho_solve

from pyfetransfer.errors import ConfigurationError
from pyfetransfer.fem.transform import ElementTransformation
from pyfetransfer.transfer.operator import Operator, TransferKind
from pyfetransfer.transfer.patch import build_ho2lor

logger = logging.getLogger(__name__)


def _check_nested(fine_fes, coarse_fes):
    if fine_fes.vdim != coarse_fes.vdim:
        raise ConfigurationError("incompatible coarse and fine FE spaces")
    if fine_fes.is_variable_order() or coarse_fes.is_variable_order():
        raise ConfigurationError("Interpolation transfer needs fixed-order spaces.")
    cf_tr = fine_fes.mesh.refinement_transforms
    if fine_fes.ne == 0:
        return cf_tr
    if cf_tr is None or cf_tr.n_fine != fine_fes.ne:
        raise ConfigurationError("The fine mesh is not a refinement of the coarse mesh.")
    if cf_tr.parents.max() >= coarse_fes.ne:
        raise ConfigurationError("Refinement parents do not match the coarse mesh.")
    return cf_tr


def _first_owner_mask(fes) -> np.ndarray:
    """(ne, ndof) mask: True where the element is the first to touch the DOF."""
    table = np.stack([fes.element_dofs(e) for e in range(fes.ne)])
    flat = table.ravel()
    _, first = np.unique(flat, return_index=True)
    mask = np.zeros(flat.size, dtype=bool)
    mask[first] = True
    return mask.reshape(table.shape)


def local_refinement_matrices(fine_fes, coarse_fes, geom: str) -> np.ndarray:
    """(n_children, ndof_fine, ndof_coarse): coarse basis at embedded fine nodes."""
    pmats = fine_fes.mesh.refinement_transforms.point_matrices[geom]
    f_fe = fine_fes.fe(0)
    c_fe = coarse_fes.fe(0)
    return np.stack([f_fe.transfer_matrix(c_fe, ElementTransformation(geom, pm)) for pm in pmats])


class _RefinementData:
    """Local matrices, embeddings and DOF ownership shared by the forward forms."""

    def __init__(self, fine_fes, coarse_fes):
        self.cf_tr = _check_nested(fine_fes, coarse_fes)
        self.fine_fes = fine_fes
        self.coarse_fes = coarse_fes
        self.localP: Dict[str, np.ndarray] = {}
        self.owned = np.zeros((0, 0), dtype=bool)
        if fine_fes.ne == 0:
            return
        for geom in fine_fes.mesh.geometries():
            self.localP[geom] = local_refinement_matrices(fine_fes, coarse_fes, geom)
        self.owned = _first_owner_mask(fine_fes)

    def elements(self):
        """Yield (fine eid, owned local rows, owned fine dofs, coarse dofs, local P)."""
        mesh = self.fine_fes.mesh
        for k in range(self.fine_fes.ne):
            emb = self.cf_tr.embedding(k)
            lP = self.localP[mesh.element_base_geometry(k)][emb.matrix]
            own = self.owned[k]
            yield (k, own, self.fine_fes.element_dofs(k)[own],
                   self.coarse_fes.element_dofs(emb.parent), lP[own])


class RefinementOperator(Operator):
    def __init__(self, fine_fes, coarse_fes):
        super().__init__((fine_fes.vsize, coarse_fes.vsize), TransferKind.REFINEMENT)
        self._data = _RefinementData(fine_fes, coarse_fes)
        self.fine_fes = fine_fes
        self.coarse_fes = coarse_fes

    def mult(self, x):
        x = np.asarray(x, dtype=float)
        y = np.zeros(self.shape[0])
        f, c = self.fine_fes, self.coarse_fes
        for _, _, dofs, c_dofs, lP in self._data.elements():
            for vd in range(f.vdim):
                y[f.dofs_to_vdofs(dofs, vd)] = lP @ x[c.dofs_to_vdofs(c_dofs, vd)]
        return y

    def mult_transpose(self, x):
        x = np.asarray(x, dtype=float)
        y = np.zeros(self.shape[1])
        f, c = self.fine_fes, self.coarse_fes
        for _, _, dofs, c_dofs, lP in self._data.elements():
            for vd in range(f.vdim):
                np.add.at(y, c.dofs_to_vdofs(c_dofs, vd), lP.T @ x[f.dofs_to_vdofs(dofs, vd)])
        return y


def refinement_matrix(fine_fes, coarse_fes) -> sp.csr_matrix:
    """Assembled form of :class:`RefinementOperator`."""
    data = _RefinementData(fine_fes, coarse_fes)
    rows, cols, vals = [], [], []
    for _, _, dofs, c_dofs, lP in data.elements():
        for vd in range(fine_fes.vdim):
            r = fine_fes.dofs_to_vdofs(dofs, vd)
            cc = coarse_fes.dofs_to_vdofs(c_dofs, vd)
            rows.append(np.repeat(r, len(cc)))
            cols.append(np.tile(cc, len(r)))
            vals.append(lP.ravel())
    shape = (fine_fes.vsize, coarse_fes.vsize)
    if not rows:
        return sp.csr_matrix(shape)
    P = sp.csr_matrix((np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))), shape=shape)
    P.eliminate_zeros()
    logger.debug(f"refinement_matrix: {shape}, nnz={P.nnz}")
    return P


class DerefinementOperator(Operator):
    def __init__(self, fine_fes, coarse_fes, mass_integ):
        super().__init__((coarse_fes.vsize, fine_fes.vsize), TransferKind.DEREFINEMENT)
        cf_tr = _check_nested(fine_fes, coarse_fes)
        self.fine_fes = fine_fes
        self.coarse_fes = coarse_fes
        self.localR: Dict[str, np.ndarray] = {}
        if coarse_fes.ne == 0:
            self.ho2lor = build_ho2lor(0, 0, cf_tr)
            return

        f_fe = fine_fes.fe(0)
        for geom in fine_fes.mesh.geometries():
            pmats = cf_tr.point_matrices[geom]
            lP = local_refinement_matrices(fine_fes, coarse_fes, geom)
            lM = [mass_integ.assemble_element_matrix(f_fe, ElementTransformation(geom, pm))
                  for pm in pmats]
            M_c = sum(lP[k].T @ lM[k] @ lP[k] for k in range(len(pmats)))
            fac = cho_factor(M_c)
            self.localR[geom] = np.stack([cho_solve(fac, lP[k].T @ lM[k]) for k in range(len(pmats))])

        self.ho2lor = build_ho2lor(coarse_fes.ne, fine_fes.ne, cf_tr)
        self._matrices = cf_tr.matrices
        self.owned = _first_owner_mask(coarse_fes)
        logger.debug(f"DerefinementOperator: {coarse_fes.ne} coarse elements, "
                     f"geometries={list(self.localR)}")

    def _patch(self, iho):
        lR = self.localR[self.coarse_fes.mesh.element_base_geometry(iho)]
        for ilor in self.ho2lor.row(iho):
            yield ilor, lR[self._matrices[ilor]]

    def mult(self, x):
        x = np.asarray(x, dtype=float)
        y = np.zeros(self.shape[0])
        f, c = self.fine_fes, self.coarse_fes
        for iho in range(c.ne):
            own = self.owned[iho]
            c_dofs = c.element_dofs(iho)[own]
            for vd in range(c.vdim):
                loc = sum(R_k @ x[f.dofs_to_vdofs(f.element_dofs(ilor), vd)]
                          for ilor, R_k in self._patch(iho))
                y[c.dofs_to_vdofs(c_dofs, vd)] = loc[own]
        return y

    def mult_transpose(self, x):
        x = np.asarray(x, dtype=float)
        y = np.zeros(self.shape[1])
        f, c = self.fine_fes, self.coarse_fes
        for iho in range(c.ne):
            own = self.owned[iho]
            c_dofs = c.element_dofs(iho)
            for vd in range(c.vdim):
                sub = np.where(own, x[c.dofs_to_vdofs(c_dofs, vd)], 0.0)
                for ilor, R_k in self._patch(iho):
                    np.add.at(y, f.dofs_to_vdofs(f.element_dofs(ilor), vd), R_k.T @ sub)
        return y
