"""pyfetransfer.transfer.l2_local
Patch-local L2 projection for broken (discontinuous) LOR spaces.

Every coarse element owns a patch of fine elements. On each patch

    R = M_lor⁻¹ M_mixed                       (restriction / projection)
    P = (Rᵗ M_lor R)⁻¹ Rᵗ M_lor               (prolongation, if well-posed)

where ``M_lor`` is block-diagonal (one block per fine element). Blocks of all
patches live in one flat buffer indexed by ``offsets``.
"""
import logging

import numpy as np
from scipy.linalg import cho_factor, cho_solve

from pyfetransfer.errors import UnsupportedOperationError
from pyfetransfer.fem.integrators import MassIntegrator
from pyfetransfer.transfer.l2_base import L2Projection, element_block
from pyfetransfer.transfer.mixed_mass import elem_mixed_mass
from pyfetransfer.transfer.operator import TransferKind

logger = logging.getLogger(__name__)


class L2ProjectionL2Space(L2Projection):
    def __init__(self, fes_ho, fes_lor):
        super().__init__(fes_ho, fes_lor, TransferKind.LOCAL_PROJECTION)
        nel_ho = fes_ho.ne
        self.offsets = np.zeros(nel_ho + 1, dtype=np.int64)
        self.R = np.zeros(0)
        self.P = None
        if nel_ho == 0:
            return

        ho2lor = self.build_ho2lor()
        nref_max = self.nref_max()
        build_P = fes_lor.true_vsize >= fes_ho.true_vsize

        shapes = []
        for iho in range(nel_ho):
            nref = ho2lor.row_size(iho)
            ndof_ho = fes_ho.fe(iho).ndof
            ndof_lor = fes_lor.fe(ho2lor.row(iho)[0]).ndof
            self.offsets[iho + 1] = self.offsets[iho] + ndof_ho * ndof_lor * nref
            shapes.append((nref, ndof_lor, ndof_ho))
            build_P = build_P and nref * ndof_lor >= ndof_ho

        self.R = np.zeros(self.offsets[-1])
        if build_P:
            self.P = np.zeros(self.offsets[-1])
        else:
            logger.debug("L2ProjectionL2Space: patches are underdetermined, no prolongation")

        mi = MassIntegrator()
        mesh_ho = fes_ho.mesh
        for iho in range(nel_ho):
            lor_els = ho2lor.row(iho)
            nref, ndof_lor, ndof_ho = shapes[iho]
            geom = mesh_ho.element_base_geometry(iho)
            fe_ho = fes_ho.fe(iho)

            R_iho = self._block(self.R, iho, nref * ndof_lor, ndof_ho)
            RtMlor = np.zeros((ndof_ho, nref * ndof_lor))
            for iref, ilor in enumerate(lor_els):
                fe_lor = fes_lor.fe(ilor)
                el_tr = fes_lor.mesh.element_transformation(ilor)
                M_lor_el = mi.assemble_element_matrix(fe_lor, el_tr)
                ip_tr = self.embedding_transformation(geom, ilor)
                M_mixed_el = elem_mixed_mass(geom, fe_ho, fe_lor, el_tr, ip_tr)

                rows = slice(iref * ndof_lor, (iref + 1) * ndof_lor)
                R_iho[rows] = cho_solve(cho_factor(M_lor_el), M_mixed_el)
                RtMlor[:, rows] = R_iho[rows].T @ M_lor_el

            if self.P is not None:
                P_iho = self._block(self.P, iho, ndof_ho, nref * ndof_lor)
                P_iho[:] = cho_solve(cho_factor(RtMlor @ R_iho), RtMlor)

        logger.debug(f"L2ProjectionL2Space: {nel_ho} patches (nref_max={nref_max}), "
                     f"{self.offsets[-1]} block entries, P={'yes' if self.P is not None else 'no'}")

    # ------------------------------------------------------------------
    def _block(self, buf, iho, m, n):
        return buf[self.offsets[iho]:self.offsets[iho + 1]].reshape(m, n)

    def _patch_dims(self, iho):
        nref = self.ho2lor.row_size(iho)
        ndof_ho = self.fes_ho.fe(iho).ndof
        ndof_lor = self.fes_lor.fe(self.ho2lor.row(iho)[0]).ndof
        return nref, ndof_lor, ndof_ho

    def local_restriction(self, iho: int) -> np.ndarray:
        nref, ndof_lor, ndof_ho = self._patch_dims(iho)
        return self._block(self.R, iho, nref * ndof_lor, ndof_ho)

    def local_prolongation(self, iho: int) -> np.ndarray:
        self._require_P()
        nref, ndof_lor, ndof_ho = self._patch_dims(iho)
        return self._block(self.P, iho, ndof_ho, nref * ndof_lor)

    def _require_P(self):
        if self.P is None:
            raise UnsupportedOperationError("Prolongation not supported for these spaces.")

    def _gather_lor(self, iho, x):
        """Patch LOR values as (nref*ndof_lor, vdim)."""
        return np.vstack([element_block(self.fes_lor, ilor, x) for ilor in self.ho2lor.row(iho)])

    def _set_lor(self, iho, yel, y):
        fes = self.fes_lor
        for iref, ilor in enumerate(self.ho2lor.row(iho)):
            dofs = fes.element_dofs(ilor)
            nd = len(dofs)
            for vd in range(self.vdim):
                y[fes.dofs_to_vdofs(dofs, vd)] = yel[iref * nd:(iref + 1) * nd, vd]

    def _add_ho(self, iho, yel, y):
        np.add.at(y, self.fes_ho.element_vdofs(iho), yel.T.ravel())

    # ------------------------------------------------------------------
    def mult(self, x):
        y = np.zeros(self.shape[0])
        for iho in range(self.fes_ho.ne):
            xel = element_block(self.fes_ho, iho, x)
            self._set_lor(iho, self.local_restriction(iho) @ xel, y)
        return y

    def mult_transpose(self, x):
        y = np.zeros(self.shape[1])
        for iho in range(self.fes_ho.ne):
            self._add_ho(iho, self.local_restriction(iho).T @ self._gather_lor(iho, x), y)
        return y

    def prolongate(self, x):
        y = np.zeros(self.shape[1])
        if self.fes_ho.ne == 0:
            return y
        self._require_P()
        for iho in range(self.fes_ho.ne):
            self._add_ho(iho, self.local_prolongation(iho) @ self._gather_lor(iho, x), y)
        return y

    def prolongate_transpose(self, x):
        y = np.zeros(self.shape[0])
        if self.fes_ho.ne == 0:
            return y
        self._require_P()
        for iho in range(self.fes_ho.ne):
            xel = element_block(self.fes_ho, iho, x)
            self._set_lor(iho, self.local_prolongation(iho).T @ xel, y)
        return y
