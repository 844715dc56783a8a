"""pyfetransfer.transfer.prefinement
Order change (p-refinement) between two spaces on the same mesh.

* :class:`PRefinementTransferOperator`: element loop with dense local
  matrices.
* :class:`TensorProductPRefinementTransferOperator`: sum factorisation with
  a 1-D matrix for tensor-product bases.
* :class:`TransferOperator`: picks one of the above (or the space's own
  transfer for identical collections) once, at construction.
"""
import logging
from typing import Optional

import numpy as np

from pyfetransfer.errors import ConfigurationError
from pyfetransfer.transfer import kernels
from pyfetransfer.transfer.operator import Operator, TransferKind

logger = logging.getLogger(__name__)


def _check_pair(lfes, hfes):
    if lfes.vdim != hfes.vdim:
        raise ConfigurationError(f"vdim mismatch: low space {lfes.vdim}, high space {hfes.vdim}.")
    if lfes.ne != hfes.ne:
        raise ConfigurationError("p-refinement needs both spaces on the same mesh topology.")


class PRefinementTransferOperator(Operator):
    def __init__(self, lfes, hfes):
        super().__init__((hfes.vsize, lfes.vsize), TransferKind.P_REFINEMENT_GENERIC)
        _check_pair(lfes, hfes)
        self.lfes = lfes
        self.hfes = hfes
        self.isvar_order = lfes.is_variable_order() or hfes.is_variable_order()

    def _local_matrices(self):
        """Yield (eid, loc_prol); recomputed on geometry change or variable order."""
        mesh = self.hfes.mesh
        cached_geom = None
        loc_prol = None
        for i in range(mesh.n_elements):
            geom = mesh.element_base_geometry(i)
            if geom != cached_geom or self.isvar_order:
                loc_prol = self.hfes.fe(i).transfer_matrix(self.lfes.fe(i))
                cached_geom = geom
            yield i, loc_prol

    def mult(self, x):
        x = np.asarray(x, dtype=float)
        y = np.zeros(self.shape[0])
        lfes, hfes = self.lfes, self.hfes
        # the first element touching a high-order DOF sets it
        written = np.zeros(hfes.ndofs, dtype=bool)
        for i, loc_prol in self._local_matrices():
            l_dofs = lfes.element_dofs(i)
            h_dofs = hfes.element_dofs(i)
            fresh = ~written[h_dofs]
            for vd in range(lfes.vdim):
                vals = loc_prol[fresh] @ x[lfes.dofs_to_vdofs(l_dofs, vd)]
                y[hfes.dofs_to_vdofs(h_dofs[fresh], vd)] = vals
            written[h_dofs] = True
        return y

    def mult_transpose(self, x):
        x = np.asarray(x, dtype=float)
        y = np.zeros(self.shape[1])
        lfes, hfes = self.lfes, self.hfes
        processed = np.zeros(hfes.ndofs, dtype=bool)
        for i, loc_prol in self._local_matrices():
            l_dofs = lfes.element_dofs(i)
            h_dofs = hfes.element_dofs(i)
            seen = processed[h_dofs]
            for vd in range(lfes.vdim):
                sub_x = x[hfes.dofs_to_vdofs(h_dofs, vd)]
                sub_x[seen] = 0.0
                np.add.at(y, lfes.dofs_to_vdofs(l_dofs, vd), loc_prol.T @ sub_x)
            processed[h_dofs] = True
        return y


class TensorProductPRefinementTransferOperator(Operator):
    def __init__(self, lfes, hfes):
        super().__init__((hfes.vsize, lfes.vsize), TransferKind.P_REFINEMENT_TENSOR)
        _check_pair(lfes, hfes)
        self.lfes = lfes
        self.hfes = hfes
        self.dim = lfes.mesh.dim
        self.NE = lfes.ne
        if self.NE == 0:
            return

        l_fe = lfes.fe(0)
        h_fe = hfes.fe(0)
        if not l_fe.is_tensor:
            raise ConfigurationError("Low order FE space must be tensor product space")
        if not h_fe.is_tensor:
            raise ConfigurationError("High order FE space must be tensor product space")
        if self.dim not in kernels.PROLONGATION:
            raise ConfigurationError(f"No sum-factorisation kernel for dim = {self.dim}")

        # h_fe nodes are lexicographic already, so its 1-D nodes are the quadrature points
        self.B = np.ascontiguousarray(l_fe.basis_1d(h_fe.nodes_1d))
        self.Q1D, self.D1D = self.B.shape

        self.elem_restrict_lex_l = lfes.element_restriction()
        if self.elem_restrict_lex_l is None:
            raise ConfigurationError("Low order ElementRestriction not available")
        self.elem_restrict_lex_h = hfes.element_restriction()
        if self.elem_restrict_lex_h is None:
            raise ConfigurationError("High order ElementRestriction not available")

        self._shape_l = (self.NE,) + (self.D1D,) * self.dim
        self._shape_h = (self.NE,) + (self.Q1D,) * self.dim
        self.mask = np.ascontiguousarray(self.elem_restrict_lex_h.boolean_mask().reshape(self._shape_h))
        self._prolong = kernels.PROLONGATION[self.dim]
        self._restrict = kernels.RESTRICTION[self.dim]
        logger.debug(f"tensor p-transfer: dim={self.dim}, D1D={self.D1D}, Q1D={self.Q1D}, NE={self.NE}")

    def mult(self, x):
        if self.NE == 0:
            return np.zeros(self.shape[0])
        localL = np.ascontiguousarray(self.elem_restrict_lex_l.mult(x).reshape(self._shape_l), dtype=float)
        localH = np.empty(self._shape_h)
        self._prolong(localL, self.B, self.mask, localH)
        return self.elem_restrict_lex_h.mult_transpose(localH.reshape(self.NE, -1))

    def mult_transpose(self, x):
        if self.NE == 0:
            return np.zeros(self.shape[1])
        localH = np.ascontiguousarray(self.elem_restrict_lex_h.mult(x).reshape(self._shape_h), dtype=float)
        localL = np.empty(self._shape_l)
        self._restrict(localH, self.B, self.mask, localL)
        return self.elem_restrict_lex_l.mult_transpose(localL.reshape(self.NE, -1))


def tensor_path_blocker(lfes, hfes) -> Optional[str]:
    """Why the sum-factorised path cannot be used, or None if it can."""
    if lfes.ne == 0 or hfes.ne == 0:
        return "empty mesh"
    if lfes.vdim != 1 or hfes.vdim != 1:
        return f"vector space (vdim={lfes.vdim}/{hfes.vdim})"
    if lfes.is_variable_order() or hfes.is_variable_order():
        return "variable order"
    if not (lfes.fe(0).is_tensor and hfes.fe(0).is_tensor):
        return "basis is not tensor-product"
    if hfes.continuity not in ("cg", "dg"):
        return f"continuity '{hfes.continuity}'"
    if lfes.element_restriction() is None or hfes.element_restriction() is None:
        return "element restriction not available"
    return None


class TransferOperator(Operator):
    """
    Local-DOF transfer from ``lfes`` to ``hfes``.

    ``kernel='auto'`` prefers the tensor path and falls back to the generic
    one; ``'tensor'`` makes an unusable tensor path an error; ``'generic'``
    never tries it.
    """

    def __init__(self, lfes, hfes, kernel: str = "auto"):
        super().__init__((hfes.vsize, lfes.vsize))
        if kernel not in ("auto", "generic", "tensor"):
            raise ValueError(f"Unknown kernel selection '{kernel}'.")
        isvar_order = lfes.is_variable_order() or hfes.is_variable_order()
        if lfes.collection == hfes.collection and not isvar_order:
            self.opr = hfes.get_transfer_operator(lfes)
        else:
            reason = tensor_path_blocker(lfes, hfes) if kernel != "generic" else "generic kernel requested"
            if reason is None:
                self.opr = TensorProductPRefinementTransferOperator(lfes, hfes)
            elif kernel == "tensor":
                raise ConfigurationError(f"Tensor-product transfer not possible: {reason}.")
            else:
                if kernel == "auto":
                    logger.info(f"TransferOperator: using generic p-transfer ({reason})")
                self.opr = PRefinementTransferOperator(lfes, hfes)
        self.kind = self.opr.kind

    def mult(self, x):
        return self.opr.mult(x)

    def mult_transpose(self, x):
        return self.opr.mult_transpose(x)
