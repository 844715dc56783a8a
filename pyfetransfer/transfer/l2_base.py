"""pyfetransfer.transfer.l2_base
Shared pieces of the L2 projection engines.
"""
import numpy as np

from pyfetransfer.errors import ConfigurationError
from pyfetransfer.fem.transform import ElementTransformation
from pyfetransfer.transfer.operator import Operator, TransferKind
from pyfetransfer.transfer.patch import build_ho2lor, PatchMap


class L2Projection(Operator):
    """
    Projection from a coarse high-order space (``fes_ho``) onto the space on
    its refined mesh (``fes_lor``). ``mult`` maps HO → LOR, ``prolongate``
    maps back.
    """

    def __init__(self, fes_ho, fes_lor, kind: TransferKind):
        super().__init__((fes_lor.vsize, fes_ho.vsize), kind)
        if fes_ho.vdim != fes_lor.vdim:
            raise ConfigurationError(f"vdim mismatch: HO space has {fes_ho.vdim}, "
                                     f"LOR space has {fes_lor.vdim}.")
        self.fes_ho = fes_ho
        self.fes_lor = fes_lor
        self.ho2lor: PatchMap = None
        self._cf_tr = None

    @property
    def vdim(self) -> int:
        return self.fes_ho.vdim

    def build_ho2lor(self) -> PatchMap:
        cf_tr = self.fes_lor.mesh.refinement_transforms
        if cf_tr is None:
            raise ConfigurationError("The LOR mesh carries no refinement transforms; "
                                     "build it with Mesh.refine_uniform().")
        self._cf_tr = cf_tr
        self.ho2lor = build_ho2lor(self.fes_ho.ne, self.fes_lor.ne, cf_tr)
        return self.ho2lor

    def nref_max(self) -> int:
        pm = self._cf_tr.point_matrices
        return max((pm[g].shape[0] for g in self.fes_ho.mesh.geometries()), default=0)

    def embedding_transformation(self, geom: str, ilor: int) -> ElementTransformation:
        """Fine reference element → coarse reference element for ``ilor``."""
        pmats = self._cf_tr.point_matrices[geom]
        return ElementTransformation(geom, pmats[self._cf_tr.matrices[ilor]])

    def prolongate(self, x):
        raise NotImplementedError

    def prolongate_transpose(self, x):
        raise NotImplementedError


class L2Prolongation(Operator):
    """Backward direction of an :class:`L2Projection`: LOR → HO."""

    def __init__(self, l2proj: L2Projection):
        super().__init__((l2proj.shape[1], l2proj.shape[0]), TransferKind.L2_PROLONGATION)
        self.l2proj = l2proj

    def mult(self, x):
        return self.l2proj.prolongate(x)

    def mult_transpose(self, x):
        return self.l2proj.prolongate_transpose(x)


def element_block(fes, eid: int, x: np.ndarray) -> np.ndarray:
    """Element values as (ndof, vdim), components in columns."""
    vd = fes.element_vdofs(eid)
    return np.asarray(x)[vd].reshape(fes.vdim, -1).T
