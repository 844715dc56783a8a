"""pyfetransfer.transfer.grid_transfer
Transfer objects between a domain space and a range space.

Operators are built on first request and cached for the lifetime of the
transfer object. Nothing is rebuilt if the spaces change; make a new
transfer object instead.
"""
import logging
from typing import Optional

import scipy.sparse as sp
from scipy.sparse.linalg import aslinearoperator

from pyfetransfer.config import OperatorType, TransferOptions
from pyfetransfer.errors import ConfigurationError, UnsupportedOperationError
from pyfetransfer.fem.integrators import default_mass_integrator
from pyfetransfer.transfer.interpolation import DerefinementOperator, refinement_matrix
from pyfetransfer.transfer.l2_base import L2Prolongation
from pyfetransfer.transfer.l2_global import L2ProjectionH1Space
from pyfetransfer.transfer.l2_local import L2ProjectionL2Space
from pyfetransfer.transfer.prefinement import TransferOperator
from pyfetransfer.transfer.true_transfer import TrueTransferOperator

logger = logging.getLogger(__name__)


class GridTransfer:
    def __init__(self, dom_fes, ran_fes, options: Optional[TransferOptions] = None):
        par_dom = getattr(dom_fes, "parallel", False)
        par_ran = getattr(ran_fes, "parallel", False)
        if par_dom != par_ran:
            raise ConfigurationError("the domain and range FE spaces must both be "
                                     "either serial or parallel")
        self.dom_fes = dom_fes
        self.ran_fes = ran_fes
        self.parallel = par_dom
        self.options = options or TransferOptions()
        self.oper_type = self.options.oper_type
        self._fw = None
        self._bw = None
        self._fw_t = None
        self._bw_t = None

    def set_operator_type(self, oper_type: OperatorType):
        self.oper_type = OperatorType(oper_type)
        # operators built under the old type no longer apply
        self._fw = self._bw = self._fw_t = self._bw_t = None

    def forward_operator(self):
        raise NotImplementedError

    def backward_operator(self):
        raise NotImplementedError

    def supports_backward_operator(self) -> bool:
        return True

    def true_forward_operator(self):
        if self._fw_t is None:
            self._fw_t = self.make_true_operator(self.dom_fes, self.ran_fes, self.forward_operator())
        return self._fw_t

    def true_backward_operator(self):
        if self._bw_t is None:
            self._bw_t = self.make_true_operator(self.ran_fes, self.dom_fes, self.backward_operator())
        return self._bw_t

    def make_true_operator(self, fes_in, fes_out, oper):
        """``R_out · oper · P_in``; absent factors are skipped."""
        in_P = fes_in.prolongation_matrix()
        out_R = fes_out.restriction_matrix()
        if self.oper_type == OperatorType.SPARSE_MATRIX:
            if not sp.issparse(oper):
                raise ConfigurationError("Operator is not a sparse matrix")
            mat = sp.csr_matrix(oper)
            if out_R is not None:
                mat = out_R @ mat
            if in_P is not None:
                mat = mat @ in_P
            return sp.csr_matrix(mat)
        if self.oper_type == OperatorType.ANY_TYPE:
            op = aslinearoperator(oper)
            if out_R is not None:
                op = aslinearoperator(out_R) @ op
            if in_P is not None:
                op = op @ aslinearoperator(in_P)
            return op
        raise ConfigurationError(f"Operator type is not supported: {self.oper_type}")


class InterpolationGridTransfer(GridTransfer):
    """Coarse (domain) → fine (range) interpolation for nested spaces."""

    def __init__(self, coarse_fes, fine_fes, options: Optional[TransferOptions] = None):
        super().__init__(coarse_fes, fine_fes, options)
        self.mass_integ = None

    def set_mass_integrator(self, mass_integ):
        self.mass_integ = mass_integ

    def forward_operator(self):
        if self._fw is None:
            if self.oper_type == OperatorType.ANY_TYPE:
                self._fw = self.ran_fes.get_transfer_operator(self.dom_fes)
            elif self.oper_type == OperatorType.SPARSE_MATRIX:
                self._fw = refinement_matrix(self.ran_fes, self.dom_fes)
            else:
                raise ConfigurationError(f"Operator type is not supported: {self.oper_type}")
        return self._fw

    def backward_operator(self):
        if self._bw is None:
            if self.mass_integ is None and self.ran_fes.ne > 0:
                self.mass_integ = default_mass_integrator(self.ran_fes.fe(0))
                logger.debug(f"InterpolationGridTransfer: default {type(self.mass_integ).__name__}")
            if self.oper_type != OperatorType.ANY_TYPE:
                raise ConfigurationError(f"Operator type is not supported: {self.oper_type}")
            self._bw = DerefinementOperator(self.ran_fes, self.dom_fes, self.mass_integ)
        return self._bw


class L2ProjectionGridTransfer(GridTransfer):
    """High-order (domain) → low-order refined (range) L2 projection."""

    def __init__(self, dom_fes, ran_fes, force_l2_space: bool = False,
                 options: Optional[TransferOptions] = None):
        options = options or TransferOptions()
        if force_l2_space:
            options = options.replace(force_l2_space=True)
        super().__init__(dom_fes, ran_fes, options)
        self.force_l2_space = self.options.force_l2_space

    def _build_forward(self):
        if not self.force_l2_space and self.dom_fes.continuity == "cg":
            logger.debug("L2ProjectionGridTransfer: global (continuous) projection")
            return L2ProjectionH1Space(self.dom_fes, self.ran_fes,
                                       preconditioner=self.options.preconditioner,
                                       solver_options=self.options.solver)
        logger.debug("L2ProjectionGridTransfer: local (broken) projection")
        return L2ProjectionL2Space(self.dom_fes, self.ran_fes)

    def forward_operator(self):
        if self._fw is None:
            self._fw = self._build_forward()
        return self._fw

    def backward_operator(self):
        if self._bw is None:
            self._bw = L2Prolongation(self.forward_operator())
        return self._bw

    def supports_backward_operator(self) -> bool:
        return self.ran_fes.true_vsize >= self.dom_fes.true_vsize


class PRefinementGridTransfer(GridTransfer):
    """Low-order (domain) → high-order (range) transfer on one mesh.

    ``options.kernel`` selects the local kernel, see :class:`TransferOperator`.
    """

    def _check_type(self):
        if self.oper_type != OperatorType.ANY_TYPE:
            raise ConfigurationError(f"Operator type is not supported: {self.oper_type}")

    def forward_operator(self):
        if self._fw is None:
            self._check_type()
            self._fw = TransferOperator(self.dom_fes, self.ran_fes, self.options.kernel)
            logger.debug(f"PRefinementGridTransfer: {self._fw.kind}")
        return self._fw

    def true_forward_operator(self):
        if self._fw_t is None:
            self._check_type()
            self._fw_t = TrueTransferOperator(self.dom_fes, self.ran_fes, self.options.kernel)
        return self._fw_t

    def backward_operator(self):
        raise UnsupportedOperationError("p-refinement transfer has no backward operator")

    def true_backward_operator(self):
        return self.backward_operator()

    def supports_backward_operator(self) -> bool:
        return False
