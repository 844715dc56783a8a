"""pyfetransfer.transfer.true_transfer"""
import numpy as np

from pyfetransfer.errors import ConfigurationError
from pyfetransfer.transfer.operator import Operator, TransferKind
from pyfetransfer.transfer.prefinement import TransferOperator


class TrueTransferOperator(Operator):
    """
    :class:`TransferOperator` acting on true DOFs: ``R_h · A · P_l``.

    ``P`` (local ← true) comes from the low space and ``R`` (true ← local)
    from the high space; an absent factor is skipped. A ``P`` without an
    ``R`` is rejected.
    """

    def __init__(self, lfes, hfes, kernel: str = "auto"):
        super().__init__((hfes.true_vsize, lfes.true_vsize), TransferKind.TRUE_DOF)
        self.local_transfer_operator = TransferOperator(lfes, hfes, kernel)
        self.P = lfes.prolongation_matrix()
        self.R = hfes.restriction_matrix()
        if self.P is not None and self.R is None:
            raise ConfigurationError("Both P and R have to be not None")

    def mult(self, x):
        x = np.asarray(x, dtype=float)
        if self.P is not None:
            x = self.P @ x
        y = self.local_transfer_operator.mult(x)
        return self.R @ y if self.R is not None else y

    def mult_transpose(self, x):
        x = np.asarray(x, dtype=float)
        if self.R is not None:
            x = self.R.T @ x
        y = self.local_transfer_operator.mult_transpose(x)
        return self.P.T @ y if self.P is not None else y
