"""pyfetransfer.transfer.operator
Common base of every transfer operator.

Each operator is a :class:`scipy.sparse.linalg.LinearOperator` with
``mult``/``mult_transpose`` aliases and a ``kind`` tag fixed when it is built.
Variant selection happens in constructors; the apply paths never re-inspect
the spaces.
"""
from enum import Enum

import numpy as np
from scipy.sparse.linalg import LinearOperator

from pyfetransfer.errors import UnsupportedOperationError


class TransferKind(Enum):
    IDENTITY = "identity"
    INTERPOLATION = "interpolation"
    REFINEMENT = "refinement"
    DEREFINEMENT = "derefinement"
    LOCAL_PROJECTION = "local_projection"
    L2_PROLONGATION = "l2_prolongation"
    GLOBAL_PROJECTION = "global_projection"
    P_REFINEMENT_GENERIC = "p_refinement_generic"
    P_REFINEMENT_TENSOR = "p_refinement_tensor"
    TRUE_DOF = "true_dof"


class Operator(LinearOperator):
    kind: TransferKind = None

    def __init__(self, shape, kind: TransferKind = None):
        super().__init__(dtype=np.float64, shape=(int(shape[0]), int(shape[1])))
        if kind is not None:
            self.kind = kind

    def mult(self, x):
        raise NotImplementedError

    def mult_transpose(self, x):
        raise UnsupportedOperationError(f"{type(self).__name__} has no transpose action.")

    def _matvec(self, x):
        return self.mult(np.ravel(x))

    def _rmatvec(self, x):
        return self.mult_transpose(np.ravel(x))

    def __repr__(self):
        return f"<{type(self).__name__} kind={self.kind.value if self.kind else None} shape={self.shape}>"


class IdentityOperator(Operator):
    def __init__(self, n: int):
        super().__init__((n, n), TransferKind.IDENTITY)

    def mult(self, x):
        return np.array(x, dtype=float, copy=True)

    def mult_transpose(self, x):
        return np.array(x, dtype=float, copy=True)
