"""pyfetransfer.solvers.preconditioners
Black-box preconditioners handed to :class:`~pyfetransfer.solvers.cg.CGSolver`.
"""
import logging

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import LinearOperator
import pyamg

logger = logging.getLogger(__name__)


def jacobi(A) -> LinearOperator:
    """Diagonal smoother D⁻¹; zero diagonal entries act as identity."""
    d = np.asarray(sp.csr_matrix(A).diagonal(), dtype=float)
    inv = np.ones_like(d)
    nz = d != 0.0
    inv[nz] = 1.0 / d[nz]
    return LinearOperator(A.shape, matvec=lambda x: inv * np.ravel(x), dtype=float)


def amg(A) -> LinearOperator:
    """Smoothed-aggregation AMG V-cycle."""
    ml = pyamg.smoothed_aggregation_solver(sp.csr_matrix(A), symmetry="symmetric")
    logger.debug(f"AMG hierarchy: {len(ml.levels)} levels")
    return ml.aspreconditioner(cycle="V")


def make_preconditioner(A, kind: str = "auto", parallel: bool = False) -> LinearOperator:
    """'jacobi' for serial spaces, 'amg' for parallel-flagged ones, unless asked."""
    if kind == "auto":
        kind = "amg" if parallel else "jacobi"
    if kind == "jacobi":
        return jacobi(A)
    if kind == "amg":
        return amg(A)
    raise ValueError(f"Unknown preconditioner '{kind}'.")
