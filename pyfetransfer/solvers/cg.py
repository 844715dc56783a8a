"""pyfetransfer.solvers.cg
Preconditioned conjugate gradients on top of :func:`scipy.sparse.linalg.cg`.

Non-convergence is not an error: the solver keeps the last iterate and
records ``converged``, ``num_iterations`` and ``final_norm`` so callers can
inspect the outcome.
"""
import logging

import numpy as np
from scipy.sparse.linalg import aslinearoperator, cg

from pyfetransfer.config import SolverOptions

logger = logging.getLogger(__name__)


class CGSolver:
    def __init__(self, A, preconditioner=None, options: SolverOptions = None):
        options = options or SolverOptions()
        self.A = A
        self.M = preconditioner
        self.rel_tol = options.rel_tol
        self.abs_tol = options.abs_tol
        self.max_iter = options.max_iter
        self.print_level = options.print_level
        self.converged = True
        self.num_iterations = 0
        self.final_norm = 0.0

    @property
    def shape(self):
        return self.A.shape

    def set_rel_tol(self, tol: float):
        self.rel_tol = float(tol)

    def set_abs_tol(self, tol: float):
        self.abs_tol = float(tol)

    def set_max_iter(self, n: int):
        self.max_iter = int(n)

    def set_preconditioner(self, M):
        self.M = M

    def mult(self, b, x0=None) -> np.ndarray:
        """Solve A x = b; safe to call repeatedly with different right-hand sides."""
        b = np.asarray(b, dtype=float)
        it = [0]

        def _count(_xk):
            it[0] += 1

        x, info = cg(self.A, b, x0=x0, rtol=self.rel_tol, atol=self.abs_tol,
                     maxiter=self.max_iter, M=self.M, callback=_count)
        self.num_iterations = it[0]
        self.final_norm = float(np.linalg.norm(b - aslinearoperator(self.A).matvec(x)))
        self.converged = info == 0
        if info < 0:
            raise ValueError(f"CG breakdown (info={info}).")
        if not self.converged:
            logger.warning(f"CG did not converge in {self.num_iterations} iterations "
                           f"(|r|={self.final_norm:.3e}, rtol={self.rel_tol}, atol={self.abs_tol})")
        elif self.print_level > 0:
            logger.info(f"CG converged in {self.num_iterations} iterations, |r|={self.final_norm:.3e}")
        return x

    __call__ = mult
