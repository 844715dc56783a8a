import logging

import numpy as np
import pytest
import scipy.sparse as sp
from scipy.sparse.linalg import spsolve

from pyfetransfer.config import SolverOptions, TransferOptions
from pyfetransfer.solvers.cg import CGSolver
from pyfetransfer.solvers.preconditioners import amg, jacobi, make_preconditioner


def laplacian_1d(n):
    main = 2.0 * np.ones(n) + 1e-2
    off = -np.ones(n - 1)
    return sp.diags([off, main, off], [-1, 0, 1], format="csr")


class TestCGSolver:
    def test_converges(self, rng):
        A = laplacian_1d(40)
        b = rng.standard_normal(40)
        solver = CGSolver(A, jacobi(A))
        x = solver.mult(b)
        assert solver.converged
        assert 0 < solver.num_iterations <= 1000
        assert np.allclose(x, spsolve(A, b), atol=1e-9)
        assert solver.final_norm < 1e-10

    def test_repeated_right_hand_sides(self, rng):
        A = laplacian_1d(20)
        solver = CGSolver(A)
        for _ in range(3):
            b = rng.standard_normal(20)
            assert np.allclose(solver(b), spsolve(A, b), atol=1e-9)

    def test_non_convergence_warns(self, rng, caplog):
        A = laplacian_1d(50)
        solver = CGSolver(A, options=SolverOptions(max_iter=2))
        with caplog.at_level(logging.WARNING, logger="pyfetransfer.solvers.cg"):
            x = solver.mult(rng.standard_normal(50))
        assert x.shape == (50,)
        assert not solver.converged
        assert solver.num_iterations == 2
        assert "did not converge" in caplog.text

    def test_setters(self):
        solver = CGSolver(laplacian_1d(5))
        solver.set_rel_tol(1e-4)
        solver.set_abs_tol(0.0)
        solver.set_max_iter(7)
        assert (solver.rel_tol, solver.abs_tol, solver.max_iter) == (1e-4, 0.0, 7)
        assert solver.shape == (5, 5)


def test_jacobi_zero_diagonal():
    A = sp.diags([[2.0, 0.0, 4.0]], [0], format="csr")
    M = jacobi(A)
    assert np.allclose(M @ np.ones(3), [0.5, 1.0, 0.25])


def test_amg_preconditioned_solve(rng):
    A = laplacian_1d(200)
    b = rng.standard_normal(200)
    solver = CGSolver(A, amg(A))
    x = solver.mult(b)
    assert solver.converged
    assert np.allclose(A @ x, b, atol=1e-8)


def test_preconditioner_selection():
    A = laplacian_1d(10)
    assert make_preconditioner(A, "auto").shape == (10, 10)
    assert make_preconditioner(A, "auto", parallel=True).shape == (10, 10)
    with pytest.raises(ValueError):
        make_preconditioner(A, "ilu")


def test_transfer_options():
    opts = TransferOptions()
    assert opts.solver.rel_tol == 1e-13 and opts.solver.max_iter == 1000
    assert opts.replace(kernel="tensor").kernel == "tensor"
    with pytest.raises(ValueError):
        TransferOptions(kernel="simd")
    with pytest.raises(ValueError):
        TransferOptions(preconditioner="ilu")
