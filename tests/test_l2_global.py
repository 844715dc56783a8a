import logging

import numpy as np
import pytest

from pyfetransfer.assembly.global_matrix import mass_matrix
from pyfetransfer.config import SolverOptions
from pyfetransfer.core.fespace import FESpace
from pyfetransfer.transfer import L2ProjectionH1Space, TransferKind
from pyfetransfer.utils.meshgen import structured_interval


def test_lumped_mass_inverse_1d(interval_meshes):
    coarse, fine = interval_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 1), FESpace(fine, 1))
    assert op.kind is TransferKind.GLOBAL_PROJECTION
    x = op.fes_lor.dof_coords()[:, 0]
    h = 0.25
    expected = np.where(np.isclose(x, 0.0) | np.isclose(x, 1.0), 1 / (h / 2), 1 / h)
    assert np.allclose(op.lumped_mass_inverse, expected)


def test_lumped_mass_matches_row_sums(quad_meshes):
    coarse, fine = quad_meshes
    lor = FESpace(fine, 1)
    op = L2ProjectionH1Space(FESpace(coarse, 2), lor)
    ML = np.asarray(mass_matrix(lor).sum(axis=1)).ravel()
    assert np.allclose(op.lumped_mass_inverse, 1.0 / ML)


def test_round_trip_1d(interval_meshes):
    coarse, fine = interval_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 1), FESpace(fine, 1))
    x = op.fes_ho.interpolate(lambda s: 1.0 + 2.0 * s)
    y = op.mult(x)
    assert y.shape == (5,)
    assert np.allclose(op.prolongate(y), x, atol=1e-10)
    assert op.solver.converged
    assert 0 < op.solver.num_iterations < 1000


def test_constants_are_reproduced(quad_meshes):
    coarse, fine = quad_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 2), FESpace(fine, 1))
    assert np.allclose(op.mult(np.ones(op.shape[1])), 1.0)
    # 1ᵗ Rᵗ 1 = (R 1)ᵗ 1
    assert np.isclose(op.mult_transpose(np.ones(op.shape[0])).sum(), op.shape[0])


def test_prolongate_is_left_inverse(quad_meshes, rng):
    coarse, fine = quad_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 2), FESpace(fine, 1))
    x = rng.standard_normal(op.shape[1])
    assert np.allclose(op.prolongate(op.mult(x)), x, atol=1e-8)


def test_transposes_are_adjoint(quad_meshes, rng):
    coarse, fine = quad_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 2), FESpace(fine, 1))
    x, y = rng.standard_normal(op.shape[1]), rng.standard_normal(op.shape[0])
    assert np.isclose(op.mult(x) @ y, x @ op.mult_transpose(y))
    assert np.isclose(op.prolongate(y) @ x, y @ op.prolongate_transpose(x), rtol=1e-8)


def test_sparsity_pattern_covers_mixed_mass(interval_meshes):
    coarse, fine = interval_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 1), FESpace(fine, 1))
    pattern = op.sparsity_pattern()
    assert pattern.shape == (5, 3)
    assert not np.any((op.M_LH.toarray() != 0.0) & ~pattern.toarray())
    # the fine DOF at the coarse vertex couples to both coarse elements
    mid = np.flatnonzero(np.isclose(op.fes_lor.dof_coords()[:, 0], 0.5))[0]
    assert pattern[mid].nnz == 3
    assert op.R.nnz == pattern.nnz


def test_periodic_spaces():
    coarse = structured_interval(1.0, 2)
    fine = coarse.refine_uniform(2)
    ho = FESpace(coarse, 1, periodic=[(0, 1.0)])
    lor = FESpace(fine, 1, periodic=[(0, 1.0)])
    op = L2ProjectionH1Space(ho, lor)
    assert op.R.shape == (lor.n_true_dofs, ho.n_true_dofs)
    # every periodic LOR node carries the full nodal weight h
    assert np.allclose(op.lumped_mass_inverse, 4.0)
    assert np.allclose(op.mult(np.ones(ho.vsize)), 1.0)
    x = ho.prolongation_matrix() @ np.array([1.0, -2.0])
    assert np.allclose(op.prolongate(op.mult(x)), x, atol=1e-10)


def test_vector_space_projects_componentwise(quad_meshes):
    coarse, fine = quad_meshes
    vec = L2ProjectionH1Space(FESpace(coarse, 2, vdim=2), FESpace(fine, 1, vdim=2))
    sca = L2ProjectionH1Space(FESpace(coarse, 2), FESpace(fine, 1))
    x = vec.fes_ho.interpolate(lambda a, b: (a * b, 1.0 - a * a))
    y = vec.mult(x)
    n_lor, n_ho = sca.fes_lor.ndofs, sca.fes_ho.ndofs
    assert np.allclose(y[:n_lor], sca.mult(x[:n_ho]))
    assert np.allclose(y[n_lor:], sca.mult(x[n_ho:]))
    assert np.allclose(vec.prolongate(y), x, atol=1e-8)


def test_amg_preconditioner(quad_meshes, rng):
    coarse, fine = quad_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 2), FESpace(fine, 1), preconditioner="amg")
    x = rng.standard_normal(op.shape[1])
    assert np.allclose(op.prolongate(op.mult(x)), x, atol=1e-8)


def test_tolerance_setters(interval_meshes):
    coarse, fine = interval_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 1), FESpace(fine, 1))
    op.set_rel_tol(1e-6)
    op.set_abs_tol(1e-9)
    assert op.solver.rel_tol == 1e-6 and op.solver.abs_tol == 1e-9


def test_non_convergence_is_reported(quad_meshes, rng, caplog):
    coarse, fine = quad_meshes
    op = L2ProjectionH1Space(FESpace(coarse, 2), FESpace(fine, 1),
                             solver_options=SolverOptions(max_iter=1))
    with caplog.at_level(logging.WARNING, logger="pyfetransfer.solvers.cg"):
        y = op.prolongate(rng.standard_normal(op.shape[0]))
    assert y.shape == (op.shape[1],)
    assert not op.solver.converged
    assert op.solver.num_iterations == 1
    assert "did not converge" in caplog.text


def test_empty_mesh():
    coarse = structured_interval(1.0, 0)
    fine = coarse.refine_uniform(2)
    op = L2ProjectionH1Space(FESpace(coarse, 1), FESpace(fine, 1))
    assert op.shape == (0, 0)
    assert op.mult(np.zeros(0)).size == 0
    assert op.prolongate_transpose(np.zeros(0)).size == 0
