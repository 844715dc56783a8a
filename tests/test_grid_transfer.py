import numpy as np
import pytest
import scipy.sparse as sp
from scipy.sparse.linalg import LinearOperator

from pyfetransfer.config import OperatorType, TransferOptions
from pyfetransfer.core.fespace import FESpace
from pyfetransfer.errors import ConfigurationError, UnsupportedOperationError
from pyfetransfer.transfer import (InterpolationGridTransfer, L2ProjectionGridTransfer,
                                   L2ProjectionH1Space, L2ProjectionL2Space,
                                   PRefinementGridTransfer, RefinementOperator, TransferKind)
from pyfetransfer.utils.meshgen import structured_interval


def test_space_selection(quad_meshes):
    coarse, fine = quad_meshes
    ho, lor = FESpace(coarse, 2), FESpace(fine, 1)
    assert isinstance(L2ProjectionGridTransfer(ho, lor).forward_operator(), L2ProjectionH1Space)
    forced = L2ProjectionGridTransfer(ho, FESpace(fine, 1, "dg"), force_l2_space=True)
    assert forced.options.force_l2_space
    assert isinstance(forced.forward_operator(), L2ProjectionL2Space)
    broken = L2ProjectionGridTransfer(FESpace(coarse, 2, "dg"), FESpace(fine, 1, "dg"))
    assert isinstance(broken.forward_operator(), L2ProjectionL2Space)


def test_operators_are_cached(quad_meshes):
    coarse, fine = quad_meshes
    gt = L2ProjectionGridTransfer(FESpace(coarse, 2, "dg"), FESpace(fine, 1, "dg"))
    assert gt.forward_operator() is gt.forward_operator()
    B = gt.backward_operator()
    assert B is gt.backward_operator()
    assert B.kind is TransferKind.L2_PROLONGATION
    assert B.shape == (gt.forward_operator().shape[1], gt.forward_operator().shape[0])
    assert gt.true_forward_operator() is gt.true_forward_operator()


def test_backward_is_prolongation(quad_meshes, rng):
    coarse, fine = quad_meshes
    gt = L2ProjectionGridTransfer(FESpace(coarse, 2), FESpace(fine, 1))
    x = rng.standard_normal(gt.dom_fes.vsize)
    assert np.allclose(gt.backward_operator() @ (gt.forward_operator() @ x), x, atol=1e-8)


def test_supports_backward_operator(interval_meshes):
    coarse, fine = interval_meshes
    assert L2ProjectionGridTransfer(FESpace(coarse, 1, "dg"), FESpace(fine, 0, "dg")).supports_backward_operator()
    assert not L2ProjectionGridTransfer(FESpace(coarse, 2, "dg"),
                                        FESpace(fine, 0, "dg")).supports_backward_operator()
    assert InterpolationGridTransfer(FESpace(coarse, 1), FESpace(fine, 1)).supports_backward_operator()


def test_serial_parallel_mismatch(interval_meshes):
    coarse, fine = interval_meshes
    dom, ran = FESpace(coarse, 1), FESpace(fine, 1)
    ran.parallel = True
    with pytest.raises(ConfigurationError, match="serial or parallel"):
        L2ProjectionGridTransfer(dom, ran)


def test_true_operators_with_periodic_spaces(rng):
    coarse = structured_interval(1.0, 2)
    fine = coarse.refine_uniform(2)
    c = FESpace(coarse, 1, periodic=[(0, 1.0)])
    f = FESpace(fine, 1, periodic=[(0, 1.0)])

    gt = InterpolationGridTransfer(c, f)
    T = gt.true_forward_operator()
    assert isinstance(T, LinearOperator)
    assert T.shape == (f.true_vsize, c.true_vsize)
    X = rng.standard_normal(c.true_vsize)
    expected = f.restriction_matrix() @ gt.forward_operator().mult(c.prolongation_matrix() @ X)
    assert np.allclose(T @ X, expected)
    assert gt.true_backward_operator().shape == (c.true_vsize, f.true_vsize)

    sparse = InterpolationGridTransfer(c, f, TransferOptions(oper_type=OperatorType.SPARSE_MATRIX))
    Ts = sparse.true_forward_operator()
    assert sp.issparse(Ts)
    assert np.allclose(Ts @ X, expected)


def test_sparse_needs_assembled_operator(quad_meshes):
    coarse, fine = quad_meshes
    gt = L2ProjectionGridTransfer(FESpace(coarse, 2, "dg"), FESpace(fine, 1, "dg"))
    gt.set_operator_type(OperatorType.SPARSE_MATRIX)
    with pytest.raises(ConfigurationError, match="not a sparse matrix"):
        gt.true_forward_operator()


def test_unknown_operator_type(quad_meshes):
    coarse, fine = quad_meshes
    gt = InterpolationGridTransfer(FESpace(coarse, 1), FESpace(fine, 1))
    gt.oper_type = "hypre"
    with pytest.raises(ConfigurationError, match="not supported"):
        gt.forward_operator()


def test_operator_type_change_rebuilds(quad_meshes, rng):
    coarse, fine = quad_meshes
    gt = InterpolationGridTransfer(FESpace(coarse, 1), FESpace(fine, 1))
    A = gt.forward_operator()
    assert isinstance(A, RefinementOperator)
    X = rng.standard_normal(gt.dom_fes.true_vsize)
    T = gt.true_forward_operator()
    gt.set_operator_type(OperatorType.SPARSE_MATRIX)
    assert sp.issparse(gt.forward_operator())
    Ts = gt.true_forward_operator()
    assert sp.issparse(Ts)
    assert np.allclose(Ts @ X, T @ X)


class TestPRefinementGridTransfer:
    def test_kernel_option_selects_path(self, quad_meshes, rng):
        mesh = quad_meshes[0]
        lfes, hfes = FESpace(mesh, 1), FESpace(mesh, 3)
        auto = PRefinementGridTransfer(lfes, hfes)
        generic = PRefinementGridTransfer(lfes, hfes, TransferOptions(kernel="generic"))
        assert auto.forward_operator().kind is TransferKind.P_REFINEMENT_TENSOR
        assert generic.forward_operator().kind is TransferKind.P_REFINEMENT_GENERIC
        assert generic.true_forward_operator().local_transfer_operator.kind is TransferKind.P_REFINEMENT_GENERIC
        x = rng.standard_normal(lfes.true_vsize)
        assert np.allclose(auto.true_forward_operator().mult(x), generic.true_forward_operator().mult(x))

    def test_tensor_request_on_triangles(self, tri_meshes):
        mesh = tri_meshes[0]
        gt = PRefinementGridTransfer(FESpace(mesh, 1), FESpace(mesh, 2), TransferOptions(kernel="tensor"))
        with pytest.raises(ConfigurationError):
            gt.forward_operator()
        with pytest.raises(ConfigurationError):
            gt.true_forward_operator()

    def test_no_backward(self, quad_meshes):
        mesh = quad_meshes[0]
        gt = PRefinementGridTransfer(FESpace(mesh, 1), FESpace(mesh, 2))
        assert not gt.supports_backward_operator()
        with pytest.raises(UnsupportedOperationError):
            gt.backward_operator()
        gt.set_operator_type(OperatorType.SPARSE_MATRIX)
        with pytest.raises(ConfigurationError, match="not supported"):
            gt.forward_operator()
