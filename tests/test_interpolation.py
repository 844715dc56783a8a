import numpy as np
import pytest
import scipy.sparse as sp

from pyfetransfer.config import OperatorType, TransferOptions
from pyfetransfer.core.fespace import FESpace
from pyfetransfer.errors import ConfigurationError
from pyfetransfer.fem.integrators import (MassIntegrator, VectorFEMassIntegrator,
                                          default_mass_integrator)
from pyfetransfer.fem.transform import ElementTransformation
from pyfetransfer.transfer import (InterpolationGridTransfer, RefinementOperator,
                                   TransferKind, refinement_matrix)


@pytest.fixture
def quad_pair(quad_meshes):
    coarse, fine = quad_meshes
    return FESpace(coarse, 2), FESpace(fine, 2)


def test_forward_reproduces_coarse_functions(quad_pair):
    coarse, fine = quad_pair
    f = lambda x, y: 1.0 + x - 2.0 * y + x * x * y
    op = fine.get_transfer_operator(coarse)
    assert isinstance(op, RefinementOperator)
    assert op.kind is TransferKind.REFINEMENT
    assert np.allclose(op.mult(coarse.interpolate(f)), fine.interpolate(f))


def test_sparse_and_structural_forms_agree(quad_pair, rng):
    coarse, fine = quad_pair
    op = RefinementOperator(fine, coarse)
    P = refinement_matrix(fine, coarse)
    assert sp.isspmatrix_csr(P) and P.shape == op.shape
    x, y = rng.standard_normal(op.shape[1]), rng.standard_normal(op.shape[0])
    assert np.allclose(P @ x, op.mult(x))
    assert np.allclose(P.T @ y, op.mult_transpose(y))
    assert np.isclose(op.mult(x) @ y, x @ op.mult_transpose(y))


def test_backward_inverts_forward(quad_pair, rng):
    coarse, fine = quad_pair
    gt = InterpolationGridTransfer(coarse, fine)
    F, B = gt.forward_operator(), gt.backward_operator()
    assert B.kind is TransferKind.DEREFINEMENT
    x = rng.standard_normal(coarse.vsize)
    assert np.allclose(B.mult(F.mult(x)), x)
    y = rng.standard_normal(fine.vsize)
    assert np.isclose(B.mult(y) @ x, y @ B.mult_transpose(x))
    assert isinstance(gt.mass_integ, MassIntegrator)


def test_custom_mass_integrator(quad_pair, rng):
    coarse, fine = quad_pair
    plain = InterpolationGridTransfer(coarse, fine)
    scaled = InterpolationGridTransfer(coarse, fine)
    scaled.set_mass_integrator(MassIntegrator(coeff=3.0))
    y = rng.standard_normal(fine.vsize)
    assert np.allclose(plain.backward_operator().mult(y), scaled.backward_operator().mult(y))


def test_discontinuous_triangles(tri_meshes, rng):
    coarse, fine = tri_meshes
    c, f = FESpace(coarse, 1, "dg", vdim=2), FESpace(fine, 1, "dg", vdim=2)
    gt = InterpolationGridTransfer(c, f)
    x = rng.standard_normal(c.vsize)
    assert np.allclose(gt.backward_operator().mult(gt.forward_operator().mult(x)), x)


def test_sparse_operator_type(quad_pair):
    coarse, fine = quad_pair
    gt = InterpolationGridTransfer(coarse, fine, TransferOptions(oper_type=OperatorType.SPARSE_MATRIX))
    assert sp.issparse(gt.forward_operator())
    assert sp.issparse(gt.true_forward_operator())
    with pytest.raises(ConfigurationError):
        gt.backward_operator()


def test_incompatible_spaces(quad_meshes):
    coarse, fine = quad_meshes
    with pytest.raises(ConfigurationError):
        RefinementOperator(FESpace(fine, 1, vdim=2), FESpace(coarse, 1))
    with pytest.raises(ConfigurationError):
        # the coarse mesh is no refinement of the fine one
        RefinementOperator(FESpace(coarse, 1), FESpace(fine, 1))


class _VectorElement:
    element_type = 'quad'
    order = 0
    ndof = 2

    def __init__(self, map_type):
        self.map_type = map_type

    def vshape(self, *xi):
        return np.eye(2)


@pytest.mark.parametrize("map_type", ["h_div", "h_curl"])
def test_vector_mass_integrator(map_type):
    fe = _VectorElement(map_type)
    integ = default_mass_integrator(fe)
    assert isinstance(integ, VectorFEMassIntegrator)
    tr = ElementTransformation('quad', [[0, 0], [4, 0], [4, 4], [0, 4]])
    assert np.allclose(integ.assemble_element_matrix(fe, tr), 4.0 * np.eye(2))


def test_unknown_field_type():
    with pytest.raises(ConfigurationError, match="unknown type of FE space"):
        default_mass_integrator(_VectorElement("h_grad"))
