import numpy as np

from pyfetransfer.core.refinement import uniform_point_matrices
from pyfetransfer.fem.integrators import MassIntegrator
from pyfetransfer.fem.reference import get_reference
from pyfetransfer.fem.transform import ElementTransformation, identity_transformation
from pyfetransfer.transfer.mixed_mass import elem_mixed_mass


def test_identity_embedding_gives_mass_matrix():
    fe = get_reference('quad', 2)
    tr = ElementTransformation('quad', [[0, 0], [1, 0], [1, 1], [0, 1]])
    M = elem_mixed_mass('quad', fe, fe, tr, identity_transformation('quad'))
    assert np.allclose(M, MassIntegrator().assemble_element_matrix(fe, tr))


def test_patch_sum_is_parent_area():
    fe_ho, fe_lor = get_reference('tri', 2), get_reference('tri', 1)
    parent = ElementTransformation('tri', [[0, 0], [2, 0], [0, 1]])
    total = 0.0
    for pm in uniform_point_matrices('tri', 2):
        child = ElementTransformation('tri', parent.transform(pm))
        M = elem_mixed_mass('tri', fe_ho, fe_lor, child, ElementTransformation('tri', pm))
        assert M.shape == (3, 6)
        total += M.sum()
    assert np.isclose(total, 1.0)


def test_row_sums_integrate_fine_basis():
    fe_ho, fe_lor = get_reference('quad', 2), get_reference('quad', 0)
    pm = uniform_point_matrices('quad', 2)[3]
    child = ElementTransformation('quad', pm)
    M = elem_mixed_mass('quad', fe_ho, fe_lor, child, ElementTransformation('quad', pm))
    assert M.shape == (1, 9)
    # the fine P0 basis is one on a child of area 1
    assert np.isclose(M.sum(), 1.0)
