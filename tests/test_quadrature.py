import numpy as np
import pytest
from pyfetransfer.integration import quadrature as q


def integrate_ref(element_type, func, degree):
    pts, wts = q.volume(element_type, degree)
    fvals = np.array([func(p) for p in pts])
    return (fvals * wts).sum()


@pytest.mark.parametrize("et, exact", [('segment', 2.0), ('tri', 0.5), ('quad', 4.0), ('hex', 8.0)])
def test_constant_volume(et, exact):
    pts, wts = q.volume(et, 3)
    assert np.isclose(wts.sum(), exact, rtol=1e-12)


def test_segment_degree_exactness():
    # ∫_{-1}^{1} x^4 dx = 2/5
    assert np.isclose(integrate_ref('segment', lambda p: p[0]**4, 4), 2/5, rtol=1e-12)


def test_quad_and_hex_tensor_exactness():
    assert np.isclose(integrate_ref('quad', lambda p: p[0]**2 * p[1]**2, 4), 4/9, rtol=1e-12)
    assert np.isclose(integrate_ref('hex', lambda p: p[0]**2 * p[2]**2, 4), 8/9, rtol=1e-12)


def test_tri_monomial():
    # ∫_T x^2 y dA = 2! 1! / 5! = 1/60
    assert np.isclose(integrate_ref('tri', lambda p: p[0]**2 * p[1], 3), 1/60, rtol=1e-12)


def test_tensor_rule_is_x_fastest():
    pts, _ = q.volume('quad', 2)
    assert pts[0][1] == pts[1][1]
    assert pts[0][0] < pts[1][0]


def test_bad_requests():
    with pytest.raises(ValueError):
        q.gauss_legendre(0)
    with pytest.raises(KeyError):
        q.volume('pyramid', 2)
