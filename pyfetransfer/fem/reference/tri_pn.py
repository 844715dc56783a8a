"""pyfetransfer.fem.reference.tri_pn
Nodal Pn Lagrange bases on the reference triangle (0,0)-(1,0)-(0,1).

Nodes are equispaced, row by row in eta with xi running fastest; P0 has a
single node at the centroid.
"""
from functools import lru_cache
from itertools import product
import sympy as sp
import numpy as np


def tri_nodes(n: int):
    if n == 0:
        return [(sp.Rational(1, 3), sp.Rational(1, 3))]
    return [(sp.Rational(i, n), sp.Rational(j, n)) for j in range(n + 1) for i in range(n + 1 - j)]


@lru_cache(maxsize=None)
def tri_pn(n: int, max_deriv_order: int = 1):
    """
    Returns (shape_fn, deriv_fns, nodes):
      shape_fn(xi, eta) -> (ndof,) basis values,
      deriv_fns[(a, b)](xi, eta) -> ∂^a_xi ∂^b_eta of every basis function,
      nodes -> (ndof, 2).
    """
    if n < 0:
        raise ValueError(f"Polynomial order must be non-negative, got {n}.")
    xi, eta = sp.symbols("xi eta")
    pts = tri_nodes(n)
    monomials = [xi**a * eta**(d - a) for d in range(n + 1) for a in range(d + 1)]

    # Lagrange basis: phi = V^{-1}.T m, with V[i, k] = m_k(node_i)
    V = sp.Matrix([[m.subs({xi: x, eta: y}) for m in monomials] for x, y in pts])
    phi = (V.inv().T * sp.Matrix(monomials)).applyfunc(sp.expand)

    shape = sp.lambdify((xi, eta), phi, "numpy")
    derivs = {}
    for a, b in product(range(max_deriv_order + 1), repeat=2):
        if a + b > max_deriv_order:
            continue
        d_phi = phi.applyfunc(lambda f: sp.diff(f, xi, a, eta, b))
        derivs[(a, b)] = sp.lambdify((xi, eta), d_phi, "numpy")

    nodes = np.array(pts, dtype=float).reshape(len(pts), 2)
    return shape, derivs, nodes
