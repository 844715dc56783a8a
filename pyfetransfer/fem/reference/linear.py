"""pyfetransfer.fem.reference.linear
Vertex (P1 / Q1) bases driving the geometric maps.

Vertex orders: segment (-1),(1); tri (0,0),(1,0),(0,1); quad counter-clockwise
from (-1,-1); hex bottom face counter-clockwise, then top face.
"""
from functools import lru_cache
import numpy as np
import sympy as sp

xi, eta, zeta = sp.symbols('xi eta zeta')

_N_SYM = {
    'segment': (sp.Matrix([(1-xi)/2, (1+xi)/2]), (xi,)),
    'tri':     (sp.Matrix([1-xi-eta, xi, eta]), (xi, eta)),
    'quad':    (sp.Matrix([(1-xi)*(1-eta), (1+xi)*(1-eta),
                           (1+xi)*(1+eta), (1-xi)*(1+eta)])/4, (xi, eta)),
    'hex':     (sp.Matrix([(1-xi)*(1-eta)*(1-zeta), (1+xi)*(1-eta)*(1-zeta),
                           (1+xi)*(1+eta)*(1-zeta), (1-xi)*(1+eta)*(1-zeta),
                           (1-xi)*(1-eta)*(1+zeta), (1+xi)*(1-eta)*(1+zeta),
                           (1+xi)*(1+eta)*(1+zeta), (1-xi)*(1+eta)*(1+zeta)])/8,
                (xi, eta, zeta)),
}

REF_VERTICES = {
    'segment': np.array([[-1.0], [1.0]]),
    'tri':     np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]),
    'quad':    np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]]),
    'hex':     np.array([[-1.0, -1.0, -1.0], [1.0, -1.0, -1.0], [1.0, 1.0, -1.0], [-1.0, 1.0, -1.0],
                         [-1.0, -1.0, 1.0], [1.0, -1.0, 1.0], [1.0, 1.0, 1.0], [-1.0, 1.0, 1.0]]),
}


@lru_cache(maxsize=None)
def vertex_basis(element_type: str):
    """Return (shape, grad, ref_vertices); shape(*xi) -> (nv,), grad(*xi) -> (nv, dim)."""
    if element_type not in _N_SYM:
        raise KeyError(element_type)
    N_sym, args = _N_SYM[element_type]
    dN_sym = N_sym.jacobian(list(args))
    shape_l = sp.lambdify(args, N_sym, 'numpy')
    grad_l = sp.lambdify(args, dN_sym, 'numpy')

    def shape(*x):
        return np.asarray(shape_l(*x), dtype=float).ravel()

    def grad(*x):
        return np.asarray(grad_l(*x), dtype=float).reshape(len(N_sym), len(args))

    return shape, grad, REF_VERTICES[element_type]
