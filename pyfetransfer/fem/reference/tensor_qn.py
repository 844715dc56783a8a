from functools import lru_cache
from itertools import product
import sympy as sp
import numpy as np


def lagrange_nodes_1d(n: int) -> np.ndarray:
    """Equispaced nodes on [-1,1]; the single P0 node sits at the midpoint."""
    if n == 0:
        return np.array([0.0])
    return np.linspace(-1.0, 1.0, n + 1)


@lru_cache(maxsize=None)
def _lagrange_basis_1d(n: int, max_deriv_order: int):
    """Nodes, basis lambdas ``L`` and derivative lambdas ``dL[k]`` of the 1-D Lagrange factor."""
    x = sp.Symbol('x')
    nodes = lagrange_nodes_1d(n)
    exact = [sp.Rational(0)] if n == 0 else [sp.Rational(2 * i, n) - 1 for i in range(n + 1)]
    polys = [sp.expand(sp.prod([(x - b) / (a - b) for b in exact if b != a])) for a in exact]
    L = [sp.lambdify(x, p, 'numpy') for p in polys]
    dL = {k: [sp.lambdify(x, sp.diff(p, x, k), 'numpy') for p in polys]
          for k in range(max_deriv_order + 1)}
    return nodes, L, dL


def _eval_1d(fns, z):
    """Values of every lambda in ``fns`` at the scalar ``z``."""
    return np.fromiter((f(z) for f in fns), dtype=float, count=len(fns))


def _tensor_outer(factors):
    """Outer product with the first factor varying fastest (lexicographic)."""
    out = factors[0]
    for f in factors[1:]:
        out = np.outer(f, out).reshape(-1)
    return out


@lru_cache(maxsize=None)
def tensor_qn(n: int, dim: int, max_deriv_order: int = 1):
    """
    Tensor-product Q_n on [-1,1]^dim.
    Returns: (shape_fn, deriv_fns, nodes) where
      shape_fn(*xi) -> ( (n+1)^dim, )
      deriv_fns[alpha](*xi) -> ( (n+1)^dim, ), sum(alpha) <= max_deriv_order
      nodes -> ( (n+1)^dim, dim ) reference node coordinates
    Stacking order is lexicographic with x fastest: index = i + (n+1)*j + ...
    """
    nodes1d, L, dL = _lagrange_basis_1d(n, max_deriv_order)

    def shape(*xi):
        return _tensor_outer([_eval_1d(L, z) for z in xi])

    derivs = {}
    for alpha in product(range(max_deriv_order+1), repeat=dim):
        if sum(alpha) > max_deriv_order:
            continue
        def make(alpha=alpha):
            def d(*xi):
                return _tensor_outer([_eval_1d(dL[a], z) for a, z in zip(alpha, xi)])
            return d
        derivs[alpha] = make()

    grids = np.meshgrid(*([nodes1d] * dim), indexing='ij')
    # reverse so that x is the fastest running index
    nodes = np.column_stack([g.transpose(tuple(range(dim))[::-1]).ravel() for g in grids])
    return shape, derivs, nodes


def seg_pn(n: int, max_deriv_order: int = 1):
    return tensor_qn(n, 1, max_deriv_order)


def quad_qn(n: int, max_deriv_order: int = 1):
    return tensor_qn(n, 2, max_deriv_order)


def hex_qn(n: int, max_deriv_order: int = 1):
    return tensor_qn(n, 3, max_deriv_order)
