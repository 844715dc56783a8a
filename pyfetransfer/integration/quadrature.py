"""pyfetransfer.integration.quadrature
Unified quadrature provider for segments, triangles, quads and hexes.

Rules are requested by the polynomial *degree* they must integrate exactly.
Tensor rules live on [-1,1]^d, triangle rules on (0,0)-(1,0)-(0,1).
"""
# pyfetransfer.integration.quadrature
import numpy as np
from functools import lru_cache
from numpy.polynomial.legendre import leggauss


# -------------------------------------------------------------------------
# 1-D rules
# -------------------------------------------------------------------------
def gauss_legendre(n_points: int):
    if n_points < 1:
        raise ValueError(n_points)
    return leggauss(n_points)  # (points, weights)


def _points_for_degree(degree: int) -> int:
    """Number of Gauss points exact for a 1‑D polynomial of the given degree."""
    if degree < 0:
        raise ValueError(degree)
    return degree // 2 + 1


# -------------------------------------------------------------------------
# Tensor and collapsed rules
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def seg_rule(n_points: int):
    xi, wi = gauss_legendre(n_points)
    return xi[:, None].copy(), wi


@lru_cache(maxsize=None)
def quad_rule(n_points: int):
    xi, wi = gauss_legendre(n_points)
    # x fastest, matching the lexicographic node order of the bases
    pts = np.array([[x, y] for y in xi for x in xi])
    wts = np.array([wx * wy for wy in wi for wx in wi])
    return pts, wts


@lru_cache(maxsize=None)
def hex_rule(n_points: int):
    xi, wi = gauss_legendre(n_points)
    pts = np.array([[x, y, z] for z in xi for y in xi for x in xi])
    wts = np.array([wx * wy * wz for wz in wi for wy in wi for wx in wi])
    return pts, wts


@lru_cache(maxsize=None)
def tri_rule(n_points: int):
    """Collapsed (Duffy) rule: the square [0,1]^2 squeezed onto the reference triangle."""
    xi, wi = gauss_legendre(n_points)
    t, w = 0.5 * (xi + 1.0), 0.5 * wi
    U, V = np.meshgrid(t, t, indexing='ij')
    WU, WV = np.meshgrid(w, w, indexing='ij')
    pts = np.column_stack([U.ravel(), (V * (1.0 - U)).ravel()])
    wts = (WU * WV * (1.0 - U)).ravel()
    return pts, wts


# -------------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------------
def volume(element_type: str, degree: int = 2):
    """Points (nQ, dim) and weights (nQ,) exact for total degree ``degree``."""
    degree = max(int(degree), 0)
    if element_type == 'segment':
        return seg_rule(_points_for_degree(degree))
    if element_type == 'quad':
        return quad_rule(_points_for_degree(degree))
    if element_type == 'hex':
        return hex_rule(_points_for_degree(degree))
    if element_type == 'tri':
        # the collapse adds one degree in the radial direction
        return tri_rule(_points_for_degree(degree + 1))
    raise KeyError(element_type)
