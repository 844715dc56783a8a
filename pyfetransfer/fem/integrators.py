"""pyfetransfer.fem.integrators
Element mass matrices.
"""
import numpy as np

from pyfetransfer.integration.quadrature import volume
from pyfetransfer.errors import ConfigurationError


class MassIntegrator:
    """∫ φ_i φ_j over one element (scalar ``value``/``integral`` bases)."""

    def __init__(self, coeff: float = 1.0):
        self.coeff = coeff

    def quadrature_degree(self, fe, trans) -> int:
        return 2 * fe.order + trans.order_w

    def assemble_element_matrix(self, fe, trans) -> np.ndarray:
        pts, wts = volume(fe.element_type, self.quadrature_degree(fe, trans))
        M = np.zeros((fe.ndof, fe.ndof))
        for xi, w in zip(pts, wts):
            N = fe.shape(*xi)
            M += (self.coeff * w * trans.weight(xi)) * np.outer(N, N)
        return M


class VectorFEMassIntegrator:
    """
    ∫ ψ_i · ψ_j for vector bases exposing ``vshape(*xi) -> (ndof, dim)``.
    ``h_div`` uses the contravariant Piola map F ψ̂ / det F, ``h_curl`` the
    covariant map F^{-T} ψ̂.
    """

    def __init__(self, coeff: float = 1.0):
        self.coeff = coeff

    def quadrature_degree(self, fe, trans) -> int:
        return 2 * fe.order + trans.order_w

    def assemble_element_matrix(self, fe, trans) -> np.ndarray:
        pts, wts = volume(fe.element_type, self.quadrature_degree(fe, trans))
        M = np.zeros((fe.ndof, fe.ndof))
        for xi, w in zip(pts, wts):
            F = trans.jacobian(xi).T          # (sdim, dim)
            detF = np.linalg.det(F)
            psi_hat = np.asarray(fe.vshape(*xi), dtype=float)
            if fe.map_type == "h_div":
                psi = psi_hat @ F.T / detF
            else:
                psi = psi_hat @ np.linalg.inv(F)
            M += (self.coeff * w * abs(detF)) * (psi @ psi.T)
        return M


def default_mass_integrator(fe):
    """Mass integrator matching the field type of ``fe``."""
    map_type = getattr(fe, "map_type", None)
    if map_type in ("value", "integral"):
        return MassIntegrator()
    if map_type in ("h_div", "h_curl"):
        return VectorFEMassIntegrator()
    raise ConfigurationError("unknown type of FE space")
