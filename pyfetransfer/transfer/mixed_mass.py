"""pyfetransfer.transfer.mixed_mass"""
import numpy as np

from pyfetransfer.integration.quadrature import volume


def elem_mixed_mass(geom, fe_ho, fe_lor, el_tr, ip_tr) -> np.ndarray:
    """
    M[i, j] = ∫ φ_lor_i φ_ho_j over one fine element.

    ``ip_tr`` embeds the fine reference element in the coarse one; the
    coarse basis is evaluated at the embedded points. The weight comes from
    the fine element's own geometry, so curved coarse maps are not
    re-evaluated (not exactly conservative on curved meshes).
    """
    order = fe_lor.order + fe_ho.order + el_tr.order_w
    pts, wts = volume(geom, order)
    shape_lor = fe_lor.shape_at(pts)                       # (nQ, ndof_lor)
    shape_ho = fe_ho.shape_at(ip_tr.transform(pts))        # (nQ, ndof_ho)
    w = wts * np.array([el_tr.weight(xi) for xi in pts])
    return (shape_lor * w[:, None]).T @ shape_ho
