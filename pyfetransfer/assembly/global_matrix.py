"""pyfetransfer.assembly.global_matrix"""
import numpy as np, scipy.sparse as sp

from pyfetransfer.fem.integrators import MassIntegrator


def assemble(fes, local_cb):
    """Scalar global CSR matrix from element callbacks ``local_cb(eid) -> Ke``."""
    n_dofs = fes.ndofs
    rows, cols, data = [], [], []
    for eid in range(fes.ne):
        Ke = local_cb(eid)
        dofs = fes.element_dofs(eid)
        rows.append(np.repeat(dofs, len(dofs)))
        cols.append(np.tile(dofs, len(dofs)))
        data.append(np.asarray(Ke).ravel())
    if not rows:
        return sp.csr_matrix((n_dofs, n_dofs))
    K = sp.csr_matrix((np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
                      shape=(n_dofs, n_dofs))
    return K


def mass_matrix(fes, integ=None):
    integ = integ or MassIntegrator()
    mesh = fes.mesh
    return assemble(fes, lambda e: integ.assemble_element_matrix(fes.fe(e), mesh.element_transformation(e)))
