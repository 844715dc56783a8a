"""Example: high-order ↔ low-order-refined transfer on a quad mesh"""
import logging
import numpy as np
from pyfetransfer.utils.meshgen import structured_quad
from pyfetransfer.core import FESpace
from pyfetransfer.assembly.global_matrix import mass_matrix
from pyfetransfer.transfer import L2ProjectionGridTransfer, TransferOperator

logging.basicConfig(level=logging.INFO)

p = 3
coarse = structured_quad(1.0, 1.0, nx=4, ny=4)
lor_mesh = coarse.refine_uniform(p)

u = lambda x, y: np.sin(np.pi * x) * np.cos(np.pi * y)

for cont in ("dg", "cg"):
    ho = FESpace(coarse, p, cont)
    lor = FESpace(lor_mesh, 1 if cont == "cg" else 0, cont)
    gt = L2ProjectionGridTransfer(ho, lor)
    R = gt.forward_operator()
    x = ho.interpolate(u)
    y = R @ x
    mass_ho = np.ones(ho.vsize) @ (mass_matrix(ho) @ x)
    mass_lor = np.ones(lor.vsize) @ (mass_matrix(lor) @ y)
    print(f"[{cont}] {type(R).__name__}: ∫u_ho = {mass_ho:.12f}, ∫u_lor = {mass_lor:.12f}")
    if gt.supports_backward_operator():
        err = np.linalg.norm(gt.backward_operator() @ y - x)
        print(f"[{cont}] |P R x - x| = {err:.3e}")

# order change on the same mesh
T = TransferOperator(FESpace(coarse, 1), FESpace(coarse, p))
print(f"p-transfer kernel: {T.kind.value}")
