"""pyfetransfer.transfer.kernels
Sum-factorised basis change for tensor-product elements.

Element arrays are lexicographic with x fastest, i.e. ``local[e, ..., y, x]``.
``B[q, d]`` is the low-order 1-D basis ``d`` at high-order 1-D node ``q``.
Prolongation multiplies by the mask after the contraction; restriction
multiplies by it before.
"""
import numpy as np
import numba as _nb


@_nb.njit(cache=True, fastmath=True, parallel=True)
def prolongation_1d(localL, B, mask, localH):
    NE, D1D = localL.shape
    Q1D = B.shape[0]
    for e in _nb.prange(NE):
        for qx in range(Q1D):
            s = 0.0
            for dx in range(D1D):
                s += B[qx, dx] * localL[e, dx]
            localH[e, qx] = s * mask[e, qx]


@_nb.njit(cache=True, fastmath=True, parallel=True)
def prolongation_2d(localL, B, mask, localH):
    NE, D1D = localL.shape[0], localL.shape[1]
    Q1D = B.shape[0]
    for e in _nb.prange(NE):
        for qy in range(Q1D):
            for qx in range(Q1D):
                localH[e, qy, qx] = 0.0
        sol_x = np.empty(Q1D)
        for dy in range(D1D):
            for qx in range(Q1D):
                sol_x[qx] = 0.0
            for dx in range(D1D):
                s = localL[e, dy, dx]
                for qx in range(Q1D):
                    sol_x[qx] += B[qx, dx] * s
            for qy in range(Q1D):
                d2q = B[qy, dy]
                for qx in range(Q1D):
                    localH[e, qy, qx] += d2q * sol_x[qx]
        for qy in range(Q1D):
            for qx in range(Q1D):
                localH[e, qy, qx] *= mask[e, qy, qx]


@_nb.njit(cache=True, fastmath=True, parallel=True)
def prolongation_3d(localL, B, mask, localH):
    NE, D1D = localL.shape[0], localL.shape[1]
    Q1D = B.shape[0]
    for e in _nb.prange(NE):
        for qz in range(Q1D):
            for qy in range(Q1D):
                for qx in range(Q1D):
                    localH[e, qz, qy, qx] = 0.0
        sol_x = np.empty(Q1D)
        sol_xy = np.empty((Q1D, Q1D))
        for dz in range(D1D):
            for qy in range(Q1D):
                for qx in range(Q1D):
                    sol_xy[qy, qx] = 0.0
            for dy in range(D1D):
                for qx in range(Q1D):
                    sol_x[qx] = 0.0
                for dx in range(D1D):
                    s = localL[e, dz, dy, dx]
                    for qx in range(Q1D):
                        sol_x[qx] += B[qx, dx] * s
                for qy in range(Q1D):
                    wy = B[qy, dy]
                    for qx in range(Q1D):
                        sol_xy[qy, qx] += wy * sol_x[qx]
            for qz in range(Q1D):
                wz = B[qz, dz]
                for qy in range(Q1D):
                    for qx in range(Q1D):
                        localH[e, qz, qy, qx] += wz * sol_xy[qy, qx]
        for qz in range(Q1D):
            for qy in range(Q1D):
                for qx in range(Q1D):
                    localH[e, qz, qy, qx] *= mask[e, qz, qy, qx]


@_nb.njit(cache=True, fastmath=True, parallel=True)
def restriction_1d(localH, B, mask, localL):
    NE, Q1D = localH.shape
    D1D = B.shape[1]
    for e in _nb.prange(NE):
        for dx in range(D1D):
            s = 0.0
            for qx in range(Q1D):
                s += B[qx, dx] * mask[e, qx] * localH[e, qx]
            localL[e, dx] = s


@_nb.njit(cache=True, fastmath=True, parallel=True)
def restriction_2d(localH, B, mask, localL):
    NE, Q1D = localH.shape[0], localH.shape[1]
    D1D = B.shape[1]
    for e in _nb.prange(NE):
        for dy in range(D1D):
            for dx in range(D1D):
                localL[e, dy, dx] = 0.0
        sol_x = np.empty(D1D)
        for qy in range(Q1D):
            for dx in range(D1D):
                sol_x[dx] = 0.0
            for qx in range(Q1D):
                s = mask[e, qy, qx] * localH[e, qy, qx]
                for dx in range(D1D):
                    sol_x[dx] += B[qx, dx] * s
            for dy in range(D1D):
                q2d = B[qy, dy]
                for dx in range(D1D):
                    localL[e, dy, dx] += q2d * sol_x[dx]


@_nb.njit(cache=True, fastmath=True, parallel=True)
def restriction_3d(localH, B, mask, localL):
    NE, Q1D = localH.shape[0], localH.shape[1]
    D1D = B.shape[1]
    for e in _nb.prange(NE):
        for dz in range(D1D):
            for dy in range(D1D):
                for dx in range(D1D):
                    localL[e, dz, dy, dx] = 0.0
        sol_x = np.empty(D1D)
        sol_xy = np.empty((D1D, D1D))
        for qz in range(Q1D):
            for dy in range(D1D):
                for dx in range(D1D):
                    sol_xy[dy, dx] = 0.0
            for qy in range(Q1D):
                for dx in range(D1D):
                    sol_x[dx] = 0.0
                for qx in range(Q1D):
                    s = mask[e, qz, qy, qx] * localH[e, qz, qy, qx]
                    for dx in range(D1D):
                        sol_x[dx] += B[qx, dx] * s
                for dy in range(D1D):
                    wy = B[qy, dy]
                    for dx in range(D1D):
                        sol_xy[dy, dx] += wy * sol_x[dx]
            for dz in range(D1D):
                wz = B[qz, dz]
                for dy in range(D1D):
                    for dx in range(D1D):
                        localL[e, dz, dy, dx] += wz * sol_xy[dy, dx]


PROLONGATION = {1: prolongation_1d, 2: prolongation_2d, 3: prolongation_3d}
RESTRICTION = {1: restriction_1d, 2: restriction_2d, 3: restriction_3d}
