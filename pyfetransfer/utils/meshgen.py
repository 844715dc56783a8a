"""pyfetransfer.utils.meshgen
Structured mesh generators for quick tests.
"""
from typing import Callable, Optional, Tuple

import numpy as np

from pyfetransfer.core.mesh import Mesh

__all__ = ["structured_interval", "structured_quad", "structured_hex", "structured_triangles"]


def _mapped(pts: np.ndarray, mapping: Optional[Callable]) -> np.ndarray:
    if mapping is None:
        return pts
    return np.array([np.atleast_1d(mapping(*p)) for p in pts], dtype=float).reshape(pts.shape)


def structured_interval(length: float = 1.0, nx: int = 4, *, x0: float = 0.0,
                        mapping: Optional[Callable] = None) -> Mesh:
    x = np.linspace(x0, x0 + length, nx + 1)[:, None]
    elems = np.column_stack([np.arange(nx), np.arange(1, nx + 1)])
    return Mesh(_mapped(x, mapping), elems, element_type='segment')


def _grid_2d(Lx, Ly, nx, ny, offset):
    x = np.linspace(offset[0], offset[0] + Lx, nx + 1)
    y = np.linspace(offset[1], offset[1] + Ly, ny + 1)
    pts = np.array([[xi, yj] for yj in y for xi in x])

    def vid(i, j):
        return j * (nx + 1) + i
    return pts, vid


def structured_quad(Lx: float = 1.0, Ly: float = 1.0, nx: int = 2, ny: int = 2, *,
                    offset: Tuple[float, float] = (0.0, 0.0),
                    mapping: Optional[Callable] = None) -> Mesh:
    pts, vid = _grid_2d(Lx, Ly, nx, ny, offset)
    elems = [[vid(i, j), vid(i + 1, j), vid(i + 1, j + 1), vid(i, j + 1)]
             for j in range(ny) for i in range(nx)]
    return Mesh(_mapped(pts, mapping), np.array(elems, dtype=np.int64).reshape(-1, 4),
                element_type='quad')


def structured_triangles(Lx: float = 1.0, Ly: float = 1.0, nx: int = 2, ny: int = 2, *,
                         offset: Tuple[float, float] = (0.0, 0.0),
                         mapping: Optional[Callable] = None) -> Mesh:
    """Each grid cell split along its (i,j)-(i+1,j+1) diagonal, both halves CCW."""
    pts, vid = _grid_2d(Lx, Ly, nx, ny, offset)
    elems = []
    for j in range(ny):
        for i in range(nx):
            v00, v10, v11, v01 = vid(i, j), vid(i + 1, j), vid(i + 1, j + 1), vid(i, j + 1)
            elems.append([v00, v10, v11])
            elems.append([v00, v11, v01])
    return Mesh(_mapped(pts, mapping), np.array(elems, dtype=np.int64).reshape(-1, 3),
                element_type='tri')


def structured_hex(Lx: float = 1.0, Ly: float = 1.0, Lz: float = 1.0,
                   nx: int = 2, ny: int = 2, nz: int = 2, *,
                   offset: Tuple[float, float, float] = (0.0, 0.0, 0.0),
                   mapping: Optional[Callable] = None) -> Mesh:
    x = np.linspace(offset[0], offset[0] + Lx, nx + 1)
    y = np.linspace(offset[1], offset[1] + Ly, ny + 1)
    z = np.linspace(offset[2], offset[2] + Lz, nz + 1)
    pts = np.array([[xi, yj, zk] for zk in z for yj in y for xi in x])

    def vid(i, j, k):
        return (k * (ny + 1) + j) * (nx + 1) + i

    elems = []
    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                elems.append([vid(i, j, k), vid(i + 1, j, k), vid(i + 1, j + 1, k), vid(i, j + 1, k),
                              vid(i, j, k + 1), vid(i + 1, j, k + 1), vid(i + 1, j + 1, k + 1),
                              vid(i, j + 1, k + 1)])
    return Mesh(_mapped(pts, mapping), np.array(elems, dtype=np.int64).reshape(-1, 8),
                element_type='hex')
