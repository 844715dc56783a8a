# conftest.py
import numpy as np
import pytest

from pyfetransfer.utils.meshgen import (structured_interval, structured_quad,
                                        structured_triangles, structured_hex)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def interval_meshes():
    """Two coarse segments on [0, 1] and their uniform refinement."""
    coarse = structured_interval(1.0, 2)
    return coarse, coarse.refine_uniform(2)


@pytest.fixture
def quad_meshes():
    coarse = structured_quad(1.0, 1.0, nx=2, ny=2)
    return coarse, coarse.refine_uniform(2)


@pytest.fixture
def tri_meshes():
    coarse = structured_triangles(1.0, 1.0, nx=2, ny=2)
    return coarse, coarse.refine_uniform(2)


@pytest.fixture
def hex_meshes():
    coarse = structured_hex(1.0, 1.0, 1.0, nx=1, ny=1, nz=2)
    return coarse, coarse.refine_uniform(2)
