from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest


def pytest_configure() -> None:
    """Ensure the repository root is on sys.path.

    Running pytest from inside the package directory makes ``starch`` itself
    the rootdir; importing the top-level package then needs its parent on
    ``sys.path``.
    """

    repo_root = Path(__file__).resolve().parents[2]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def queen_w():
    from starch.spatial.weights import queen_lattice

    return queen_lattice(5)


@pytest.fixture
def two_layer_w():
    from starch.spatial.weights import queen_lattice, rook_lattice

    return np.stack([rook_lattice(4), queen_lattice(4) - 0.5 * rook_lattice(4)], axis=2)
