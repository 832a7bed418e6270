from __future__ import annotations

import numpy as np
import pytest
import trimesh

from facehead.core.models import PropMesh
from facehead.core.topology import FACE_OVAL, NUM_LANDMARKS, TRIANGULATION
from facehead.utils.headwear import prop_from_trimesh

FACE_HALF_WIDTH = 0.4
FACE_HALF_HEIGHT = 0.5
FACE_DEPTH = 0.15


def _embedded_landmarks() -> np.ndarray:
    """
    Plausible face landmarks without a detector.

    The oval is pinned to an ellipse (landmark 10 on top, running toward -x
    like a real capture) and every other landmark is placed at the average of
    its mesh neighbours. That planar embedding keeps every triangle
    non-degenerate with a consistent orientation. A dome supplies depth.
    """
    oval = np.asarray(FACE_OVAL)
    n = len(oval)
    theta = np.pi / 2 + 2 * np.pi * np.arange(n) / n

    xy = np.zeros((NUM_LANDMARKS, 2))
    xy[oval, 0] = FACE_HALF_WIDTH * np.cos(theta)
    xy[oval, 1] = FACE_HALF_HEIGHT * np.sin(theta)

    adjacency = np.zeros((NUM_LANDMARKS, NUM_LANDMARKS))
    for a, b, c in TRIANGULATION:
        adjacency[a, b] = adjacency[b, a] = 1
        adjacency[b, c] = adjacency[c, b] = 1
        adjacency[a, c] = adjacency[c, a] = 1

    free = np.setdiff1d(np.arange(NUM_LANDMARKS), oval)
    laplacian = np.diag(adjacency.sum(axis=1)) - adjacency
    rhs = adjacency[np.ix_(free, oval)] @ xy[oval]
    xy[free] = np.linalg.solve(laplacian[np.ix_(free, free)], rhs)

    r2 = (xy[:, 0] / FACE_HALF_WIDTH) ** 2 + (xy[:, 1] / FACE_HALF_HEIGHT) ** 2
    z = FACE_DEPTH * np.clip(1 - r2, 0.0, 1.0)
    return np.column_stack([xy, z])


_LANDMARKS = _embedded_landmarks()


@pytest.fixture()
def landmarks() -> np.ndarray:
    return _LANDMARKS.copy()


def solid_image(color=(200, 150, 120), size=(256, 256)) -> np.ndarray:
    image = np.zeros((size[0], size[1], 3), dtype=np.uint8)
    image[:] = color
    return image


@pytest.fixture()
def make_image():
    return solid_image


@pytest.fixture()
def skin_image() -> np.ndarray:
    return solid_image()


@pytest.fixture()
def box_prop() -> PropMesh:
    return prop_from_trimesh(trimesh.creation.box(extents=(2.0, 1.0, 1.0)), name="box")


@pytest.fixture()
def sphere_prop() -> PropMesh:
    return prop_from_trimesh(trimesh.creation.icosphere(subdivisions=2, radius=1.0), name="sphere")
