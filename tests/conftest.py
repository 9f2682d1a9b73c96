"""Shared fixtures for the index and engine tests."""

import logging

import numpy as np
import pytest

from point import Point
from point_grid import PointGrid
from quadtree import QuadTree, BoundingBox
from sweep_and_prune import PointSweepAndPrune


INDEX_KINDS = ["grid", "sweep_and_prune", "quadtree"]


def build_index(kind):
    if kind == "grid":
        return PointGrid(16)
    if kind == "sweep_and_prune":
        return PointSweepAndPrune()
    if kind == "quadtree":
        return QuadTree(BoundingBox(0, 0, 200, 200), threshold=4, max_depth=10)
    raise ValueError(kind)


@pytest.fixture
def make_point():
    """
    Factory for tracked objects.

    Indexes only hold weak references, so every point made here is kept alive
    until the test ends. Tests about collection build their Points directly.
    """
    made = []

    def _make(x, y):
        point = Point(len(made), float(x), float(y), np.zeros(3))
        made.append(point)
        return point

    yield _make
    made.clear()


@pytest.fixture(params=INDEX_KINDS)
def index_kind(request):
    return request.param


@pytest.fixture
def index(index_kind):
    return build_index(index_kind)


@pytest.fixture
def sim_config():
    """A 'simulation' config section for small deterministic engines."""
    return {
        "point_count": 2,
        "min_distance": 10.0,
        "speed": 10.0,
        "expand": True,
        "circle_radius": 20.0,
        "spatial_index": "grid",
        "cell_size": 16.0,
        "quadtree_threshold": 4,
        "quadtree_max_depth": 10,
        "log_interval": 0,
    }


def brute_force(points, center, radius):
    """Reference answer: every point within radius of center, by id."""
    cx, cy = center
    radius_sq = radius * radius
    hits = set()
    for p in points:
        dx = p.x - cx
        dy = p.y - cy
        if dx * dx + dy * dy <= radius_sq:
            hits.add(p.id)
    return hits


def hit_ids(records):
    return {record.object.id for record in records}


@pytest.fixture
def app_log(caplog):
    """Captures the application logger at DEBUG, whatever its propagation setting."""
    logger = logging.getLogger("vector_relax")
    old_level = logger.level
    old_propagate = logger.propagate
    # caplog's handler also sits on the root logger; stop propagation so
    # each record is captured once.
    logger.propagate = False
    logger.addHandler(caplog.handler)
    logger.setLevel(logging.DEBUG)
    caplog.handler.setLevel(logging.DEBUG)
    yield caplog
    logger.removeHandler(caplog.handler)
    logger.setLevel(old_level)
    logger.propagate = old_propagate
