from __future__ import annotations

import dataclasses
import math

import numpy as np
import pytest

from surfaceflock.mesh.geodesic import GeodesicIndex
from surfaceflock.sim.core.surface import TorusSurface

SURFACE = TorusSurface(2.0, 5.0)


def test_nearest_vertex_of_grid_point(small_bundle):
    index = GeodesicIndex(small_bundle)
    grid = small_bundle.grid
    vertex = grid.vertex_index(3, 5)
    point = grid.points[vertex]
    assert index.nearest_vertex(point) == vertex
    assert index.vertices_for([SURFACE.point_at(0.0, 0.0)]) == [0]


def test_neighbors_within_threshold(small_bundle):
    index = GeodesicIndex(small_bundle)
    vertices = [0, 0, 1, 50]
    assert index.neighbors_within(0, vertices, 0.0) == [1]
    everyone = index.neighbors_within(0, vertices, math.inf)
    assert everyone == [1, 2, 3]
    limit = index.distance(0, 1)
    assert index.neighbors_within(0, vertices, limit) == [1, 2]


def test_unreachable_vertices_are_never_neighbors(small_bundle):
    distances = small_bundle.distances.copy()
    distances[0, 50] = np.inf
    distances[50, 0] = np.inf
    index = GeodesicIndex(dataclasses.replace(small_bundle, distances=distances))
    assert index.neighbors_within(0, [0, 50, 1], math.inf) == [2]


def test_path_between_follows_mesh(small_bundle):
    index = GeodesicIndex(small_bundle)
    start = SURFACE.point_at(0.0, 0.0)
    end = SURFACE.point_at(math.pi, math.pi)
    path = index.path_between(start, end)
    points = small_bundle.grid.points
    assert path[0] == tuple(points[index.nearest_vertex(start)])
    assert path[-1] == tuple(points[index.nearest_vertex(end)])
    length = sum(math.dist(a, b) for a, b in zip(path, path[1:]))
    expected = index.distance(index.nearest_vertex(start), index.nearest_vertex(end))
    assert length == pytest.approx(expected)


def test_distance_field_shape_and_origin(small_bundle):
    index = GeodesicIndex(small_bundle)
    field = index.distance_field(SURFACE.point_at(0.0, 0.0))
    assert field.shape == (12, 8)
    assert field[0, 0] == 0.0
    assert np.all(field >= 0.0)
