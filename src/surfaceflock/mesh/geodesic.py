from __future__ import annotations

import math
from typing import List, Sequence

import numpy as np
from pygame.math import Vector3

from ..sim.utils.math3d import Vec3Tuple
from .cache import MeshBundle
from .graph import reconstruct_path


class GeodesicIndex:
    """Surface distances between free-moving agents, via their nearest mesh vertices."""

    def __init__(self, bundle: MeshBundle):
        self._bundle = bundle
        self._points = bundle.grid.points

    @property
    def bundle(self) -> MeshBundle:
        return self._bundle

    def nearest_vertex(self, position: Vector3 | Sequence[float]) -> int:
        return self._bundle.octree.nearest(position)

    def vertices_for(self, positions: Sequence[Vector3]) -> List[int]:
        return [self.nearest_vertex(position) for position in positions]

    def distance(self, vertex_a: int, vertex_b: int) -> float:
        return float(self._bundle.distances[vertex_a, vertex_b])

    def neighbors_within(self, index: int, agent_vertices: Sequence[int], threshold: float) -> List[int]:
        """Agents other than ``index`` within ``threshold`` surface distance.

        Unreachable vertex pairs carry an infinite distance and are never neighbors.
        """
        row = self._bundle.distances[agent_vertices[index]]
        neighbors: List[int] = []
        for other, vertex in enumerate(agent_vertices):
            if other == index:
                continue
            dist = row[vertex]
            if math.isfinite(dist) and dist <= threshold:
                neighbors.append(other)
        return neighbors

    def path_between(self, start: Vector3, end: Vector3) -> List[Vec3Tuple]:
        vertices = reconstruct_path(self._bundle.next_hop, self.nearest_vertex(start), self.nearest_vertex(end))
        return [tuple(float(c) for c in self._points[v]) for v in vertices]  # type: ignore[misc]

    def distance_field(self, origin: Vector3) -> np.ndarray:
        grid = self._bundle.grid
        row = self._bundle.distances[self.nearest_vertex(origin)]
        return row.reshape(grid.theta_count, grid.phi_count)
