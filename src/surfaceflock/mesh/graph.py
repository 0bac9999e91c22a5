from __future__ import annotations

from typing import List, Tuple

import numpy as np

from .grid import MeshGrid

UNREACHABLE = -1

# Eight grid neighbors plus the cell itself (zero-length self edge).
_NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = tuple(
    (di, dj) for di in (-1, 0, 1) for dj in (-1, 0, 1)
)


def build_adjacency(grid: MeshGrid) -> np.ndarray:
    """Dense weighted adjacency matrix; ``inf`` marks a missing edge."""
    points = grid.points
    vertex_count = grid.vertex_count
    adjacency = np.full((vertex_count, vertex_count), np.inf, dtype=np.float64)
    rows, cols = np.divmod(np.arange(vertex_count), grid.phi_count)
    for di, dj in _NEIGHBOR_OFFSETS:
        neighbors = ((rows + di) % grid.theta_count) * grid.phi_count + (cols + dj) % grid.phi_count
        adjacency[np.arange(vertex_count), neighbors] = np.linalg.norm(points - points[neighbors], axis=1)
    return adjacency


def all_pairs_shortest_paths(adjacency: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Floyd-Warshall relaxation over a dense adjacency matrix.

    Returns ``(dist, next_hop)`` where ``next_hop[i, j]`` is the first vertex
    after ``i`` on a shortest path to ``j`` (``UNREACHABLE`` when no path exists).
    The loop over the intermediate vertex is sequential; each pass is vectorized
    over the other two dimensions.
    """
    dist = np.array(adjacency, dtype=np.float64, copy=True)
    if dist.ndim != 2 or dist.shape[0] != dist.shape[1]:
        raise ValueError(f"adjacency must be a square matrix, got shape {dist.shape}")
    vertex_count = dist.shape[0]
    np.fill_diagonal(dist, 0.0)
    columns = np.broadcast_to(np.arange(vertex_count), dist.shape)
    next_hop = np.where(np.isfinite(dist), columns, UNREACHABLE).astype(np.int64)
    for k in range(vertex_count):
        candidate = dist[:, k, np.newaxis] + dist[np.newaxis, k, :]
        improved = candidate < dist
        if not improved.any():
            continue
        dist[improved] = candidate[improved]
        next_hop[improved] = np.broadcast_to(next_hop[:, k, np.newaxis], dist.shape)[improved]
    return dist, next_hop


def reconstruct_path(next_hop: np.ndarray, start: int, end: int) -> List[int]:
    if next_hop[start, end] == UNREACHABLE:
        return []
    path = [int(start)]
    current = int(start)
    limit = next_hop.shape[0]
    while current != end:
        current = int(next_hop[current, end])
        path.append(current)
        if len(path) > limit:
            raise ValueError(f"next-hop table contains a cycle between {start} and {end}")
    return path


def unreachable_pairs(dist: np.ndarray) -> int:
    return int(np.count_nonzero(~np.isfinite(dist)))
