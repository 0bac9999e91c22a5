from __future__ import annotations

from typing import Dict, Iterable, List

import numpy as np

NO_CHILD = -1
_MAX_DEPTH = 24


class Octree:
    """Bucketed octree over a fixed point set, stored as flat arrays.

    Node ``n`` owns the cube ``centers[n] ± half_sizes[n]``. Internal nodes
    list eight children (``NO_CHILD`` for empty octants); leaves own the slice
    ``order[bucket_start[n]:bucket_start[n] + bucket_count[n]]`` of point indices.
    Every point appears in exactly one leaf.
    """

    ARRAY_FIELDS = ("points", "centers", "half_sizes", "children", "bucket_start", "bucket_count", "order")

    def __init__(
        self,
        points: np.ndarray,
        centers: np.ndarray,
        half_sizes: np.ndarray,
        children: np.ndarray,
        bucket_start: np.ndarray,
        bucket_count: np.ndarray,
        order: np.ndarray,
        bucket_size: int,
    ):
        self.points = points
        self.centers = centers
        self.half_sizes = half_sizes
        self.children = children
        self.bucket_start = bucket_start
        self.bucket_count = bucket_count
        self.order = order
        self.bucket_size = int(bucket_size)

    @classmethod
    def build(cls, points: np.ndarray, bucket_size: int = 10) -> "Octree":
        points = np.ascontiguousarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3 or points.shape[0] == 0:
            raise ValueError(f"octree needs a non-empty (n, 3) point array, got shape {points.shape}")
        if bucket_size < 1:
            raise ValueError(f"bucket_size must be at least 1, got {bucket_size}")

        low = points.min(axis=0)
        high = points.max(axis=0)
        root_center = (low + high) * 0.5
        # Pad so points on the upper faces are strictly inside.
        root_half = float(np.max(high - low)) * 0.5 * (1.0 + 1e-9) + 1e-12

        centers: List[np.ndarray] = []
        half_sizes: List[float] = []
        children: List[List[int]] = []
        bucket_start: List[int] = []
        bucket_count: List[int] = []
        order: List[int] = []

        def _split(indices: np.ndarray, center: np.ndarray, half: float, depth: int) -> int:
            node = len(centers)
            centers.append(center)
            half_sizes.append(half)
            children.append([NO_CHILD] * 8)
            bucket_start.append(0)
            bucket_count.append(0)
            if len(indices) <= bucket_size or depth >= _MAX_DEPTH:
                bucket_start[node] = len(order)
                bucket_count[node] = len(indices)
                order.extend(int(i) for i in indices)
                return node
            octant = _octant_of(points[indices], center)
            quarter = half * 0.5
            for child in range(8):
                members = indices[octant == child]
                if len(members) == 0:
                    continue
                children[node][child] = _split(members, center + _octant_offset(child) * quarter, quarter, depth + 1)
            return node

        _split(np.arange(points.shape[0]), root_center, root_half, 0)
        return cls(
            points=points,
            centers=np.asarray(centers, dtype=np.float64),
            half_sizes=np.asarray(half_sizes, dtype=np.float64),
            children=np.asarray(children, dtype=np.int64),
            bucket_start=np.asarray(bucket_start, dtype=np.int64),
            bucket_count=np.asarray(bucket_count, dtype=np.int64),
            order=np.asarray(order, dtype=np.int64),
            bucket_size=bucket_size,
        )

    @property
    def node_count(self) -> int:
        return int(self.centers.shape[0])

    def is_leaf(self, node: int) -> bool:
        return bool(np.all(self.children[node] == NO_CHILD))

    def leaf_members(self, node: int) -> np.ndarray:
        start = int(self.bucket_start[node])
        return self.order[start : start + int(self.bucket_count[node])]

    def leaves(self) -> Iterable[int]:
        return (node for node in range(self.node_count) if self.is_leaf(node))

    def nearest(self, query: Iterable[float]) -> int:
        """Index of the closest point; ties resolve to the lowest index."""
        q = np.asarray(tuple(query), dtype=np.float64)
        best_index = -1
        best_dist_sq = np.inf
        stack = [0]
        while stack:
            node = stack.pop()
            bound = _box_distance_sq(q, self.centers[node], self.half_sizes[node])
            if bound > best_dist_sq * (1.0 + 1e-12) + 1e-300:
                continue
            node_children = self.children[node]
            if np.all(node_children == NO_CHILD):
                members = self.leaf_members(node)
                if len(members) == 0:
                    continue
                diff = self.points[members] - q
                dist_sq = np.einsum("ij,ij->i", diff, diff)
                local_best = float(dist_sq.min())
                if local_best > best_dist_sq:
                    continue
                candidate = int(members[dist_sq == local_best].min())
                if local_best == best_dist_sq:
                    candidate = min(candidate, best_index)
                best_dist_sq = local_best
                best_index = candidate
                continue
            populated = [int(child) for child in node_children if child != NO_CHILD]
            # Push far children first so the nearest octant is searched next.
            populated.sort(
                key=lambda child: _box_distance_sq(q, self.centers[child], self.half_sizes[child]),
                reverse=True,
            )
            stack.extend(populated)
        return best_index

    def to_arrays(self) -> Dict[str, np.ndarray]:
        arrays = {f"octree_{name}": getattr(self, name) for name in self.ARRAY_FIELDS}
        arrays["octree_bucket_size"] = np.asarray(self.bucket_size, dtype=np.int64)
        return arrays

    @classmethod
    def from_arrays(cls, arrays: Dict[str, np.ndarray]) -> "Octree":
        values = {name: np.asarray(arrays[f"octree_{name}"]) for name in cls.ARRAY_FIELDS}
        return cls(bucket_size=int(arrays["octree_bucket_size"]), **values)


def nearest_linear(points: np.ndarray, query: Iterable[float]) -> int:
    diff = np.asarray(points, dtype=np.float64) - np.asarray(tuple(query), dtype=np.float64)
    return int(np.argmin(np.einsum("ij,ij->i", diff, diff)))


def _octant_of(points: np.ndarray, center: np.ndarray) -> np.ndarray:
    above = points >= center
    return above[:, 0].astype(np.int64) | (above[:, 1].astype(np.int64) << 1) | (above[:, 2].astype(np.int64) << 2)


def _octant_offset(octant: int) -> np.ndarray:
    return np.array(
        [1.0 if octant & 1 else -1.0, 1.0 if octant & 2 else -1.0, 1.0 if octant & 4 else -1.0],
        dtype=np.float64,
    )


def _box_distance_sq(query: np.ndarray, center: np.ndarray, half: float) -> float:
    excess = np.maximum(np.abs(query - center) - half, 0.0)
    return float(excess @ excess)
