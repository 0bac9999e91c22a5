from __future__ import annotations

import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Dict, Optional, Protocol

import numpy as np

from ..config import SimulationConfig
from ..logging import logger
from ..sim.core.errors import MeshCacheError
from ..sim.core.surface import TorusSurface
from .graph import all_pairs_shortest_paths, build_adjacency, unreachable_pairs
from .grid import MeshGrid, build_mesh_grid
from .octree import Octree

_FORMAT_VERSION = 1


@dataclass(frozen=True)
class MeshBundle:
    """Everything the geodesic lookups need, computed once per surface."""

    minor_radius: float
    major_radius: float
    grid: MeshGrid
    adjacency: np.ndarray
    distances: np.ndarray
    next_hop: np.ndarray
    octree: Octree

    @property
    def theta_count(self) -> int:
        return self.grid.theta_count

    @property
    def phi_count(self) -> int:
        return self.grid.phi_count

    def matches(self, surface: TorusSurface, theta_count: int, phi_count: int, bucket_size: int) -> bool:
        return (
            self.minor_radius == surface.minor_radius
            and self.major_radius == surface.major_radius
            and self.theta_count == theta_count
            and self.phi_count == phi_count
            and self.octree.bucket_size == bucket_size
        )

    def matches_config(self, config: SimulationConfig) -> bool:
        mesh = config.mesh
        return self.matches(
            TorusSurface.from_config(config.surface), mesh.theta_count, mesh.phi_count, mesh.bucket_size
        )

    def to_arrays(self) -> Dict[str, np.ndarray]:
        arrays: Dict[str, np.ndarray] = {
            "format_version": np.asarray(_FORMAT_VERSION, dtype=np.int64),
            "shape_params": np.asarray([self.minor_radius, self.major_radius], dtype=np.float64),
            "grid_dims": np.asarray([self.theta_count, self.phi_count], dtype=np.int64),
            "mesh_x": self.grid.x,
            "mesh_y": self.grid.y,
            "mesh_z": self.grid.z,
            "adjacency": self.adjacency,
            "distances": self.distances,
            "next_hop": self.next_hop,
        }
        arrays.update(self.octree.to_arrays())
        return arrays

    @classmethod
    def from_arrays(cls, arrays: Dict[str, np.ndarray]) -> "MeshBundle":
        version = int(arrays["format_version"])
        if version != _FORMAT_VERSION:
            raise MeshCacheError(f"unsupported mesh cache format {version}, expected {_FORMAT_VERSION}")
        minor_radius, major_radius = (float(v) for v in arrays["shape_params"])
        grid = MeshGrid(x=np.asarray(arrays["mesh_x"]), y=np.asarray(arrays["mesh_y"]), z=np.asarray(arrays["mesh_z"]))
        theta_count, phi_count = (int(v) for v in arrays["grid_dims"])
        if (grid.theta_count, grid.phi_count) != (theta_count, phi_count):
            raise MeshCacheError(
                f"mesh arrays have shape {grid.x.shape} but the bundle records {theta_count}x{phi_count}"
            )
        vertex_count = grid.vertex_count
        for name in ("adjacency", "distances", "next_hop"):
            if arrays[name].shape != (vertex_count, vertex_count):
                raise MeshCacheError(f"{name} has shape {arrays[name].shape}, expected {(vertex_count, vertex_count)}")
        return cls(
            minor_radius=minor_radius,
            major_radius=major_radius,
            grid=grid,
            adjacency=np.asarray(arrays["adjacency"]),
            distances=np.asarray(arrays["distances"]),
            next_hop=np.asarray(arrays["next_hop"]),
            octree=Octree.from_arrays(arrays),
        )


class MeshStore(Protocol):
    def load(self) -> Optional[MeshBundle]:
        """Return the stored bundle, ``None`` when nothing is stored, or raise ``MeshCacheError``."""

    def save(self, bundle: MeshBundle) -> None: ...


class NpzMeshStore:
    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> Optional[MeshBundle]:
        if not self.path.is_file():
            return None
        try:
            with np.load(self.path, allow_pickle=False) as archive:
                arrays = {name: archive[name] for name in archive.files}
            return MeshBundle.from_arrays(arrays)
        except (OSError, ValueError, KeyError, EOFError, TypeError, AttributeError, zipfile.BadZipFile) as exc:
            raise MeshCacheError(f"could not read mesh cache {self.path}: {exc}") from exc

    def save(self, bundle: MeshBundle) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("wb") as handle:
            np.savez_compressed(handle, **bundle.to_arrays())
        os.replace(tmp_path, self.path)


class MemoryMeshStore:
    def __init__(self, bundle: Optional[MeshBundle] = None):
        self.bundle = bundle
        self.loads = 0
        self.saves = 0

    def load(self) -> Optional[MeshBundle]:
        self.loads += 1
        return self.bundle

    def save(self, bundle: MeshBundle) -> None:
        self.saves += 1
        self.bundle = bundle


def compute_mesh_bundle(surface: TorusSurface, theta_count: int, phi_count: int, bucket_size: int = 10) -> MeshBundle:
    start = perf_counter()
    grid = build_mesh_grid(surface, theta_count, phi_count)
    adjacency = build_adjacency(grid)
    logger.info(
        f"Computing all-pairs geodesic distances over {grid.vertex_count} mesh vertices "
        f"({theta_count}x{phi_count} grid)"
    )
    distances, next_hop = all_pairs_shortest_paths(adjacency)
    missing = unreachable_pairs(distances)
    if missing:
        logger.warning(f"Mesh graph is disconnected: {missing} vertex pairs are unreachable")
    octree = Octree.build(grid.points, bucket_size=bucket_size)
    logger.info(
        f"Mesh bundle ready in {perf_counter() - start:.2f}s ({octree.node_count} octree nodes)"
    )
    return MeshBundle(
        minor_radius=surface.minor_radius,
        major_radius=surface.major_radius,
        grid=grid,
        adjacency=adjacency,
        distances=distances,
        next_hop=next_hop,
        octree=octree,
    )


def default_store(config: SimulationConfig) -> Optional[MeshStore]:
    if config.mesh.cache_path is None:
        return None
    return NpzMeshStore(config.mesh.cache_path)


def resolve_mesh(config: SimulationConfig, store: Optional[MeshStore] = None) -> MeshBundle:
    """Load the mesh bundle from ``store``; compute and persist it when absent, corrupt or stale."""
    surface = TorusSurface.from_config(config.surface)
    mesh = config.mesh
    if store is not None:
        try:
            bundle = store.load()
        except MeshCacheError as exc:
            logger.warning(f"Mesh cache unusable, recomputing: {exc}")
            bundle = None
        if bundle is not None:
            if bundle.matches_config(config):
                logger.debug("Mesh cache hit")
                return bundle
            logger.warning("Mesh cache does not match the configured surface, recomputing")
    bundle = compute_mesh_bundle(surface, mesh.theta_count, mesh.phi_count, mesh.bucket_size)
    if store is not None:
        store.save(bundle)
        logger.info("Mesh bundle persisted")
    return bundle
