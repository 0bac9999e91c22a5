from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from ..sim.core.surface import TorusSurface


@dataclass(frozen=True)
class MeshGrid:
    """Periodic Θ×Φ sample grid embedded on the surface.

    Vertex ``(i, j)`` has flat index ``i * phi_count + j``.
    """

    x: np.ndarray
    y: np.ndarray
    z: np.ndarray

    def __post_init__(self) -> None:
        if not (self.x.shape == self.y.shape == self.z.shape) or self.x.ndim != 2:
            raise ValueError(
                f"mesh coordinate arrays must share one 2-D shape, got {self.x.shape}, {self.y.shape}, {self.z.shape}"
            )

    @property
    def theta_count(self) -> int:
        return int(self.x.shape[0])

    @property
    def phi_count(self) -> int:
        return int(self.x.shape[1])

    @property
    def vertex_count(self) -> int:
        return self.theta_count * self.phi_count

    @property
    def points(self) -> np.ndarray:
        return np.column_stack((self.x.ravel(), self.y.ravel(), self.z.ravel()))

    def vertex_index(self, i: int, j: int) -> int:
        return (i % self.theta_count) * self.phi_count + (j % self.phi_count)

    def grid_position(self, index: int) -> tuple[int, int]:
        return divmod(int(index), self.phi_count)


def parameter_grid(theta_count: int, phi_count: int) -> tuple[np.ndarray, np.ndarray]:
    # endpoint=False: 0 and 2π are the same point on a closed loop.
    theta = np.linspace(0.0, 2.0 * math.pi, theta_count, endpoint=False)
    phi = np.linspace(0.0, 2.0 * math.pi, phi_count, endpoint=False)
    return np.meshgrid(theta, phi, indexing="ij")


def build_mesh_grid(surface: TorusSurface, theta_count: int, phi_count: int) -> MeshGrid:
    if theta_count < 3 or phi_count < 3:
        raise ValueError(f"mesh grid needs at least 3 samples per direction, got {theta_count}x{phi_count}")
    theta_mesh, phi_mesh = parameter_grid(theta_count, phi_count)
    x, y, z = surface.embed(theta_mesh, phi_mesh)
    return MeshGrid(x=x, y=y, z=z)


def curvature_fields(surface: TorusSurface, theta_count: int, phi_count: int) -> tuple[np.ndarray, np.ndarray]:
    theta_mesh, _ = parameter_grid(theta_count, phi_count)
    return surface.gaussian_curvature(theta_mesh), surface.mean_curvature(theta_mesh)
