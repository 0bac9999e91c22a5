from __future__ import annotations

import colorsys
from time import perf_counter
from typing import Any, Dict, List, Optional

import numpy as np
from pygame.math import Vector3

from ...config import SimulationConfig
from ...logging import logger
from ...mesh.cache import MeshBundle, MeshStore, default_store, resolve_mesh
from ...mesh.geodesic import GeodesicIndex
from ...mesh.grid import build_mesh_grid, curvature_fields
from ...rng import DeterministicRng
from ..systems import forces, metrics as metrics_system
from ..systems.projection import euler_step, project_velocity
from ..types.metrics import StepMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotSurface
from ..utils.math3d import Vec3Tuple, as_tuple
from .agent import Agent, ForceRecord, RepolarizationSchedule
from .errors import ConfigError
from .surface import TorusSurface
from .trail import TrajectoryHistory


class World:
    def __init__(
        self,
        config: SimulationConfig,
        rng: Optional[DeterministicRng] = None,
        mesh: Optional[MeshBundle] = None,
        mesh_store: Optional[MeshStore] = None,
    ):
        self._config = config.validate()
        if mesh is not None and not mesh.matches_config(config):
            raise ConfigError(
                f"injected mesh ({mesh.theta_count}x{mesh.phi_count}, bucket {mesh.octree.bucket_size}, "
                f"r={mesh.minor_radius}, R={mesh.major_radius}) does not match the configured surface and mesh"
            )
        self._rng = rng if rng is not None else DeterministicRng(config.seed)
        self._surface = TorusSurface.from_config(config.surface)
        self._mesh_store = mesh_store if mesh_store is not None else default_store(config)
        self._agents: List[Agent] = []
        self._tick = 0
        self._metrics: StepMetrics | None = None
        self._geodesic: GeodesicIndex | None = GeodesicIndex(mesh) if mesh is not None else None
        if config.repulsion.enabled and config.repulsion.kernel != "squared":
            logger.warning(
                "Repulsion kernel 'unsquared' divides the plain distance by 2*sigma^2; "
                "the squared-distance Gaussian is the canonical form"
            )
        if self._uses_geodesic_neighbors():
            self._require_geodesic()
        preview = config.mesh
        self._preview = build_mesh_grid(self._surface, preview.preview_theta_count, preview.preview_phi_count)
        self._preview_curvature = curvature_fields(
            self._surface, preview.preview_theta_count, preview.preview_phi_count
        )
        self._bootstrap_population()

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def surface(self) -> TorusSurface:
        return self._surface

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def time(self) -> float:
        return self._tick * self._config.time_step

    @property
    def metrics(self) -> StepMetrics | None:
        return self._metrics

    @property
    def finished(self) -> bool:
        return self._tick >= self._config.step_count

    def reset(self) -> None:
        self._agents.clear()
        self._rng.reset()
        self._tick = 0
        self._metrics = None
        self._bootstrap_population()

    def step(self) -> StepMetrics:
        start = perf_counter()
        config = self._config
        dt = config.time_step
        step_index = self._tick
        agents = self._agents
        surface = self._surface
        shape_rates = config.surface.shape_rates
        stiffness = config.surface.stiffness

        # Every force below reads these copies; agents are only written after the pass.
        positions = tuple(Vector3(agent.position) for agent in agents)
        lagged_totals = tuple(agent.previous.total() for agent in agents)

        alignment_on = config.alignment.enabled
        agent_vertices: List[int] | None = None
        if alignment_on and self._uses_geodesic_neighbors():
            agent_vertices = self._require_geodesic().vertices_for(positions)
        everyone = range(len(agents))

        velocities: List[Vector3] = []
        records: List[ForceRecord] = []
        neighbor_checks = 0
        for index, agent in enumerate(agents):
            sample = surface.evaluate(positions[index])
            push = forces.repulsion(index, positions, config.repulsion) if config.repulsion.enabled else Vector3()
            walk = (
                forces.random_polarity(agent, sample, step_index, config.polarity, self._rng)
                if config.polarity.enabled
                else Vector3()
            )
            align = Vector3()
            if alignment_on:
                if agent_vertices is not None:
                    neighbors = self._require_geodesic().neighbors_within(
                        index, agent_vertices, config.alignment.neighbor_threshold
                    )
                else:
                    neighbors = [j for j in everyone if j != index]
                neighbor_checks += len(neighbors)
                align = forces.flocking_alignment(index, positions, lagged_totals, neighbors, config.alignment, dt)
            velocities.append(project_velocity(push + walk + align, sample, shape_rates, stiffness))
            records.append(ForceRecord(repulsion=as_tuple(push), polarity=as_tuple(walk), alignment=as_tuple(align)))

        for agent, position, velocity, record in zip(agents, positions, velocities, records):
            agent.trail.append(as_tuple(position))
            agent.position = euler_step(position, velocity, dt)
            agent.velocity = velocity
            agent.previous = record

        self._tick += 1
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            self._tick, self.time, agents, surface, neighbor_checks, elapsed_ms
        )
        self._metrics = metrics
        return metrics

    def run(self, steps: Optional[int] = None) -> List[StepMetrics]:
        remaining = self._config.step_count - self._tick if steps is None else steps
        return [self.step() for _ in range(max(0, remaining))]

    def geodesic_path(self, first_id: int, second_id: int) -> List[Vec3Tuple]:
        return self._require_geodesic().path_between(
            self._agents[first_id].position, self._agents[second_id].position
        )

    def geodesic_distance_field(self, agent_id: int) -> np.ndarray:
        return self._require_geodesic().distance_field(self._agents[agent_id].position)

    def snapshot(self) -> Snapshot:
        gaussian, mean = self._preview_curvature
        surface = SnapshotSurface(
            x=self._preview.x.tolist(),
            y=self._preview.y.tolist(),
            z=self._preview.z.tolist(),
            gaussian_curvature=gaussian.tolist(),
            mean_curvature=mean.tolist(),
        )
        metadata = SnapshotMetadata(
            minor_radius=self._surface.minor_radius,
            major_radius=self._surface.major_radius,
            sim_dt=self._config.time_step,
            total_time=self._config.total_time,
            seed=self._config.seed,
            config_version=self._config.config_version,
        )
        return Snapshot(
            tick=self._tick,
            time=self.time,
            metrics=self._metrics,
            agents=[self._agent_snapshot(agent) for agent in self._agents],
            surface=surface,
            metadata=metadata,
        )

    def _bootstrap_population(self) -> None:
        config = self._config
        count = config.agent_count
        period = config.polarity.period
        colors = [colorsys.hsv_to_rgb(k / count, 1.0, 1.0) for k in range(count)]
        self._rng.shuffle(colors)
        for agent_id in range(count):
            agent = Agent(
                id=agent_id,
                position=self._surface.sample_point(self._rng),
                heading=self._rng.next_angle(),
                schedule=RepolarizationSchedule(offset=self._rng.next_int(period), period=period),
                trail=TrajectoryHistory(config.trail_length),
                color=colors[agent_id],
            )
            self._agents.append(agent)
        logger.debug(f"Placed {count} agents on torus r={self._surface.minor_radius}, R={self._surface.major_radius}")

    def _uses_geodesic_neighbors(self) -> bool:
        alignment = self._config.alignment
        return alignment.enabled and alignment.use_geodesic_neighbors

    def _require_geodesic(self) -> GeodesicIndex:
        if self._geodesic is None:
            self._geodesic = GeodesicIndex(resolve_mesh(self._config, self._mesh_store))
        return self._geodesic

    def _agent_snapshot(self, agent: Agent) -> Dict[str, Any]:
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "z": agent.position.z,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "vz": agent.velocity.z,
            "speed": agent.velocity.length(),
            "heading": agent.heading,
            "color": agent.color,
            "trail": agent.trail.to_list(),
        }
