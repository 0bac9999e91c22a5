from __future__ import annotations


class SurfaceFlockError(Exception):
    """Base class for errors raised by the simulation."""


class ConfigError(SurfaceFlockError, ValueError):
    """Configuration rejected before the simulation starts."""


class DegenerateSurfaceError(SurfaceFlockError):
    """The surface gradient vanished or the tangent space is not two-dimensional."""


class MeshCacheError(SurfaceFlockError):
    """A persisted mesh bundle could not be read or does not match the configuration."""
