"""Scene graph data types: lights, helpers, camera and statistics."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from core.geometry.types import BoundingBox, MeshBuffer, Vec3

WHITE = "#ffffff"


@dataclass
class SceneConfig:
    """Configuration options for the scene assembler."""

    # Environment
    background_color: str = "#2c3e50"
    enable_fog: bool = False
    fog_near: float = 50.0
    fog_far: float = 200.0

    # Lighting
    enable_lighting: bool = True
    enable_shadows: bool = True
    ambient_light_intensity: float = 0.4
    directional_light_intensity: float = 1.0
    point_light_intensity: float = 0.5
    shadow_map_size: int = 2048

    # Helpers
    enable_grid: bool = True
    grid_size: int = 20
    enable_axes: bool = True
    axes_size: float = 5.0

    enable_optimization: bool = True

    @classmethod
    def from_env(cls) -> "SceneConfig":
        """Load configuration from environment variables."""
        return cls(
            background_color=os.getenv("SCADSCENE_BACKGROUND", "#2c3e50"),
            enable_fog=os.getenv("SCADSCENE_ENABLE_FOG", "false").lower() == "true",
            enable_shadows=os.getenv("SCADSCENE_ENABLE_SHADOWS", "true").lower() == "true",
            enable_grid=os.getenv("SCADSCENE_ENABLE_GRID", "true").lower() == "true",
            enable_axes=os.getenv("SCADSCENE_ENABLE_AXES", "true").lower() == "true",
            enable_optimization=os.getenv("SCADSCENE_ENABLE_OPTIMIZATION", "true").lower() == "true",
        )


@dataclass
class ShadowSettings:
    """Shadow map of a shadow-casting light."""

    map_size: int = 2048
    near: float = 0.5
    far: float = 500.0
    left: float = -50.0
    right: float = 50.0
    top: float = 50.0
    bottom: float = -50.0

    def to_dict(self) -> dict:
        return {
            "map_size": self.map_size,
            "near": self.near,
            "far": self.far,
            "left": self.left,
            "right": self.right,
            "top": self.top,
            "bottom": self.bottom,
        }


@dataclass
class Light:
    """A light in the scene rig."""

    name: str
    light_type: str  # ambient, directional, point
    intensity: float
    color: str = WHITE
    position: Optional[Vec3] = None
    distance: Optional[float] = None  # point light range
    cast_shadow: bool = False
    shadow: Optional[ShadowSettings] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "type": self.light_type,
            "intensity": self.intensity,
            "color": self.color,
            "position": list(self.position) if self.position is not None else None,
            "distance": self.distance,
            "cast_shadow": self.cast_shadow,
            "shadow": self.shadow.to_dict() if self.shadow else None,
        }


@dataclass
class Fog:
    color: str
    near: float
    far: float

    def to_dict(self) -> dict:
        return {"color": self.color, "near": self.near, "far": self.far}


@dataclass
class GridHelper:
    size: float = 20.0
    divisions: int = 20
    center_color: str = "#808080"
    line_color: str = "#e0e0e0"
    name: str = "gridHelper"

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "divisions": self.divisions,
            "center_color": self.center_color,
            "line_color": self.line_color,
        }


@dataclass
class AxesHelper:
    size: float = 5.0
    name: str = "axesHelper"

    def to_dict(self) -> dict:
        return {"size": self.size}


@dataclass
class Camera:
    """Perspective camera aimed at a target point."""

    position: Vec3
    target: Vec3
    fov: float = 75.0
    aspect: float = 1.0
    near: float = 0.1
    far: float = 1000.0
    name: str = "optimalCamera"

    @classmethod
    def framing(cls, bounds: BoundingBox) -> "Camera":
        """
        Camera placed to frame a bounding box.

        With distance = twice the largest extent, the camera sits at
        center + 0.7 * distance on each axis and looks at the center.
        """
        center = bounds.center
        max_dim = float(np.max(bounds.size))
        distance = max_dim * 2 if max_dim > 0 else 1.0
        position = tuple(float(c + distance * 0.7) for c in center)
        return cls(
            position=position,
            target=tuple(float(c) for c in center),
            far=distance * 10,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "fov": self.fov,
            "aspect": self.aspect,
            "near": self.near,
            "far": self.far,
            "position": list(self.position),
            "target": list(self.target),
        }


@dataclass
class SceneStatistics:
    """Summary computed by traversing a scene."""

    mesh_count: int = 0
    vertex_count: int = 0
    triangle_count: int = 0
    material_count: int = 0
    light_count: int = 0
    memory_estimate: int = 0  # bytes
    bounding_box: BoundingBox = field(default_factory=BoundingBox)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "meshCount": self.mesh_count,
            "vertexCount": self.vertex_count,
            "triangleCount": self.triangle_count,
            "materialCount": self.material_count,
            "lightCount": self.light_count,
            "memoryEstimate": self.memory_estimate,
            "boundingBox": self.bounding_box.to_dict(),
        }


@dataclass
class SceneGraph:
    """
    Renderable scene: environment, lights, helpers and meshes.

    Owns its meshes. Use as a context manager or call ``dispose()``
    to release them.
    """

    name: str = "Generated_Scene"
    background_color: Optional[str] = None
    fog: Optional[Fog] = None
    lights: List[Light] = field(default_factory=list)
    grid: Optional[GridHelper] = None
    axes: Optional[AxesHelper] = None
    meshes: List[MeshBuffer] = field(default_factory=list)
    disposed: bool = False

    def add_mesh(self, mesh: MeshBuffer) -> None:
        self.meshes.append(mesh)

    def get_mesh(self, name: str) -> Optional[MeshBuffer]:
        """Find a mesh by name."""
        for mesh in self.meshes:
            if mesh.name == name:
                return mesh
        return None

    @property
    def object_count(self) -> int:
        helpers = sum(1 for helper in (self.grid, self.axes) if helper is not None)
        return len(self.meshes) + len(self.lights) + helpers

    def bounds(self) -> BoundingBox:
        """World-space bounding box of all meshes."""
        box = BoundingBox()
        for mesh in self.meshes:
            box = box.union(mesh.world_bounds())
        return box

    def dispose(self) -> None:
        """Release meshes and clear lights and helpers. Safe to call more than once."""
        if self.disposed:
            return
        for mesh in self.meshes:
            mesh.dispose()
        self.meshes.clear()
        self.lights.clear()
        self.grid = None
        self.axes = None
        self.fog = None
        self.disposed = True

    def __enter__(self) -> "SceneGraph":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization (mesh summaries only)."""
        return {
            "name": self.name,
            "background_color": self.background_color,
            "fog": self.fog.to_dict() if self.fog else None,
            "lights": [light.to_dict() for light in self.lights],
            "grid": self.grid.to_dict() if self.grid else None,
            "axes": self.axes.to_dict() if self.axes else None,
            "meshes": [mesh.summary() for mesh in self.meshes],
        }
