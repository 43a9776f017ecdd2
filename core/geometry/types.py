"""Data types for mesh buffers, materials and local transforms."""

import math
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
import trimesh

Vec3 = Tuple[float, float, float]

# Bytes per vertex position (3 x float32)
BYTES_PER_VERTEX = 12


@dataclass(frozen=True)
class MaterialDescriptor:
    """Surface appearance assigned to a mesh."""

    color: str = "#888888"
    metalness: float = 0.1
    roughness: float = 0.7
    wireframe: bool = False
    opacity: float = 1.0
    transparent: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "color": self.color,
            "metalness": self.metalness,
            "roughness": self.roughness,
            "wireframe": self.wireframe,
            "opacity": self.opacity,
            "transparent": self.transparent,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MaterialDescriptor":
        """Create MaterialDescriptor from dictionary."""
        return cls(
            color=data.get("color", "#888888"),
            metalness=data.get("metalness", 0.1),
            roughness=data.get("roughness", 0.7),
            wireframe=data.get("wireframe", False),
            opacity=data.get("opacity", 1.0),
            transparent=data.get("transparent", False),
        )

    def rgba(self) -> Tuple[int, int, int, int]:
        """Color as an 8-bit RGBA tuple."""
        hex_color = self.color.lstrip("#")
        r, g, b = (int(hex_color[i : i + 2], 16) for i in (0, 2, 4))
        return (r, g, b, int(round(self.opacity * 255)))


@dataclass
class Transform3D:
    """Local transform of a mesh. Rotation is stored in radians."""

    position: Vec3 = (0.0, 0.0, 0.0)
    rotation: Vec3 = (0.0, 0.0, 0.0)
    scale: Vec3 = (1.0, 1.0, 1.0)

    def translate(self, offset: Vec3) -> None:
        self.position = tuple(p + o for p, o in zip(self.position, offset))

    def set_rotation_degrees(self, degrees: Vec3) -> None:
        self.rotation = tuple(math.radians(d) for d in degrees)

    def scale_by(self, factors: Vec3) -> None:
        self.scale = tuple(s * f for s, f in zip(self.scale, factors))

    def is_identity(self) -> bool:
        return (
            self.position == (0.0, 0.0, 0.0)
            and self.rotation == (0.0, 0.0, 0.0)
            and self.scale == (1.0, 1.0, 1.0)
        )

    def matrix(self) -> np.ndarray:
        """4x4 matrix composing translation * rotation * scale.

        Rotation applies about X, then Y, then Z (static axes).
        """
        scale = np.diag([*self.scale, 1.0])
        rotation = trimesh.transformations.euler_matrix(*self.rotation, axes="sxyz")
        translation = trimesh.transformations.translation_matrix(self.position)
        return translation @ rotation @ scale

    def copy(self) -> "Transform3D":
        return Transform3D(
            position=tuple(self.position),
            rotation=tuple(self.rotation),
            scale=tuple(self.scale),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "position": list(self.position),
            "rotation": list(self.rotation),
            "scale": list(self.scale),
        }


@dataclass
class BoundingBox:
    """Axis-aligned bounding box. An empty box has min > max."""

    min: np.ndarray = field(default_factory=lambda: np.full(3, np.inf))
    max: np.ndarray = field(default_factory=lambda: np.full(3, -np.inf))

    @classmethod
    def from_points(cls, points: np.ndarray) -> "BoundingBox":
        if points is None or len(points) == 0:
            return cls()
        points = np.asarray(points, dtype=float)
        return cls(min=points.min(axis=0), max=points.max(axis=0))

    @property
    def is_empty(self) -> bool:
        return bool(np.any(self.max < self.min))

    @property
    def center(self) -> np.ndarray:
        if self.is_empty:
            return np.zeros(3)
        return (self.min + self.max) / 2

    @property
    def size(self) -> np.ndarray:
        if self.is_empty:
            return np.zeros(3)
        return self.max - self.min

    def union(self, other: "BoundingBox") -> "BoundingBox":
        if other.is_empty:
            return BoundingBox(min=self.min.copy(), max=self.max.copy())
        if self.is_empty:
            return BoundingBox(min=other.min.copy(), max=other.max.copy())
        return BoundingBox(
            min=np.minimum(self.min, other.min),
            max=np.maximum(self.max, other.max),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        if self.is_empty:
            return {"min": None, "max": None}
        return {"min": self.min.tolist(), "max": self.max.tolist()}


@dataclass
class BoundingSphere:
    center: np.ndarray
    radius: float


@dataclass
class MeshBuffer:
    """Polygonal geometry plus its material and local transform."""

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    vertices: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    faces: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.int64))
    normals: Optional[np.ndarray] = None
    material: Optional[MaterialDescriptor] = field(default_factory=MaterialDescriptor)
    transform: Transform3D = field(default_factory=Transform3D)
    name: str = ""
    geometry_type: str = "generic"  # box, sphere, cylinder, union, difference, ...
    parameters: Dict[str, float] = field(default_factory=dict)
    bounding_box: Optional[BoundingBox] = None
    bounding_sphere: Optional[BoundingSphere] = None
    cast_shadow: bool = False
    receive_shadow: bool = False
    disposed: bool = False

    @property
    def vertex_count(self) -> int:
        if self.vertices is None:
            return 0
        return int(len(self.vertices))

    @property
    def triangle_count(self) -> int:
        if self.faces is None:
            return 0
        return int(len(self.faces))

    @property
    def has_geometry(self) -> bool:
        return self.vertex_count > 0

    @property
    def memory_estimate(self) -> int:
        return self.vertex_count * BYTES_PER_VERTEX

    def world_vertices(self) -> np.ndarray:
        """Vertices with the local transform applied."""
        if not self.has_geometry or self.transform.is_identity():
            return np.asarray(self.vertices, dtype=float)
        return trimesh.transformations.transform_points(
            np.asarray(self.vertices, dtype=float), self.transform.matrix()
        )

    def world_bounds(self) -> BoundingBox:
        return BoundingBox.from_points(self.world_vertices())

    def compute_vertex_normals(self) -> None:
        if not self.has_geometry or self.triangle_count == 0:
            return
        mesh = trimesh.Trimesh(vertices=self.vertices, faces=self.faces, process=False)
        self.normals = np.array(mesh.vertex_normals)

    def compute_bounds(self) -> None:
        """Precompute the local bounding box and bounding sphere."""
        self.bounding_box = BoundingBox.from_points(self.vertices)
        if self.bounding_box.is_empty:
            self.bounding_sphere = None
            return
        center = self.bounding_box.center
        radius = float(np.max(np.linalg.norm(self.vertices - center, axis=1)))
        self.bounding_sphere = BoundingSphere(center=center, radius=radius)

    def fingerprint(self) -> str:
        """Cheap structural hash: vertex count plus first/last world vertex."""
        if not self.has_geometry:
            return "empty"
        world = self.world_vertices()
        first = "_".join(f"{c:.9g}" for c in world[0])
        last = "_".join(f"{c:.9g}" for c in world[-1])
        return f"{self.vertex_count}_{first}_{last}"

    def clone(self) -> "MeshBuffer":
        """Deep copy with an independent lifetime."""
        return MeshBuffer(
            vertices=np.array(self.vertices, copy=True),
            faces=np.array(self.faces, copy=True),
            normals=None if self.normals is None else np.array(self.normals, copy=True),
            material=self.material,
            transform=self.transform.copy(),
            name=self.name,
            geometry_type=self.geometry_type,
            parameters=dict(self.parameters),
            bounding_box=self.bounding_box,
            bounding_sphere=self.bounding_sphere,
            cast_shadow=self.cast_shadow,
            receive_shadow=self.receive_shadow,
        )

    def dispose(self) -> None:
        """Release geometry buffers. Safe to call more than once."""
        if self.disposed:
            return
        self.vertices = np.zeros((0, 3))
        self.faces = np.zeros((0, 3), dtype=np.int64)
        self.normals = None
        self.bounding_box = None
        self.bounding_sphere = None
        self.disposed = True

    def to_trimesh(self, apply_transform: bool = True) -> trimesh.Trimesh:
        """Convert to trimesh object."""
        if not self.has_geometry or self.triangle_count == 0:
            return trimesh.Trimesh()
        vertices = self.world_vertices() if apply_transform else self.vertices
        mesh = trimesh.Trimesh(vertices=vertices, faces=self.faces, process=False)
        mesh.metadata["name"] = self.name
        mesh.metadata["geometry_type"] = self.geometry_type
        if self.material is not None:
            mesh.visual.face_colors = self.material.rgba()
        return mesh

    @classmethod
    def from_trimesh(
        cls,
        mesh: trimesh.Trimesh,
        material: Optional[MaterialDescriptor] = None,
        name: str = "",
        geometry_type: str = "generic",
        parameters: Optional[Dict[str, float]] = None,
    ) -> "MeshBuffer":
        """Create MeshBuffer from trimesh object."""
        has_faces = len(mesh.faces) > 0
        return cls(
            vertices=np.array(mesh.vertices, dtype=float),
            faces=np.array(mesh.faces, dtype=np.int64),
            normals=np.array(mesh.vertex_normals) if has_faces else None,
            material=material if material is not None else MaterialDescriptor(),
            name=name,
            geometry_type=geometry_type,
            parameters=dict(parameters or {}),
        )

    def summary(self) -> dict:
        """Lightweight description for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "geometry_type": self.geometry_type,
            "parameters": dict(self.parameters),
            "vertex_count": self.vertex_count,
            "triangle_count": self.triangle_count,
            "material": self.material.to_dict() if self.material else None,
            "transform": self.transform.to_dict(),
        }
