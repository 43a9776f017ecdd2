"""Mesh geometry for the scene pipeline.

This module provides:
- MeshBuffer / MaterialDescriptor / Transform3D: mesh data types
- build_cube / build_sphere / build_cylinder: primitive builders
- BooleanSolidService: union/difference/intersection over mesh buffers

Example usage:
    from core.geometry import BooleanKind, BooleanSolidService, build_cube

    service = BooleanSolidService()
    result = service.evaluate(BooleanKind.DIFFERENCE, [build_cube(2), build_cube(1)])
    if result.ok:
        print(result.value.vertex_count)
"""

from .boolean_ops import (
    BooleanKernel,
    BooleanKind,
    BooleanMetrics,
    BooleanServiceConfig,
    BooleanSolidService,
    Solid,
    TrimeshKernel,
    TrimeshSolid,
)
from .builders import (
    DEFAULT_SEGMENTS,
    build_cube,
    build_cylinder,
    build_sphere,
    normalize_size,
    try_build,
)
from .types import (
    BoundingBox,
    BoundingSphere,
    MaterialDescriptor,
    MeshBuffer,
    Transform3D,
    Vec3,
)

__all__ = [
    # Types
    "MeshBuffer",
    "MaterialDescriptor",
    "Transform3D",
    "BoundingBox",
    "BoundingSphere",
    "Vec3",
    # Builders
    "build_cube",
    "build_sphere",
    "build_cylinder",
    "normalize_size",
    "try_build",
    "DEFAULT_SEGMENTS",
    # Boolean operations
    "BooleanKind",
    "BooleanSolidService",
    "BooleanServiceConfig",
    "BooleanMetrics",
    "BooleanKernel",
    "Solid",
    "TrimeshKernel",
    "TrimeshSolid",
]
