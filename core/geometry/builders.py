"""Primitive geometry builders: cube, sphere and cylinder mesh buffers."""

import logging
from numbers import Number
from typing import Callable, Optional, Sequence, Union

import numpy as np
import trimesh

from core.errors import GeometryConstructionError, Result

from .types import MaterialDescriptor, MeshBuffer, Vec3

logger = logging.getLogger(__name__)

DEFAULT_SEGMENTS = 32
MIN_SEGMENTS = 3

SizeInput = Union[None, float, Sequence[float]]


def normalize_size(size: SizeInput, default: float = 1.0) -> Vec3:
    """Expand a scalar or missing size into a 3-vector."""
    if size is None:
        return (default, default, default)
    if isinstance(size, Number):
        return (float(size), float(size), float(size))
    values = list(size)
    if len(values) != 3:
        raise GeometryConstructionError(f"Cube size must have 3 components, got {len(values)}")
    return (float(values[0]), float(values[1]), float(values[2]))


def _check_segments(segments: int) -> int:
    segments = int(segments)
    if segments < MIN_SEGMENTS:
        raise GeometryConstructionError(
            f"Segment count must be at least {MIN_SEGMENTS}, got {segments}"
        )
    return segments


def build_cube(
    size: SizeInput = None,
    center: bool = False,
    material: Optional[MaterialDescriptor] = None,
) -> MeshBuffer:
    """Build a box. Non-centered boxes sit with their minimum corner at the origin."""
    width, height, depth = normalize_size(size)
    if min(width, height, depth) <= 0:
        raise GeometryConstructionError(
            f"Box dimensions must be positive, got [{width}, {height}, {depth}]"
        )

    mesh = trimesh.creation.box(extents=[width, height, depth])
    if not center:
        mesh.apply_translation([width / 2, height / 2, depth / 2])

    return MeshBuffer.from_trimesh(
        mesh,
        material=material,
        geometry_type="box",
        parameters={"width": width, "height": height, "depth": depth},
    )


def build_sphere(
    radius: Optional[float] = None,
    segments: int = DEFAULT_SEGMENTS,
    material: Optional[MaterialDescriptor] = None,
) -> MeshBuffer:
    """Build a UV sphere centered at the origin."""
    radius = 1.0 if radius is None else float(radius)
    if radius <= 0:
        raise GeometryConstructionError(f"Sphere radius must be positive, got {radius}")
    segments = _check_segments(segments)

    mesh = trimesh.creation.uv_sphere(radius=radius, count=[segments, segments])

    return MeshBuffer.from_trimesh(
        mesh,
        material=material,
        geometry_type="sphere",
        parameters={"radius": radius, "segments": segments},
    )


def build_cylinder(
    radius_top: Optional[float] = None,
    radius_bottom: Optional[float] = None,
    height: Optional[float] = None,
    segments: int = DEFAULT_SEGMENTS,
    center: bool = False,
    material: Optional[MaterialDescriptor] = None,
) -> MeshBuffer:
    """Build a cylinder, cone or frustum along the Z axis.

    Non-centered cylinders have their base at z=0.
    """
    radius_bottom = 1.0 if radius_bottom is None else float(radius_bottom)
    radius_top = radius_bottom if radius_top is None else float(radius_top)
    height = 1.0 if height is None else float(height)
    segments = _check_segments(segments)

    if height <= 0:
        raise GeometryConstructionError(f"Cylinder height must be positive, got {height}")
    if radius_top < 0 or radius_bottom < 0:
        raise GeometryConstructionError(
            f"Cylinder radii must not be negative, got [{radius_top}, {radius_bottom}]"
        )
    if radius_top == 0 and radius_bottom == 0:
        raise GeometryConstructionError("Cylinder needs at least one non-zero radius")

    if radius_top == radius_bottom:
        mesh = trimesh.creation.cylinder(radius=radius_bottom, height=height, sections=segments)
        if not center:
            mesh.apply_translation([0, 0, height / 2])
    else:
        # Profile in (radius, z), revolved around Z
        profile = [[0.0, 0.0]]
        if radius_bottom > 0:
            profile.append([radius_bottom, 0.0])
        if radius_top > 0:
            profile.append([radius_top, height])
        profile.append([0.0, height])
        mesh = trimesh.creation.revolve(np.array(profile), sections=segments)
        if center:
            mesh.apply_translation([0, 0, -height / 2])

    return MeshBuffer.from_trimesh(
        mesh,
        material=material,
        geometry_type="cylinder",
        parameters={
            "radius_top": radius_top,
            "radius_bottom": radius_bottom,
            "height": height,
            "segments": segments,
        },
    )


def try_build(builder: Callable[..., MeshBuffer], *args, **kwargs) -> Result[MeshBuffer]:
    """Run a builder, turning construction failures into a failed Result."""
    try:
        return Result.success(builder(*args, **kwargs))
    except GeometryConstructionError as e:
        logger.warning(f"{builder.__name__} rejected its input: {e}")
        return Result.failure(e)
    except Exception as e:
        logger.error(f"{builder.__name__} failed: {e}")
        return Result.failure(GeometryConstructionError(f"{builder.__name__} failed: {e}"))
