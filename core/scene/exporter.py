"""Export scene graphs to GLB or OBJ via trimesh."""

import logging
from pathlib import Path
from typing import Union

import trimesh

from core.errors import SceneConversionError

from .types import SceneGraph

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("glb", "obj")


def to_trimesh_scene(scene: SceneGraph) -> trimesh.Scene:
    """Convert to trimesh Scene for export, one node per mesh."""
    result = trimesh.Scene()
    for index, mesh in enumerate(scene.meshes):
        if not mesh.has_geometry:
            continue
        name = mesh.name or f"mesh_{index}"
        # Node names must be unique within a trimesh scene
        if name in result.graph.nodes:
            name = f"{name}_{index}"
        result.add_geometry(
            mesh.to_trimesh(apply_transform=True), node_name=name, geom_name=name
        )
    return result


def export_scene(
    scene: SceneGraph, path: Union[str, Path, None] = None, file_type: str = "glb"
) -> bytes:
    """
    Export a scene to GLB (binary glTF) or OBJ.

    Args:
        scene: Scene to export
        path: Optional output file; the exported bytes are returned either way
        file_type: glb or obj

    Returns:
        The exported file contents
    """
    file_type = file_type.lower()
    if file_type not in SUPPORTED_FORMATS:
        raise SceneConversionError(
            f"Unsupported export format: {file_type}", error_type="validation"
        )
    if not scene.meshes:
        raise SceneConversionError("Scene has no meshes to export", error_type="validation")

    exported = to_trimesh_scene(scene).export(file_type=file_type)
    if isinstance(exported, str):
        exported = exported.encode("utf-8")

    if path is not None:
        Path(path).write_bytes(exported)
        logger.info(f"Exported scene to {path} ({file_type}, {len(exported)} bytes)")

    return exported
