"""Scene graph assembly and export.

Example usage:
    from core.scene import SceneAssembler, export_scene

    assembler = SceneAssembler()
    result = assembler.assemble_with_camera(meshes)
    if result.ok:
        scene, camera = result.value
        print(assembler.stats(scene).to_dict())
        export_scene(scene, "output.glb")
"""

from .assembler import SceneAssembler
from .exporter import SUPPORTED_FORMATS, export_scene, to_trimesh_scene
from .types import (
    AxesHelper,
    Camera,
    Fog,
    GridHelper,
    Light,
    SceneConfig,
    SceneGraph,
    SceneStatistics,
    ShadowSettings,
)

__all__ = [
    # Assembler
    "SceneAssembler",
    "SceneConfig",
    # Types
    "SceneGraph",
    "SceneStatistics",
    "Camera",
    "Light",
    "ShadowSettings",
    "Fog",
    "GridHelper",
    "AxesHelper",
    # Export
    "export_scene",
    "to_trimesh_scene",
    "SUPPORTED_FORMATS",
]
