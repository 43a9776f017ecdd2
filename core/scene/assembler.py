"""Scene assembler: builds a lit scene graph and framing camera from meshes."""

import logging
from typing import List, Optional, Sequence, Tuple

from core.errors import Result, SceneAssemblyError, SceneConversionError, ValidationError
from core.geometry.types import BYTES_PER_VERTEX, BoundingBox, MeshBuffer

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

logger = logging.getLogger(__name__)

# Rough per-item memory costs used by stats()
BYTES_PER_TRIANGLE = 6
BYTES_PER_MATERIAL = 1024


class SceneAssembler:
    """
    Assembles renderable scenes from mesh buffers.

    Each scene gets:
    1. Background color and optional fog
    2. A four-light rig (ambient, key directional, point fill, rim)
    3. Grid and axes helpers
    4. Clones of the input meshes, flagged for shadows when enabled
    """

    def __init__(self, config: Optional[SceneConfig] = None):
        self.config = config or SceneConfig()
        self._scenes: List[SceneGraph] = []

    def assemble(self, meshes: Sequence[MeshBuffer]) -> Result[SceneGraph]:
        """
        Build a scene graph from the given meshes.

        Args:
            meshes: Non-empty list of meshes; each is cloned into the scene

        Returns:
            Result holding the new scene
        """
        logger.debug(f"Creating scene with {len(meshes or [])} meshes")

        try:
            self._validate(meshes)

            scene = SceneGraph(background_color=self.config.background_color)

            if self.config.enable_fog:
                scene.fog = Fog(
                    color=self.config.background_color,
                    near=self.config.fog_near,
                    far=self.config.fog_far,
                )

            if self.config.enable_lighting:
                scene.lights.extend(self._build_lights())

            if self.config.enable_grid:
                scene.grid = GridHelper(
                    size=self.config.grid_size, divisions=self.config.grid_size
                )

            if self.config.enable_axes:
                scene.axes = AxesHelper(size=self.config.axes_size)

            for index, mesh in enumerate(meshes):
                try:
                    clone = mesh.clone()
                except Exception as e:
                    raise SceneAssemblyError(
                        f"Failed to add mesh at index {index} to scene: {e}", mesh_index=index
                    ) from e
                clone.name = mesh.name or f"mesh_{index}"
                if self.config.enable_shadows:
                    clone.cast_shadow = True
                    clone.receive_shadow = True
                scene.add_mesh(clone)

            if self.config.enable_optimization:
                self.optimize(scene)

            self._scenes.append(scene)
            logger.info(f"Created scene with {scene.object_count} objects")
            return Result.success(scene)

        except SceneConversionError as e:
            logger.warning(f"Scene creation failed: {e}")
            return Result.failure(e)
        except Exception as e:
            logger.error(f"Scene creation failed: {e}")
            return Result.failure(SceneAssemblyError(f"Scene creation failed: {e}"))

    def assemble_with_camera(
        self, meshes: Sequence[MeshBuffer]
    ) -> Result[Tuple[SceneGraph, Camera]]:
        """Build a scene plus a camera framing the meshes' world bounds."""
        scene_result = self.assemble(meshes)
        if not scene_result.ok:
            return scene_result

        bounds = self.scene_bounds(meshes)
        camera = Camera.framing(bounds)
        logger.debug(f"Camera positioned at {camera.position} looking at {camera.target}")
        return Result.success((scene_result.value, camera))

    def scene_bounds(self, meshes: Sequence[MeshBuffer]) -> BoundingBox:
        box = BoundingBox()
        for mesh in meshes:
            if mesh is not None and mesh.has_geometry:
                box = box.union(mesh.world_bounds())
        return box

    def stats(self, scene: SceneGraph) -> SceneStatistics:
        """Compute statistics by walking the scene's meshes and lights."""
        statistics = SceneStatistics(
            mesh_count=len(scene.meshes),
            light_count=len(scene.lights),
        )
        materials = set()

        for mesh in scene.meshes:
            statistics.vertex_count += mesh.vertex_count
            statistics.triangle_count += mesh.triangle_count
            if mesh.has_geometry:
                statistics.bounding_box = statistics.bounding_box.union(mesh.world_bounds())
            if mesh.material is not None:
                materials.add(mesh.material)

        statistics.material_count = len(materials)
        statistics.memory_estimate = (
            statistics.vertex_count * BYTES_PER_VERTEX
            + statistics.triangle_count * BYTES_PER_TRIANGLE
            + statistics.material_count * BYTES_PER_MATERIAL
        )
        return statistics

    def optimize(self, scene: SceneGraph) -> None:
        """Fill in missing normals and precompute bounds. Failures are logged only."""
        try:
            for mesh in scene.meshes:
                if not mesh.has_geometry:
                    continue
                if mesh.normals is None:
                    mesh.compute_vertex_normals()
                mesh.compute_bounds()
            logger.debug("Scene optimization complete")
        except Exception as e:
            logger.warning(f"Scene optimization failed: {e}")

    def dispose(self) -> None:
        """Dispose every scene this assembler created."""
        for scene in self._scenes:
            scene.dispose()
        self._scenes.clear()
        logger.debug("Scene assembler disposed")

    def _validate(self, meshes: Sequence[MeshBuffer]) -> None:
        if meshes is None:
            raise ValidationError("Meshes list is None")
        if len(meshes) == 0:
            raise ValidationError("No meshes provided for scene creation")

        for i, mesh in enumerate(meshes):
            if mesh is None:
                raise SceneAssemblyError(f"Mesh at index {i} is None", mesh_index=i)
            if not mesh.has_geometry:
                raise SceneAssemblyError(f"Mesh at index {i} has no geometry", mesh_index=i)
            if mesh.material is None:
                raise SceneAssemblyError(f"Mesh at index {i} has no material", mesh_index=i)

    def _build_lights(self) -> List[Light]:
        shadows = self.config.enable_shadows
        return [
            Light(
                name="ambientLight",
                light_type="ambient",
                intensity=self.config.ambient_light_intensity,
            ),
            Light(
                name="directionalLight",
                light_type="directional",
                intensity=self.config.directional_light_intensity,
                position=(10.0, 10.0, 5.0),
                cast_shadow=shadows,
                shadow=ShadowSettings(map_size=self.config.shadow_map_size) if shadows else None,
            ),
            Light(
                name="pointLight",
                light_type="point",
                intensity=self.config.point_light_intensity,
                position=(-5.0, 5.0, 5.0),
                distance=100.0,
            ),
            Light(
                name="rimLight",
                light_type="directional",
                intensity=0.3,
                position=(-10.0, 5.0, -5.0),
            ),
        ]
