"""Tests for scene assembly, statistics and export."""

import numpy as np
import pytest
import trimesh

from core.errors import SceneAssemblyError, SceneConversionError, ValidationError
from core.geometry import MaterialDescriptor, MeshBuffer, build_cube, build_sphere
from core.scene import (
    Camera,
    SceneAssembler,
    SceneConfig,
    SceneGraph,
    export_scene,
    to_trimesh_scene,
)


@pytest.fixture
def assembler():
    """Create a scene assembler with default configuration."""
    assembler = SceneAssembler()
    yield assembler
    assembler.dispose()


@pytest.fixture
def two_cubes():
    a = build_cube(1)
    a.name = "cube_1_1"
    b = build_cube(1)
    b.name = "cube_2_1"
    b.transform.translate((2.0, 0.0, 0.0))
    return [a, b]


class TestAssemble:
    """Tests for scene creation."""

    def test_default_environment(self, assembler, two_cubes):
        scene = assembler.assemble(two_cubes).value
        assert scene.background_color == "#2c3e50"
        assert scene.fog is None
        assert scene.grid.size == 20
        assert scene.axes.size == 5

    def test_light_rig(self, assembler, two_cubes):
        scene = assembler.assemble(two_cubes).value
        lights = {light.name: light for light in scene.lights}
        assert len(scene.lights) == 4
        assert lights["ambientLight"].intensity == 0.4
        key = lights["directionalLight"]
        assert key.position == (10.0, 10.0, 5.0)
        assert key.cast_shadow
        assert key.shadow.map_size == 2048
        assert (key.shadow.near, key.shadow.far) == (0.5, 500.0)
        assert lights["pointLight"].distance == 100.0
        assert lights["rimLight"].intensity == 0.3

    def test_meshes_cloned_with_shadows(self, assembler, two_cubes):
        scene = assembler.assemble(two_cubes).value
        assert len(scene.meshes) == 2
        assert scene.meshes[0] is not two_cubes[0]
        assert scene.meshes[0].name == "cube_1_1"
        assert scene.meshes[0].cast_shadow and scene.meshes[0].receive_shadow
        assert not two_cubes[0].cast_shadow

    def test_unnamed_mesh_gets_index_name(self, assembler):
        scene = assembler.assemble([build_cube(1)]).value
        assert scene.meshes[0].name == "mesh_0"

    def test_fog_and_helpers_configurable(self, two_cubes):
        config = SceneConfig(enable_fog=True, enable_grid=False, enable_axes=False, enable_lighting=False)
        scene = SceneAssembler(config).assemble(two_cubes).value
        assert scene.fog.near == 50
        assert scene.fog.far == 200
        assert scene.grid is None
        assert scene.axes is None
        assert scene.lights == []

    def test_empty_list(self, assembler):
        result = assembler.assemble([])
        assert not result.ok
        assert isinstance(result.error, ValidationError)

    def test_mesh_without_geometry(self, assembler, two_cubes):
        result = assembler.assemble([two_cubes[0], MeshBuffer()])
        assert not result.ok
        assert isinstance(result.error, SceneAssemblyError)
        assert result.error.mesh_index == 1

    def test_mesh_without_material(self, assembler):
        mesh = build_cube(1)
        mesh.material = None
        result = assembler.assemble([mesh])
        assert "has no material" in result.error_message

    def test_optimization_computes_bounds(self, assembler, two_cubes):
        scene = assembler.assemble(two_cubes).value
        assert all(mesh.bounding_box is not None for mesh in scene.meshes)


class TestCamera:
    def test_camera_frames_bounds(self, assembler):
        scene, camera = assembler.assemble_with_camera([build_cube(2)]).value
        assert camera.target == pytest.approx((1.0, 1.0, 1.0))
        assert camera.position == pytest.approx((3.8, 3.8, 3.8))
        assert camera.far == pytest.approx(40.0)
        assert (camera.fov, camera.aspect, camera.near) == (75.0, 1.0, 0.1)

    def test_camera_uses_world_transforms(self, assembler, two_cubes):
        _, camera = assembler.assemble_with_camera(two_cubes).value
        assert camera.target[0] == pytest.approx(1.5)

    def test_failure_propagates(self, assembler):
        assert not assembler.assemble_with_camera([]).ok

    def test_to_dict(self):
        camera = Camera(position=(1.0, 2.0, 3.0), target=(0.0, 0.0, 0.0))
        assert camera.to_dict()["position"] == [1.0, 2.0, 3.0]


class TestStatistics:
    def test_two_cube_statistics(self, assembler, two_cubes):
        scene, _ = assembler.assemble_with_camera(two_cubes).value
        stats = assembler.stats(scene)
        assert stats.mesh_count == 2
        assert stats.vertex_count == 16
        assert stats.triangle_count == 24
        assert stats.material_count == 1
        assert stats.light_count == 4
        assert stats.memory_estimate == 16 * 12 + 24 * 6 + 1024
        np.testing.assert_allclose(stats.bounding_box.max, [3.0, 1.0, 1.0])

    def test_materials_deduplicated_by_value(self, assembler):
        red = MaterialDescriptor(color="#ff0000")
        meshes = [build_cube(1), build_cube(1, material=red), build_sphere(1, 8, material=red)]
        stats = assembler.stats(assembler.assemble(meshes).value)
        assert stats.material_count == 2

    def test_wire_keys(self, assembler, two_cubes):
        data = assembler.stats(assembler.assemble(two_cubes).value).to_dict()
        assert data["meshCount"] == 2
        assert "memoryEstimate" in data


class TestDispose:
    def test_scene_dispose_is_idempotent(self, assembler, two_cubes):
        scene = assembler.assemble(two_cubes).value
        meshes = list(scene.meshes)
        scene.dispose()
        scene.dispose()
        assert scene.disposed
        assert all(mesh.disposed for mesh in meshes)
        assert scene.lights == []

    def test_context_manager(self, assembler, two_cubes):
        with assembler.assemble(two_cubes).value as scene:
            mesh = scene.meshes[0]
        assert mesh.disposed
        assert not two_cubes[0].disposed

    def test_assembler_dispose(self, two_cubes):
        assembler = SceneAssembler()
        scene = assembler.assemble(two_cubes).value
        assembler.dispose()
        assert scene.disposed


class TestExport:
    def test_trimesh_scene_nodes(self, assembler, two_cubes):
        scene = assembler.assemble(two_cubes).value
        exported = to_trimesh_scene(scene)
        assert isinstance(exported, trimesh.Scene)
        assert set(exported.geometry) == {"cube_1_1", "cube_2_1"}

    def test_glb_bytes(self, assembler, two_cubes, tmp_path):
        scene = assembler.assemble(two_cubes).value
        path = tmp_path / "scene.glb"
        data = export_scene(scene, path)
        assert data[:4] == b"glTF"
        assert path.read_bytes() == data

    def test_obj(self, assembler, two_cubes):
        data = export_scene(assembler.assemble(two_cubes).value, file_type="obj")
        assert b"v " in data

    def test_unsupported_format(self, assembler, two_cubes):
        with pytest.raises(SceneConversionError, match="Unsupported export format"):
            export_scene(assembler.assemble(two_cubes).value, file_type="stl")

    def test_empty_scene(self):
        with pytest.raises(SceneConversionError):
            export_scene(SceneGraph())
