"""Tests for the AST visitor."""

import math
from unittest.mock import patch

import pytest

from core.errors import ValidationError
from core.geometry import BooleanKind, BooleanSolidService, MaterialDescriptor, build_cube
from core.scad_ast import (
    ASTVisitor,
    BooleanOp,
    Cube,
    Cylinder,
    SourceLocation,
    Sphere,
    Transform,
    TransformKind,
    VisitorConfig,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def visitor(boolean_service):
    """Visitor whose boolean operations run on the fake kernel."""
    visitor = ASTVisitor(boolean_service=boolean_service)
    yield visitor
    visitor.dispose()


def union(*children):
    return BooleanOp(kind=BooleanKind.UNION, children=tuple(children))


def difference(*children):
    return BooleanOp(kind=BooleanKind.DIFFERENCE, children=tuple(children))


def transform(kind, vector, *children):
    return Transform(kind=kind, vector=vector, children=tuple(children))


# ============================================================================
# Primitives
# ============================================================================


class TestPrimitives:
    def test_cube_parameters(self, visitor):
        result = visitor.visit(Cube(size=(2.0, 3.0, 4.0)))
        assert result.ok
        assert result.value.parameters == {"width": 2.0, "height": 3.0, "depth": 4.0}

    def test_name_uses_location(self, visitor):
        result = visitor.visit(Sphere(radius=1.0, location=SourceLocation(line=2, column=9)))
        assert result.value.name == "sphere_2_9"

    def test_default_material(self, visitor):
        mesh = visitor.visit(Cylinder(height=2.0)).value
        assert mesh.material == MaterialDescriptor()

    def test_config_segments(self, boolean_service):
        visitor = ASTVisitor(VisitorConfig(segments=12), boolean_service=boolean_service)
        assert visitor.visit(Sphere(radius=1.0)).value.parameters["segments"] == 12

    def test_node_segments_override_config(self, visitor):
        assert visitor.visit(Sphere(radius=1.0, segments=8)).value.parameters["segments"] == 8

    def test_dictionary_node(self, visitor):
        result = visitor.visit({"type": "cube", "size": [1, 2, 3]})
        assert result.ok
        assert result.value.parameters["height"] == 2.0

    def test_invalid_primitive(self, visitor):
        result = visitor.visit(Cube(size=(1.0, -1.0, 1.0)))
        assert not result.ok
        assert result.error.error_type == "geometry"


class TestInvalidNodes:
    def test_none(self, visitor):
        result = visitor.visit(None)
        assert not result.ok
        assert "Invalid node" in result.error_message

    def test_unsupported_object(self, visitor):
        result = visitor.visit(object())
        assert "Unsupported node type" in result.error_message

    def test_unsupported_dictionary_type(self, visitor):
        result = visitor.visit({"type": "polyhedron"})
        assert "Unsupported node type: polyhedron" in result.error_message

    def test_malformed_cube_size(self, visitor):
        result = visitor.visit({"type": "cube", "size": [1, 2]})
        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert "cube size" in result.error_message

    def test_malformed_sphere_radius(self, visitor):
        result = visitor.visit({"type": "sphere", "r": "big"})
        assert not result.ok
        assert "sphere radius" in result.error_message

    def test_malformed_location_is_reported(self, visitor):
        result = visitor.visit({"type": "cube", "location": {"start": "x"}})
        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert visitor.get_metrics().failed_nodes == 1

    def test_recursion_limit(self, boolean_service):
        visitor = ASTVisitor(VisitorConfig(max_recursion_depth=3), boolean_service=boolean_service)
        node = Cube()
        for _ in range(5):
            node = transform(TransformKind.TRANSLATE, (1.0, 0.0, 0.0), node)
        result = visitor.visit(node)
        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert "Maximum recursion depth" in result.error_message


# ============================================================================
# Boolean nodes
# ============================================================================


class TestBooleanNodes:
    def test_single_child_union_returns_child_mesh(self, visitor):
        mesh = build_cube(1)
        with patch("core.scad_ast.visitor.build_cube", return_value=mesh):
            result = visitor.visit(union(Cube()))
        assert result.ok
        assert result.value is mesh
        assert not result.degraded

    def test_difference_needs_two_children(self, visitor):
        result = visitor.visit(difference(Cube()))
        assert not result.ok
        assert "at least two" in result.error_message

    def test_empty_union(self, visitor):
        assert not visitor.visit(union()).ok

    def test_union_combines(self, visitor, fake_kernel):
        node = BooleanOp(
            kind=BooleanKind.UNION,
            children=(Cube(), Cube(size=(2.0, 2.0, 2.0))),
            location=SourceLocation(line=1, column=1),
        )
        result = visitor.visit(node)
        assert result.ok
        assert not result.degraded
        assert result.value.name == "union_1_1"
        assert result.value.vertex_count == 16
        assert result.value.material == MaterialDescriptor()
        assert fake_kernel.operations == ["union"]

    def test_failed_child_is_skipped(self, visitor):
        result = visitor.visit(union(Cube(), Cube(size=(-1.0, 1.0, 1.0))))
        assert result.ok
        assert result.degraded
        assert any("skipped child 1" in warning for warning in result.warnings)

    def test_difference_with_one_surviving_child_fails(self, visitor):
        result = visitor.visit(difference(Cube(), Sphere(radius=-1.0)))
        assert not result.ok
        assert result.warnings

    def test_csg_disabled_falls_back_to_first_child(self, boolean_service, fake_kernel):
        visitor = ASTVisitor(VisitorConfig(enable_csg=False), boolean_service=boolean_service)
        result = visitor.visit(difference(Cube(size=(2.0, 2.0, 2.0)), Sphere()))
        assert result.ok
        assert result.degraded
        assert result.value.geometry_type == "box"
        assert "CSG evaluation is disabled" in result.warnings[-1]
        assert fake_kernel.operations == []

    def test_unsupported_kernel_falls_back(self, kernel_factory):
        service = BooleanSolidService(kernel=kernel_factory(supported=False))
        visitor = ASTVisitor(boolean_service=service)
        result = visitor.visit(union(Cube(), Sphere()))
        assert result.degraded
        assert result.value.geometry_type == "box"

    def test_kernel_failure_falls_back(self, kernel_factory, caplog):
        service = BooleanSolidService(kernel=kernel_factory(fail_on="intersect"))
        visitor = ASTVisitor(boolean_service=service)
        node = BooleanOp(kind=BooleanKind.INTERSECTION, children=(Sphere(), Cube()))
        result = visitor.visit(node)
        assert result.ok
        assert result.degraded
        assert result.value.geometry_type == "sphere"
        assert "using first child mesh" in caplog.text


# ============================================================================
# Transform nodes
# ============================================================================


class TestTransformNodes:
    def test_rotate_sets_radians(self, visitor):
        result = visitor.visit(transform(TransformKind.ROTATE, (90.0, 45.0, 0.0), Cube()))
        assert result.value.transform.rotation == pytest.approx((math.pi / 2, math.pi / 4, 0.0))

    def test_translate_accumulates(self, visitor):
        node = transform(
            TransformKind.TRANSLATE,
            (1.0, 0.0, 0.0),
            transform(TransformKind.TRANSLATE, (0.0, 2.0, 0.0), Cube()),
        )
        assert visitor.visit(node).value.transform.position == pytest.approx((1.0, 2.0, 0.0))

    def test_scale_multiplies(self, visitor):
        node = transform(
            TransformKind.SCALE,
            (2.0, 2.0, 2.0),
            transform(TransformKind.SCALE, (1.0, 3.0, 1.0), Cube()),
        )
        assert visitor.visit(node).value.transform.scale == pytest.approx((2.0, 6.0, 2.0))

    def test_no_new_geometry(self, visitor):
        plain = visitor.visit(Cube()).value
        moved = visitor.visit(transform(TransformKind.TRANSLATE, (5.0, 0.0, 0.0), Cube())).value
        assert (plain.vertices == moved.vertices).all()

    def test_exactly_one_child(self, visitor):
        result = visitor.visit(transform(TransformKind.TRANSLATE, (1.0, 0.0, 0.0), Cube(), Cube()))
        assert not result.ok
        assert "exactly one child" in result.error_message

    def test_child_failure_propagates(self, visitor):
        result = visitor.visit(transform(TransformKind.SCALE, (2.0, 2.0, 2.0), Sphere(radius=0.0)))
        assert not result.ok


# ============================================================================
# Metrics and lifecycle
# ============================================================================


class TestMetricsAndDispose:
    def test_own_service_follows_visitor_logging(self):
        visitor = ASTVisitor(VisitorConfig(enable_logging=False))
        config = visitor.boolean_service.config
        assert config.enable_logging is False
        assert config.enable_caching
        assert not hasattr(VisitorConfig(), "enable_caching")
        visitor.dispose()

    def test_metrics_count_nodes(self, visitor):
        visitor.visit(union(Cube(), Cube(size=(-1.0, 1.0, 1.0))))
        metrics = visitor.get_metrics()
        assert metrics.total_nodes == 3
        assert metrics.processed_nodes == 2
        assert metrics.failed_nodes == 1
        assert metrics.memory_usage > 0
        assert metrics.processing_time >= 0

    def test_boolean_cache_counted(self, visitor):
        node = union(Cube(), Sphere())
        visitor.visit(node)
        visitor.visit(node)
        metrics = visitor.get_metrics()
        assert metrics.cache_misses == 1
        assert metrics.cache_hits == 1

    def test_dispose_releases_tracked_meshes(self, visitor):
        mesh = visitor.visit(Cube()).value
        visitor.dispose()
        assert mesh.disposed
        assert visitor.tracked_meshes == []
        visitor.dispose()

    def test_detached_mesh_survives_dispose(self, visitor):
        mesh = visitor.visit(Cube()).value
        visitor.detach([mesh])
        visitor.dispose()
        assert not mesh.disposed
        assert mesh.vertex_count == 8

    def test_injected_service_not_disposed(self, boolean_service):
        visitor = ASTVisitor(boolean_service=boolean_service)
        visitor.visit(union(Cube(), Sphere()))
        visitor.dispose()
        assert boolean_service.cache_size() == 1
