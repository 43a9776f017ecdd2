"""Tests for AST node types and the dictionary/JSON adapters."""

import pytest

from core.errors import ValidationError
from core.geometry import BooleanKind
from core.scad_ast import (
    BooleanOp,
    Cube,
    Cylinder,
    SourceLocation,
    Sphere,
    Transform,
    TransformKind,
    node_from_dict,
    node_name,
    parse_json_ast,
)


class TestNodeFromDict:
    """Tests for converting parser dictionaries into nodes."""

    def test_cube(self):
        node = node_from_dict({"type": "cube", "size": [2, 3, 4], "center": True})
        assert node == Cube(size=(2.0, 3.0, 4.0), center=True)

    def test_cube_scalar_size(self):
        assert node_from_dict({"type": "cube", "size": 2}).size == (2.0, 2.0, 2.0)

    def test_cube_without_size(self):
        assert node_from_dict({"type": "cube"}).size is None

    def test_sphere_radius_and_diameter(self):
        assert node_from_dict({"type": "sphere", "r": 3}).radius == 3.0
        assert node_from_dict({"type": "sphere", "d": 4}).radius == 2.0

    def test_sphere_fn(self):
        assert node_from_dict({"type": "sphere", "r": 1, "$fn": 12}).segments == 12

    def test_cylinder_radii(self):
        node = node_from_dict({"type": "cylinder", "h": 5, "r1": 2, "r2": 1})
        assert isinstance(node, Cylinder)
        assert node.radius_bottom == 2.0
        assert node.radius_top == 1.0
        assert node.height == 5.0

    def test_cylinder_single_radius(self):
        node = node_from_dict({"type": "cylinder", "h": 2, "r": 1.5})
        assert node.radius_bottom == node.radius_top == 1.5

    def test_boolean_with_children(self):
        node = node_from_dict(
            {
                "type": "difference",
                "children": [{"type": "cube", "size": 2}, {"type": "sphere", "r": 1}],
            }
        )
        assert isinstance(node, BooleanOp)
        assert node.kind == BooleanKind.DIFFERENCE
        assert isinstance(node.children[1], Sphere)

    def test_transform_vectors(self):
        rotate = node_from_dict({"type": "rotate", "a": [90, 0, 0], "children": [{"type": "cube"}]})
        assert rotate == Transform(
            kind=TransformKind.ROTATE, vector=(90.0, 0.0, 0.0), children=(Cube(),)
        )
        translate = node_from_dict({"type": "translate", "v": [1, 2, 3]})
        assert translate.vector == (1.0, 2.0, 3.0)

    def test_scale_defaults_to_identity(self):
        assert node_from_dict({"type": "scale"}).vector == (1.0, 1.0, 1.0)

    def test_location(self):
        node = node_from_dict(
            {"type": "cube", "location": {"start": {"line": 4, "column": 7}}}
        )
        assert node.location == SourceLocation(line=4, column=7)

    def test_absent_parameters_use_defaults(self):
        node = node_from_dict({"type": "cylinder"})
        assert node == Cylinder()
        assert node_from_dict({"type": "translate"}).vector == (0.0, 0.0, 0.0)

    @pytest.mark.parametrize(
        "data, field_name",
        [
            ({"type": "cube", "size": [1, 2]}, "cube size"),
            ({"type": "cube", "size": "2"}, "cube size"),
            ({"type": "cube", "center": "yes"}, "cube center"),
            ({"type": "sphere", "r": "big"}, "sphere radius"),
            ({"type": "sphere", "d": [2]}, "sphere diameter"),
            ({"type": "sphere", "r": 1, "$fn": 0}, "sphere segments"),
            ({"type": "cylinder", "h": True}, "cylinder height"),
            ({"type": "cylinder", "r1": "1"}, "cylinder r1"),
            ({"type": "translate", "v": [1, "2", 3]}, "translate vector"),
            ({"type": "rotate", "a": [90, 0]}, "rotate vector"),
            ({"type": "scale", "v": {"x": 2}}, "scale vector"),
        ],
    )
    def test_malformed_parameters_rejected(self, data, field_name):
        with pytest.raises(ValidationError, match=f"Invalid {field_name}"):
            node_from_dict(data)

    @pytest.mark.parametrize(
        "location",
        ["x", {"start": "x"}, {"start": {"line": "four"}}, {"line": None}],
    )
    def test_malformed_location_rejected(self, location):
        with pytest.raises(ValidationError, match="Invalid node location"):
            node_from_dict({"type": "cube", "location": location})

    def test_missing_type(self):
        with pytest.raises(ValidationError, match="missing type"):
            node_from_dict({"size": 1})

    def test_unknown_type(self):
        with pytest.raises(ValidationError, match="Unsupported node type: polyhedron"):
            node_from_dict({"type": "polyhedron"})

    def test_none(self):
        with pytest.raises(ValidationError, match="Invalid node"):
            node_from_dict(None)


class TestParseJsonAst:
    def test_single_node(self):
        assert parse_json_ast('{"type": "sphere", "r": 2}') == Sphere(radius=2.0)

    def test_list_is_implicit_union(self):
        node = parse_json_ast('[{"type": "cube"}, {"type": "sphere"}]')
        assert node.kind == BooleanKind.UNION
        assert len(node.children) == 2

    def test_single_item_list_unwrapped(self):
        assert parse_json_ast('[{"type": "cube"}]') == Cube()

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="Invalid AST document"):
            parse_json_ast("cube(1);")


def test_node_name():
    node = Cube(location=SourceLocation(line=3, column=5))
    assert node_name(node) == "cube_3_5"
    assert node_name(BooleanOp(kind=BooleanKind.UNION)) == "union_0_0"
