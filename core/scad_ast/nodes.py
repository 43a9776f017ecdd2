"""AST node types for solid-model descriptions.

Nodes are immutable and owned by the parser that produced them. Parsers that
emit plain dictionaries (``{"type": "cube", "size": [1, 2, 3]}``) are
adapted through :func:`node_from_dict` / :func:`parse_json_ast`.
"""

import json
from dataclasses import dataclass
from enum import Enum
from numbers import Number
from typing import Any, Optional, Tuple, Union

from core.errors import ValidationError
from core.geometry.boolean_ops import BooleanKind
from core.geometry.types import Vec3


class TransformKind(str, Enum):
    """Affine transform kinds."""

    TRANSLATE = "translate"
    ROTATE = "rotate"
    SCALE = "scale"


@dataclass(frozen=True)
class SourceLocation:
    """Line/column of a node in the source text."""

    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Cube:
    size: Union[float, Vec3, None] = None
    center: bool = False
    location: Optional[SourceLocation] = None
    type_name = "cube"


@dataclass(frozen=True)
class Sphere:
    radius: Optional[float] = None
    segments: Optional[int] = None
    location: Optional[SourceLocation] = None
    type_name = "sphere"


@dataclass(frozen=True)
class Cylinder:
    radius_top: Optional[float] = None
    radius_bottom: Optional[float] = None
    height: Optional[float] = None
    segments: Optional[int] = None
    center: bool = False
    location: Optional[SourceLocation] = None
    type_name = "cylinder"


@dataclass(frozen=True)
class BooleanOp:
    kind: BooleanKind = BooleanKind.UNION
    children: Tuple["ASTNode", ...] = ()
    location: Optional[SourceLocation] = None

    @property
    def type_name(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class Transform:
    kind: TransformKind = TransformKind.TRANSLATE
    vector: Vec3 = (0.0, 0.0, 0.0)
    children: Tuple["ASTNode", ...] = ()
    location: Optional[SourceLocation] = None

    @property
    def type_name(self) -> str:
        return self.kind.value


Primitive = Union[Cube, Sphere, Cylinder]
ASTNode = Union[Cube, Sphere, Cylinder, BooleanOp, Transform]

AST_NODE_TYPES = (Cube, Sphere, Cylinder, BooleanOp, Transform)

_BOOLEAN_TYPES = {kind.value for kind in BooleanKind}
_TRANSFORM_TYPES = {kind.value for kind in TransformKind}

# Defaults for transform vectors that the source omitted
_TRANSFORM_DEFAULTS = {
    TransformKind.TRANSLATE: (0.0, 0.0, 0.0),
    TransformKind.ROTATE: (0.0, 0.0, 0.0),
    TransformKind.SCALE: (1.0, 1.0, 1.0),
}


def node_name(node: ASTNode) -> str:
    """Diagnostic name ``{type}_{line}_{column}``."""
    location = node.location or SourceLocation()
    return f"{node.type_name}_{location.line}_{location.column}"


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _number(value: Any, field_name: str) -> Optional[float]:
    """Float for a present value, None for an absent one; anything else is rejected."""
    if value is None:
        return None
    if not _is_number(value):
        raise ValidationError(f"Invalid {field_name}: expected a number, got {value!r}")
    return float(value)


def _vector(value: Any, field_name: str) -> Optional[Vec3]:
    """Vec3 from three numbers or a uniform scalar; None when absent."""
    if value is None:
        return None
    if _is_number(value):
        return (float(value), float(value), float(value))
    if isinstance(value, (list, tuple)) and len(value) == 3 and all(_is_number(v) for v in value):
        return (float(value[0]), float(value[1]), float(value[2]))
    raise ValidationError(
        f"Invalid {field_name}: expected a number or three numbers, got {value!r}"
    )


def _flag(value: Any, field_name: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name}: expected true or false, got {value!r}")
    return value


def _location(data: dict) -> Optional[SourceLocation]:
    location = data.get("location")
    if location is None:
        return None
    if not isinstance(location, dict):
        raise ValidationError(f"Invalid node location: expected a mapping, got {location!r}")
    start = location.get("start", location)
    if not isinstance(start, dict):
        raise ValidationError(f"Invalid node location start: expected a mapping, got {start!r}")
    try:
        return SourceLocation(line=int(start.get("line", 0)), column=int(start.get("column", 0)))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid node location: {e}") from e


def _children(data: dict) -> Tuple[ASTNode, ...]:
    children = data.get("children") or []
    if not isinstance(children, (list, tuple)):
        raise ValidationError("Node children must be a list")
    return tuple(node_from_dict(child) for child in children)


def node_from_dict(data: Any) -> ASTNode:
    """
    Convert a parser's dictionary node into a typed AST node.

    Args:
        data: Dictionary with a ``type`` key and OpenSCAD-style parameters

    Returns:
        The matching AST node

    Raises:
        ValidationError: If the node is missing or untyped, the type is unknown,
            or a present parameter is malformed
    """
    if data is None:
        raise ValidationError("Invalid node: node is None")
    if isinstance(data, AST_NODE_TYPES):
        return data
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid node: expected a mapping, got {type(data).__name__}")

    node_type = data.get("type")
    if not node_type:
        raise ValidationError("Invalid node: missing type")

    location = _location(data)

    if node_type == "cube":
        return Cube(
            size=_vector(data.get("size"), "cube size"),
            center=_flag(data.get("center"), "cube center"),
            location=location,
        )

    if node_type == "sphere":
        radius = _number(data.get("r", data.get("radius")), "sphere radius")
        if radius is None:
            diameter = _number(data.get("d"), "sphere diameter")
            if diameter is not None:
                radius = diameter / 2
        return Sphere(
            radius=radius,
            segments=_segments(data, "sphere"),
            location=location,
        )

    if node_type == "cylinder":
        radius = _number(data.get("r", data.get("radius")), "cylinder radius")
        radius_bottom = _number(data.get("r1"), "cylinder r1")
        radius_top = _number(data.get("r2"), "cylinder r2")
        return Cylinder(
            radius_top=radius if radius_top is None else radius_top,
            radius_bottom=radius if radius_bottom is None else radius_bottom,
            height=_number(data.get("h", data.get("height")), "cylinder height"),
            segments=_segments(data, "cylinder"),
            center=_flag(data.get("center"), "cylinder center"),
            location=location,
        )

    if node_type in _BOOLEAN_TYPES:
        return BooleanOp(kind=BooleanKind(node_type), children=_children(data), location=location)

    if node_type in _TRANSFORM_TYPES:
        kind = TransformKind(node_type)
        raw = data.get("a", data.get("v")) if kind == TransformKind.ROTATE else data.get("v")
        if raw is None:
            raw = data.get("vector")
        vector = _vector(raw, f"{kind.value} vector")
        return Transform(
            kind=kind,
            vector=_TRANSFORM_DEFAULTS[kind] if vector is None else vector,
            children=_children(data),
            location=location,
        )

    raise ValidationError(f"Unsupported node type: {node_type}")


def _segments(data: dict, node_type: str) -> Optional[int]:
    segments = data.get("segments", data.get("$fn"))
    if segments is None:
        return None
    if not _is_number(segments) or segments <= 0:
        raise ValidationError(
            f"Invalid {node_type} segments: expected a positive number, got {segments!r}"
        )
    return int(segments)


def parse_json_ast(source: str) -> ASTNode:
    """Parser adapter for JSON-serialized AST documents.

    A top-level list of nodes is treated as an implicit union.
    """
    try:
        data = json.loads(source)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid AST document at line {e.lineno}: {e.msg}") from e

    if isinstance(data, list):
        children = tuple(node_from_dict(item) for item in data)
        if len(children) == 1:
            return children[0]
        return BooleanOp(kind=BooleanKind.UNION, children=children)
    return node_from_dict(data)
