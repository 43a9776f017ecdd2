"""Solid-model AST and the visitor that converts it into mesh buffers.

Example usage:
    from core.scad_ast import ASTVisitor, parse_json_ast

    visitor = ASTVisitor()
    result = visitor.visit(parse_json_ast('{"type": "cube", "size": [2, 3, 4]}'))
    if result.ok:
        print(result.value.name, result.value.vertex_count)
    visitor.dispose()
"""

from .nodes import (
    AST_NODE_TYPES,
    ASTNode,
    BooleanOp,
    Cube,
    Cylinder,
    Primitive,
    SourceLocation,
    Sphere,
    Transform,
    TransformKind,
    node_from_dict,
    node_name,
    parse_json_ast,
)
from .visitor import ASTVisitor, ProcessingMetrics, VisitorConfig

__all__ = [
    # Nodes
    "ASTNode",
    "Primitive",
    "Cube",
    "Sphere",
    "Cylinder",
    "BooleanOp",
    "Transform",
    "TransformKind",
    "SourceLocation",
    "AST_NODE_TYPES",
    "node_from_dict",
    "node_name",
    "parse_json_ast",
    # Visitor
    "ASTVisitor",
    "VisitorConfig",
    "ProcessingMetrics",
]
