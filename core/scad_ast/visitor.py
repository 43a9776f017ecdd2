"""AST visitor that turns solid-model nodes into mesh buffers."""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.errors import Result, SceneConversionError, ValidationError
from core.geometry.boolean_ops import (
    BooleanKind,
    BooleanServiceConfig,
    BooleanSolidService,
)
from core.geometry.builders import (
    DEFAULT_SEGMENTS,
    build_cube,
    build_cylinder,
    build_sphere,
    try_build,
)
from core.geometry.types import BYTES_PER_VERTEX, MaterialDescriptor, MeshBuffer

from .nodes import (
    BooleanOp,
    Cube,
    Cylinder,
    Sphere,
    Transform,
    TransformKind,
    node_from_dict,
    node_name,
)

logger = logging.getLogger(__name__)


@dataclass
class VisitorConfig:
    """Configuration options for the AST visitor.

    Boolean caching and optimization belong to the boolean service; inject a
    configured ``BooleanSolidService`` to control them.
    """

    enable_csg: bool = True
    enable_logging: bool = True
    max_recursion_depth: int = 100
    segments: int = DEFAULT_SEGMENTS  # Resolution for spheres and cylinders
    default_material: MaterialDescriptor = field(default_factory=MaterialDescriptor)

    @classmethod
    def from_env(cls) -> "VisitorConfig":
        """Load configuration from environment variables."""
        return cls(
            enable_csg=os.getenv("SCADSCENE_ENABLE_CSG", "true").lower() == "true",
            max_recursion_depth=int(os.getenv("SCADSCENE_MAX_DEPTH", "100")),
            segments=int(os.getenv("SCADSCENE_SEGMENTS", str(DEFAULT_SEGMENTS))),
        )


@dataclass
class ProcessingMetrics:
    """Counters for a single conversion run."""

    total_nodes: int = 0
    processed_nodes: int = 0
    failed_nodes: int = 0
    processing_time: float = 0.0  # milliseconds
    memory_usage: int = 0  # bytes, estimated from vertex counts
    cache_hits: int = 0
    cache_misses: int = 0

    def copy(self) -> "ProcessingMetrics":
        return ProcessingMetrics(**self.to_dict())

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "total_nodes": self.total_nodes,
            "processed_nodes": self.processed_nodes,
            "failed_nodes": self.failed_nodes,
            "processing_time": self.processing_time,
            "memory_usage": self.memory_usage,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
        }


class ASTVisitor:
    """
    Converts AST nodes into mesh buffers.

    Dispatch:
    1. Primitives are built by the geometry builders
    2. Boolean nodes visit their children and combine the survivors through
       the boolean solid service, falling back to the first survivor
    3. Transform nodes visit their single child and adjust its local transform

    Every mesh the visitor produces stays owned by it until ``detach`` hands
    it to a caller or ``dispose`` releases it.
    """

    def __init__(
        self,
        config: Optional[VisitorConfig] = None,
        boolean_service: Optional[BooleanSolidService] = None,
    ):
        self.config = config or VisitorConfig()

        self._owns_service = boolean_service is None
        self.boolean_service = boolean_service or BooleanSolidService(
            BooleanServiceConfig(enable_logging=self.config.enable_logging)
        )
        service_metrics = self.boolean_service.get_metrics()
        self._baseline_hits = service_metrics.cache_hits
        self._baseline_misses = service_metrics.cache_misses

        self._metrics = ProcessingMetrics()
        self._tracked: Dict[str, MeshBuffer] = {}
        self._depth = 0

        self._handlers: Dict[type, Callable[[Any], Result[MeshBuffer]]] = {
            Cube: self.visit_cube,
            Sphere: self.visit_sphere,
            Cylinder: self.visit_cylinder,
            BooleanOp: self.visit_boolean,
            Transform: self.visit_transform,
        }

    def get_metrics(self) -> ProcessingMetrics:
        """Copy of the accumulated metrics."""
        metrics = self._metrics.copy()
        service_metrics = self.boolean_service.get_metrics()
        metrics.cache_hits = service_metrics.cache_hits - self._baseline_hits
        metrics.cache_misses = service_metrics.cache_misses - self._baseline_misses
        return metrics

    @property
    def tracked_meshes(self) -> List[MeshBuffer]:
        return list(self._tracked.values())

    def visit(self, node: Any) -> Result[MeshBuffer]:
        """
        Convert a node (and its subtree) into a mesh buffer.

        Args:
            node: Typed AST node, or a parser dictionary node

        Returns:
            Result with the produced mesh, possibly degraded with warnings
        """
        start = time.perf_counter()
        self._metrics.total_nodes += 1

        if node is None:
            self._metrics.failed_nodes += 1
            return Result.failure(ValidationError("Invalid node: node is None"))

        if isinstance(node, dict):
            try:
                node = node_from_dict(node)
            except Exception as e:
                error = e if isinstance(e, ValidationError) else ValidationError(f"Invalid node: {e}")
                self._metrics.failed_nodes += 1
                logger.warning(f"Rejected AST node: {error}")
                return Result.failure(error)

        handler = self._handlers.get(type(node))
        if handler is None:
            self._metrics.failed_nodes += 1
            error = ValidationError(f"Unsupported node type: {type(node).__name__}")
            logger.warning(str(error))
            return Result.failure(error)

        if self._depth >= self.config.max_recursion_depth:
            self._metrics.failed_nodes += 1
            return Result.failure(
                ValidationError(
                    f"Maximum recursion depth of {self.config.max_recursion_depth} exceeded "
                    f"at {node_name(node)}"
                )
            )

        if self.config.enable_logging:
            logger.debug(f"Visiting node type: {node.type_name}")

        self._depth += 1
        try:
            result = handler(node)
        except SceneConversionError as e:
            result = Result.failure(e)
        except Exception as e:
            logger.error(f"Failed to process {node_name(node)}: {e}")
            result = Result.failure(
                SceneConversionError(f"Failed to process {node.type_name}: {e}")
            )
        finally:
            self._depth -= 1

        elapsed = (time.perf_counter() - start) * 1000
        self._metrics.processing_time += elapsed

        if result.ok:
            self._metrics.processed_nodes += 1
            self._track(result.value)
            if self.config.enable_logging:
                logger.debug(f"Processed {node_name(node)} in {elapsed:.2f}ms")
        else:
            self._metrics.failed_nodes += 1
            if self.config.enable_logging:
                logger.debug(f"Failed to process {node_name(node)}: {result.error}")

        return result

    def visit_cube(self, node: Cube) -> Result[MeshBuffer]:
        result = try_build(
            build_cube, node.size, node.center, material=self.config.default_material
        )
        return self._named(result, node)

    def visit_sphere(self, node: Sphere) -> Result[MeshBuffer]:
        result = try_build(
            build_sphere,
            node.radius,
            node.segments or self.config.segments,
            material=self.config.default_material,
        )
        return self._named(result, node)

    def visit_cylinder(self, node: Cylinder) -> Result[MeshBuffer]:
        result = try_build(
            build_cylinder,
            node.radius_top,
            node.radius_bottom,
            node.height,
            node.segments or self.config.segments,
            center=node.center,
            material=self.config.default_material,
        )
        return self._named(result, node)

    def visit_boolean(self, node: BooleanOp) -> Result[MeshBuffer]:
        name = node_name(node)
        kind = node.kind
        minimum = 1 if kind == BooleanKind.UNION else 2
        requirement = "one child" if minimum == 1 else "two children"

        if len(node.children) < minimum:
            return Result.failure(
                ValidationError(f"{kind.value} node requires at least {requirement}")
            )

        survivors: List[MeshBuffer] = []
        warnings: List[str] = []
        degraded = False

        for i, child in enumerate(node.children):
            child_result = self.visit(child)
            warnings.extend(child_result.warnings)
            if child_result.ok:
                survivors.append(child_result.value)
                degraded = degraded or child_result.degraded
            else:
                degraded = True
                warnings.append(f"{name}: skipped child {i}: {child_result.error_message}")

        if len(survivors) < minimum:
            return Result.failure(
                ValidationError(
                    f"{kind.value} node requires at least {requirement} that convert "
                    f"successfully, got {len(survivors)}"
                ),
                warnings,
            )

        if len(survivors) == 1:
            return Result(value=survivors[0], warnings=warnings, degraded=degraded)

        if not self.config.enable_csg:
            return self._fallback(name, survivors, "CSG evaluation is disabled", warnings)

        if not self.boolean_service.is_supported():
            return self._fallback(name, survivors, "boolean kernel is not available", warnings)

        combined = self.boolean_service.evaluate(kind, survivors)
        if not combined.ok:
            return self._fallback(
                name, survivors, f"{kind.value} failed: {combined.error_message}", warnings
            )

        mesh = combined.value
        mesh.name = name
        mesh.material = self.config.default_material
        if self.config.enable_logging:
            logger.debug(f"{name}: combined {len(survivors)} meshes")
        return Result(value=mesh, warnings=warnings, degraded=degraded)

    def visit_transform(self, node: Transform) -> Result[MeshBuffer]:
        if len(node.children) != 1:
            return Result.failure(
                ValidationError(
                    f"{node.kind.value} node must have exactly one child, got {len(node.children)}"
                )
            )

        child_result = self.visit(node.children[0])
        if not child_result.ok:
            return child_result

        transform = child_result.value.transform
        if node.kind == TransformKind.TRANSLATE:
            transform.translate(node.vector)
        elif node.kind == TransformKind.ROTATE:
            transform.set_rotation_degrees(node.vector)
        elif node.kind == TransformKind.SCALE:
            transform.scale_by(node.vector)

        if self.config.enable_logging:
            logger.debug(f"Applied {node.kind.value} {node.vector} to {child_result.value.name}")
        return child_result

    def detach(self, meshes: Iterable[MeshBuffer]) -> None:
        """Hand ownership of meshes to the caller; dispose() will skip them."""
        for mesh in meshes:
            removed = self._tracked.pop(mesh.id, None)
            if removed is not None:
                self._metrics.memory_usage -= removed.memory_estimate

    def dispose(self) -> None:
        """Release every mesh this visitor still owns."""
        if self.config.enable_logging:
            logger.debug(f"Disposing AST visitor with {len(self._tracked)} meshes")

        for mesh in self._tracked.values():
            mesh.dispose()
        self._tracked.clear()

        if self._owns_service:
            self.boolean_service.dispose()

    def _named(self, result: Result[MeshBuffer], node: Any) -> Result[MeshBuffer]:
        if result.ok:
            result.value.name = node_name(node)
        return result

    def _fallback(
        self,
        name: str,
        survivors: List[MeshBuffer],
        reason: str,
        warnings: List[str],
    ) -> Result[MeshBuffer]:
        message = f"{name}: {reason}; using first child mesh instead"
        logger.warning(message)
        return Result.degraded_success(survivors[0], warnings + [message])

    def _track(self, mesh: MeshBuffer) -> None:
        if mesh.id not in self._tracked:
            self._tracked[mesh.id] = mesh
            self._metrics.memory_usage += mesh.vertex_count * BYTES_PER_VERTEX
