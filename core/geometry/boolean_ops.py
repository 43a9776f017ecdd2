"""Boolean solid service: union, difference and intersection of mesh buffers.

The boolean algorithm itself runs in an external geometry kernel. This
module validates operands, folds them left to right through the kernel,
memoizes results and keeps operation metrics.
"""

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import trimesh

from core.cache import BoundedCache
from core.errors import (
    BooleanOperationError,
    Result,
    SceneConversionError,
    ValidationError,
)

from .types import MeshBuffer

logger = logging.getLogger(__name__)


class BooleanKind(str, Enum):
    """Boolean operation kinds."""

    UNION = "union"
    DIFFERENCE = "difference"
    INTERSECTION = "intersection"


# Solid method applied at each fold step
_SOLID_OPERATORS = {
    BooleanKind.UNION: "union",
    BooleanKind.DIFFERENCE: "subtract",
    BooleanKind.INTERSECTION: "intersect",
}


class Solid(ABC):
    """Boundary-representation solid produced by a kernel."""

    @abstractmethod
    def union(self, other: "Solid") -> "Solid":
        ...

    @abstractmethod
    def subtract(self, other: "Solid") -> "Solid":
        ...

    @abstractmethod
    def intersect(self, other: "Solid") -> "Solid":
        ...


class BooleanKernel(ABC):
    """Converts mesh buffers to kernel solids and back."""

    name = "abstract"

    @abstractmethod
    def is_supported(self) -> bool:
        ...

    @abstractmethod
    def from_mesh(self, buffer: MeshBuffer) -> Solid:
        ...

    @abstractmethod
    def to_mesh(self, solid: Solid) -> MeshBuffer:
        ...


class TrimeshSolid(Solid):
    """Solid backed by a watertight trimesh, combined via trimesh.boolean."""

    def __init__(self, mesh: trimesh.Trimesh, engine: Optional[str] = None):
        self.mesh = mesh
        self.engine = engine

    def _combine(self, operation, other: "TrimeshSolid") -> "TrimeshSolid":
        result = operation([self.mesh, other.mesh], engine=self.engine, check_volume=False)
        return TrimeshSolid(result, engine=self.engine)

    def union(self, other: "TrimeshSolid") -> "TrimeshSolid":
        return self._combine(trimesh.boolean.union, other)

    def subtract(self, other: "TrimeshSolid") -> "TrimeshSolid":
        return self._combine(trimesh.boolean.difference, other)

    def intersect(self, other: "TrimeshSolid") -> "TrimeshSolid":
        return self._combine(trimesh.boolean.intersection, other)


class TrimeshKernel(BooleanKernel):
    """Kernel using trimesh's boolean backends (manifold3d by default)."""

    name = "trimesh"

    def __init__(self, engine: Optional[str] = "manifold"):
        self.engine = engine

    def is_supported(self) -> bool:
        available = set(trimesh.boolean.engines_available)
        if self.engine is None:
            return bool(available)
        return self.engine in available

    def from_mesh(self, buffer: MeshBuffer) -> TrimeshSolid:
        return TrimeshSolid(buffer.to_trimesh(apply_transform=True), engine=self.engine)

    def to_mesh(self, solid: TrimeshSolid) -> MeshBuffer:
        return MeshBuffer.from_trimesh(solid.mesh)


@dataclass
class BooleanServiceConfig:
    """Configuration for the boolean solid service."""

    enable_caching: bool = True
    enable_optimization: bool = True
    enable_logging: bool = True
    max_cache_size: int = 100
    engine: Optional[str] = "manifold"

    @classmethod
    def from_env(cls) -> "BooleanServiceConfig":
        """Load configuration from environment variables."""
        return cls(
            enable_caching=os.getenv("SCADSCENE_BOOLEAN_CACHING", "true").lower() == "true",
            enable_optimization=os.getenv("SCADSCENE_ENABLE_OPTIMIZATION", "true").lower() == "true",
            max_cache_size=int(os.getenv("SCADSCENE_CACHE_SIZE", "100")),
            engine=os.getenv("SCADSCENE_BOOLEAN_ENGINE", "manifold") or None,
        )


@dataclass
class BooleanMetrics:
    """Counters for boolean operations."""

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    average_operation_time: float = 0.0  # milliseconds

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "total_operations": self.total_operations,
            "successful_operations": self.successful_operations,
            "failed_operations": self.failed_operations,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "average_operation_time": self.average_operation_time,
        }


class BooleanSolidService:
    """Evaluates boolean operations over two or more mesh buffers."""

    def __init__(
        self,
        config: Optional[BooleanServiceConfig] = None,
        kernel: Optional[BooleanKernel] = None,
    ):
        self.config = config or BooleanServiceConfig()
        self.kernel = kernel or TrimeshKernel(engine=self.config.engine)
        self._cache: BoundedCache[MeshBuffer] = BoundedCache(
            capacity=self.config.max_cache_size,
            on_evict=lambda buffer: buffer.dispose(),
        )
        self._metrics = BooleanMetrics()

        if self.config.enable_logging:
            logger.debug(f"Boolean solid service using kernel '{self.kernel.name}'")

    def is_supported(self) -> bool:
        """Check whether the kernel can run boolean operations."""
        try:
            return self.kernel.is_supported()
        except Exception as e:
            logger.warning(f"Boolean kernel availability check failed: {e}")
            return False

    def union(self, buffers: Sequence[MeshBuffer]) -> Result[MeshBuffer]:
        return self.evaluate(BooleanKind.UNION, buffers)

    def difference(self, buffers: Sequence[MeshBuffer]) -> Result[MeshBuffer]:
        return self.evaluate(BooleanKind.DIFFERENCE, buffers)

    def intersection(self, buffers: Sequence[MeshBuffer]) -> Result[MeshBuffer]:
        return self.evaluate(BooleanKind.INTERSECTION, buffers)

    def evaluate(self, kind: BooleanKind, buffers: Sequence[MeshBuffer]) -> Result[MeshBuffer]:
        """
        Evaluate a boolean operation over the given buffers.

        Args:
            kind: Operation to apply between consecutive operands
            buffers: Operands, folded left to right

        Returns:
            Result holding a new mesh buffer owned by the caller
        """
        start = time.perf_counter()
        self._metrics.total_operations += 1

        try:
            kind = BooleanKind(kind)
        except ValueError:
            self._metrics.failed_operations += 1
            self._record_duration((time.perf_counter() - start) * 1000)
            return Result.failure(ValidationError(f"Unsupported boolean operation: {kind}"))

        if self.config.enable_logging:
            logger.debug(f"Performing {kind.value} operation on {len(buffers or [])} meshes")

        try:
            self._validate(kind, buffers)

            cache_key = None
            if self.config.enable_caching:
                cache_key = self._cache_key(kind, buffers)
                cached = self._cache.get(cache_key)
                if cached is not None:
                    self._metrics.cache_hits += 1
                    self._metrics.successful_operations += 1
                    logger.debug(f"Cache hit for {kind.value} operation")
                    return Result.success(cached.clone())
                self._metrics.cache_misses += 1

            result = self._execute(kind, buffers)

            if self.config.enable_optimization:
                self._optimize(result)

            if cache_key is not None:
                self._cache.put(cache_key, result.clone())

            self._metrics.successful_operations += 1
            return Result.success(result)

        except SceneConversionError as e:
            self._metrics.failed_operations += 1
            logger.warning(f"{kind.value} operation failed: {e}")
            return Result.failure(e)
        except Exception as e:
            self._metrics.failed_operations += 1
            logger.error(f"{kind.value} operation failed: {e}")
            return Result.failure(BooleanOperationError(f"{kind.value} operation failed: {e}"))
        finally:
            self._record_duration((time.perf_counter() - start) * 1000)

    def get_metrics(self) -> BooleanMetrics:
        """Copy of the current operation metrics."""
        return BooleanMetrics(**self._metrics.to_dict())

    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        if self.config.enable_logging:
            logger.debug("Clearing boolean operation cache")
        self._cache.clear()

    def dispose(self) -> None:
        """Release cached buffers."""
        self.clear_cache()

    def _validate(self, kind: BooleanKind, buffers: Sequence[MeshBuffer]) -> None:
        if not buffers:
            raise ValidationError(f"{kind.value} operation requires at least one mesh")

        if kind != BooleanKind.UNION and len(buffers) < 2:
            raise ValidationError(f"{kind.value} operation requires at least two meshes")

        for i, buffer in enumerate(buffers):
            if buffer is None:
                raise ValidationError(f"Mesh at index {i} is None")
            if buffer.vertices is None:
                raise ValidationError(f"Mesh at index {i} has no vertex data")
            if buffer.vertex_count == 0:
                raise ValidationError(f"Mesh at index {i} has no vertices")

    def _cache_key(self, kind: BooleanKind, buffers: Sequence[MeshBuffer]) -> str:
        return "|".join([kind.value] + [buffer.fingerprint() for buffer in buffers])

    def _to_solid(self, buffer: MeshBuffer, index: int) -> Solid:
        try:
            solid = self.kernel.from_mesh(buffer)
        except Exception as e:
            raise BooleanOperationError(
                f"Failed to convert mesh {index} to a solid: {e}", operand_index=index
            ) from e
        if solid is None:
            raise BooleanOperationError(
                f"Failed to convert mesh {index} to a solid", operand_index=index
            )
        return solid

    def _execute(self, kind: BooleanKind, buffers: Sequence[MeshBuffer]) -> MeshBuffer:
        operator = _SOLID_OPERATORS[kind]
        solid = self._to_solid(buffers[0], 0)

        for i in range(1, len(buffers)):
            operand = self._to_solid(buffers[i], i)
            try:
                solid = getattr(solid, operator)(operand)
            except Exception as e:
                raise BooleanOperationError(
                    f"{kind.value} operation failed at mesh {i}: {e}", operand_index=i
                ) from e
            if solid is None:
                raise BooleanOperationError(
                    f"{kind.value} operation failed at mesh {i}", operand_index=i
                )

        try:
            result = self.kernel.to_mesh(solid)
        except Exception as e:
            raise BooleanOperationError(f"Failed to convert {kind.value} result to a mesh: {e}") from e

        if result is None or not result.has_geometry:
            raise BooleanOperationError(f"{kind.value} operation produced an empty solid")

        result.geometry_type = kind.value
        return result

    def _optimize(self, buffer: MeshBuffer) -> None:
        try:
            if buffer.normals is None:
                buffer.compute_vertex_normals()
            buffer.compute_bounds()
        except Exception as e:
            logger.warning(f"Geometry optimization failed: {e}")

    def _record_duration(self, duration_ms: float) -> None:
        count = self._metrics.total_operations
        previous = self._metrics.average_operation_time
        self._metrics.average_operation_time = previous + (duration_ms - previous) / count
