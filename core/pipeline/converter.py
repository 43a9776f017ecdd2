"""High-level converter: source text to a display-ready scene package."""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from core.errors import Result, SceneConversionError
from core.geometry.types import MeshBuffer
from core.scad_ast.visitor import ProcessingMetrics
from core.scene.types import Camera, SceneGraph, SceneStatistics

from .processor import ErrorCallback, Parser, ProgressCallback, ScenePipeline
from .types import PipelineConfig, ProgressEvent

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Scene, camera and diagnostics for one conversion."""

    scene: SceneGraph
    camera: Camera
    meshes: List[MeshBuffer]
    metrics: ProcessingMetrics
    statistics: SceneStatistics
    warnings: List[str] = field(default_factory=list)
    degraded: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "camera": self.camera.to_dict(),
            "meshes": [mesh.summary() for mesh in self.meshes],
            "metrics": self.metrics.to_dict(),
            "statistics": self.statistics.to_dict(),
            "warnings": list(self.warnings),
            "degraded": self.degraded,
        }


@dataclass
class ConverterState:
    is_processing: bool = False
    progress: Optional[ProgressEvent] = None
    last_result: Optional[ConversionResult] = None
    last_error: Optional[str] = None
    conversion_count: int = 0
    failure_count: int = 0
    cache_hits: int = 0
    total_time_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "is_processing": self.is_processing,
            "progress": self.progress.to_dict() if self.progress else None,
            "last_error": self.last_error,
            "conversion_count": self.conversion_count,
            "failure_count": self.failure_count,
            "cache_hits": self.cache_hits,
        }


class SceneConverter:
    """
    Converts source text into a ConversionResult via the scene pipeline.

    Tracks converter state (progress, last result/error, counters) for
    callers that poll instead of subscribing to progress callbacks.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        parser: Optional[Parser] = None,
        pipeline: Optional[ScenePipeline] = None,
    ):
        self.pipeline = pipeline or ScenePipeline(config=config, parser=parser)
        self.state = ConverterState()

    async def convert(
        self,
        source: str,
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        retry: bool = False,
    ) -> Result[ConversionResult]:
        """
        Convert source text into a scene package.

        Args:
            source: Text handed to the pipeline's parser
            on_progress: Forwarded progress callback
            on_error: Forwarded error callback
            retry: Use the pipeline's retry loop

        Returns:
            Result holding the ConversionResult
        """
        start = time.perf_counter()
        self.state.is_processing = True
        self.state.progress = None
        self.state.last_error = None
        hits_before = self.pipeline.get_cache_stats()["hits"]

        def track_progress(event: ProgressEvent) -> None:
            self.state.progress = event
            if on_progress is not None:
                on_progress(event)

        try:
            if retry:
                result = await self.pipeline.process_with_retry(source, track_progress, on_error)
            else:
                result = await self.pipeline.process_source(source, track_progress, on_error)
        except Exception as e:
            logger.error(f"Conversion failed: {e}")
            result = Result.failure(SceneConversionError(f"Conversion failed: {e}"))
        finally:
            self.state.is_processing = False
            self.state.total_time_ms += (time.perf_counter() - start) * 1000

        if not result.ok:
            self.state.failure_count += 1
            self.state.last_error = result.error_message
            return Result.failure(result.error, result.warnings)

        output = result.value
        conversion = ConversionResult(
            scene=output.scene,
            camera=output.camera,
            meshes=output.meshes,
            metrics=output.metrics,
            statistics=output.statistics,
            warnings=list(output.warnings),
            degraded=output.degraded,
        )

        self.state.conversion_count += 1
        self.state.cache_hits += self.pipeline.get_cache_stats()["hits"] - hits_before
        self.state.last_result = conversion
        logger.info(f"Conversion {self.state.conversion_count} complete")
        return Result(value=conversion, warnings=list(conversion.warnings), degraded=conversion.degraded)

    def get_state(self) -> ConverterState:
        return self.state

    def get_statistics(self) -> dict:
        """Conversion counters plus pipeline cache stats."""
        count = self.state.conversion_count
        cache = self.pipeline.get_cache_stats()
        return {
            "conversion_count": count,
            "failure_count": self.state.failure_count,
            "cache_hits": self.state.cache_hits,
            "cache_hit_rate": (self.state.cache_hits / count) * 100 if count else 0.0,
            "cache_size": cache["size"],
            "average_time_ms": (
                self.state.total_time_ms / (count + self.state.failure_count)
                if count + self.state.failure_count
                else 0.0
            ),
            "is_processing": self.state.is_processing,
        }

    def clear_cache(self) -> int:
        self.state.cache_hits = 0
        return self.pipeline.clear_cache()

    def dispose(self) -> None:
        """Dispose the pipeline and everything it produced."""
        logger.debug("Disposing scene converter")
        self.pipeline.dispose()
        self.state = ConverterState()
