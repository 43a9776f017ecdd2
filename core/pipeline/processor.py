"""Scene pipeline: source text to lit scene graph, with progress, caching and retry."""

import asyncio
import dataclasses
import logging
import time
from typing import Any, AsyncIterator, Callable, Optional, Union

from core.cache import BoundedCache, content_hash
from core.errors import (
    PipelineStageError,
    Result,
    SceneConversionError,
    ValidationError,
)
from core.geometry.boolean_ops import BooleanSolidService
from core.scad_ast.nodes import parse_json_ast
from core.scad_ast.visitor import ASTVisitor
from core.scene.assembler import SceneAssembler

from .types import PipelineConfig, PipelineOutput, ProgressEvent, Stage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
ErrorCallback = Callable[[str, str], None]
Parser = Callable[[str], Any]


class _ProgressReporter:
    """Builds progress events relative to the start of a run."""

    def __init__(self, callback: Optional[ProgressCallback], enabled: bool = True):
        self.callback = callback if enabled else None
        self.start = time.perf_counter()
        self.progress = 0.0

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.start) * 1000

    def report(self, stage: Stage, progress: float, message: str) -> None:
        if stage != Stage.FAILED:
            self.progress = progress
        if self.callback is None:
            return

        elapsed = self.elapsed_ms()
        remaining = None
        if 0 < progress < 100:
            remaining = elapsed / progress * (100 - progress)
        elif progress >= 100:
            remaining = 0.0

        event = ProgressEvent(
            stage=stage,
            progress=progress,
            message=message,
            time_elapsed_ms=elapsed,
            estimated_remaining_ms=remaining,
        )
        try:
            self.callback(event)
        except Exception as e:
            logger.warning(f"Progress callback failed at {stage.value}: {e}")


class ScenePipeline:
    """
    Orchestrates parse -> AST visit -> scene assembly -> optimization.

    Stages report progress at 10/30/70/90/100. Results are cached by the
    SHA-256 of the source text and owned by the cache: eviction, clear_cache()
    and dispose() release them. The parser and boolean service are injected.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        parser: Optional[Parser] = None,
        boolean_service: Optional[BooleanSolidService] = None,
    ):
        self.config = config or PipelineConfig()
        self.parser = parser or parse_json_ast

        self._owns_service = boolean_service is None
        self.boolean_service = boolean_service or BooleanSolidService(self.config.boolean)

        self._cache: BoundedCache[PipelineOutput] = BoundedCache(
            capacity=self.config.cache_size, on_evict=self._release
        )
        self._cache_hits = 0
        self._cache_misses = 0

        logger.info(
            f"Scene pipeline ready (caching={self.config.enable_caching}, "
            f"optimization={self.config.enable_optimization}, csg={self.config.visitor.enable_csg})"
        )

    async def process_source(
        self,
        source: str,
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> Result[PipelineOutput]:
        """
        Run the full pipeline on source text.

        Args:
            source: Text handed to the parser
            on_progress: Called synchronously at every stage boundary
            on_error: Called with (message, stage) when a stage fails

        Returns:
            Result holding the pipeline output; a failed result carries a
            PipelineStageError naming the stage
        """
        reporter = _ProgressReporter(on_progress, enabled=self.config.enable_progress_tracking)

        if self.config.enable_logging:
            logger.debug("Starting pipeline processing")

        cache_key = None
        if self.config.enable_caching:
            cache_key = content_hash(source)
            cached = self._cache.get(cache_key)
            if cached is not None and cached.disposed:
                logger.debug(f"Dropping released cache entry {cache_key[:12]}")
                self._cache.discard(cache_key)
                cached = None
            if cached is not None:
                self._cache_hits += 1
                logger.debug(f"Cache hit for source {cache_key[:12]}")
                reporter.report(Stage.COMPLETE, 100, "Retrieved from cache")
                return Result(value=cached, warnings=list(cached.warnings), degraded=cached.degraded)
            self._cache_misses += 1

        # Stage 1: parse source text into an AST
        reporter.report(Stage.PARSING, 10, "Parsing source...")
        await asyncio.sleep(0)
        try:
            ast = self.parser(source)
            if ast is None:
                raise ValidationError("Parser returned no AST")
        except Exception as e:
            return self._fail(Stage.PARSING, e, reporter, on_error)

        # Stage 2: visit the AST into meshes
        reporter.report(Stage.AST_PROCESSING, 30, "Processing AST nodes...")
        await asyncio.sleep(0)
        visitor = ASTVisitor(self.config.visitor, boolean_service=self.boolean_service)
        try:
            mesh_result = visitor.visit(ast)
            if not mesh_result.ok:
                return self._fail(Stage.AST_PROCESSING, mesh_result.error, reporter, on_error)
            meshes = [mesh_result.value]
            visitor.detach(meshes)
            metrics = visitor.get_metrics()
        except Exception as e:
            return self._fail(Stage.AST_PROCESSING, e, reporter, on_error)
        finally:
            visitor.dispose()

        warnings = list(mesh_result.warnings)
        degraded = mesh_result.degraded
        if self.config.enable_logging:
            logger.debug(f"AST processing produced {len(meshes)} meshes")

        # Stage 3: assemble the scene and camera
        reporter.report(Stage.SCENE_GENERATION, 70, "Generating 3D scene...")
        await asyncio.sleep(0)
        assembler = SceneAssembler(dataclasses.replace(self.config.scene, enable_optimization=False))
        scene_result = assembler.assemble_with_camera(meshes)
        if not scene_result.ok:
            for mesh in meshes:
                mesh.dispose()
            return self._fail(Stage.SCENE_GENERATION, scene_result.error, reporter, on_error)
        scene, camera = scene_result.value

        # Stage 4: optimization
        if self.config.enable_optimization:
            reporter.report(Stage.OPTIMIZATION, 90, "Optimizing scene...")
            await asyncio.sleep(0)
            assembler.optimize(scene)

        statistics = assembler.stats(scene)
        elapsed = reporter.elapsed_ms()
        metrics.processing_time = elapsed
        metrics.memory_usage = statistics.memory_estimate

        output = PipelineOutput(
            scene=scene,
            camera=camera,
            meshes=meshes,
            metrics=metrics,
            statistics=statistics,
            warnings=warnings,
            degraded=degraded,
        )
        if cache_key is not None:
            self._cache.put(cache_key, output)

        if degraded:
            logger.warning(f"Scene produced with {len(warnings)} warnings: {'; '.join(warnings)}")

        reporter.report(Stage.COMPLETE, 100, f"Processing complete in {elapsed:.2f}ms")
        logger.info(
            f"Processed source into {statistics.mesh_count} meshes, "
            f"{statistics.vertex_count} vertices in {elapsed:.2f}ms"
        )
        return Result(value=output, warnings=list(warnings), degraded=degraded)

    async def process_with_retry(
        self,
        source: str,
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        max_retries: Optional[int] = None,
    ) -> Result[PipelineOutput]:
        """Run process_source up to max_retries times with exponential backoff."""
        attempts = max(1, max_retries if max_retries is not None else self.config.max_retries)
        last_error = ""

        for attempt in range(1, attempts + 1):
            if self.config.enable_logging:
                logger.debug(f"Processing attempt {attempt}/{attempts}")

            result = await self.process_source(source, on_progress, on_error)
            if result.ok:
                return result

            last_error = result.error_message
            logger.warning(f"Processing attempt {attempt}/{attempts} failed: {last_error}")

            if attempt < attempts:
                # Wait before retry with exponential backoff
                delay = 2 ** (attempt - 1)
                logger.info(f"Retrying in {delay} seconds...")
                await asyncio.sleep(delay)

        return Result.failure(
            SceneConversionError(
                f"Processing failed after {attempts} attempts. Last error: {last_error}",
                error_type="retry_exhausted",
            )
        )

    async def stream(
        self, source: str, on_error: Optional[ErrorCallback] = None
    ) -> AsyncIterator[Union[ProgressEvent, Result[PipelineOutput]]]:
        """
        Process source text, yielding progress events as they happen.

        The last item yielded is the Result of the run.
        """
        queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        task = asyncio.ensure_future(
            self.process_source(source, on_progress=queue.put_nowait, on_error=on_error)
        )

        try:
            while not (task.done() and queue.empty()):
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    yield getter.result()
                else:
                    getter.cancel()
            yield task.result()
        finally:
            if not task.done():
                task.cancel()

    def get_cache_stats(self) -> dict:
        stats = self._cache.stats()
        stats.update(
            {
                "capacity": self._cache.capacity,
                "hits": self._cache_hits,
                "misses": self._cache_misses,
            }
        )
        return stats

    def clear_cache(self) -> int:
        """Clear cached results and boolean results. Returns the number of entries removed."""
        if self.config.enable_logging:
            logger.debug("Clearing pipeline processing cache")
        self.boolean_service.clear_cache()
        return self._cache.clear()

    def dispose(self) -> None:
        """Release every cached scene and mesh. Safe to call more than once.

        Outputs produced with caching disabled belong to the caller.
        """
        if self.config.enable_logging:
            logger.debug(f"Disposing scene pipeline with {len(self._cache)} cached results")

        self.clear_cache()

        if self._owns_service:
            self.boolean_service.dispose()

    def _release(self, output: PipelineOutput) -> None:
        if self.config.enable_logging:
            logger.debug(f"Releasing cached scene with {len(output.meshes)} meshes")
        output.dispose()

    def _fail(
        self,
        stage: Stage,
        cause: Exception,
        reporter: _ProgressReporter,
        on_error: Optional[ErrorCallback],
    ) -> Result[PipelineOutput]:
        error = cause if isinstance(cause, PipelineStageError) else PipelineStageError(stage.value, cause)
        logger.error(f"Pipeline failed during {stage.value}: {error.message}")

        if on_error is not None:
            try:
                on_error(error.message, stage.value)
            except Exception as e:
                logger.warning(f"Error callback failed: {e}")

        reporter.report(Stage.FAILED, reporter.progress, error.message)
        return Result.failure(error)
