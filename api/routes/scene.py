"""Scene conversion routes."""

import logging
from enum import Enum
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, field_validator

from core.errors import SceneConversionError
from core.pipeline import PipelineConfig, ProgressEvent, ScenePipeline
from core.scene import export_scene

logger = logging.getLogger(__name__)

router = APIRouter()

MEDIA_TYPES = {
    "glb": "model/gltf-binary",
    "obj": "text/plain",
}


class ExportFormat(str, Enum):
    """Supported scene export formats."""

    GLB = "glb"
    OBJ = "obj"


class ProcessRequest(BaseModel):
    """Source text to convert."""

    code: str
    retry: bool = False

    @field_validator("code")
    @classmethod
    def code_must_not_be_blank(cls, v: str) -> str:
        """Validate that the source text is not empty."""
        if not v.strip():
            raise ValueError("Code must not be empty")
        return v


class ExportRequest(ProcessRequest):
    export_format: ExportFormat = ExportFormat.GLB


# Scene pipeline (lazy loading)
_pipeline: Optional[ScenePipeline] = None


def get_pipeline() -> ScenePipeline:
    """Get or create the scene pipeline."""
    global _pipeline
    if _pipeline is None:
        _pipeline = ScenePipeline(PipelineConfig.from_env())
    return _pipeline


def reset_pipeline() -> None:
    """Dispose the current pipeline; the next request creates a fresh one."""
    global _pipeline
    if _pipeline is not None:
        _pipeline.dispose()
        _pipeline = None


async def _run(request: ProcessRequest):
    pipeline = get_pipeline()
    events: list[ProgressEvent] = []

    if request.retry:
        result = await pipeline.process_with_retry(request.code, on_progress=events.append)
    else:
        result = await pipeline.process_source(request.code, on_progress=events.append)

    if not result.ok:
        logger.warning(f"Scene processing failed: {result.error_message}")
        raise HTTPException(
            status_code=422,
            detail={**result.error.to_dict(), "progress": [e.to_dict() for e in events]},
        )
    return result, events


@router.post("/process")
async def process_scene(request: ProcessRequest):
    """Convert source text into a scene and return its description."""
    result, events = await _run(request)
    output = result.value

    return {
        "statistics": output.statistics.to_dict(),
        "camera": output.camera.to_dict(),
        "scene": output.scene.to_dict(),
        "meshes": [mesh.summary() for mesh in output.meshes],
        "metrics": output.metrics.to_dict(),
        "warnings": list(result.warnings),
        "degraded": result.degraded,
        "progress": [event.to_dict() for event in events],
    }


@router.post("/export")
async def export_scene_file(request: ExportRequest):
    """Convert source text and return the scene as a GLB or OBJ file."""
    result, _ = await _run(request)
    file_type = request.export_format.value

    try:
        content = export_scene(result.value.scene, file_type=file_type)
    except SceneConversionError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())

    return Response(
        content=content,
        media_type=MEDIA_TYPES[file_type],
        headers={"Content-Disposition": f'attachment; filename="scene.{file_type}"'},
    )


@router.get("/cache")
async def get_cache_stats():
    """Get pipeline cache statistics."""
    return get_pipeline().get_cache_stats()


@router.delete("/cache")
async def clear_cache():
    """Clear the pipeline cache."""
    cleared = get_pipeline().clear_cache()
    return {"cleared": cleared}
