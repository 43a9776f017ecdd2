"""Source-to-scene pipeline.

This module provides:
- ScenePipeline: staged processing with progress, caching and retry
- SceneConverter: converter facade tracking state across conversions

Example usage:
    import asyncio
    from core.pipeline import ScenePipeline

    pipeline = ScenePipeline()
    result = asyncio.run(pipeline.process_source('{"type": "sphere", "r": 2}'))
    if result.ok:
        print(result.value.statistics.to_dict())
    pipeline.dispose()
"""

from .converter import ConversionResult, ConverterState, SceneConverter
from .processor import ErrorCallback, Parser, ProgressCallback, ScenePipeline
from .types import PipelineConfig, PipelineOutput, ProgressEvent, Stage

__all__ = [
    # Pipeline
    "ScenePipeline",
    "PipelineConfig",
    "PipelineOutput",
    "ProgressEvent",
    "Stage",
    "ProgressCallback",
    "ErrorCallback",
    "Parser",
    # Converter
    "SceneConverter",
    "ConversionResult",
    "ConverterState",
]
