"""Data types for the scene pipeline."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from core.geometry.boolean_ops import BooleanServiceConfig
from core.geometry.types import MeshBuffer
from core.scad_ast.visitor import ProcessingMetrics, VisitorConfig
from core.scene.types import Camera, SceneConfig, SceneGraph, SceneStatistics


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    PARSING = "parsing"
    AST_PROCESSING = "ast-processing"
    SCENE_GENERATION = "scene-generation"
    OPTIMIZATION = "optimization"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ProgressEvent:
    """Progress report emitted at stage boundaries."""

    stage: Stage
    progress: float  # 0-100
    message: str
    time_elapsed_ms: float
    estimated_remaining_ms: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary using the wire field names."""
        data = {
            "stage": self.stage.value,
            "progress": self.progress,
            "message": self.message,
            "timeElapsedMs": round(self.time_elapsed_ms, 3),
        }
        if self.estimated_remaining_ms is not None:
            data["estimatedRemainingMs"] = round(self.estimated_remaining_ms, 3)
        return data


@dataclass
class PipelineConfig:
    """Configuration for the scene pipeline and the components it drives."""

    visitor: VisitorConfig = field(default_factory=VisitorConfig)
    scene: SceneConfig = field(default_factory=SceneConfig)
    boolean: BooleanServiceConfig = field(default_factory=BooleanServiceConfig)

    enable_caching: bool = True
    enable_optimization: bool = True
    enable_logging: bool = True
    enable_progress_tracking: bool = True
    cache_size: int = 100
    max_retries: int = 3

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Load configuration from environment variables."""
        return cls(
            visitor=VisitorConfig.from_env(),
            scene=SceneConfig.from_env(),
            boolean=BooleanServiceConfig.from_env(),
            enable_caching=os.getenv("SCADSCENE_ENABLE_CACHING", "true").lower() == "true",
            enable_optimization=os.getenv("SCADSCENE_ENABLE_OPTIMIZATION", "true").lower() == "true",
            cache_size=int(os.getenv("SCADSCENE_CACHE_SIZE", "100")),
            max_retries=int(os.getenv("SCADSCENE_MAX_RETRIES", "3")),
        )


@dataclass
class PipelineOutput:
    """Everything one successful pipeline run produced."""

    scene: SceneGraph
    camera: Camera
    meshes: List[MeshBuffer]
    metrics: ProcessingMetrics
    statistics: SceneStatistics
    warnings: List[str] = field(default_factory=list)
    degraded: bool = False

    @property
    def disposed(self) -> bool:
        return self.scene.disposed or any(mesh.disposed for mesh in self.meshes)

    def dispose(self) -> None:
        self.scene.dispose()
        for mesh in self.meshes:
            mesh.dispose()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "scene": self.scene.to_dict(),
            "camera": self.camera.to_dict(),
            "meshes": [mesh.summary() for mesh in self.meshes],
            "metrics": self.metrics.to_dict(),
            "statistics": self.statistics.to_dict(),
            "warnings": list(self.warnings),
            "degraded": self.degraded,
        }
