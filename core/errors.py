"""Error taxonomy and result type shared by the scene conversion components."""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class SceneConversionError(Exception):
    """Base exception for scene conversion errors."""

    def __init__(self, message: str, error_type: str = "unknown", retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.retryable = retryable

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "retryable": self.retryable,
        }


class ValidationError(SceneConversionError):
    """Malformed AST node, missing children or invalid mesh input."""

    def __init__(self, message: str):
        super().__init__(message, error_type="validation", retryable=False)


class GeometryConstructionError(SceneConversionError):
    """A primitive builder rejected its parameters."""

    def __init__(self, message: str):
        super().__init__(message, error_type="geometry", retryable=False)


class BooleanOperationError(SceneConversionError):
    """The boolean kernel failed on a specific operand."""

    def __init__(self, message: str, operand_index: Optional[int] = None):
        super().__init__(message, error_type="boolean", retryable=False)
        self.operand_index = operand_index

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["operand_index"] = self.operand_index
        return data


class SceneAssemblyError(SceneConversionError):
    """An input mesh is missing its geometry or material."""

    def __init__(self, message: str, mesh_index: Optional[int] = None):
        super().__init__(message, error_type="scene", retryable=False)
        self.mesh_index = mesh_index


class PipelineStageError(SceneConversionError):
    """Wraps a component error with the pipeline stage it happened in."""

    def __init__(self, stage: str, cause: Exception):
        message = cause.message if isinstance(cause, SceneConversionError) else str(cause)
        retryable = cause.retryable if isinstance(cause, SceneConversionError) else True
        super().__init__(message, error_type="pipeline", retryable=retryable)
        self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["stage"] = self.stage
        return data


@dataclass
class Result(Generic[T]):
    """Explicit success/failure value returned by every public operation.

    A successful result may still be ``degraded``: a value was produced, but
    not the one requested (e.g. a boolean node that fell back to its first
    child). ``warnings`` explains why.
    """

    value: Optional[T] = None
    error: Optional[SceneConversionError] = None
    warnings: List[str] = field(default_factory=list)
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, warnings: Optional[List[str]] = None) -> "Result[T]":
        return cls(value=value, warnings=list(warnings or []))

    @classmethod
    def degraded_success(cls, value: T, warnings: List[str]) -> "Result[T]":
        return cls(value=value, warnings=list(warnings), degraded=True)

    @classmethod
    def failure(
        cls, error: SceneConversionError, warnings: Optional[List[str]] = None
    ) -> "Result[T]":
        return cls(error=error, warnings=list(warnings or []))

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error else ""

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value
