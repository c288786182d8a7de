from __future__ import annotations

from .analysis import (
    AnalysisResult,
    AnalysisSource,
    ApiResource,
    BackendCallContext,
    BackendResponse,
    ContextInfo,
    PRInfo,
    RepositoryInfo,
    RunInfo,
)
from .base import AppBaseModel
from .resources import (
    ChangeType,
    ExtractionResult,
    ResourceMetadata,
    SanitizationResult,
    SanitizedResource,
    ValidationResult,
)

__all__ = [
    "AppBaseModel",
    "ChangeType",
    "ResourceMetadata",
    "ExtractionResult",
    "SanitizedResource",
    "SanitizationResult",
    "ValidationResult",
    "AnalysisSource",
    "AnalysisResult",
    "RepositoryInfo",
    "PRInfo",
    "RunInfo",
    "ContextInfo",
    "BackendCallContext",
    "ApiResource",
    "BackendResponse",
]
