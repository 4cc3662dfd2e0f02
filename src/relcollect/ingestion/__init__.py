"""File discovery, classification, and record models."""

from .detectors import ContentClassifier, ContentDecision, HashComputer
from .discovery import FileDiscoverer
from .extractors import FileMetadata, MetadataExtractor, path_text
from .models import (
    UNKNOWN_TIMESTAMP,
    CollectionResult,
    DeploymentRecord,
    FileRecord,
    RunContext,
)

__all__ = [
    "UNKNOWN_TIMESTAMP",
    "CollectionResult",
    "ContentClassifier",
    "ContentDecision",
    "DeploymentRecord",
    "FileDiscoverer",
    "FileMetadata",
    "FileRecord",
    "HashComputer",
    "MetadataExtractor",
    "RunContext",
    "path_text",
]
