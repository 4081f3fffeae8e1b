"""Application services."""

from .pipeline import ScanPipeline
from .scans import ScanService

__all__ = [
    "ScanPipeline",
    "ScanService",
]
