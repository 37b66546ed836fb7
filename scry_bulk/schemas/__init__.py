"""Schemas package initialization."""
from .records import CATEGORIES, RARITIES, CanonicalRecord
from .report import DownloadProgress, IngestionReport
from .snapshot import SnapshotDescriptor

__all__ = [
    "CATEGORIES",
    "RARITIES",
    "CanonicalRecord",
    "DownloadProgress",
    "IngestionReport",
    "SnapshotDescriptor",
]
