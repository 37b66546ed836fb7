"""Pydantic schemas describing bulk-data catalog entries."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SnapshotDescriptor(BaseModel):
    """One downloadable snapshot advertised by the bulk-data catalog."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    type: str = Field(..., min_length=1, description="Logical snapshot type, e.g. 'all_cards'")
    updated_at: datetime = Field(..., description="When the snapshot was last regenerated")
    download_uri: str = Field(..., min_length=1, description="Where the snapshot body is served")
    size_bytes: int = Field(0, alias="size", ge=0, description="Advertised body size in bytes")
    name: str | None = Field(None, description="Human readable snapshot name")
    content_type: str | None = Field(None, description="Declared MIME type of the body")
