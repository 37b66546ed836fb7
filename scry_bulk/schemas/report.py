"""Pydantic schemas summarising ingestion runs."""
from pydantic import BaseModel, Field


class DownloadProgress(BaseModel):
    """Progress notification emitted while a snapshot is downloading."""

    bytes_downloaded: int = Field(..., ge=0, description="Bytes written so far")
    total_bytes: int | None = Field(None, description="Declared Content-Length, if any")
    percent: int | None = Field(None, ge=0, le=100, description="Whole percentage complete")


class IngestionReport(BaseModel):
    """Totals reported at the end of an ingestion run."""

    snapshot_type: str | None = Field(None, description="Snapshot type, when known")
    path: str = Field(..., description="Snapshot file that was ingested")
    records_processed: int = Field(0, ge=0, description="Records committed to the store")
    batches_committed: int = Field(0, ge=0, description="Number of batch upserts issued")
    downloaded: bool = Field(False, description="Whether this run downloaded a fresh snapshot")
    duration_ms: int = Field(0, ge=0, description="Wall-clock duration of the run")
    state: str = Field(..., description="Final orchestrator state")
