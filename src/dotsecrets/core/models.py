"""Metadata and status models."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class PathState(str, Enum):
    PRESENT = "present"
    MISSING = "missing"


class TrackedPathStatus(BaseModel):
    path: str
    state: PathState

    @property
    def exists(self) -> bool:
        return self.state == PathState.PRESENT


class SecretsMetadata(BaseModel):
    """Record describing the last committed push of a group.

    ``size`` is the byte length of the ciphertext. ``chunks`` and
    ``generation`` tell pull which blobs make up the payload.
    """

    files: list[str] = Field(default_factory=list)
    size: int = 0
    uploaded: datetime = Field(default_factory=lambda: datetime.now(UTC))
    chunks: int = 1
    generation: int = 0

    @property
    def file_count(self) -> int:
        return len(self.files)
