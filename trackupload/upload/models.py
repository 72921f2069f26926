import enum
import uuid
from dataclasses import dataclass, field
from pathlib import Path


class UploadStatus(str, enum.Enum):
    INCOMPLETE = "incomplete"
    ASSEMBLED_PENDING_PROBE = "assembled_pending_probe"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ChunkSubmission:
    """One chunk as delivered by the client (transport-independent)."""

    file_name: str
    chunk_index: int
    total_chunks: int
    payload: bytes
    track_id: uuid.UUID | None = None


@dataclass(frozen=True)
class LogicalFile:
    """Domain model for one audio upload (a row of the tracks table)."""

    id: uuid.UUID
    user_id: uuid.UUID
    file_name: str
    status: UploadStatus
    duration_seconds: int | None = None


@dataclass(frozen=True)
class UploadProgress:
    """Upload progress for a logical file that is not yet complete.

    `uploaded_chunks` counts write attempts, `received_chunks` holds the
    distinct indices written so far.
    """

    track_id: uuid.UUID
    total_chunks: int
    uploaded_chunks: int
    current_chunk: int
    chunk_path: Path
    status: UploadStatus
    received_chunks: frozenset[int] = field(default_factory=frozenset)

    def missing_chunks(self) -> list[int]:
        return [i for i in range(self.total_chunks) if i not in self.received_chunks]


@dataclass(frozen=True)
class IncompleteUpload:
    """What a client needs to resume an interrupted upload."""

    track_id: uuid.UUID
    file_name: str
    total_chunks: int
    uploaded_chunks: int
    current_chunk: int
    missing_chunks: list[int]


@dataclass(frozen=True)
class SubmitResult:
    track_id: uuid.UUID
    status: UploadStatus
    uploaded_chunks: int
    received_chunks: int


def progress_status(current_chunk: int, total_chunks: int) -> UploadStatus:
    """Progress row status: complete once the last declared index was written."""
    if current_chunk == total_chunks - 1:
        return UploadStatus.COMPLETE
    return UploadStatus.INCOMPLETE
