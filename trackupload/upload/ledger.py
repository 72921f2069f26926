import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from trackupload.upload.models import (
    IncompleteUpload,
    LogicalFile,
    UploadProgress,
    UploadStatus,
)


class UploadLedger(ABC):
    """Contract for persisting logical files and their upload progress.

    Implementations raise `PersistenceError` for storage failures.
    """

    @abstractmethod
    def create_logical_file(self, user_id: uuid.UUID, file_name: str) -> uuid.UUID:
        """Insert a new incomplete logical file and return its generated id."""

    @abstractmethod
    def get_logical_file(self, track_id: uuid.UUID) -> LogicalFile | None:
        """Return the logical file, or None if no track has this id."""

    @abstractmethod
    def get_progress(self, track_id: uuid.UUID) -> UploadProgress | None:
        """Return the progress row for a track, or None if there is none."""

    @abstractmethod
    def upsert_progress(
        self,
        track_id: uuid.UUID,
        total_chunks: int,
        uploaded_chunks: int,
        current_chunk: int,
        received_chunks: frozenset[int],
        chunk_path: Path,
        status: UploadStatus,
    ) -> None:
        """Insert or replace the progress row in a single mutation."""

    @abstractmethod
    def mark_pending_probe(self, track_id: uuid.UUID) -> None:
        """Record that the file is assembled but has no duration yet."""

    @abstractmethod
    def finalize(self, track_id: uuid.UUID, duration_seconds: int) -> None:
        """Mark the track complete with its duration and drop its progress row.

        The status write happens before the progress deletion; where the
        backend supports it both happen in one transaction.
        """

    @abstractmethod
    def delete_progress(self, track_id: uuid.UUID) -> None:
        """Remove the progress row for a track, if any."""

    @abstractmethod
    def list_incomplete_uploads(self, user_id: uuid.UUID) -> list[IncompleteUpload]:
        """Progress of every incomplete upload owned by `user_id`."""

    @abstractmethod
    def list_by_status(self, status: UploadStatus) -> list[LogicalFile]:
        """All logical files currently in `status`."""

    @contextmanager
    def hold_track(self, track_id: uuid.UUID) -> Iterator[None]:
        """Serialize work on one track across every process using this ledger.

        The default holds nothing: a process-local ledger is only ever seen
        by one process, whose own per-track lock already applies.
        """
        yield
