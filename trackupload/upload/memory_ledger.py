import threading
import uuid
from dataclasses import replace
from pathlib import Path

from trackupload.upload.ledger import UploadLedger
from trackupload.upload.models import (
    IncompleteUpload,
    LogicalFile,
    UploadProgress,
    UploadStatus,
)


class InMemoryUploadLedger(UploadLedger):
    """Process-local ledger for development and single-process deployments.

    State is lost on restart, so interrupted uploads cannot be resumed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._files: dict[uuid.UUID, LogicalFile] = {}
        self._progress: dict[uuid.UUID, UploadProgress] = {}

    def create_logical_file(self, user_id: uuid.UUID, file_name: str) -> uuid.UUID:
        track_id = uuid.uuid4()
        with self._lock:
            self._files[track_id] = LogicalFile(
                id=track_id,
                user_id=user_id,
                file_name=file_name,
                status=UploadStatus.INCOMPLETE,
            )
        return track_id

    def get_logical_file(self, track_id: uuid.UUID) -> LogicalFile | None:
        with self._lock:
            return self._files.get(track_id)

    def get_progress(self, track_id: uuid.UUID) -> UploadProgress | None:
        with self._lock:
            return self._progress.get(track_id)

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
        with self._lock:
            self._progress[track_id] = UploadProgress(
                track_id=track_id,
                total_chunks=total_chunks,
                uploaded_chunks=uploaded_chunks,
                current_chunk=current_chunk,
                chunk_path=chunk_path,
                status=status,
                received_chunks=frozenset(received_chunks),
            )

    def mark_pending_probe(self, track_id: uuid.UUID) -> None:
        self._set_file(track_id, status=UploadStatus.ASSEMBLED_PENDING_PROBE)

    def finalize(self, track_id: uuid.UUID, duration_seconds: int) -> None:
        self._set_file(
            track_id, status=UploadStatus.COMPLETE, duration_seconds=duration_seconds
        )
        self.delete_progress(track_id)

    def delete_progress(self, track_id: uuid.UUID) -> None:
        with self._lock:
            self._progress.pop(track_id, None)

    def list_incomplete_uploads(self, user_id: uuid.UUID) -> list[IncompleteUpload]:
        with self._lock:
            uploads = []
            for logical_file in self._files.values():
                progress = self._progress.get(logical_file.id)
                if (
                    logical_file.user_id != user_id
                    or logical_file.status is not UploadStatus.INCOMPLETE
                    or progress is None
                ):
                    continue
                uploads.append(
                    IncompleteUpload(
                        track_id=logical_file.id,
                        file_name=logical_file.file_name,
                        total_chunks=progress.total_chunks,
                        uploaded_chunks=progress.uploaded_chunks,
                        current_chunk=progress.current_chunk,
                        missing_chunks=progress.missing_chunks(),
                    )
                )
            return uploads

    def list_by_status(self, status: UploadStatus) -> list[LogicalFile]:
        with self._lock:
            return [f for f in self._files.values() if f.status is status]

    def _set_file(self, track_id: uuid.UUID, **changes: object) -> None:
        with self._lock:
            current = self._files.get(track_id)
            if current is None:
                return
            self._files[track_id] = replace(current, **changes)  # type: ignore[arg-type]
