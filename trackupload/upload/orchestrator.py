import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from trackupload.config.settings import Settings
from trackupload.logging.logger import Log
from trackupload.probe.base import BaseDurationProber
from trackupload.probe.factory import DurationProberFactory
from trackupload.upload.assembler import Assembler
from trackupload.upload.chunk_store import ChunkStore
from trackupload.upload.completion import CompletionDetector
from trackupload.upload.exceptions import (
    AssemblyIOError,
    MissingTrackReferenceError,
    TrackNotFoundError,
    TrackOwnershipError,
    UploadAlreadyFinalizedError,
    UploadValidationError,
)
from trackupload.upload.filenames import require_filename
from trackupload.upload.ledger import UploadLedger
from trackupload.upload.ledger_factory import UploadLedgerFactory
from trackupload.upload.locks import KeyedLock
from trackupload.upload.models import (
    ChunkSubmission,
    IncompleteUpload,
    LogicalFile,
    SubmitResult,
    UploadProgress,
    UploadStatus,
    progress_status,
)


class UploadOrchestrator:
    """Accepts chunk submissions and drives a logical file to completion.

    Pipeline per submission: validate -> store chunk -> record progress ->
    detect completion -> assemble -> probe duration -> finalize. Everything
    after validation runs under a per-track lock.
    """

    def __init__(
        self,
        ledger: UploadLedger,
        chunk_store: ChunkStore,
        completion_detector: CompletionDetector,
        assembler: Assembler,
        prober: BaseDurationProber,
        max_chunk_bytes: int | None = None,
        track_locks: KeyedLock | None = None,
    ) -> None:
        self._ledger = ledger
        self._chunk_store = chunk_store
        self._completion_detector = completion_detector
        self._assembler = assembler
        self._prober = prober
        self._max_chunk_bytes = max_chunk_bytes
        self._track_locks = track_locks if track_locks is not None else KeyedLock()

    def submit_chunk(self, user_id: uuid.UUID, submission: ChunkSubmission) -> SubmitResult:
        """Store one chunk and, if it was the last missing one, finish the upload.

        Raises:
            UploadValidationError: for a rejected submission (no I/O was done).
            PersistenceError: if the ledger cannot be read or written.
            ChunkStoreError: if the chunk cannot be written.
            AssemblyIOError: if the completed chunks cannot be assembled.
            UnprobeableMediaError: if the assembled file has no readable duration.
        """
        file_name = self._validate(submission)

        if submission.chunk_index == 0:
            track_id = self._ledger.create_logical_file(user_id, file_name)
            Log.info("Created track", track_id=track_id, file_name=file_name)
        else:
            if submission.track_id is None:
                raise MissingTrackReferenceError(
                    f"Chunk {submission.chunk_index} submitted without a track id"
                )
            track_id = submission.track_id

        with self._hold_track(track_id):
            logical_file = self._require_open_file(track_id, user_id)
            progress = self._record_chunk(logical_file, submission)

            if self._completion_detector.is_complete(
                progress.chunk_path, progress.total_chunks, progress.received_chunks
            ):
                logical_file = self._assemble_and_finalize(logical_file, progress)

        return SubmitResult(
            track_id=track_id,
            status=logical_file.status,
            uploaded_chunks=progress.uploaded_chunks,
            received_chunks=len(progress.received_chunks),
        )

    def list_incomplete_uploads(self, user_id: uuid.UUID) -> list[IncompleteUpload]:
        return self._ledger.list_incomplete_uploads(user_id)

    def resume_assembly(self, track_id: uuid.UUID) -> LogicalFile:
        """Assemble an incomplete track whose chunks are already all stored.

        Returns the logical file unchanged if chunks are still missing.
        """
        with self._hold_track(track_id):
            logical_file = self._ledger.get_logical_file(track_id)
            if logical_file is None:
                raise TrackNotFoundError(f"Track {track_id} not found")
            if logical_file.status is not UploadStatus.INCOMPLETE:
                return logical_file
            progress = self._ledger.get_progress(track_id)
            if progress is None or not self._completion_detector.is_complete(
                progress.chunk_path, progress.total_chunks, progress.received_chunks
            ):
                return logical_file
            return self._assemble_and_finalize(logical_file, progress)

    def reprobe(self, track_id: uuid.UUID) -> LogicalFile:
        """Probe an already assembled track again and finalize it on success."""
        with self._hold_track(track_id):
            logical_file = self._ledger.get_logical_file(track_id)
            if logical_file is None:
                raise TrackNotFoundError(f"Track {track_id} not found")
            if logical_file.status is not UploadStatus.ASSEMBLED_PENDING_PROBE:
                return logical_file
            return self._probe_and_finalize(logical_file)

    @contextmanager
    def _hold_track(self, track_id: uuid.UUID) -> Iterator[None]:
        """Per-track exclusion within this process, then across processes."""
        with self._track_locks.hold(track_id), self._ledger.hold_track(track_id):
            yield

    def _validate(self, submission: ChunkSubmission) -> str:
        file_name = require_filename(submission.file_name)
        if not submission.payload:
            raise UploadValidationError("Chunk data is missing")
        if self._max_chunk_bytes is not None and len(submission.payload) > self._max_chunk_bytes:
            raise UploadValidationError(
                f"Chunk of {len(submission.payload)} bytes exceeds the "
                f"{self._max_chunk_bytes} byte limit"
            )
        if submission.total_chunks < 1:
            raise UploadValidationError("totalChunks must be at least 1")
        if not 0 <= submission.chunk_index < submission.total_chunks:
            raise UploadValidationError(
                f"Chunk index {submission.chunk_index} is outside "
                f"0..{submission.total_chunks - 1}"
            )
        return file_name

    def _require_open_file(self, track_id: uuid.UUID, user_id: uuid.UUID) -> LogicalFile:
        logical_file = self._ledger.get_logical_file(track_id)
        if logical_file is None:
            raise TrackNotFoundError(f"Track {track_id} not found")
        if logical_file.user_id != user_id:
            raise TrackOwnershipError(f"Track {track_id} belongs to another user")
        if logical_file.status is not UploadStatus.INCOMPLETE:
            raise UploadAlreadyFinalizedError(
                f"Track {track_id} is {logical_file.status.value}"
            )
        return logical_file

    def _record_chunk(
        self, logical_file: LogicalFile, submission: ChunkSubmission
    ) -> UploadProgress:
        existing = self._ledger.get_progress(logical_file.id)
        uploaded_chunks = (existing.uploaded_chunks if existing else 0) + 1
        received = (existing.received_chunks if existing else frozenset()) | {
            submission.chunk_index
        }

        workspace = self._chunk_store.workspace_path(logical_file.id)
        self._chunk_store.write_chunk(workspace, submission.chunk_index, submission.payload)

        status = progress_status(submission.chunk_index, submission.total_chunks)
        self._ledger.upsert_progress(
            logical_file.id,
            total_chunks=submission.total_chunks,
            uploaded_chunks=uploaded_chunks,
            current_chunk=submission.chunk_index,
            received_chunks=received,
            chunk_path=workspace,
            status=status,
        )
        Log.debug(
            "Stored chunk",
            track_id=logical_file.id,
            index=submission.chunk_index,
            total_chunks=submission.total_chunks,
            uploaded_chunks=uploaded_chunks,
        )
        return UploadProgress(
            track_id=logical_file.id,
            total_chunks=submission.total_chunks,
            uploaded_chunks=uploaded_chunks,
            current_chunk=submission.chunk_index,
            chunk_path=workspace,
            status=status,
            received_chunks=received,
        )

    def _assemble_and_finalize(
        self, logical_file: LogicalFile, progress: UploadProgress
    ) -> LogicalFile:
        self._assembler.assemble(
            progress.chunk_path, logical_file.file_name, progress.total_chunks
        )
        # Chunks stay on disk until the assembled state is recorded.
        self._ledger.mark_pending_probe(logical_file.id)
        try:
            self._assembler.discard_workspace(progress.chunk_path)
        except AssemblyIOError as exc:
            Log.warning(f"Leaving workspace behind: {exc}", track_id=logical_file.id)
        pending = LogicalFile(
            id=logical_file.id,
            user_id=logical_file.user_id,
            file_name=logical_file.file_name,
            status=UploadStatus.ASSEMBLED_PENDING_PROBE,
        )
        return self._probe_and_finalize(pending)

    def _probe_and_finalize(self, logical_file: LogicalFile) -> LogicalFile:
        output_path = self._assembler.output_path(logical_file.file_name)
        try:
            seconds = self._prober.probe_duration(output_path)
        except Exception as exc:
            Log.error(
                f"Duration probe failed, track left pending: {exc}",
                track_id=logical_file.id,
                output=output_path,
            )
            raise
        duration_seconds = int(seconds)
        self._ledger.finalize(logical_file.id, duration_seconds)
        Log.info(
            "Upload complete",
            track_id=logical_file.id,
            duration_seconds=duration_seconds,
        )
        return LogicalFile(
            id=logical_file.id,
            user_id=logical_file.user_id,
            file_name=logical_file.file_name,
            status=UploadStatus.COMPLETE,
            duration_seconds=duration_seconds,
        )


def build_orchestrator(
    settings: Settings,
    ledger: UploadLedger | None = None,
) -> UploadOrchestrator:
    """Build an UploadOrchestrator with all required adapters."""
    chunk_store = ChunkStore(settings.chunk_workspace_dir)
    return UploadOrchestrator(
        ledger=ledger if ledger is not None else UploadLedgerFactory.create(settings),
        chunk_store=chunk_store,
        completion_detector=CompletionDetector(chunk_store),
        assembler=Assembler(chunk_store, settings.uploads_dir),
        prober=DurationProberFactory.create(settings),
        max_chunk_bytes=settings.max_chunk_bytes,
    )
