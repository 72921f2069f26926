import uuid
from collections.abc import Generator
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any

import psycopg
from psycopg.rows import dict_row

from trackupload.database.connection import get_connection
from trackupload.database.models import AudioFileRecord, TrackRecord
from trackupload.upload.exceptions import PersistenceError
from trackupload.upload.ledger import UploadLedger
from trackupload.upload.models import (
    IncompleteUpload,
    LogicalFile,
    UploadProgress,
    UploadStatus,
)

_DELETE_PROGRESS_SQL = "DELETE FROM audio_files WHERE track_id = %s"
_LOCK_TRACK_SQL = "SELECT pg_advisory_lock(hashtext(%s))"
_UNLOCK_TRACK_SQL = "SELECT pg_advisory_unlock(hashtext(%s))"


def _to_logical_file(record: TrackRecord) -> LogicalFile:
    duration = (
        int(record.duration.total_seconds()) if record.duration is not None else None
    )
    return LogicalFile(
        id=record.id,
        user_id=record.user_id,
        file_name=record.file_name,
        status=UploadStatus(record.upload_status),
        duration_seconds=duration,
    )


def _to_progress(record: AudioFileRecord) -> UploadProgress:
    return UploadProgress(
        track_id=record.track_id,
        total_chunks=record.total_chunks,
        uploaded_chunks=record.uploaded_chunks,
        current_chunk=record.current_chunk,
        chunk_path=Path(record.chunk_path or ""),
        status=UploadStatus(record.upload_status),
        received_chunks=frozenset(record.received_chunks or ()),
    )


class PostgresUploadLedger(UploadLedger):
    """Database operations for the tracks and audio_files tables."""

    @contextmanager
    def _connection(self, action: str) -> Generator[psycopg.Connection[Any], None, None]:
        try:
            with get_connection() as conn:
                yield conn
        except psycopg.Error as exc:
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    @contextmanager
    def hold_track(self, track_id: uuid.UUID) -> Generator[None, None, None]:
        """Hold a session advisory lock on the track for the duration of the block.

        The lock lives on a dedicated pooled connection, so ledger calls made
        inside the block use other connections and commit independently.
        """
        key = str(track_id)
        with self._connection(f"lock track {track_id}") as conn:
            conn.execute(_LOCK_TRACK_SQL, (key,))
            conn.commit()
            try:
                yield
            finally:
                conn.execute(_UNLOCK_TRACK_SQL, (key,))
                conn.commit()

    def create_logical_file(self, user_id: uuid.UUID, file_name: str) -> uuid.UUID:
        with self._connection("create track") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO tracks (user_id, file_name, upload_status)
                    VALUES (%s, %s, %s)
                    RETURNING id
                    """,
                    (user_id, file_name, UploadStatus.INCOMPLETE.value),
                )
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise PersistenceError("INSERT INTO tracks returned no id")
        return row[0]

    def get_logical_file(self, track_id: uuid.UUID) -> LogicalFile | None:
        with self._connection(f"load track {track_id}") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, user_id, file_name, upload_status, duration
                    FROM tracks
                    WHERE id = %s
                    """,
                    (track_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return _to_logical_file(TrackRecord(**row))

    def get_progress(self, track_id: uuid.UUID) -> UploadProgress | None:
        with self._connection(f"load progress for {track_id}") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT track_id, total_chunks, uploaded_chunks, current_chunk,
                           received_chunks, chunk_path, upload_status
                    FROM audio_files
                    WHERE track_id = %s
                    """,
                    (track_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return _to_progress(AudioFileRecord(**row))

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
        with self._connection(f"record progress for {track_id}") as conn:
            conn.execute(
                """
                INSERT INTO audio_files (
                    track_id, total_chunks, uploaded_chunks, current_chunk,
                    received_chunks, chunk_path, upload_status
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (track_id) DO UPDATE
                SET total_chunks = EXCLUDED.total_chunks,
                    uploaded_chunks = EXCLUDED.uploaded_chunks,
                    current_chunk = EXCLUDED.current_chunk,
                    received_chunks = EXCLUDED.received_chunks,
                    chunk_path = EXCLUDED.chunk_path,
                    upload_status = EXCLUDED.upload_status,
                    updated_at = NOW()
                """,
                (
                    track_id,
                    total_chunks,
                    uploaded_chunks,
                    current_chunk,
                    sorted(received_chunks),
                    str(chunk_path),
                    status.value,
                ),
            )
            conn.commit()

    def mark_pending_probe(self, track_id: uuid.UUID) -> None:
        with self._connection(f"mark {track_id} pending probe") as conn:
            conn.execute(
                """
                UPDATE tracks
                SET upload_status = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (UploadStatus.ASSEMBLED_PENDING_PROBE.value, track_id),
            )
            conn.commit()

    def finalize(self, track_id: uuid.UUID, duration_seconds: int) -> None:
        with self._connection(f"finalize {track_id}") as conn:
            conn.execute(
                """
                UPDATE tracks
                SET upload_status = %s, duration = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (
                    UploadStatus.COMPLETE.value,
                    timedelta(seconds=duration_seconds),
                    track_id,
                ),
            )
            conn.execute(_DELETE_PROGRESS_SQL, (track_id,))
            conn.commit()

    def delete_progress(self, track_id: uuid.UUID) -> None:
        with self._connection(f"delete progress for {track_id}") as conn:
            conn.execute(_DELETE_PROGRESS_SQL, (track_id,))
            conn.commit()

    def list_incomplete_uploads(self, user_id: uuid.UUID) -> list[IncompleteUpload]:
        with self._connection(f"list incomplete uploads for {user_id}") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT t.id AS track_id, t.file_name,
                           af.total_chunks, af.uploaded_chunks, af.current_chunk,
                           af.received_chunks
                    FROM tracks t
                    JOIN audio_files af ON t.id = af.track_id
                    WHERE t.user_id = %s
                      AND t.upload_status = %s
                    ORDER BY t.created_at
                    """,
                    (user_id, UploadStatus.INCOMPLETE.value),
                )
                rows = cur.fetchall()

        uploads = []
        for row in rows:
            received = set(row["received_chunks"] or ())
            uploads.append(
                IncompleteUpload(
                    track_id=row["track_id"],
                    file_name=row["file_name"],
                    total_chunks=row["total_chunks"],
                    uploaded_chunks=row["uploaded_chunks"],
                    current_chunk=row["current_chunk"],
                    missing_chunks=[
                        i for i in range(row["total_chunks"]) if i not in received
                    ],
                )
            )
        return uploads

    def list_by_status(self, status: UploadStatus) -> list[LogicalFile]:
        with self._connection(f"list {status.value} tracks") as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, user_id, file_name, upload_status, duration
                    FROM tracks
                    WHERE upload_status = %s
                    ORDER BY updated_at
                    """,
                    (status.value,),
                )
                rows = cur.fetchall()

        return [_to_logical_file(TrackRecord(**row)) for row in rows]
