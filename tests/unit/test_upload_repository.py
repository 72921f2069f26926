import uuid
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import psycopg
import pytest

from trackupload.database.repositories.upload_repository import PostgresUploadLedger
from trackupload.upload.exceptions import PersistenceError
from trackupload.upload.models import UploadStatus

TRACK_ID = uuid.UUID("7d4f3c1e-2a4b-4c8d-9e0f-1a2b3c4d5e6f")
USER_ID = uuid.UUID("0b1c2d3e-4f50-4617-8293-a4b5c6d7e8f9")
CONNECTION = "trackupload.database.repositories.upload_repository.get_connection"


def _mock_connection(mock_get_conn: MagicMock) -> tuple[MagicMock, MagicMock]:
    """Wire up a mock connection + cursor and return (mock_conn, mock_cursor)."""
    mock_cursor = MagicMock()
    mock_conn = MagicMock()
    mock_conn.cursor.return_value.__enter__ = MagicMock(return_value=mock_cursor)
    mock_conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
    mock_get_conn.return_value.__enter__ = MagicMock(return_value=mock_conn)
    mock_get_conn.return_value.__exit__ = MagicMock(return_value=False)
    return mock_conn, mock_cursor


def _track_row(**overrides: object) -> dict:
    row = {
        "id": TRACK_ID,
        "user_id": USER_ID,
        "file_name": "song.mp3",
        "upload_status": "incomplete",
        "duration": None,
    }
    row.update(overrides)
    return row


class TestCreateLogicalFile:
    @patch(CONNECTION)
    def test_inserts_track_and_returns_id(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = (TRACK_ID,)

        result = PostgresUploadLedger().create_logical_file(USER_ID, "song.mp3")

        assert result == TRACK_ID
        sql, params = mock_cursor.execute.call_args.args
        assert "INSERT INTO tracks" in sql
        assert params == (USER_ID, "song.mp3", "incomplete")
        mock_conn.commit.assert_called_once()

    @patch(CONNECTION)
    def test_wraps_database_errors(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.execute.side_effect = psycopg.OperationalError("connection lost")

        with pytest.raises(PersistenceError, match="connection lost"):
            PostgresUploadLedger().create_logical_file(USER_ID, "song.mp3")


class TestGetLogicalFile:
    @patch(CONNECTION)
    def test_maps_row_to_logical_file(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _track_row(
            upload_status="complete", duration=timedelta(seconds=184)
        )

        result = PostgresUploadLedger().get_logical_file(TRACK_ID)

        assert result is not None
        assert result.id == TRACK_ID
        assert result.status is UploadStatus.COMPLETE
        assert result.duration_seconds == 184

    @patch(CONNECTION)
    def test_returns_none_when_missing(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert PostgresUploadLedger().get_logical_file(TRACK_ID) is None


class TestGetProgress:
    @patch(CONNECTION)
    def test_maps_row_to_progress(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {
            "track_id": TRACK_ID,
            "total_chunks": 4,
            "uploaded_chunks": 5,
            "current_chunk": 2,
            "received_chunks": [0, 1, 2],
            "chunk_path": "/data/ws/abc",
            "upload_status": "incomplete",
        }

        result = PostgresUploadLedger().get_progress(TRACK_ID)

        assert result is not None
        assert result.uploaded_chunks == 5
        assert result.received_chunks == frozenset({0, 1, 2})
        assert result.chunk_path == Path("/data/ws/abc")
        assert result.missing_chunks() == [3]

    @patch(CONNECTION)
    def test_returns_none_when_missing(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert PostgresUploadLedger().get_progress(TRACK_ID) is None


class TestUpsertProgress:
    @patch(CONNECTION)
    def test_single_statement_upsert(self, mock_get_conn: MagicMock) -> None:
        mock_conn, _cursor = _mock_connection(mock_get_conn)

        PostgresUploadLedger().upsert_progress(
            TRACK_ID,
            total_chunks=3,
            uploaded_chunks=4,
            current_chunk=2,
            received_chunks=frozenset({2, 0, 1}),
            chunk_path=Path("/data/ws/abc"),
            status=UploadStatus.COMPLETE,
        )

        mock_conn.execute.assert_called_once()
        sql, params = mock_conn.execute.call_args.args
        assert "ON CONFLICT (track_id) DO UPDATE" in sql
        assert params == (TRACK_ID, 3, 4, 2, [0, 1, 2], "/data/ws/abc", "complete")
        mock_conn.commit.assert_called_once()


class TestFinalize:
    @patch(CONNECTION)
    def test_updates_status_then_deletes_progress_in_one_commit(
        self, mock_get_conn: MagicMock
    ) -> None:
        mock_conn, _cursor = _mock_connection(mock_get_conn)

        PostgresUploadLedger().finalize(TRACK_ID, 184)

        first, second = mock_conn.execute.call_args_list
        update_sql, update_params = first.args
        assert "UPDATE tracks" in update_sql
        assert update_params == ("complete", timedelta(seconds=184), TRACK_ID)
        assert "DELETE FROM audio_files" in second.args[0]
        mock_conn.commit.assert_called_once()

    @patch(CONNECTION)
    def test_mark_pending_probe(self, mock_get_conn: MagicMock) -> None:
        mock_conn, _cursor = _mock_connection(mock_get_conn)

        PostgresUploadLedger().mark_pending_probe(TRACK_ID)

        _sql, params = mock_conn.execute.call_args.args
        assert params == ("assembled_pending_probe", TRACK_ID)
        mock_conn.commit.assert_called_once()


class TestListQueries:
    @patch(CONNECTION)
    def test_list_incomplete_uploads_computes_missing_chunks(
        self, mock_get_conn: MagicMock
    ) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [
            {
                "track_id": TRACK_ID,
                "file_name": "song.mp3",
                "total_chunks": 4,
                "uploaded_chunks": 3,
                "current_chunk": 3,
                "received_chunks": [0, 3],
            }
        ]

        uploads = PostgresUploadLedger().list_incomplete_uploads(USER_ID)

        assert len(uploads) == 1
        assert uploads[0].missing_chunks == [1, 2]
        _sql, params = mock_cursor.execute.call_args.args
        assert params == (USER_ID, "incomplete")

    @patch(CONNECTION)
    def test_list_by_status(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [
            _track_row(upload_status="assembled_pending_probe")
        ]

        files = PostgresUploadLedger().list_by_status(UploadStatus.ASSEMBLED_PENDING_PROBE)

        assert [f.status for f in files] == [UploadStatus.ASSEMBLED_PENDING_PROBE]


class TestHoldTrack:
    @patch(CONNECTION)
    def test_locks_and_unlocks_around_block(self, mock_get_conn: MagicMock) -> None:
        mock_conn, _cursor = _mock_connection(mock_get_conn)

        with PostgresUploadLedger().hold_track(TRACK_ID):
            (lock_call,) = mock_conn.execute.call_args_list
            assert "pg_advisory_lock" in lock_call.args[0]
            assert lock_call.args[1] == (str(TRACK_ID),)

        unlock_sql, unlock_params = mock_conn.execute.call_args.args
        assert "pg_advisory_unlock" in unlock_sql
        assert unlock_params == (str(TRACK_ID),)

    @patch(CONNECTION)
    def test_unlocks_when_block_raises(self, mock_get_conn: MagicMock) -> None:
        mock_conn, _cursor = _mock_connection(mock_get_conn)

        with pytest.raises(PersistenceError, match="boom"):
            with PostgresUploadLedger().hold_track(TRACK_ID):
                raise PersistenceError("boom")

        assert "pg_advisory_unlock" in mock_conn.execute.call_args.args[0]

    @patch(CONNECTION)
    def test_lock_failure_is_wrapped(self, mock_get_conn: MagicMock) -> None:
        mock_conn, _cursor = _mock_connection(mock_get_conn)
        mock_conn.execute.side_effect = psycopg.OperationalError("connection lost")

        with pytest.raises(PersistenceError, match="lock track"):
            with PostgresUploadLedger().hold_track(TRACK_ID):
                pass
