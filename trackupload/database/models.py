import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass
class TrackRecord:
    """Represents a row from the tracks table."""

    id: uuid.UUID
    user_id: uuid.UUID
    file_name: str
    upload_status: str
    duration: timedelta | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class AudioFileRecord:
    """Represents a row from the audio_files table."""

    track_id: uuid.UUID
    total_chunks: int
    uploaded_chunks: int
    current_chunk: int
    received_chunks: list[int]
    chunk_path: str | None
    upload_status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
