import io
import uuid
import wave
from collections.abc import Callable
from pathlib import Path

import pytest

from trackupload.config.settings import Settings
from trackupload.upload.memory_ledger import InMemoryUploadLedger
from trackupload.upload.orchestrator import UploadOrchestrator, build_orchestrator


def _make_wav_bytes(seconds: float, sample_rate: int = 8000) -> bytes:
    """Generate a mono 16-bit PCM WAV of silence."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"\x00\x00" * int(seconds * sample_rate))
    return buf.getvalue()


def _split_bytes(data: bytes, parts: int) -> list[bytes]:
    size = -(-len(data) // parts)
    return [data[i : i + size] for i in range(0, len(data), size)]


@pytest.fixture()
def make_wav() -> Callable[..., bytes]:
    return _make_wav_bytes


@pytest.fixture()
def split_bytes() -> Callable[[bytes, int], list[bytes]]:
    return _split_bytes


@pytest.fixture()
def wav_bytes() -> bytes:
    """Two and a half seconds of silence: probes to 2.5s, stored as 2."""
    return _make_wav_bytes(2.5)


@pytest.fixture()
def wav_file(tmp_path: Path, wav_bytes: bytes) -> Path:
    path = tmp_path / "silence.wav"
    path.write_bytes(wav_bytes)
    return path


@pytest.fixture()
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        ledger_backend="memory",
        uploads_dir=tmp_path / "uploads",
        chunk_workspace_dir=tmp_path / "workspace",
        duration_prober="mutagen",
        max_chunk_bytes=1024 * 1024,
    )


@pytest.fixture()
def ledger() -> InMemoryUploadLedger:
    return InMemoryUploadLedger()


@pytest.fixture()
def orchestrator(settings: Settings, ledger: InMemoryUploadLedger) -> UploadOrchestrator:
    return build_orchestrator(settings, ledger=ledger)
