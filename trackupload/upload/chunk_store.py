import os
import shutil
import tempfile
import uuid
from collections.abc import Iterator
from pathlib import Path

from trackupload.upload.exceptions import ChunkStoreError

CHUNK_PREFIX = "chunk_"
CHUNK_INDEX_WIDTH = 8


def chunk_file_name(index: int) -> str:
    """`chunk_<n>` with `n` zero-padded so name order equals index order."""
    return f"{CHUNK_PREFIX}{index:0{CHUNK_INDEX_WIDTH}d}"


def parse_chunk_index(name: str) -> int | None:
    if not name.startswith(CHUNK_PREFIX):
        return None
    digits = name[len(CHUNK_PREFIX):]
    return int(digits) if digits.isdigit() else None


class ChunkStore:
    """Durable per-track storage of chunk payloads on the local filesystem."""

    def __init__(self, workspace_root: Path) -> None:
        self._workspace_root = workspace_root

    def workspace_path(self, track_id: uuid.UUID) -> Path:
        return self._workspace_root / str(track_id)

    def chunk_path(self, workspace: Path, index: int) -> Path:
        return workspace / chunk_file_name(index)

    def write_chunk(self, workspace: Path, index: int, payload: bytes) -> Path:
        """Write one chunk, replacing any chunk already stored at `index`.

        The payload goes to a hidden temporary file in the workspace first and
        is renamed into place, so a reader never sees a partial chunk.

        Raises:
            ChunkStoreError: if the workspace or chunk file cannot be written.
        """
        target = self.chunk_path(workspace, index)
        try:
            workspace.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=workspace, prefix=f".{target.name}.", suffix=".part"
            )
            try:
                with os.fdopen(fd, "wb") as tmp_file:
                    tmp_file.write(payload)
                    tmp_file.flush()
                    os.fsync(tmp_file.fileno())
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise ChunkStoreError(f"Failed to write chunk {index} to {workspace}: {exc}") from exc
        return target

    def read_chunk(self, workspace: Path, index: int) -> bytes:
        try:
            return self.chunk_path(workspace, index).read_bytes()
        except OSError as exc:
            raise ChunkStoreError(f"Failed to read chunk {index} from {workspace}: {exc}") from exc

    def read_all_chunks_in_order(self, workspace: Path, count: int) -> Iterator[bytes]:
        """Yield chunks `0..count-1` in ascending index order."""
        for index in range(count):
            yield self.read_chunk(workspace, index)

    def present_indices(self, workspace: Path) -> set[int]:
        if not workspace.is_dir():
            return set()
        indices = (parse_chunk_index(entry.name) for entry in workspace.iterdir())
        return {index for index in indices if index is not None}

    def count_entries(self, workspace: Path) -> int:
        """Number of visible entries in the workspace (temporary files excluded)."""
        if not workspace.is_dir():
            return 0
        return sum(1 for entry in workspace.iterdir() if not entry.name.startswith("."))

    def remove_workspace(self, workspace: Path) -> None:
        shutil.rmtree(workspace)
