import os
import tempfile
from pathlib import Path

from trackupload.logging.logger import Log
from trackupload.upload.chunk_store import ChunkStore
from trackupload.upload.exceptions import (
    AssemblyIOError,
    ChunkStoreError,
    UploadValidationError,
)
from trackupload.upload.filenames import contained_path


class Assembler:
    """Concatenates a workspace's chunks, in index order, into one file."""

    def __init__(self, chunk_store: ChunkStore, uploads_dir: Path) -> None:
        self._chunk_store = chunk_store
        self._uploads_dir = uploads_dir

    def output_path(self, file_name: str) -> Path:
        return contained_path(self._uploads_dir, file_name)

    def assemble(self, workspace: Path, output_file_name: str, total_chunks: int) -> Path:
        """Write chunks `0..total_chunks-1` to the uploads dir.

        The output is staged next to the destination and renamed over it, so
        an existing file with the same name is replaced whole (last writer
        wins). The workspace is left in place; callers drop it with
        `discard_workspace` once the assembled state is recorded.

        Raises:
            AssemblyIOError: on any chunk read or output write failure.
        """
        try:
            output_path = self.output_path(output_file_name)
        except UploadValidationError as exc:
            raise AssemblyIOError(f"Failed to assemble {output_file_name}: {exc}") from exc
        Log.info(
            "Assembling upload",
            workspace=workspace,
            output=output_path,
            total_chunks=total_chunks,
        )
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=output_path.parent, prefix=f".{output_path.name}.", suffix=".part"
            )
            try:
                with os.fdopen(fd, "wb") as output_file:
                    for chunk in self._chunk_store.read_all_chunks_in_order(
                        workspace, total_chunks
                    ):
                        output_file.write(chunk)
                os.replace(tmp_name, output_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, ChunkStoreError) as exc:
            raise AssemblyIOError(f"Failed to assemble {output_file_name}: {exc}") from exc

        Log.info("Assembled upload", output=output_path)
        return output_path

    def discard_workspace(self, workspace: Path) -> None:
        """Remove a workspace whose chunks are no longer needed.

        Raises:
            AssemblyIOError: if the workspace cannot be removed.
        """
        try:
            self._chunk_store.remove_workspace(workspace)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise AssemblyIOError(f"Failed to remove workspace {workspace}: {exc}") from exc
