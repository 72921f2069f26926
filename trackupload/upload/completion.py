from collections.abc import Iterable
from pathlib import Path

from trackupload.upload.chunk_store import ChunkStore


class CompletionDetector:
    """Decides whether a workspace holds every chunk of a logical file."""

    def __init__(self, chunk_store: ChunkStore) -> None:
        self._chunk_store = chunk_store

    def is_complete(
        self,
        workspace: Path,
        declared_total: int,
        received: Iterable[int] | None = None,
    ) -> bool:
        """Check completion against the most recently declared total.

        With `received` (the ledger's distinct indices) every index in
        `0..declared_total-1` must be recorded and present on disk. Indices
        beyond a total that shrank are ignored. Without `received` only the
        workspace entry count is compared.
        """
        if received is None:
            return self.count_complete(workspace, declared_total)
        expected = set(range(declared_total))
        if not expected <= set(received):
            return False
        return expected <= self._chunk_store.present_indices(workspace)

    def count_complete(self, workspace: Path, declared_total: int) -> bool:
        """Entry-count check: blind to duplicated or skipped indices."""
        return self._chunk_store.count_entries(workspace) == declared_total
