from trackupload.logging.logger import Log
from trackupload.upload.ledger import UploadLedger
from trackupload.upload.models import UploadStatus
from trackupload.upload.orchestrator import UploadOrchestrator


class RecoveryRunner:
    """Finish uploads left behind by a crash or a failed probe."""

    def __init__(self, orchestrator: UploadOrchestrator, ledger: UploadLedger) -> None:
        self._orchestrator = orchestrator
        self._ledger = ledger

    def run_once(self) -> int:
        """Run one recovery sweep and return how many tracks were completed.

        Failures are logged per track and do not stop the sweep.
        """
        completed = 0
        for logical_file in self._ledger.list_by_status(UploadStatus.ASSEMBLED_PENDING_PROBE):
            try:
                result = self._orchestrator.reprobe(logical_file.id)
            except Exception:
                Log.exception("Re-probe failed", track_id=logical_file.id)
                continue
            if result.status is UploadStatus.COMPLETE:
                completed += 1

        for logical_file in self._ledger.list_by_status(UploadStatus.INCOMPLETE):
            try:
                result = self._orchestrator.resume_assembly(logical_file.id)
            except Exception:
                Log.exception("Resumed assembly failed", track_id=logical_file.id)
                continue
            if result.status is UploadStatus.COMPLETE:
                completed += 1

        if completed:
            Log.info(f"Recovery sweep completed {completed} track(s)")
        return completed
