import time

from trackupload.config.settings import Settings
from trackupload.logging.logger import Log
from trackupload.worker.recovery_runner import RecoveryRunner


class Worker:
    """Poll loop: sweep -> sleep."""

    def __init__(self, recovery_runner: RecoveryRunner, settings: Settings) -> None:
        self._recovery_runner = recovery_runner
        self._settings = settings

    def run(self, max_cycles: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_cycles is set, stop after that many sweeps (for testing).
        """
        Log.info("Recovery worker started")
        cycles = 0
        try:
            while max_cycles is None or cycles < max_cycles:
                self._sweep()
                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    break
                time.sleep(self._settings.recovery_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Recovery worker shutting down gracefully")

    def _sweep(self) -> None:
        """Run one sweep. Ledger outages are logged and retried next cycle."""
        try:
            self._recovery_runner.run_once()
        except Exception as exc:
            Log.warning(f"Recovery sweep failed, will retry: {exc}")
