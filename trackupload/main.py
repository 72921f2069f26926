from trackupload.config.settings import Settings
from trackupload.database.connection import close_pool, init_pool
from trackupload.logging.logger import Log
from trackupload.upload.ledger_factory import UploadLedgerFactory
from trackupload.upload.orchestrator import build_orchestrator
from trackupload.worker.recovery_runner import RecoveryRunner
from trackupload.worker.worker import Worker


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> start recovery loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    uses_postgres = settings.ledger_backend.lower() == "postgres"
    if uses_postgres:
        init_pool(settings)

    try:
        ledger = UploadLedgerFactory.create(settings)
        orchestrator = build_orchestrator(settings, ledger=ledger)
        worker = Worker(RecoveryRunner(orchestrator, ledger), settings)
        worker.run()
    finally:
        if uses_postgres:
            close_pool()


if __name__ == "__main__":
    main()
