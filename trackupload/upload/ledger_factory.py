from trackupload.config.settings import Settings
from trackupload.database.repositories.upload_repository import PostgresUploadLedger
from trackupload.upload.ledger import UploadLedger
from trackupload.upload.memory_ledger import InMemoryUploadLedger


class UploadLedgerFactory:
    """Creates the configured upload ledger backend."""

    BACKENDS: dict[str, type[UploadLedger]] = {
        "postgres": PostgresUploadLedger,
        "memory": InMemoryUploadLedger,
    }

    @classmethod
    def create(cls, settings: Settings) -> UploadLedger:
        backend = settings.ledger_backend.lower()
        ledger_cls = cls.BACKENDS.get(backend)
        if ledger_cls is None:
            raise ValueError(
                f"Unknown ledger backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
            )
        return ledger_cls()
