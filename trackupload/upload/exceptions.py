class UploadError(Exception):
    """Base exception for all upload-engine errors."""


class UploadValidationError(UploadError):
    """Raised when a chunk submission is rejected before any I/O."""


class MissingTrackReferenceError(UploadValidationError):
    """Raised when a non-zero chunk index arrives without a track id."""


class TrackNotFoundError(UploadValidationError):
    """Raised when a submission references a track that does not exist."""


class TrackOwnershipError(UploadValidationError):
    """Raised when a submission references another user's track."""


class UploadAlreadyFinalizedError(UploadValidationError):
    """Raised when chunks arrive for a track that is no longer incomplete."""


class PersistenceError(UploadError):
    """Raised when the upload ledger cannot be read or written."""


class ChunkStoreError(UploadError):
    """Raised when a chunk cannot be written to or read from the workspace."""


class AssemblyIOError(UploadError):
    """Raised when chunks cannot be concatenated into the output file."""
