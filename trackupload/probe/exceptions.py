from trackupload.upload.exceptions import UploadError


class UnprobeableMediaError(UploadError):
    """Raised when no track, time base or frame count can be determined."""
