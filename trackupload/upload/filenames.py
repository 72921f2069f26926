from pathlib import Path

from trackupload.upload.exceptions import UploadValidationError

_STRIPPED_SEPARATORS = ("/", "\\")


def sanitize_filename(file_name: str) -> str:
    """Strip path separators, then `..` sequences, from a client file name."""
    for separator in _STRIPPED_SEPARATORS:
        file_name = file_name.replace(separator, "")
    return file_name.replace("..", "").replace("\x00", "")


def require_filename(file_name: str) -> str:
    """Sanitize `file_name` and reject names that are unusable as a path.

    Raises:
        UploadValidationError: if nothing usable is left after sanitization.
    """
    sanitized = sanitize_filename(file_name)
    if not sanitized.strip() or sanitized == ".":
        raise UploadValidationError("File name is missing or invalid")
    return sanitized


def contained_path(root: Path, name: str) -> Path:
    """Join `name` onto `root` and verify the result stays inside `root`.

    Only `root` is resolved. An existing entry named `name` (a symlink
    included) is addressed as the entry itself, never its target.
    """
    resolved_root = root.resolve()
    candidate = resolved_root / name
    if name in ("", ".", "..") or candidate.parent != resolved_root:
        raise UploadValidationError(f"Path '{name}' escapes {resolved_root}")
    return candidate
