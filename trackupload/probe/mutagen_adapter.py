from pathlib import Path

import mutagen

from trackupload.probe.base import BaseDurationProber
from trackupload.probe.exceptions import UnprobeableMediaError


class MutagenDurationProber(BaseDurationProber):
    """Reads stream info with mutagen, which picks a format by extension and header."""

    def probe_duration(self, file_path: Path) -> float:
        try:
            audio = mutagen.File(str(file_path))
        except Exception as exc:
            raise UnprobeableMediaError(f"mutagen could not read {file_path}: {exc}") from exc
        if audio is None or audio.info is None:
            raise UnprobeableMediaError(f"No audio track found in {file_path}")
        length = getattr(audio.info, "length", None)
        if length is None or length < 0:
            raise UnprobeableMediaError(f"No frame count for {file_path}")
        return float(length)
