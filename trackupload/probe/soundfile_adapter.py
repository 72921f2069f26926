from fractions import Fraction
from pathlib import Path

import soundfile

from trackupload.probe.base import BaseDurationProber
from trackupload.probe.exceptions import UnprobeableMediaError


class SoundfileDurationProber(BaseDurationProber):
    """Computes frames * time base from libsndfile header info."""

    def probe_duration(self, file_path: Path) -> float:
        try:
            info = soundfile.info(str(file_path))
        except Exception as exc:
            raise UnprobeableMediaError(f"soundfile could not read {file_path}: {exc}") from exc
        if not info.samplerate or info.samplerate <= 0:
            raise UnprobeableMediaError(f"No time base for {file_path}")
        if info.frames is None or info.frames < 0:
            raise UnprobeableMediaError(f"No frame count for {file_path}")
        time_base = Fraction(1, info.samplerate)
        return info.frames * time_base.numerator / time_base.denominator
