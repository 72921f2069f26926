from abc import ABC, abstractmethod
from pathlib import Path


class BaseDurationProber(ABC):
    """Contract for all duration probing adapters."""

    @abstractmethod
    def probe_duration(self, file_path: Path) -> float:
        """Read the play duration of an audio file from its headers.

        The file extension serves as the format hint; samples are not decoded.

        Args:
            file_path: Path of the assembled audio file.

        Returns:
            Duration in seconds.

        Raises:
            UnprobeableMediaError: if no track, time base or frame count can
                be determined.
        """
