from trackupload.config.settings import Settings
from trackupload.probe.base import BaseDurationProber
from trackupload.probe.mutagen_adapter import MutagenDurationProber
from trackupload.probe.soundfile_adapter import SoundfileDurationProber


class DurationProberFactory:
    """Creates the correct duration prober based on settings."""

    ADAPTERS: dict[str, type[BaseDurationProber]] = {
        "mutagen": MutagenDurationProber,
        "soundfile": SoundfileDurationProber,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseDurationProber:
        engine = settings.duration_prober.lower()
        adapter_cls = cls.ADAPTERS.get(engine)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown duration prober '{engine}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls()
