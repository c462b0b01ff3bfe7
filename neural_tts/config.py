from __future__ import annotations

"""Runtime settings loader from environment variables."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    """Read an int env var with a default."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _env_path(name: str, default: Optional[str]) -> Optional[Path]:
    value = os.getenv(name) or default
    if not value:
        return None
    return Path(value).expanduser()


def _app_env() -> str:
    return os.getenv("APP_ENV") or os.getenv("ENV") or "dev"


@dataclass(frozen=True)
class Settings:
    """Configuration values parsed from the environment.

    Duration overrides are None when unset, meaning the model bundle's
    own ttsconfig.yaml values apply.
    """
    model_dir: Optional[Path]
    output_dir: Path
    device: str
    audio_encoding: str
    duration_floor: Optional[int]
    max_frames_per_phoneme: Optional[int]
    app_env: str

    @classmethod
    def from_env(cls) -> "Settings":
        """Construct settings from environment variables."""
        model_dir = _env_path("TTS_MODEL_DIR", None)
        output_dir = _env_path("TTS_OUTPUT_DIR", "output")
        device = os.getenv("TTS_DEVICE", "cpu").strip().lower()
        if device not in {"cpu", "cuda", "coreml"}:
            raise ValueError(f"TTS_DEVICE must be cpu, cuda or coreml (got '{device}').")
        audio_encoding = os.getenv("TTS_AUDIO_ENCODING", "float32").strip().lower()
        if audio_encoding not in {"pcm16", "float32"}:
            raise ValueError(
                f"TTS_AUDIO_ENCODING must be pcm16 or float32 (got '{audio_encoding}')."
            )
        duration_floor = _env_int("TTS_DURATION_FLOOR", None)
        if duration_floor is not None and duration_floor < 0:
            raise ValueError("TTS_DURATION_FLOOR must be >= 0.")
        max_frames = _env_int("TTS_MAX_FRAMES_PER_PHONEME", None)
        if max_frames is not None and max_frames < 1:
            raise ValueError("TTS_MAX_FRAMES_PER_PHONEME must be >= 1.")
        return cls(
            model_dir=model_dir,
            output_dir=output_dir,
            device=device,
            audio_encoding=audio_encoding,
            duration_floor=duration_floor,
            max_frames_per_phoneme=max_frames,
            app_env=_app_env(),
        )
