"""
Audio container output API.

WAV bytes are laid out by hand with ``struct`` so the 44-byte header is
bit-exact for both 16-bit integer and 32-bit float PCM. Other container
formats are delegated to soundfile.
"""

import logging
import struct
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np
import soundfile as sf

from neural_tts.api.postprocess import AudioBuffer
from neural_tts.errors import ContainerWriteError
from neural_tts.logging_utils import get_logger, summarize_payload

logger = get_logger(__name__)

WAV_HEADER_SIZE = 44
WAVE_FORMAT_PCM = 1
WAVE_FORMAT_IEEE_FLOAT = 3
_U32_MAX = 0xFFFFFFFF
_U16_MAX = 0xFFFF


class SampleEncoding(str, Enum):
    PCM16 = "pcm16"
    FLOAT32 = "float32"

    @property
    def audio_format(self) -> int:
        return WAVE_FORMAT_PCM if self is SampleEncoding.PCM16 else WAVE_FORMAT_IEEE_FLOAT

    @property
    def bits_per_sample(self) -> int:
        return 16 if self is SampleEncoding.PCM16 else 32

    @classmethod
    def parse(cls, value: Union[str, "SampleEncoding"]) -> "SampleEncoding":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown sample encoding '{value}'. Expected 'pcm16' or 'float32'."
            ) from None


def build_wav_header(
    *,
    sample_rate: int,
    channels: int,
    bits_per_sample: int,
    audio_format: int,
    data_size: int,
) -> bytes:
    """
    Pack the canonical 44-byte little-endian RIFF/WAVE header.

    byteRate = sampleRate * channels * bitsPerSample / 8
    blockAlign = channels * bitsPerSample / 8
    """
    if sample_rate <= 0 or sample_rate > _U32_MAX:
        raise ContainerWriteError(f"sample_rate {sample_rate} does not fit the header")
    if channels <= 0 or channels > _U16_MAX:
        raise ContainerWriteError(f"channels {channels} does not fit the header")
    if bits_per_sample <= 0 or bits_per_sample % 8 != 0:
        raise ContainerWriteError(f"bits_per_sample must be a positive multiple of 8 (got {bits_per_sample})")
    if data_size < 0 or data_size > _U32_MAX - 36:
        raise ContainerWriteError(f"data size {data_size} does not fit a RIFF container")

    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align
    if byte_rate > _U32_MAX or block_align > _U16_MAX:
        raise ContainerWriteError(f"byte rate {byte_rate} does not fit the header")

    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        data_size,
    )


def empty_wav_header(sample_rate: int = 44100, channels: int = 1, bits_per_sample: int = 16) -> bytes:
    """Header-only PCM placeholder file (data size 0)."""
    return build_wav_header(
        sample_rate=sample_rate,
        channels=channels,
        bits_per_sample=bits_per_sample,
        audio_format=WAVE_FORMAT_PCM,
        data_size=0,
    )


def encode_samples(samples: np.ndarray, encoding: Union[SampleEncoding, str]) -> bytes:
    """Raw little-endian sample bytes for the given encoding."""
    encoding = SampleEncoding.parse(encoding)
    samples = np.asarray(samples, dtype=np.float32)
    if encoding is SampleEncoding.PCM16:
        scaled = np.rint(np.clip(samples, -1.0, 1.0) * 32767.0)
        return scaled.astype("<i2").tobytes()
    return samples.astype("<f4").tobytes()


class AudioContainerWriter:
    """Serializes an AudioBuffer into WAV bytes."""

    def __init__(self, encoding: Union[SampleEncoding, str] = SampleEncoding.FLOAT32) -> None:
        self.encoding = SampleEncoding.parse(encoding)

    def write(self, buffer: AudioBuffer) -> bytes:
        data = encode_samples(buffer.samples, self.encoding)
        header = build_wav_header(
            sample_rate=buffer.sample_rate,
            channels=buffer.channels,
            bits_per_sample=self.encoding.bits_per_sample,
            audio_format=self.encoding.audio_format,
            data_size=len(data),
        )
        return header + data


def write_wav_bytes(buffer: AudioBuffer, encoding: Union[SampleEncoding, str] = SampleEncoding.FLOAT32) -> bytes:
    return AudioContainerWriter(encoding).write(buffer)


def save_audio(
    buffer: AudioBuffer,
    output_path: Union[str, Path],
    *,
    encoding: Union[SampleEncoding, str] = SampleEncoding.FLOAT32,
    format: str = "wav",
) -> Dict[str, Any]:
    """
    Write audio to a file.

    Args:
        buffer: Audio to write
        output_path: File path to save
        encoding: Sample encoding - "pcm16" or "float32" (default: "float32")
        format: Container - "wav", "flac" or "ogg" (default: "wav")

    Returns:
        Dict with:
        - path: Absolute path to saved file
        - duration_seconds: Audio duration
        - sample_rate: Sample rate used
        - frames: Number of sample frames
    """
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "save_audio input=%s",
            summarize_payload(
                {
                    "samples": buffer.samples,
                    "sample_rate": buffer.sample_rate,
                    "output_path": str(output_path),
                    "encoding": str(encoding),
                    "format": format,
                }
            ),
        )
    encoding = SampleEncoding.parse(encoding)
    fmt = format.lower()
    output_path = Path(output_path)
    if fmt not in {"wav", "flac", "ogg"}:
        raise ValueError(f"Unsupported audio format '{format}'. Expected wav, flac or ogg.")
    if output_path.suffix.lower() != f".{fmt}":
        output_path = output_path.with_suffix(f".{fmt}")

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if fmt == "wav":
            output_path.write_bytes(AudioContainerWriter(encoding).write(buffer))
        else:
            subtype = "VORBIS" if fmt == "ogg" else "PCM_16"
            sf.write(str(output_path), buffer.samples, buffer.sample_rate, format=fmt.upper(), subtype=subtype)
    except (OSError, sf.SoundFileError) as exc:
        raise ContainerWriteError(f"failed to write {output_path}: {exc}") from exc

    result = {
        "path": str(output_path.resolve()),
        "duration_seconds": buffer.duration_seconds,
        "sample_rate": buffer.sample_rate,
        "frames": buffer.frame_count,
    }
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("save_audio output=%s", summarize_payload(result))
    return result
