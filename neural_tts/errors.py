"""Typed synthesis errors shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class SynthesisError(Exception):
    """Base class for failures raised by the synthesis pipeline.

    Subclasses are dataclasses carrying at least ``stage`` and ``detail``.
    """

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "stage": getattr(self, "stage", "unknown"),
            "detail": getattr(self, "detail", "synthesis_failed"),
        }


@dataclass
class EmptyInputError(SynthesisError, ValueError):
    """Raised when there are no phonemes (or no text) to synthesize."""

    stage: str
    detail: str = "empty_input"

    def __str__(self) -> str:
        return f"{self.detail}: stage={self.stage}"


@dataclass
class ModelInferenceError(SynthesisError, RuntimeError):
    """Raised when a model call fails or returns missing/malshaped tensors."""

    stage: str
    message: str
    detail: str = "model_inference_failed"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["message"] = self.message
        return payload

    def __str__(self) -> str:
        return f"{self.detail}: stage={self.stage} {self.message}"


@dataclass
class EmptyExpansionError(SynthesisError, ValueError):
    """Raised when length regulation produces zero frames."""

    phoneme_count: int
    stage: str = "length_regulation"
    detail: str = "empty_expansion"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["phoneme_count"] = int(self.phoneme_count)
        return payload

    def __str__(self) -> str:
        return f"{self.detail}: stage={self.stage} phonemes={self.phoneme_count}"


@dataclass
class DurationOverflowError(SynthesisError, ValueError):
    """Raised when a predicted duration is non-finite or exceeds the per-phoneme cap."""

    phoneme_index: int
    max_frames: int
    value: Optional[float] = None
    stage: str = "length_regulation"
    detail: str = "duration_overflow"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["phoneme_index"] = int(self.phoneme_index)
        payload["max_frames"] = int(self.max_frames)
        if self.value is not None:
            payload["value"] = float(self.value)
        return payload

    def __str__(self) -> str:
        return (
            f"{self.detail}: stage={self.stage} phoneme={self.phoneme_index} "
            f"value={self.value} max_frames={self.max_frames}"
        )


@dataclass
class EmptyWaveformError(SynthesisError, ValueError):
    """Raised when the vocoder returns no samples."""

    stage: str = "postprocess"
    detail: str = "empty_waveform"

    def __str__(self) -> str:
        return f"{self.detail}: stage={self.stage}"


@dataclass
class NonFiniteWaveformError(SynthesisError, ValueError):
    """Raised when the waveform contains NaN samples."""

    nan_count: int
    stage: str = "postprocess"
    detail: str = "non_finite_waveform"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["nan_count"] = int(self.nan_count)
        return payload

    def __str__(self) -> str:
        return f"{self.detail}: stage={self.stage} nan_samples={self.nan_count}"


@dataclass
class FormatMismatchError(SynthesisError, ValueError):
    """Raised when chunk buffers disagree on sample rate or channel count."""

    chunk_index: int
    expected: str
    actual: str
    stage: str = "concatenate"
    detail: str = "format_mismatch"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload.update(
            {
                "chunk_index": int(self.chunk_index),
                "expected": self.expected,
                "actual": self.actual,
            }
        )
        return payload

    def __str__(self) -> str:
        return (
            f"{self.detail}: stage={self.stage} chunk={self.chunk_index} "
            f"expected={self.expected} actual={self.actual}"
        )


@dataclass
class ContainerWriteError(SynthesisError, RuntimeError):
    """Raised when audio cannot be serialized or stored."""

    message: str
    stage: str = "container_write"
    detail: str = "container_write_failed"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["message"] = self.message
        return payload

    def __str__(self) -> str:
        return f"{self.detail}: stage={self.stage} {self.message}"


@dataclass
class ChunkSynthesisError(SynthesisError, RuntimeError):
    """Raised when one chunk of a long text fails; the cause is chained."""

    chunk_index: int
    chunk_count: int
    chunk: str
    stage: str
    cause: Optional[BaseException] = None
    detail: str = "chunk_failed"

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload.update(
            {
                "chunk_index": int(self.chunk_index),
                "chunk_count": int(self.chunk_count),
                "chunk": self.chunk,
            }
        )
        if isinstance(self.cause, SynthesisError):
            payload["cause"] = self.cause.to_payload()
        elif self.cause is not None:
            payload["cause"] = {"error_type": self.cause.__class__.__name__, "message": str(self.cause)}
        return payload

    def __str__(self) -> str:
        return (
            f"{self.detail}: chunk {self.chunk_index + 1}/{self.chunk_count} "
            f"stage={self.stage} cause={self.cause}"
        )
