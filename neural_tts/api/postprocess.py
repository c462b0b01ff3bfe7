"""
Waveform postprocessing.
"""

from dataclasses import dataclass

import numpy as np

from neural_tts.errors import EmptyWaveformError, ModelInferenceError, NonFiniteWaveformError


@dataclass(frozen=True)
class AudioBuffer:
    """Mono float32 samples tagged with their sample rate."""
    samples: np.ndarray
    sample_rate: int
    channels: int = 1

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive (got {self.sample_rate}).")
        if self.channels != 1:
            raise ValueError("Only mono audio buffers are supported.")
        if self.samples.ndim != 1 or self.samples.dtype != np.float32:
            raise ValueError(
                f"samples must be a 1-D float32 array (got {self.samples.dtype} {self.samples.shape})."
            )

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / float(self.sample_rate)

    @classmethod
    def empty(cls, sample_rate: int) -> "AudioBuffer":
        return cls(samples=np.zeros(0, dtype=np.float32), sample_rate=sample_rate)


class WaveformPostprocessor:
    """
    Turns a raw vocoder waveform into a playable AudioBuffer.

    Samples are hard-clipped to [-1.0, 1.0]; +/-inf clip to +/-1.0 while NaN
    is rejected. The sample rate belongs to the decoder/vocoder pair and is
    passed in from the model bundle.
    """

    def __init__(self, sample_rate: int) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive (got {sample_rate}).")
        self.sample_rate = int(sample_rate)

    def finish(self, waveform: np.ndarray) -> AudioBuffer:
        wav = np.asarray(waveform)
        if wav.ndim == 2 and wav.shape[0] == 1:
            wav = wav[0]
        elif wav.ndim != 1:
            raise ModelInferenceError(
                "postprocess", f"waveform has shape {list(wav.shape)}, expected [T'] or [1, T']"
            )
        if wav.size == 0:
            raise EmptyWaveformError()

        wav = wav.astype(np.float32)
        nan_count = int(np.isnan(wav).sum())
        if nan_count:
            raise NonFiniteWaveformError(nan_count=nan_count)
        clipped = np.clip(wav, -1.0, 1.0).astype(np.float32)
        return AudioBuffer(samples=np.ascontiguousarray(clipped), sample_rate=self.sample_rate)


def finish_waveform(waveform: np.ndarray, sample_rate: int) -> AudioBuffer:
    return WaveformPostprocessor(sample_rate).finish(waveform)
