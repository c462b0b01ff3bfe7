"""Mock InferenceModelAdapter that needs no model files."""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from neural_tts.api.adapter import (
    ENCODED_PHONEMES,
    ENERGY_PREDICTIONS,
    EXPANDED_ENERGY,
    EXPANDED_HIDDEN_STATES,
    EXPANDED_PITCH,
    INPUT_IDS,
    LOG_DURATIONS,
    MEL_SPECTROGRAM,
    PITCH_PREDICTIONS,
    WAVEFORM,
    Tensors,
)
from neural_tts.api.features import EncoderVariant


class MockInferenceAdapter:
    """
    Deterministic encoder / decoder / vocoder over small fixed-shape tensors.

    - encode: hidden[i, h] = id_i + 0.01 * h; log_durations = log(1 + d_i)
      so that exp(x) - 1 recovers d_i; pitch = 0.5 * id, energy = 0.25 * id.
    - decode: mel[t, m] = mean(hidden[t]) (+ pitch[t] + energy[t]) + 0.1 * m.
    - vocode: each frame becomes hop_size samples equal to
      amplitude * mean(mel[:, t]).

    Set fail_stage (and optionally fail_on_call, 1-based per stage) to make a
    call raise; list names in drop_outputs to omit them from the results.
    """

    def __init__(
        self,
        *,
        variant: Union[EncoderVariant, str] = EncoderVariant.BASIC,
        hidden_size: int = 4,
        mel_channels: int = 8,
        hop_size: int = 4,
        durations: Optional[Sequence[int]] = None,
        default_duration: int = 2,
        amplitude: float = 0.01,
        fail_stage: Optional[str] = None,
        fail_on_call: Optional[int] = None,
        drop_outputs: Iterable[str] = (),
    ) -> None:
        self.variant = EncoderVariant.parse(variant)
        self.hidden_size = hidden_size
        self.mel_channels = mel_channels
        self.hop_size = hop_size
        self.durations = list(durations) if durations is not None else None
        self.default_duration = default_duration
        self.amplitude = amplitude
        self.fail_stage = fail_stage
        self.fail_on_call = fail_on_call
        self.drop_outputs = set(drop_outputs)
        self.calls: List[Tuple[str, Dict[str, Tuple[int, ...]]]] = []
        self._counts: Dict[str, int] = {"encode": 0, "decode": 0, "vocode": 0}

    def _record(self, stage: str, inputs: Tensors) -> None:
        self._counts[stage] += 1
        self.calls.append((stage, {k: tuple(np.shape(v)) for k, v in inputs.items()}))
        if self.fail_stage == stage and (
            self.fail_on_call is None or self.fail_on_call == self._counts[stage]
        ):
            raise RuntimeError(f"injected {stage} failure on call {self._counts[stage]}")

    def _finish(self, outputs: Tensors) -> Tensors:
        return {k: v for k, v in outputs.items() if k not in self.drop_outputs}

    def stage_calls(self, stage: str) -> int:
        return self._counts[stage]

    def _duration_for(self, index: int) -> int:
        if self.durations is None:
            return self.default_duration
        return int(self.durations[index % len(self.durations)])

    def encode(self, inputs: Tensors) -> Tensors:
        self._record("encode", inputs)
        ids = np.asarray(inputs[INPUT_IDS], dtype=np.float32)[0]
        n = ids.shape[0]
        offsets = 0.01 * np.arange(self.hidden_size, dtype=np.float32)
        hidden = (ids[:, None] + offsets[None, :])[None, :, :].astype(np.float32)
        durations = np.array([self._duration_for(i) for i in range(n)], dtype=np.float32)
        outputs = {
            ENCODED_PHONEMES: hidden,
            LOG_DURATIONS: np.log1p(durations)[None, :].astype(np.float32),
        }
        if self.variant is EncoderVariant.PROSODY:
            outputs[PITCH_PREDICTIONS] = (0.5 * ids)[None, :].astype(np.float32)
            outputs[ENERGY_PREDICTIONS] = (0.25 * ids)[None, :].astype(np.float32)
        return self._finish(outputs)

    def decode(self, inputs: Tensors) -> Tensors:
        self._record("decode", inputs)
        hidden = np.asarray(inputs[EXPANDED_HIDDEN_STATES], dtype=np.float32)
        base = hidden.mean(axis=2)
        if EXPANDED_PITCH in inputs:
            base = base + np.asarray(inputs[EXPANDED_PITCH], dtype=np.float32)
        if EXPANDED_ENERGY in inputs:
            base = base + np.asarray(inputs[EXPANDED_ENERGY], dtype=np.float32)
        channels = 0.1 * np.arange(self.mel_channels, dtype=np.float32)
        mel = base[:, :, None] + channels[None, None, :]
        return self._finish({MEL_SPECTROGRAM: mel.astype(np.float32)})

    def vocode(self, inputs: Tensors) -> Tensors:
        self._record("vocode", inputs)
        mel = np.asarray(inputs[MEL_SPECTROGRAM], dtype=np.float32)
        per_frame = self.amplitude * mel.mean(axis=1)[0]
        waveform = np.repeat(per_frame, self.hop_size)[None, :]
        return self._finish({WAVEFORM: waveform.astype(np.float32)})
