"""
Tensor bundles passed between pipeline stages.

Encoders come in two arities: a basic encoder that predicts hidden states
and log-durations, and a prosody encoder that also predicts per-phoneme
pitch and energy. The active one is chosen by configuration
(EncoderVariant), never inferred from which outputs happen to be present.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np

from neural_tts.errors import ModelInferenceError


class EncoderVariant(str, Enum):
    BASIC = "basic"
    PROSODY = "prosody"

    @classmethod
    def parse(cls, value: Union[str, "EncoderVariant"]) -> "EncoderVariant":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown encoder_variant '{value}'. Expected 'basic' or 'prosody'."
            ) from None


def _require_shape(stage: str, name: str, array: np.ndarray, ndim: int, n: int) -> None:
    if array.ndim != ndim or array.shape[0] != 1 or array.shape[1] != n:
        raise ModelInferenceError(
            stage,
            f"'{name}' has shape {list(array.shape)}, expected rank {ndim} with leading [1, {n}]",
        )


@dataclass(frozen=True)
class BasicEncoderOutput:
    hidden_states: np.ndarray
    log_durations: np.ndarray

    def __post_init__(self) -> None:
        if self.hidden_states.ndim != 3 or self.hidden_states.shape[0] != 1:
            raise ModelInferenceError(
                "encode",
                f"'encoded_phonemes' has shape {list(self.hidden_states.shape)}, expected [1, N, H]",
            )
        _require_shape("encode", "log_durations", self.log_durations, 2, self.phoneme_count)

    @property
    def phoneme_count(self) -> int:
        return int(self.hidden_states.shape[1])

    @property
    def hidden_size(self) -> int:
        return int(self.hidden_states.shape[2])


@dataclass(frozen=True)
class ProsodyEncoderOutput(BasicEncoderOutput):
    pitch: Optional[np.ndarray] = None
    energy: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.pitch is None or self.energy is None:
            raise ModelInferenceError("encode", "prosody encoder output requires pitch and energy")
        _require_shape("encode", "pitch_predictions", self.pitch, 2, self.phoneme_count)
        _require_shape("encode", "energy_predictions", self.energy, 2, self.phoneme_count)


EncoderOutput = Union[BasicEncoderOutput, ProsodyEncoderOutput]


@dataclass(frozen=True)
class ExpandedFeatures:
    """Per-frame decoder inputs. pitch/energy are set only for prosody encoders."""
    hidden_states: np.ndarray
    durations: np.ndarray
    pitch: Optional[np.ndarray] = None
    energy: Optional[np.ndarray] = None

    @property
    def frame_count(self) -> int:
        return int(self.hidden_states.shape[1])

    @property
    def has_prosody(self) -> bool:
        return self.pitch is not None and self.energy is not None
