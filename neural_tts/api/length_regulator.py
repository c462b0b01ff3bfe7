"""
Length regulation: expand per-phoneme features to per-frame features.

Each phoneme's hidden state (and pitch/energy, when the encoder predicts
them) is repeated for its predicted number of frames. Values are
piecewise-constant across a phoneme's window; phonemes with a duration of
zero contribute no frames at all.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from neural_tts.api.features import (
    BasicEncoderOutput,
    EncoderOutput,
    ExpandedFeatures,
    ProsodyEncoderOutput,
)
from neural_tts.errors import DurationOverflowError, EmptyExpansionError
from neural_tts.logging_utils import get_logger, summarize_payload

logger = get_logger(__name__)


@dataclass(frozen=True)
class DurationPolicy:
    """
    How predicted log-durations become integer frame counts.

    Attributes:
        floor: Minimum frames per phoneme. 0 lets short phonemes vanish;
            1 makes every phoneme contribute at least one frame, so T >= N.
        max_frames_per_phoneme: Any phoneme predicted above this raises
            DurationOverflowError instead of allocating.
        max_log_duration: exp() input is clipped to this before evaluation.
    """
    floor: int = 0
    max_frames_per_phoneme: int = 1000
    max_log_duration: float = 20.0

    def __post_init__(self) -> None:
        if self.floor < 0:
            raise ValueError(f"Duration floor must be >= 0 (got {self.floor}).")
        if self.max_frames_per_phoneme < 1:
            raise ValueError(
                f"max_frames_per_phoneme must be >= 1 (got {self.max_frames_per_phoneme})."
            )
        if self.floor > self.max_frames_per_phoneme:
            raise ValueError("Duration floor cannot exceed max_frames_per_phoneme.")


def round_half_up(values: np.ndarray) -> np.ndarray:
    """Round non-negative values to the nearest integer, halves away from zero."""
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def durations_from_log(
    log_durations: np.ndarray,
    policy: Optional[DurationPolicy] = None,
) -> np.ndarray:
    """
    Convert predicted log-durations to integer frame counts.

    duration[i] = round(max(floor, exp(log_durations[i]) - 1)), rounding
    halves up.

    Args:
        log_durations: Tensor of shape [N] or [1, N]
        policy: Duration policy (default: floor 0)

    Returns:
        int64 array of shape [N]
    """
    policy = policy or DurationPolicy()
    values = _squeeze_batch(np.asarray(log_durations, dtype=np.float64), "log_durations")

    nan_idx = np.flatnonzero(np.isnan(values))
    if nan_idx.size:
        raise DurationOverflowError(
            phoneme_index=int(nan_idx[0]),
            max_frames=policy.max_frames_per_phoneme,
            value=float("nan"),
            detail="non_finite_log_duration",
        )

    clipped = np.minimum(values, policy.max_log_duration)
    frames = round_half_up(np.maximum(float(policy.floor), np.exp(clipped) - 1.0))

    over_idx = np.flatnonzero(frames > policy.max_frames_per_phoneme)
    if over_idx.size:
        first = int(over_idx[0])
        raise DurationOverflowError(
            phoneme_index=first,
            max_frames=policy.max_frames_per_phoneme,
            value=float(frames[first]),
        )
    return frames.astype(np.int64)


def expand_by_durations(
    hidden_states: np.ndarray,
    durations: Union[np.ndarray, list],
    pitch: Optional[np.ndarray] = None,
    energy: Optional[np.ndarray] = None,
) -> ExpandedFeatures:
    """
    Run-length expand per-phoneme features by integer durations.

    Args:
        hidden_states: Encoder output [1, N, H]
        durations: Frames per phoneme [N]
        pitch: Per-phoneme pitch [1, N] (optional)
        energy: Per-phoneme energy [1, N] (optional)

    Returns:
        ExpandedFeatures with hidden_states [1, T, H] and, when given,
        pitch/energy [1, T], where T = sum(durations)
    """
    hidden = np.asarray(hidden_states, dtype=np.float32)
    if hidden.ndim != 3 or hidden.shape[0] != 1:
        raise ValueError(f"hidden_states must have shape [1, N, H], got {hidden.shape}.")
    n_phonemes, hidden_size = int(hidden.shape[1]), int(hidden.shape[2])

    dur = np.asarray(durations, dtype=np.int64).reshape(-1)
    if dur.shape[0] != n_phonemes:
        raise ValueError(
            f"durations has {dur.shape[0]} entries but hidden_states has {n_phonemes} phonemes."
        )
    if (dur < 0).any():
        raise ValueError("durations must be non-negative.")

    pitch_in = _per_phoneme(pitch, n_phonemes, "pitch")
    energy_in = _per_phoneme(energy, n_phonemes, "energy")

    total = int(dur.sum())
    if total == 0:
        raise EmptyExpansionError(phoneme_count=n_phonemes)

    out_hidden = np.empty((1, total, hidden_size), dtype=np.float32)
    out_pitch = np.empty((1, total), dtype=np.float32) if pitch_in is not None else None
    out_energy = np.empty((1, total), dtype=np.float32) if energy_in is not None else None

    cursor = 0
    for idx in range(n_phonemes):
        d = int(dur[idx])
        if d == 0:
            continue
        end = cursor + d
        out_hidden[0, cursor:end, :] = hidden[0, idx, :]
        if out_pitch is not None:
            out_pitch[0, cursor:end] = pitch_in[idx]
        if out_energy is not None:
            out_energy[0, cursor:end] = energy_in[idx]
        cursor = end

    return ExpandedFeatures(
        hidden_states=out_hidden,
        durations=dur,
        pitch=out_pitch,
        energy=out_energy,
    )


class LengthRegulator:
    """Expands encoder outputs to frame level using a DurationPolicy."""

    def __init__(self, policy: Optional[DurationPolicy] = None) -> None:
        self.policy = policy or DurationPolicy()

    def expand(self, encoder_output: EncoderOutput) -> ExpandedFeatures:
        durations = durations_from_log(encoder_output.log_durations, self.policy)
        if isinstance(encoder_output, ProsodyEncoderOutput):
            expanded = expand_by_durations(
                encoder_output.hidden_states,
                durations,
                pitch=encoder_output.pitch,
                energy=encoder_output.energy,
            )
        elif isinstance(encoder_output, BasicEncoderOutput):
            expanded = expand_by_durations(encoder_output.hidden_states, durations)
        else:
            raise TypeError(f"Unsupported encoder output type: {type(encoder_output).__name__}")

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "length_regulation output=%s",
                summarize_payload(
                    {
                        "phonemes": int(durations.shape[0]),
                        "frames": expanded.frame_count,
                        "floor": self.policy.floor,
                        "zero_duration_phonemes": int((durations == 0).sum()),
                        "hidden_states": expanded.hidden_states,
                    }
                ),
            )
        return expanded


def _squeeze_batch(values: np.ndarray, name: str) -> np.ndarray:
    if values.ndim == 2 and values.shape[0] == 1:
        return values[0]
    if values.ndim == 1:
        return values
    raise ValueError(f"{name} must have shape [N] or [1, N], got {values.shape}.")


def _per_phoneme(values: Optional[np.ndarray], n_phonemes: int, name: str) -> Optional[np.ndarray]:
    if values is None:
        return None
    flat = _squeeze_batch(np.asarray(values, dtype=np.float32), name)
    if flat.shape[0] != n_phonemes:
        raise ValueError(f"{name} has {flat.shape[0]} entries, expected {n_phonemes}.")
    return flat
