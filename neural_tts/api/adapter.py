"""
Inference model adapter contract.

The three networks are treated as pure functions over named tensors. The
runners in this module build the exact named inputs for each call, invoke
the adapter, and validate that every required output is present and
correctly shaped. Any failure surfaces as ModelInferenceError(stage); there
are no retries.
"""

import logging
from typing import Dict, Optional, Protocol, Union

import numpy as np

from neural_tts.acoustic.model import DecoderModel, EncoderModel
from neural_tts.api.features import (
    BasicEncoderOutput,
    EncoderOutput,
    EncoderVariant,
    ExpandedFeatures,
    ProsodyEncoderOutput,
)
from neural_tts.errors import ModelInferenceError
from neural_tts.logging_utils import get_logger, summarize_payload
from neural_tts.vocoder.model import Vocoder

logger = get_logger(__name__)

Tensors = Dict[str, np.ndarray]

# Tensor names shared by the exported encoder / decoder / vocoder graphs.
INPUT_IDS = "input_ids"
ENCODED_PHONEMES = "encoded_phonemes"
LOG_DURATIONS = "log_durations"
PITCH_PREDICTIONS = "pitch_predictions"
ENERGY_PREDICTIONS = "energy_predictions"
EXPANDED_HIDDEN_STATES = "expanded_hidden_states"
EXPANDED_PITCH = "expanded_pitch"
EXPANDED_ENERGY = "expanded_energy"
MEL_SPECTROGRAM = "mel_spectrogram"
WAVEFORM = "waveform"


class InferenceModelAdapter(Protocol):
    """Synchronous call-response boundary to the three networks."""

    def encode(self, inputs: Tensors) -> Tensors:
        ...

    def decode(self, inputs: Tensors) -> Tensors:
        ...

    def vocode(self, inputs: Tensors) -> Tensors:
        ...


def _call(stage: str, fn, inputs: Tensors) -> Tensors:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("%s input=%s", stage, summarize_payload(inputs))
    try:
        outputs = fn(inputs)
    except ModelInferenceError:
        raise
    except Exception as exc:
        raise ModelInferenceError(stage, f"{exc.__class__.__name__}: {exc}") from exc
    if not isinstance(outputs, dict):
        raise ModelInferenceError(stage, f"adapter returned {type(outputs).__name__}, expected a dict")
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("%s output=%s", stage, summarize_payload(outputs))
    return outputs


def _require(stage: str, outputs: Tensors, name: str) -> np.ndarray:
    value = outputs.get(name)
    if value is None:
        raise ModelInferenceError(
            stage, f"missing output '{name}' (got {sorted(outputs.keys())})"
        )
    return np.asarray(value)


def run_encoder(
    adapter: InferenceModelAdapter,
    input_ids: np.ndarray,
    variant: Union[EncoderVariant, str] = EncoderVariant.BASIC,
) -> EncoderOutput:
    """
    Run the encoder and package its outputs for the active variant.

    Args:
        adapter: Model adapter
        input_ids: int64 tensor [1, N]
        variant: Which encoder arity is deployed

    Returns:
        BasicEncoderOutput or ProsodyEncoderOutput
    """
    variant = EncoderVariant.parse(variant)
    ids = np.asarray(input_ids)
    if ids.ndim != 2 or ids.shape[0] != 1:
        raise ModelInferenceError("encode", f"'input_ids' has shape {list(ids.shape)}, expected [1, N]")
    outputs = _call("encode", adapter.encode, {INPUT_IDS: ids.astype(np.int64, copy=False)})

    hidden = _require("encode", outputs, ENCODED_PHONEMES).astype(np.float32, copy=False)
    log_durations = _require("encode", outputs, LOG_DURATIONS).astype(np.float32, copy=False)
    if hidden.ndim == 3 and hidden.shape[1] != ids.shape[1]:
        raise ModelInferenceError(
            "encode",
            f"'{ENCODED_PHONEMES}' covers {hidden.shape[1]} phonemes, input has {ids.shape[1]}",
        )
    if variant is EncoderVariant.PROSODY:
        return ProsodyEncoderOutput(
            hidden_states=hidden,
            log_durations=log_durations,
            pitch=_require("encode", outputs, PITCH_PREDICTIONS).astype(np.float32, copy=False),
            energy=_require("encode", outputs, ENERGY_PREDICTIONS).astype(np.float32, copy=False),
        )
    return BasicEncoderOutput(hidden_states=hidden, log_durations=log_durations)


def build_decoder_inputs(
    expanded: ExpandedFeatures,
    variant: Union[EncoderVariant, str] = EncoderVariant.BASIC,
) -> Tensors:
    """Named decoder inputs; pitch/energy are sent only for the prosody variant."""
    variant = EncoderVariant.parse(variant)
    inputs: Tensors = {EXPANDED_HIDDEN_STATES: expanded.hidden_states}
    if variant is EncoderVariant.PROSODY:
        if not expanded.has_prosody:
            raise ModelInferenceError(
                "decode", "prosody decoder requires expanded pitch and energy"
            )
        inputs[EXPANDED_PITCH] = expanded.pitch
        inputs[EXPANDED_ENERGY] = expanded.energy
    return inputs


def run_decoder(
    adapter: InferenceModelAdapter,
    expanded: ExpandedFeatures,
    variant: Union[EncoderVariant, str] = EncoderVariant.BASIC,
    *,
    mel_channels: Optional[int] = None,
) -> np.ndarray:
    """Run the decoder and return the mel spectrogram [1, T, M]."""
    outputs = _call("decode", adapter.decode, build_decoder_inputs(expanded, variant))
    mel = _require("decode", outputs, MEL_SPECTROGRAM).astype(np.float32, copy=False)
    if mel.ndim != 3 or mel.shape[0] != 1:
        raise ModelInferenceError("decode", f"'{MEL_SPECTROGRAM}' has shape {list(mel.shape)}, expected [1, T, M]")
    if mel.shape[1] != expanded.frame_count:
        raise ModelInferenceError(
            "decode",
            f"'{MEL_SPECTROGRAM}' has {mel.shape[1]} frames, expected {expanded.frame_count}",
        )
    if mel_channels is not None and mel.shape[2] != mel_channels:
        raise ModelInferenceError(
            "decode",
            f"'{MEL_SPECTROGRAM}' has {mel.shape[2]} channels, expected {mel_channels}",
        )
    return mel


def transpose_mel(mel: np.ndarray) -> np.ndarray:
    """[1, T, M] -> contiguous [1, M, T]."""
    mel = np.asarray(mel)
    if mel.ndim != 3:
        raise ValueError(f"mel must be rank 3, got shape {mel.shape}.")
    return np.ascontiguousarray(mel.transpose(0, 2, 1))


def run_vocoder(adapter: InferenceModelAdapter, mel: np.ndarray) -> np.ndarray:
    """Transpose the decoder mel to channels-first and run the vocoder."""
    outputs = _call("vocode", adapter.vocode, {MEL_SPECTROGRAM: transpose_mel(mel)})
    waveform = _require("vocode", outputs, WAVEFORM)
    if waveform.ndim > 2 or (waveform.ndim == 2 and waveform.shape[0] != 1):
        raise ModelInferenceError(
            "vocode", f"'{WAVEFORM}' has shape {list(waveform.shape)}, expected [T'] or [1, T']"
        )
    return waveform


class OnnxInferenceAdapter:
    """InferenceModelAdapter backed by three onnxruntime sessions."""

    def __init__(self, encoder: EncoderModel, decoder: DecoderModel, vocoder: Vocoder) -> None:
        self.encoder = encoder
        self.decoder = decoder
        self.vocoder = vocoder

    def encode(self, inputs: Tensors) -> Tensors:
        return self.encoder.run(inputs)

    def decode(self, inputs: Tensors) -> Tensors:
        return self.decoder.run(inputs)

    def vocode(self, inputs: Tensors) -> Tensors:
        return self.vocoder.forward(inputs[MEL_SPECTROGRAM])
