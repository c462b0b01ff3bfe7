import numpy as np
import pytest

from neural_tts.api.adapter import (
    ENCODED_PHONEMES,
    EXPANDED_ENERGY,
    EXPANDED_HIDDEN_STATES,
    EXPANDED_PITCH,
    INPUT_IDS,
    LOG_DURATIONS,
    MEL_SPECTROGRAM,
    WAVEFORM,
    OnnxInferenceAdapter,
    build_decoder_inputs,
    run_decoder,
    run_encoder,
    run_vocoder,
    transpose_mel,
)
from neural_tts.api.features import (
    BasicEncoderOutput,
    EncoderVariant,
    ExpandedFeatures,
    ProsodyEncoderOutput,
)
from neural_tts.dev.mock import MockInferenceAdapter
from neural_tts.errors import ModelInferenceError


IDS = np.array([[3, 1, 4]], dtype=np.int64)


def _expanded(frames=5, hidden=4, prosody=False):
    return ExpandedFeatures(
        hidden_states=np.ones((1, frames, hidden), dtype=np.float32),
        durations=np.array([frames], dtype=np.int64),
        pitch=np.full((1, frames), 2.0, dtype=np.float32) if prosody else None,
        energy=np.full((1, frames), 0.5, dtype=np.float32) if prosody else None,
    )


class _StaticAdapter:
    """Returns canned outputs regardless of input."""

    def __init__(self, encode=None, decode=None, vocode=None):
        self._outputs = {"encode": encode, "decode": decode, "vocode": vocode}

    def encode(self, inputs):
        return self._outputs["encode"]

    def decode(self, inputs):
        return self._outputs["decode"]

    def vocode(self, inputs):
        return self._outputs["vocode"]


def test_basic_encoder_output():
    adapter = MockInferenceAdapter(hidden_size=6)
    encoded = run_encoder(adapter, IDS, EncoderVariant.BASIC)
    assert type(encoded) is BasicEncoderOutput
    assert encoded.hidden_states.shape == (1, 3, 6)
    assert encoded.log_durations.shape == (1, 3)
    assert adapter.calls[0] == ("encode", {INPUT_IDS: (1, 3)})


def test_prosody_encoder_output():
    adapter = MockInferenceAdapter(variant="prosody")
    encoded = run_encoder(adapter, IDS, "prosody")
    assert isinstance(encoded, ProsodyEncoderOutput)
    assert encoded.pitch.tolist() == [[1.5, 0.5, 2.0]]


def test_missing_encoder_output_names_the_tensor():
    adapter = MockInferenceAdapter(drop_outputs=[LOG_DURATIONS])
    with pytest.raises(ModelInferenceError) as excinfo:
        run_encoder(adapter, IDS)
    assert excinfo.value.stage == "encode"
    assert LOG_DURATIONS in excinfo.value.message


def test_prosody_variant_needs_prosody_outputs():
    adapter = MockInferenceAdapter(variant="basic")
    with pytest.raises(ModelInferenceError) as excinfo:
        run_encoder(adapter, IDS, EncoderVariant.PROSODY)
    assert "pitch_predictions" in excinfo.value.message


def test_encoder_phoneme_count_must_match_input():
    adapter = _StaticAdapter(
        encode={
            ENCODED_PHONEMES: np.zeros((1, 2, 4), dtype=np.float32),
            LOG_DURATIONS: np.zeros((1, 2), dtype=np.float32),
        }
    )
    with pytest.raises(ModelInferenceError) as excinfo:
        run_encoder(adapter, IDS)
    assert excinfo.value.stage == "encode"


def test_adapter_exception_is_wrapped():
    adapter = MockInferenceAdapter(fail_stage="encode")
    with pytest.raises(ModelInferenceError) as excinfo:
        run_encoder(adapter, IDS)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert "injected encode failure" in excinfo.value.message


def test_adapter_must_return_mapping():
    adapter = _StaticAdapter(encode=[np.zeros((1, 3, 4))])
    with pytest.raises(ModelInferenceError):
        run_encoder(adapter, IDS)


def test_decoder_inputs_follow_variant():
    expanded = _expanded(prosody=True)
    assert set(build_decoder_inputs(expanded, "basic")) == {EXPANDED_HIDDEN_STATES}
    assert set(build_decoder_inputs(expanded, "prosody")) == {
        EXPANDED_HIDDEN_STATES,
        EXPANDED_PITCH,
        EXPANDED_ENERGY,
    }
    with pytest.raises(ModelInferenceError) as excinfo:
        build_decoder_inputs(_expanded(prosody=False), "prosody")
    assert excinfo.value.stage == "decode"


def test_decoder_returns_frame_aligned_mel():
    adapter = MockInferenceAdapter(mel_channels=8)
    mel = run_decoder(adapter, _expanded(frames=5), mel_channels=8)
    assert mel.shape == (1, 5, 8)


def test_decoder_frame_count_mismatch():
    adapter = _StaticAdapter(decode={MEL_SPECTROGRAM: np.zeros((1, 6, 8), dtype=np.float32)})
    with pytest.raises(ModelInferenceError) as excinfo:
        run_decoder(adapter, _expanded(frames=5))
    assert excinfo.value.stage == "decode"


def test_decoder_channel_mismatch():
    adapter = MockInferenceAdapter(mel_channels=8)
    with pytest.raises(ModelInferenceError):
        run_decoder(adapter, _expanded(frames=5), mel_channels=80)


def test_transpose_mel():
    mel = np.arange(2 * 3, dtype=np.float32).reshape(1, 2, 3)
    transposed = transpose_mel(mel)
    assert transposed.shape == (1, 3, 2)
    assert transposed.flags["C_CONTIGUOUS"]
    assert transposed[0, 2, 1] == mel[0, 1, 2]


def test_vocoder_receives_channels_first_mel():
    adapter = MockInferenceAdapter(mel_channels=8, hop_size=4)
    waveform = run_vocoder(adapter, np.zeros((1, 5, 8), dtype=np.float32))
    assert adapter.calls[-1] == ("vocode", {MEL_SPECTROGRAM: (1, 8, 5)})
    assert waveform.shape == (1, 20)


def test_vocoder_rejects_batched_waveform():
    adapter = _StaticAdapter(vocode={WAVEFORM: np.zeros((2, 10), dtype=np.float32)})
    with pytest.raises(ModelInferenceError) as excinfo:
        run_vocoder(adapter, np.zeros((1, 5, 8), dtype=np.float32))
    assert excinfo.value.stage == "vocode"


def test_onnx_adapter_routes_to_sessions():
    class _FakeModel:
        def __init__(self, outputs):
            self.outputs = outputs
            self.inputs = None

        def run(self, inputs):
            self.inputs = inputs
            return self.outputs

        def forward(self, mel):
            self.inputs = mel
            return self.outputs

    encoder = _FakeModel({"encoded": 1})
    decoder = _FakeModel({"decoded": 2})
    vocoder = _FakeModel({WAVEFORM: 3})
    adapter = OnnxInferenceAdapter(encoder, decoder, vocoder)
    mel = np.zeros((1, 8, 5), dtype=np.float32)

    assert adapter.encode({INPUT_IDS: IDS}) == {"encoded": 1}
    assert adapter.decode({EXPANDED_HIDDEN_STATES: 0}) == {"decoded": 2}
    assert adapter.vocode({MEL_SPECTROGRAM: mel}) == {WAVEFORM: 3}
    assert vocoder.inputs is mel
