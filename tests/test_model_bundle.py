import json

import onnxruntime as ort
import pytest

from neural_tts.api.chunking import DEFAULT_DELIMITERS
from neural_tts.api.features import EncoderVariant
from neural_tts.api.model_bundle import (
    CONFIG_NAME,
    clear_model_cache,
    list_model_bundles,
    load_model_config,
    load_onnx_adapter,
)


def _write_bundle(root, config_text, *, with_models=False):
    root.mkdir(parents=True, exist_ok=True)
    (root / CONFIG_NAME).write_text(config_text, encoding="utf8")
    (root / "jsut_phoneme_map.json").write_text(json.dumps({"<unk>": 0, "a": 1}), encoding="utf8")
    if with_models:
        for name in ("fastspeech2_encoder.onnx", "fastspeech2_decoder.onnx", "hifigan.onnx"):
            (root / name).write_bytes(b"dummy")
    return root


def test_defaults_fill_missing_keys(tmp_path):
    bundle = _write_bundle(tmp_path / "jsut", "language: ja\n")
    config = load_model_config(bundle)
    assert config.sample_rate == 22050
    assert config.mel_channels == 80
    assert config.encoder_variant is EncoderVariant.BASIC
    assert config.duration_floor == 0
    assert config.chunk_delimiters == DEFAULT_DELIMITERS
    assert config.encoder_path == (bundle / "fastspeech2_encoder.onnx").resolve()
    assert config.phonemes_path == (bundle / "jsut_phoneme_map.json").resolve()


def test_explicit_values(tmp_path):
    bundle = _write_bundle(
        tmp_path / "ljspeech",
        "\n".join(
            [
                "sample_rate: 24000",
                "hop_size: 300",
                "mel_channels: 100",
                "language: en",
                "encoder_variant: prosody",
                "duration_floor: 1",
                "max_frames_per_phoneme: 300",
                "chunk_delimiters: \".!?\"",
                "vocoder: vocoder/hifigan_v2.onnx",
            ]
        ),
    )
    config = load_model_config(bundle)
    assert config.sample_rate == 24000
    assert config.hop_size == 300
    assert config.mel_channels == 100
    assert config.language == "en"
    assert config.encoder_variant is EncoderVariant.PROSODY
    assert config.duration_policy.floor == 1
    assert config.duration_policy.max_frames_per_phoneme == 300
    assert config.chunk_delimiters == ".!?"
    assert config.vocoder_path == (bundle / "vocoder" / "hifigan_v2.onnx").resolve()


def test_overrides_replace_policy_values(tmp_path):
    config = load_model_config(_write_bundle(tmp_path / "b", "duration_floor: 0\n"))
    assert config.with_overrides() is config
    overridden = config.with_overrides(duration_floor=1, max_frames_per_phoneme=200)
    assert overridden.duration_floor == 1
    assert overridden.max_frames_per_phoneme == 200
    assert config.duration_floor == 0


def test_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_model_config(tmp_path)


@pytest.mark.parametrize(
    "config_text",
    [
        "- not\n- a mapping\n",
        "encoder_variant: hybrid\n",
        "duration_floor: -2\n",
        "sample_rate: 0\n",
    ],
)
def test_invalid_config(tmp_path, config_text):
    bundle = _write_bundle(tmp_path / "bad", config_text)
    with pytest.raises(ValueError):
        load_model_config(bundle)


def test_list_model_bundles(tmp_path):
    _write_bundle(tmp_path / "b_en", "language: en\nencoder_variant: prosody\n")
    _write_bundle(tmp_path / "a_ja", "language: ja\n")
    _write_bundle(tmp_path / "broken", "encoder_variant: hybrid\n")
    (tmp_path / "not_a_bundle").mkdir()

    bundles = list_model_bundles(tmp_path)
    assert [b["id"] for b in bundles] == ["a_ja", "b_en"]
    assert bundles[1]["language"] == "en"
    assert bundles[1]["encoder_variant"] == "prosody"
    assert list_model_bundles(tmp_path / "missing") == []


class _DummySession:
    def get_inputs(self):
        return []

    def get_outputs(self):
        return []


def test_load_onnx_adapter_reuses_cached_sessions(monkeypatch, tmp_path):
    created = []

    def fake_session(path, providers=None, sess_options=None):
        created.append(path)
        return _DummySession()

    monkeypatch.setattr(ort, "get_available_providers", lambda: ["CPUExecutionProvider"])
    monkeypatch.setattr(ort, "InferenceSession", fake_session)
    clear_model_cache()
    try:
        config = load_model_config(_write_bundle(tmp_path / "m", "language: ja\n", with_models=True))
        first = load_onnx_adapter(config)
        second = load_onnx_adapter(config)
        assert first.encoder is second.encoder
        assert first.vocoder is second.vocoder
        assert len(created) == 3
        assert created[0].endswith("fastspeech2_encoder.onnx")
    finally:
        clear_model_cache()
