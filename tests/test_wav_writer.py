import io
import struct

import numpy as np
import pytest
import soundfile as sf

from neural_tts.api.postprocess import AudioBuffer
from neural_tts.api.wav import (
    WAV_HEADER_SIZE,
    AudioContainerWriter,
    SampleEncoding,
    build_wav_header,
    empty_wav_header,
    save_audio,
    write_wav_bytes,
)
from neural_tts.errors import ContainerWriteError


def _buffer(values, sample_rate=22050):
    return AudioBuffer(samples=np.asarray(values, dtype=np.float32), sample_rate=sample_rate)


def test_empty_header_is_bit_exact():
    expected = (
        b"RIFF"
        + b"\x24\x00\x00\x00"  # 36 + 0
        + b"WAVE"
        + b"fmt "
        + b"\x10\x00\x00\x00"  # fmt chunk size 16
        + b"\x01\x00"  # PCM
        + b"\x01\x00"  # mono
        + b"\x44\xac\x00\x00"  # 44100
        + b"\x88\x58\x01\x00"  # byte rate 88200
        + b"\x02\x00"  # block align
        + b"\x10\x00"  # 16 bits
        + b"data"
        + b"\x00\x00\x00\x00"
    )
    header = empty_wav_header(44100, 1, 16)
    assert len(header) == WAV_HEADER_SIZE
    assert header == expected


def test_float32_container_layout():
    samples = [0.0, 0.5, -0.5, 1.0]
    data = AudioContainerWriter(SampleEncoding.FLOAT32).write(_buffer(samples))
    assert len(data) == WAV_HEADER_SIZE + 4 * len(samples)

    riff_size, = struct.unpack_from("<I", data, 4)
    audio_format, channels, sample_rate, byte_rate, block_align, bits = struct.unpack_from(
        "<HHIIHH", data, 20
    )
    data_size, = struct.unpack_from("<I", data, 40)
    assert riff_size == 36 + data_size
    assert (audio_format, channels, sample_rate) == (3, 1, 22050)
    assert (byte_rate, block_align, bits) == (22050 * 4, 4, 32)
    assert data_size == 16
    assert data[WAV_HEADER_SIZE:] == np.asarray(samples, dtype="<f4").tobytes()


def test_pcm16_container_layout():
    data = write_wav_bytes(_buffer([0.0, 1.0, -1.0, 0.25]), "pcm16")
    audio_format, channels, sample_rate, byte_rate, block_align, bits = struct.unpack_from(
        "<HHIIHH", data, 20
    )
    assert (audio_format, block_align, bits, byte_rate) == (1, 2, 16, 22050 * 2)
    payload = np.frombuffer(data[WAV_HEADER_SIZE:], dtype="<i2")
    assert payload.tolist() == [0, 32767, -32767, 8192]


def test_pcm16_output_is_readable():
    buffer = _buffer(np.linspace(-0.9, 0.9, 500))
    decoded, sample_rate = sf.read(io.BytesIO(write_wav_bytes(buffer, "pcm16")), dtype="float32")
    assert sample_rate == 22050
    assert decoded.shape == (500,)
    np.testing.assert_allclose(decoded, buffer.samples, atol=1.0 / 16384)


def test_float32_output_is_readable():
    buffer = _buffer(np.linspace(-1.0, 1.0, 256))
    decoded, sample_rate = sf.read(io.BytesIO(write_wav_bytes(buffer, "float32")), dtype="float32")
    assert sample_rate == 22050
    np.testing.assert_array_equal(decoded, buffer.samples)


def test_empty_buffer_writes_header_only():
    data = write_wav_bytes(AudioBuffer.empty(22050))
    assert len(data) == WAV_HEADER_SIZE
    assert struct.unpack_from("<I", data, 40) == (0,)


def test_header_rejects_unrepresentable_values():
    with pytest.raises(ContainerWriteError):
        build_wav_header(sample_rate=0, channels=1, bits_per_sample=16, audio_format=1, data_size=0)
    with pytest.raises(ContainerWriteError):
        build_wav_header(sample_rate=22050, channels=1, bits_per_sample=12, audio_format=1, data_size=0)
    with pytest.raises(ContainerWriteError):
        build_wav_header(
            sample_rate=22050, channels=1, bits_per_sample=16, audio_format=1, data_size=2**32
        )


def test_unknown_encoding():
    with pytest.raises(ValueError):
        SampleEncoding.parse("mp3")


def test_save_audio_writes_wav(tmp_path):
    buffer = _buffer(np.zeros(2205))
    result = save_audio(buffer, tmp_path / "nested" / "speech.bin", encoding="pcm16")
    assert result["path"].endswith("speech.wav")
    assert result["frames"] == 2205
    assert result["sample_rate"] == 22050
    assert result["duration_seconds"] == pytest.approx(0.1)
    info = sf.info(result["path"])
    assert info.samplerate == 22050
    assert info.frames == 2205


def test_save_audio_writes_flac(tmp_path):
    buffer = _buffer(0.5 * np.sin(np.linspace(0, 20, 1000)))
    result = save_audio(buffer, tmp_path / "speech.flac", format="flac")
    decoded, sample_rate = sf.read(result["path"], dtype="float32")
    assert sample_rate == 22050
    assert decoded.shape == (1000,)


def test_save_audio_failure_is_container_write_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    with pytest.raises(ContainerWriteError) as excinfo:
        save_audio(_buffer([0.0]), blocker / "speech.wav")
    assert excinfo.value.stage == "container_write"


def test_save_audio_rejects_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        save_audio(_buffer([0.0]), tmp_path / "speech.mp3", format="mp3")
