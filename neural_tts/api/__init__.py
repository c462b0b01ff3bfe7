"""
Neural TTS API Module

This module exposes the public APIs for text-to-speech synthesis.
"""

from neural_tts.api.adapter import InferenceModelAdapter, OnnxInferenceAdapter
from neural_tts.api.chunking import ChunkOrchestrator, concatenate_buffers, split_text_chunks, synthesize_long_text
from neural_tts.api.features import BasicEncoderOutput, EncoderVariant, ExpandedFeatures, ProsodyEncoderOutput
from neural_tts.api.length_regulator import DurationPolicy, LengthRegulator, durations_from_log, expand_by_durations
from neural_tts.api.model_bundle import ModelConfig, list_model_bundles, load_model_config, load_onnx_adapter
from neural_tts.api.postprocess import AudioBuffer, WaveformPostprocessor
from neural_tts.api.synthesize import synthesize_phonemes
from neural_tts.api.wav import AudioContainerWriter, SampleEncoding, empty_wav_header, save_audio

__all__ = [
    # Model contract
    "InferenceModelAdapter",
    "OnnxInferenceAdapter",
    "EncoderVariant",
    "BasicEncoderOutput",
    "ProsodyEncoderOutput",
    "ExpandedFeatures",
    # Length regulation
    "DurationPolicy",
    "LengthRegulator",
    "durations_from_log",
    "expand_by_durations",
    # Waveform
    "AudioBuffer",
    "WaveformPostprocessor",
    # Single chunk
    "synthesize_phonemes",
    # Long text
    "ChunkOrchestrator",
    "split_text_chunks",
    "concatenate_buffers",
    "synthesize_long_text",
    # Output
    "AudioContainerWriter",
    "SampleEncoding",
    "empty_wav_header",
    "save_audio",
    # Metadata
    "ModelConfig",
    "load_model_config",
    "load_onnx_adapter",
    "list_model_bundles",
]
