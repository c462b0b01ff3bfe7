"""Neural text-to-speech over ONNX FastSpeech2 + HiFi-GAN model bundles."""

from neural_tts.pipeline import TTSPipeline

__all__ = ["TTSPipeline"]
