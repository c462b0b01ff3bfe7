import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

from neural_tts.api.adapter import InferenceModelAdapter
from neural_tts.api.chunking import ChunkOrchestrator, split_text_chunks
from neural_tts.api.length_regulator import LengthRegulator
from neural_tts.api.model_bundle import ModelConfig, load_model_config, load_onnx_adapter
from neural_tts.api.postprocess import AudioBuffer, WaveformPostprocessor
from neural_tts.api.synthesize import synthesize_phonemes
from neural_tts.api.wav import SampleEncoding, save_audio
from neural_tts.errors import EmptyInputError
from neural_tts.logging_utils import clear_log_context, set_log_context
from neural_tts.phonemizer.codec import PhonemeCodec
from neural_tts.phonemizer.frontends import TextFrontend, describe_frontend, frontend_for_language


class TTSPipeline:
    """Text to AudioBuffer for one model bundle.

    Holds only read-only state (config, vocabulary, model sessions), so a
    single instance can serve requests one after another; every call builds
    its own tensors and buffers.
    """

    def __init__(
        self,
        config: ModelConfig,
        adapter: InferenceModelAdapter,
        frontend: TextFrontend,
        codec: Optional[PhonemeCodec] = None,
    ):
        self.config = config
        self.adapter = adapter
        self.frontend = frontend
        self.logger = logging.getLogger(__name__)
        self.codec = codec or PhonemeCodec.from_file(config.phonemes_path)
        self.regulator = LengthRegulator(config.duration_policy)
        self.postprocessor = WaveformPostprocessor(config.sample_rate)
        self.logger.info(
            "pipeline_ready root=%s variant=%s floor=%d sample_rate=%d vocabulary=%d frontend=%s",
            config.root,
            config.encoder_variant.value,
            config.duration_floor,
            config.sample_rate,
            len(self.codec),
            describe_frontend(frontend),
        )

    @classmethod
    def from_bundle(
        cls,
        model_dir: Union[str, Path],
        *,
        device: str = "cpu",
        duration_floor: Optional[int] = None,
        max_frames_per_phoneme: Optional[int] = None,
        frontend: Optional[TextFrontend] = None,
    ) -> "TTSPipeline":
        config = load_model_config(model_dir).with_overrides(
            duration_floor=duration_floor,
            max_frames_per_phoneme=max_frames_per_phoneme,
        )
        adapter = load_onnx_adapter(config, device)
        return cls(config, adapter, frontend or frontend_for_language(config.language))

    @property
    def sample_rate(self) -> int:
        return self.config.sample_rate

    def synthesize(self, text: str) -> AudioBuffer:
        """Synthesize text as a single chunk. No phonemes is an EmptyInputError."""
        phonemes = self.frontend.phonemize(text)
        if not phonemes:
            raise EmptyInputError(stage="preprocess", detail="no_phonemes")
        self.logger.debug("phonemes=%s", phonemes)
        return synthesize_phonemes(
            phonemes,
            codec=self.codec,
            adapter=self.adapter,
            postprocessor=self.postprocessor,
            regulator=self.regulator,
            variant=self.config.encoder_variant,
            mel_channels=self.config.mel_channels,
        )

    def synthesize_long_text(self, text: str, *, request_id: Optional[str] = None) -> AudioBuffer:
        """Synthesize text chunk by chunk; text with no chunks yields an empty buffer."""
        set_log_context(request_id=request_id or uuid.uuid4().hex[:12])
        try:
            orchestrator = ChunkOrchestrator(
                self.synthesize,
                sample_rate=self.sample_rate,
                splitter=lambda value: split_text_chunks(value, self.config.chunk_delimiters),
            )
            return orchestrator.synthesize_long_text(text)
        finally:
            clear_log_context()

    def synthesize_to_file(
        self,
        text: str,
        output_path: Union[str, Path],
        *,
        encoding: Union[SampleEncoding, str] = SampleEncoding.FLOAT32,
        format: str = "wav",
    ) -> Dict[str, Any]:
        buffer = self.synthesize_long_text(text)
        return save_audio(buffer, output_path, encoding=encoding, format=format)
