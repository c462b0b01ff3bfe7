"""
Model bundle management APIs.

A bundle is a directory holding ttsconfig.yaml, the three ONNX graphs and
the phoneme vocabulary. The sample rate and mel channel count belong to the
decoder/vocoder pair and are read from here rather than assumed.
"""

import yaml
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from neural_tts.acoustic.model import DecoderModel, EncoderModel
from neural_tts.api.adapter import OnnxInferenceAdapter
from neural_tts.api.chunking import DEFAULT_DELIMITERS
from neural_tts.api.features import EncoderVariant
from neural_tts.api.length_regulator import DurationPolicy
from neural_tts.logging_utils import get_logger
from neural_tts.vocoder.model import Vocoder

logger = get_logger(__name__)

CONFIG_NAME = "ttsconfig.yaml"


@dataclass(frozen=True)
class ModelConfig:
    root: Path
    sample_rate: int = 22050
    hop_size: int = 256
    mel_channels: int = 80
    language: str = "ja"
    encoder: str = "fastspeech2_encoder.onnx"
    decoder: str = "fastspeech2_decoder.onnx"
    vocoder: str = "hifigan.onnx"
    phonemes: str = "jsut_phoneme_map.json"
    encoder_variant: EncoderVariant = EncoderVariant.BASIC
    duration_floor: int = 0
    max_frames_per_phoneme: int = 1000
    chunk_delimiters: str = DEFAULT_DELIMITERS

    @property
    def encoder_path(self) -> Path:
        return (self.root / self.encoder).resolve()

    @property
    def decoder_path(self) -> Path:
        return (self.root / self.decoder).resolve()

    @property
    def vocoder_path(self) -> Path:
        return (self.root / self.vocoder).resolve()

    @property
    def phonemes_path(self) -> Path:
        return (self.root / self.phonemes).resolve()

    @property
    def duration_policy(self) -> DurationPolicy:
        return DurationPolicy(
            floor=self.duration_floor,
            max_frames_per_phoneme=self.max_frames_per_phoneme,
        )

    def with_overrides(
        self,
        *,
        duration_floor: Optional[int] = None,
        max_frames_per_phoneme: Optional[int] = None,
    ) -> "ModelConfig":
        changes: Dict[str, Any] = {}
        if duration_floor is not None:
            changes["duration_floor"] = int(duration_floor)
        if max_frames_per_phoneme is not None:
            changes["max_frames_per_phoneme"] = int(max_frames_per_phoneme)
        return replace(self, **changes) if changes else self


def load_model_config(model_dir: Union[str, Path]) -> ModelConfig:
    """
    Load ttsconfig.yaml from a model bundle.

    Args:
        model_dir: Path to the bundle directory

    Returns:
        ModelConfig with defaults filled in for absent keys
    """
    root = Path(model_dir)
    config_path = root / CONFIG_NAME
    if not config_path.exists():
        raise FileNotFoundError(f"{CONFIG_NAME} not found at {config_path}")
    data = yaml.safe_load(config_path.read_text(encoding="utf8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid {CONFIG_NAME} format at {config_path}.")

    defaults = ModelConfig(root=root)
    config = ModelConfig(
        root=root,
        sample_rate=int(data.get("sample_rate", defaults.sample_rate)),
        hop_size=int(data.get("hop_size", defaults.hop_size)),
        mel_channels=int(data.get("mel_channels", defaults.mel_channels)),
        language=str(data.get("language", defaults.language)),
        encoder=str(data.get("encoder", defaults.encoder)),
        decoder=str(data.get("decoder", defaults.decoder)),
        vocoder=str(data.get("vocoder", defaults.vocoder)),
        phonemes=str(data.get("phonemes", defaults.phonemes)),
        encoder_variant=EncoderVariant.parse(data.get("encoder_variant", defaults.encoder_variant)),
        duration_floor=int(data.get("duration_floor", defaults.duration_floor)),
        max_frames_per_phoneme=int(data.get("max_frames_per_phoneme", defaults.max_frames_per_phoneme)),
        chunk_delimiters=str(data.get("chunk_delimiters", defaults.chunk_delimiters)),
    )
    if config.sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive in {config_path}.")
    if config.mel_channels <= 0:
        raise ValueError(f"mel_channels must be positive in {config_path}.")
    DurationPolicy(floor=config.duration_floor, max_frames_per_phoneme=config.max_frames_per_phoneme)
    return config


# Cache for loaded sessions; sessions are read-only once built.
_model_cache: Dict[str, Any] = {}


def _get_model(model_class, model_path: Path, device: str = "cpu"):
    """Get or create a cached model instance."""
    cache_key = f"{model_class.__name__}:{model_path}:{device}"
    if cache_key not in _model_cache:
        _model_cache[cache_key] = model_class(model_path, device)
    return _model_cache[cache_key]


def clear_model_cache() -> None:
    _model_cache.clear()


def load_onnx_adapter(config: ModelConfig, device: str = "cpu") -> OnnxInferenceAdapter:
    """Build the ONNX adapter for a bundle, reusing cached sessions."""
    logger.info(
        "load_onnx_adapter root=%s variant=%s device=%s",
        config.root,
        config.encoder_variant.value,
        device,
    )
    return OnnxInferenceAdapter(
        encoder=_get_model(EncoderModel, config.encoder_path, device),
        decoder=_get_model(DecoderModel, config.decoder_path, device),
        vocoder=_get_model(Vocoder, config.vocoder_path, device),
    )


def list_model_bundles(search_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    List model bundles directly under a directory.

    Returns:
        List of dicts with id, path, language, sample_rate and encoder_variant
    """
    search_path = Path(search_path)
    if not search_path.exists():
        return []
    bundles = []
    for item in sorted(search_path.iterdir()):
        if not (item.is_dir() and (item / CONFIG_NAME).exists()):
            continue
        try:
            config = load_model_config(item)
        except (ValueError, yaml.YAMLError) as exc:
            logger.warning("skipping_invalid_bundle path=%s error=%s", item, exc)
            continue
        bundles.append(
            {
                "id": item.name,
                "path": str(item.resolve()),
                "language": config.language,
                "sample_rate": config.sample_rate,
                "encoder_variant": config.encoder_variant.value,
            }
        )
    return bundles
