from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from neural_tts.api.model_bundle import load_model_config
from neural_tts.api.wav import save_audio
from neural_tts.config import Settings
from neural_tts.dev.mock import MockInferenceAdapter
from neural_tts.errors import SynthesisError
from neural_tts.logging_utils import configure_logging, get_logger
from neural_tts.phonemizer.frontends import frontend_for_language
from neural_tts.pipeline import TTSPipeline

logger = get_logger(__name__)


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="neural-tts",
        description="Synthesize Japanese or English speech with an ONNX FastSpeech2 + HiFi-GAN bundle.",
    )
    parser.add_argument(
        "--model-dir",
        type=Path,
        default=settings.model_dir,
        required=settings.model_dir is None,
        help="Model bundle directory containing ttsconfig.yaml (env: TTS_MODEL_DIR).",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", help="Text to synthesize.")
    source.add_argument("--text-file", type=Path, help="UTF-8 file with the text to synthesize.")
    parser.add_argument(
        "--output",
        type=Path,
        default=settings.output_dir / "speech.wav",
        help="Output audio path.",
    )
    parser.add_argument("--device", default=settings.device, choices=["cpu", "cuda", "coreml"])
    parser.add_argument("--encoding", default=settings.audio_encoding, choices=["pcm16", "float32"])
    parser.add_argument("--format", default="wav", choices=["wav", "flac", "ogg"])
    parser.add_argument(
        "--duration-floor",
        type=int,
        default=settings.duration_floor,
        help="Minimum frames per phoneme (overrides the bundle's duration_floor).",
    )
    parser.add_argument(
        "--single-chunk",
        action="store_true",
        help="Synthesize the whole text in one pass instead of sentence chunks.",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the deterministic mock adapter instead of ONNX sessions.",
    )
    parser.add_argument(
        "--phonemes-only",
        action="store_true",
        help="Print the comma-separated phonemes for the text and exit.",
    )
    parser.add_argument("--log-level", default=None, help="Root log level (env: TTS_LOG_LEVEL).")
    return parser


def _build_pipeline(args: argparse.Namespace, settings: Settings) -> TTSPipeline:
    if not args.mock:
        return TTSPipeline.from_bundle(
            args.model_dir,
            device=args.device,
            duration_floor=args.duration_floor,
            max_frames_per_phoneme=settings.max_frames_per_phoneme,
        )
    config = load_model_config(args.model_dir).with_overrides(
        duration_floor=args.duration_floor,
        max_frames_per_phoneme=settings.max_frames_per_phoneme,
    )
    adapter = MockInferenceAdapter(
        variant=config.encoder_variant,
        mel_channels=config.mel_channels,
        hop_size=config.hop_size,
    )
    return TTSPipeline(config, adapter, frontend_for_language(config.language))


def _print_error(payload: Dict[str, Any]) -> int:
    print(json.dumps({"error": payload}, ensure_ascii=False), file=sys.stderr)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings.from_env()
    args = _build_parser(settings).parse_args(argv)
    configure_logging(args.log_level)

    try:
        text = args.text if args.text is not None else args.text_file.read_text(encoding="utf-8")
        if args.phonemes_only:
            config = load_model_config(args.model_dir)
            phonemes = frontend_for_language(config.language).phonemize(text)
            print(",".join(phonemes))
            return 0
        pipeline = _build_pipeline(args, settings)
        if args.single_chunk:
            buffer = pipeline.synthesize(text)
            result = save_audio(buffer, args.output, encoding=args.encoding, format=args.format)
        else:
            result = pipeline.synthesize_to_file(
                text, args.output, encoding=args.encoding, format=args.format
            )
    except SynthesisError as exc:
        logger.error("synthesis_failed stage=%s error=%s", exc.stage, exc)
        return _print_error(exc.to_payload())
    except (OSError, ValueError, RuntimeError) as exc:
        logger.error("setup_failed error=%s", exc)
        return _print_error(
            {"error_type": exc.__class__.__name__, "stage": "setup", "message": str(exc)}
        )
    print(json.dumps(result, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
