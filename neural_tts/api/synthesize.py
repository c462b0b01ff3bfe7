"""
Single-chunk synthesis API.

phonemes -> input_ids -> encode -> length regulation -> decode -> vocode
-> postprocess. Every stage fails fast with its stage named on the error.
"""

import logging
from typing import Optional, Sequence, Union

from neural_tts.api.adapter import InferenceModelAdapter, run_decoder, run_encoder, run_vocoder
from neural_tts.api.features import EncoderVariant
from neural_tts.api.length_regulator import LengthRegulator
from neural_tts.api.postprocess import AudioBuffer, WaveformPostprocessor
from neural_tts.logging_utils import get_logger, summarize_payload
from neural_tts.phonemizer.codec import PhonemeCodec

logger = get_logger(__name__)


def synthesize_phonemes(
    phonemes: Sequence[str],
    *,
    codec: PhonemeCodec,
    adapter: InferenceModelAdapter,
    postprocessor: WaveformPostprocessor,
    regulator: Optional[LengthRegulator] = None,
    variant: Union[EncoderVariant, str] = EncoderVariant.BASIC,
    mel_channels: Optional[int] = None,
) -> AudioBuffer:
    """
    Synthesize one phoneme sequence into an AudioBuffer.

    Args:
        phonemes: Phoneme tokens from a text front end
        codec: Vocabulary codec
        adapter: Model adapter
        postprocessor: Waveform postprocessor (carries the sample rate)
        regulator: Length regulator (default: floor 0)
        variant: Active encoder variant
        mel_channels: Expected mel channel count, checked when given

    Returns:
        Clipped mono float32 AudioBuffer
    """
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "synthesize_phonemes input=%s",
            summarize_payload({"phonemes": list(phonemes), "variant": str(variant)}),
        )
    variant = EncoderVariant.parse(variant)
    regulator = regulator or LengthRegulator()

    input_ids = codec.encode_ids(phonemes)
    unknown = codec.unknown_tokens(phonemes)
    if unknown:
        logger.warning("unknown_phonemes count=%d tokens=%s", len(unknown), summarize_payload(unknown))

    encoded = run_encoder(adapter, input_ids, variant)
    expanded = regulator.expand(encoded)
    mel = run_decoder(adapter, expanded, variant, mel_channels=mel_channels)
    waveform = run_vocoder(adapter, mel)
    buffer = postprocessor.finish(waveform)

    logger.info(
        "synthesized phonemes=%d frames=%d samples=%d seconds=%.2f",
        int(input_ids.shape[1]),
        expanded.frame_count,
        buffer.frame_count,
        buffer.duration_seconds,
    )
    return buffer
