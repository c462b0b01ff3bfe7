"""
Chunked long-text synthesis.

Long text is split at sentence-ending punctuation and each chunk runs the
full single-chunk pipeline in order, one at a time. The first failure
aborts the whole request; audio from chunks that already finished is
discarded. On success the chunk buffers are joined in text order.
"""

import logging
import re
from typing import Callable, List, Optional, Sequence

import numpy as np

from neural_tts.api.postprocess import AudioBuffer
from neural_tts.errors import ChunkSynthesisError, FormatMismatchError, SynthesisError
from neural_tts.logging_utils import get_logger, set_log_context, summarize_payload

logger = get_logger(__name__)

DEFAULT_DELIMITERS = "。？！、\n"

ChunkSplitter = Callable[[str], List[str]]
SynthesizeOne = Callable[[str], AudioBuffer]


def split_text_chunks(text: str, delimiters: str = DEFAULT_DELIMITERS) -> List[str]:
    """
    Split text on any delimiter character into trimmed, non-empty chunks.

    Example:
        split_text_chunks("A。B！C", "。！") -> ["A", "B", "C"]
    """
    if not text:
        return []
    if not delimiters:
        stripped = text.strip()
        return [stripped] if stripped else []
    pattern = "[" + re.escape(delimiters) + "]"
    return [part.strip() for part in re.split(pattern, text) if part.strip()]


def concatenate_buffers(
    buffers: Sequence[AudioBuffer],
    *,
    sample_rate: Optional[int] = None,
) -> AudioBuffer:
    """
    Join buffers in order into one contiguous buffer.

    Args:
        buffers: Per-chunk buffers, in text order
        sample_rate: Required when buffers is empty; otherwise, if given,
            every buffer must match it

    Returns:
        AudioBuffer whose frame count is the sum of the inputs
    """
    if not buffers:
        if sample_rate is None:
            raise ValueError("sample_rate is required to build an empty buffer.")
        return AudioBuffer.empty(sample_rate)

    expected_rate = buffers[0].sample_rate if sample_rate is None else int(sample_rate)
    expected_channels = buffers[0].channels
    for idx, buf in enumerate(buffers):
        if buf.sample_rate != expected_rate or buf.channels != expected_channels:
            raise FormatMismatchError(
                chunk_index=idx,
                expected=f"{expected_rate}Hz/{expected_channels}ch",
                actual=f"{buf.sample_rate}Hz/{buf.channels}ch",
            )

    total = sum(buf.frame_count for buf in buffers)
    out = np.empty(total, dtype=np.float32)
    cursor = 0
    for buf in buffers:
        out[cursor:cursor + buf.frame_count] = buf.samples
        cursor += buf.frame_count
    return AudioBuffer(samples=out, sample_rate=expected_rate, channels=expected_channels)


class ChunkOrchestrator:
    """Drives one synthesis pass per chunk, strictly sequentially."""

    def __init__(
        self,
        synthesize_one: SynthesizeOne,
        *,
        sample_rate: int,
        splitter: Optional[ChunkSplitter] = None,
    ) -> None:
        self.synthesize_one = synthesize_one
        self.sample_rate = int(sample_rate)
        self.splitter = splitter or split_text_chunks

    def synthesize_long_text(self, text: str) -> AudioBuffer:
        chunks = self.splitter(text)
        if not chunks:
            logger.info("long_text_no_chunks text=%s", summarize_payload(text))
            return AudioBuffer.empty(self.sample_rate)

        count = len(chunks)
        buffers: List[AudioBuffer] = []
        for index, chunk in enumerate(chunks):
            set_log_context(chunk_index=index)
            logger.info("Synthesizing chunk %d/%d: '%s'", index + 1, count, summarize_payload(chunk))
            try:
                buffer = self.synthesize_one(chunk)
            except Exception as exc:
                stage = exc.stage if isinstance(exc, SynthesisError) else "unknown"
                logger.error("Error on chunk %d/%d stage=%s: %s", index + 1, count, stage, exc)
                raise ChunkSynthesisError(
                    chunk_index=index,
                    chunk_count=count,
                    chunk=chunk,
                    stage=stage,
                    cause=exc,
                ) from exc
            finally:
                set_log_context(chunk_index="-")
            buffers.append(buffer)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "chunk_done index=%d frames=%d sample_rate=%d",
                    index,
                    buffer.frame_count,
                    buffer.sample_rate,
                )

        result = concatenate_buffers(buffers, sample_rate=self.sample_rate)
        logger.info(
            "All %d chunks synthesized frames=%d seconds=%.2f",
            count,
            result.frame_count,
            result.duration_seconds,
        )
        return result


def synthesize_long_text(
    text: str,
    chunk_splitter: ChunkSplitter,
    synthesize_one: SynthesizeOne,
    *,
    sample_rate: int,
) -> AudioBuffer:
    return ChunkOrchestrator(
        synthesize_one, sample_rate=sample_rate, splitter=chunk_splitter
    ).synthesize_long_text(text)
