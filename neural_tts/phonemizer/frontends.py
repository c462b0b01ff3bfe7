from __future__ import annotations

import re
from typing import List, Optional, Protocol


class TextFrontend(Protocol):
    """Text-to-phoneme collaborator: ``text -> ordered phoneme tokens``."""

    language: str

    def phonemize(self, text: str) -> List[str]:
        ...


class JapaneseFrontend:
    """Rule-based Japanese analyzer backed by pyopenjtalk.

    ``pyopenjtalk.g2p`` returns a space-separated phoneme string (pau for
    pauses, cl for geminates, capitalized devoiced vowels).
    """

    language = "ja"

    def __init__(self, *, keep_pauses: bool = True) -> None:
        self.keep_pauses = keep_pauses
        self._g2p = None

    def phonemize(self, text: str) -> List[str]:
        if not text.strip():
            return []
        phonemes = self._get_g2p()(text, kana=False).split()
        if not self.keep_pauses:
            phonemes = [p for p in phonemes if p != "pau"]
        return phonemes

    def _get_g2p(self):
        if self._g2p is None:
            try:
                import pyopenjtalk
            except ImportError as exc:
                raise RuntimeError(
                    "Japanese synthesis requires pyopenjtalk. "
                    "Install it with: pip install 'neural-tts[ja]'"
                ) from exc
            self._g2p = pyopenjtalk.g2p
        return self._g2p


class EnglishFrontend:
    """English grapheme-to-phoneme lookup backed by g2p_en (CMUdict + neural OOV).

    Punctuation is kept as its own token; whitespace is dropped.
    """

    language = "en"

    def __init__(self, *, strip_stress: bool = False) -> None:
        self.strip_stress = strip_stress
        self._g2p = None

    def phonemize(self, text: str) -> List[str]:
        if not text.strip():
            return []
        phonemes: List[str] = []
        for phone in self._get_g2p()(text):
            phone = phone.strip()
            if not phone:
                continue
            if self.strip_stress:
                phone = re.sub(r"[0-9]", "", phone) or phone
            phonemes.append(phone)
        return phonemes

    def _get_g2p(self):
        if self._g2p is None:
            from g2p_en import G2p

            try:
                self._g2p = G2p()
            except LookupError as exc:
                raise RuntimeError(
                    "g2p_en requires the NLTK cmudict corpus. "
                    "Install it with: python -m nltk.downloader cmudict"
                ) from exc
        return self._g2p


def frontend_for_language(language: str, **kwargs) -> TextFrontend:
    """Return the text front end for a model bundle language code."""
    code = (language or "").strip().lower()
    if code in {"ja", "jp", "japanese"}:
        return JapaneseFrontend(**kwargs)
    if code in {"en", "english"}:
        return EnglishFrontend(**kwargs)
    raise ValueError(f"Unsupported language '{language}'. Expected 'ja' or 'en'.")


def describe_frontend(frontend: Optional[TextFrontend]) -> str:
    if frontend is None:
        return "none"
    return f"{frontend.__class__.__name__}(language={getattr(frontend, 'language', '?')})"
