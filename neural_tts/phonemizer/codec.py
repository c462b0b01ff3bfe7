from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Union

import numpy as np
import yaml

from neural_tts.errors import EmptyInputError

UNKNOWN_TOKEN = "<unk>"


class PhonemeCodec:
    """Maps phoneme tokens to vocabulary IDs and back.

    Tokens missing from the vocabulary encode to the ``<unk>`` entry when the
    vocabulary has one, otherwise to ``default_unknown_id``.
    """

    def __init__(
        self,
        vocabulary: Mapping[str, int],
        *,
        unknown_token: str = UNKNOWN_TOKEN,
        default_unknown_id: int = 0,
    ) -> None:
        self._token_to_id: Dict[str, int] = {str(k): int(v) for k, v in vocabulary.items()}
        self.unknown_token = unknown_token
        self.unknown_id = self._token_to_id.get(unknown_token, int(default_unknown_id))
        self._id_to_token: Dict[int, str] = {}
        for token, token_id in self._token_to_id.items():
            # First token wins when several share an id.
            self._id_to_token.setdefault(token_id, token)

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "PhonemeCodec":
        return cls(load_vocabulary(path), **kwargs)

    def __len__(self) -> int:
        return len(self._token_to_id)

    def __contains__(self, token: object) -> bool:
        return token in self._token_to_id

    def encode_ids(self, phonemes: Sequence[str]) -> np.ndarray:
        """Return an int64 tensor of shape [1, N]."""
        if len(phonemes) == 0:
            raise EmptyInputError(stage="preprocess", detail="no_phonemes")
        ids = [self._token_to_id.get(p, self.unknown_id) for p in phonemes]
        return np.array(ids, dtype=np.int64)[None, :]

    def decode_ids(self, ids: Union[Sequence[int], np.ndarray]) -> List[str]:
        flat = np.asarray(ids, dtype=np.int64)
        if flat.ndim == 2:
            if flat.shape[0] != 1:
                raise ValueError(f"Expected a single-batch id tensor, got shape {flat.shape}.")
            flat = flat[0]
        elif flat.ndim != 1:
            raise ValueError(f"Expected ids of shape [N] or [1, N], got {flat.shape}.")
        return [self._id_to_token.get(int(i), self.unknown_token) for i in flat]

    def unknown_tokens(self, phonemes: Sequence[str]) -> List[str]:
        return [p for p in phonemes if p not in self._token_to_id]


def load_vocabulary(path: Union[str, Path]) -> Dict[str, int]:
    """Load a ``{token: id}`` map from a JSON or YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Phoneme vocabulary not found at {path}. "
            "Expected a JSON map such as jsut_phoneme_map.json in the model bundle."
        )
    data = yaml.safe_load(path.read_text(encoding="utf8"))
    if not isinstance(data, dict):
        raise ValueError(f"Invalid phoneme vocabulary format at {path}.")
    return {str(k): int(v) for k, v in data.items()}


def encode_ids(phonemes: Sequence[str], vocabulary: Mapping[str, int]) -> np.ndarray:
    """Encode phonemes against a plain vocabulary mapping."""
    return PhonemeCodec(vocabulary).encode_ids(phonemes)
