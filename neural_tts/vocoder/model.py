import numpy as np
from typing import Dict

from neural_tts.acoustic.model import OnnxModel


class Vocoder(OnnxModel):
    """
    HiFi-GAN vocoder (hifigan.onnx).
    Inputs: mel_spectrogram
    Outputs: waveform
    """
    def forward(self, mel: np.ndarray) -> Dict[str, np.ndarray]:
        """
        Args:
            mel: [B, n_mel, T] (channels-first, already transposed)
        Returns:
            {"waveform": [B, output_len]}
        """
        return self.run({"mel_spectrogram": mel})
