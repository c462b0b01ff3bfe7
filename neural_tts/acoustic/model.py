import onnxruntime as ort
import numpy as np
import os
from pathlib import Path
from typing import Dict, List, Any

from neural_tts.logging_utils import get_logger

logger = get_logger(__name__)

_DEVICE_PROVIDERS = {
    "cuda": "CUDAExecutionProvider",
    "coreml": "CoreMLExecutionProvider",
}


class OnnxModel:
    """Base class for the ONNX graphs of a model bundle."""
    def __init__(self, model_path: Path, device: str = "cpu"):
        self.model_path = Path(model_path)
        self.device = device
        self.session = self._load_session()
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]

    def _load_session(self) -> ort.InferenceSession:
        if not self.model_path.exists():
            raise FileNotFoundError(f"Model not found at {self.model_path}")

        available = ort.get_available_providers()
        providers = ["CPUExecutionProvider"]
        wanted = _DEVICE_PROVIDERS.get(self.device)
        if wanted is not None:
            if wanted in available:
                providers.insert(0, wanted)
            else:
                logger.warning(
                    "%s_provider_unavailable model=%s available=%s",
                    self.device,
                    self.model_path.name,
                    available,
                )

        opts = ort.SessionOptions()
        intra_threads = os.getenv("ORT_INTRA_OP_NUM_THREADS")
        inter_threads = os.getenv("ORT_INTER_OP_NUM_THREADS")
        if intra_threads:
            opts.intra_op_num_threads = int(intra_threads)
        if inter_threads:
            opts.inter_op_num_threads = int(inter_threads)
        logger.info(
            "ort_session_config model=%s providers=%s intra_threads=%s inter_threads=%s",
            self.model_path.name,
            providers,
            opts.intra_op_num_threads,
            opts.inter_op_num_threads,
        )
        return ort.InferenceSession(str(self.model_path), providers=providers, sess_options=opts)

    def run(self, inputs: Dict[str, Any]) -> Dict[str, np.ndarray]:
        """Run the graph and return its outputs keyed by output name."""
        unexpected = [name for name in inputs if name not in self.input_names]
        if unexpected:
            raise ValueError(
                f"Model {self.model_path.name} does not accept inputs {unexpected} "
                f"(declared: {self.input_names})"
            )
        self.verify_input_names(inputs)
        outputs = self.session.run(self.output_names, dict(inputs))
        return dict(zip(self.output_names, outputs))

    def verify_input_names(self, inputs: Dict[str, Any]) -> List[str]:
        missing = [name for name in self.input_names if name not in inputs]
        if missing:
            logger.debug("Model %s missing inputs: %s", self.model_path.name, missing)
        return missing


class EncoderModel(OnnxModel):
    """
    Phoneme encoder (fastspeech2_encoder.onnx).
    Inputs: input_ids
    Outputs: encoded_phonemes, log_durations[, pitch_predictions, energy_predictions]
    """
    pass


class DecoderModel(OnnxModel):
    """
    Variance-conditioned decoder (fastspeech2_decoder.onnx).
    Inputs: expanded_hidden_states[, expanded_pitch, expanded_energy]
    Outputs: mel_spectrogram
    """
    pass
