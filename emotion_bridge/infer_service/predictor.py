import time
from typing import Dict, List, Optional, Union

import numpy as np

from ..config import IMAGE_SIZE, MODEL_VERSION, load_labels
from ..dispatch import InferenceDispatcher, select_label
from ..errors import ModelNotLoadedError
from ..models import ModelHandle
from ..preprocess import TensorPreprocessor


def softmax(scores: np.ndarray) -> np.ndarray:
	x = np.asarray(scores, dtype=np.float64)
	x = np.where(np.isfinite(x), x, -np.inf)
	if not np.isfinite(x).any():
		return np.zeros_like(x)
	e = np.exp(x - x.max())
	return e / e.sum()


class Predictor:
	def __init__(
		self,
		model: Optional[ModelHandle],
		labels: Optional[List[str]] = None,
		image_size: int = IMAGE_SIZE,
		model_version: str = MODEL_VERSION,
	):
		self.model = model
		self.labels = labels if labels is not None else load_labels()
		self.image_size = image_size
		self.model_version = model_version
		self.preprocessor = TensorPreprocessor(image_size, image_size)
		self.dispatcher = InferenceDispatcher(self.labels)

	@property
	def loaded(self) -> bool:
		return self.model is not None

	def _prepare(self, face_bytes: Union[bytes, bytearray]):
		# Model check comes first so a missing model wins over a bad image
		if self.model is None:
			raise ModelNotLoadedError()
		return self.preprocessor.prepare(face_bytes)  # 1x3x224x224

	def predict_label(self, face_bytes: Union[bytes, bytearray]) -> str:
		x = self._prepare(face_bytes)
		return self.dispatcher.classify(x, self.model)

	def predict(self, face_bytes: Union[bytes, bytearray]) -> Dict[str, object]:
		t0 = time.time()
		x = self._prepare(face_bytes)
		scores = self.dispatcher.scores(x, self.model)
		probs = softmax(scores)
		latency_ms = (time.time() - t0) * 1000
		return {
			"emotion": select_label(scores, self.labels),
			"scores": {k: float(v) for k, v in zip(self.labels, probs)},
			"model_version": self.model_version,
			"latency_ms": round(latency_ms, 2),
		}
