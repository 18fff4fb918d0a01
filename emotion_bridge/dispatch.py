from typing import List, Optional, Sequence

import numpy as np
import torch

from .config import LABELS, UNKNOWN_LABEL
from .errors import InferenceError, ModelNotLoadedError
from .models import ModelHandle


def select_label(scores: Sequence[float], labels: Sequence[str]) -> str:
	"""Arg-max over scores mapped into labels; first index wins ties.

	Out-of-range indexes, empty vectors and all-NaN vectors give "unknown".
	"""
	arr = np.asarray(scores, dtype=np.float32).reshape(-1)
	if arr.size == 0 or np.isnan(arr).all():
		return UNKNOWN_LABEL
	idx = int(np.nanargmax(arr))
	if 0 <= idx < len(labels):
		return labels[idx]
	return UNKNOWN_LABEL


class InferenceDispatcher:
	def __init__(self, labels: Optional[List[str]] = None):
		self.labels = list(labels) if labels is not None else list(LABELS)

	def scores(self, tensor: torch.Tensor, model: Optional[ModelHandle]) -> np.ndarray:
		if model is None:
			raise ModelNotLoadedError()
		try:
			return model.infer(tensor)
		except Exception as e:
			raise InferenceError(f"Error during prediction: {e}") from e

	def classify(self, tensor: torch.Tensor, model: Optional[ModelHandle]) -> str:
		return select_label(self.scores(tensor, model), self.labels)
