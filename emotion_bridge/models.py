import logging
import pickle
import os
from typing import Optional

import numpy as np
import timm
import torch

from .errors import ModelLoadError

logger = logging.getLogger(__name__)


def build_model(num_classes: int = 7, backbone: str = "efficientnet_b0", pretrained: bool = False):
	"""Create a classification model using timm backbones.
	Note: default pretrained=False to avoid network downloads in container runtime.
	"""
	model = timm.create_model(backbone, pretrained=pretrained, num_classes=num_classes)
	return model


def is_torchscript_path(weights_path: str) -> bool:
	return weights_path.endswith("_ts.pt")


class ModelHandle:
	"""Loaded classifier, read-only after construction.

	infer() returns the flat score vector for a single [1, 3, H, W] tensor.
	"""

	def __init__(self, module: torch.nn.Module, device: str = "cpu", output_name: str = ""):
		self.device = torch.device(device)
		self.module = module.eval().to(self.device)
		self.output_name = output_name

	def _select_output(self, out):
		if isinstance(out, dict):
			if self.output_name:
				return out[self.output_name]
			return next(iter(out.values()))
		if isinstance(out, (tuple, list)):
			return out[0]
		return out

	def infer(self, tensor: torch.Tensor) -> np.ndarray:
		with torch.no_grad():
			out = self.module(tensor.to(self.device))
		scores = self._select_output(out)
		return scores.detach().cpu().to(torch.float32).numpy().reshape(-1)


def load_model_handle(
	weights_path: str,
	device: str = "cpu",
	num_classes: int = 7,
	backbone: str = "efficientnet_b0",
	output_name: str = "",
) -> ModelHandle:
	if not os.path.exists(weights_path):
		raise ModelLoadError(f"Weights not found at {weights_path}")
	try:
		# TorchScript support
		if is_torchscript_path(weights_path):
			module = torch.jit.load(weights_path, map_location=torch.device(device))
		else:
			module = build_model(num_classes=num_classes, backbone=backbone)
			state = torch.load(weights_path, map_location=torch.device(device))
			module.load_state_dict(state)
	except (OSError, RuntimeError, KeyError, ValueError, pickle.UnpicklingError) as e:
		raise ModelLoadError(f"Unable to load model from {weights_path}: {e}") from e
	logger.info("Loaded model from %s on %s", weights_path, device)
	return ModelHandle(module, device=device, output_name=output_name)


def fetch_weights(weights_path: str, url: str) -> Optional[str]:
	"""Download weights to weights_path when missing and a URL is configured."""
	if os.path.exists(weights_path) or not url:
		return None
	import urllib.request
	os.makedirs(os.path.dirname(weights_path) or ".", exist_ok=True)
	try:
		urllib.request.urlretrieve(url, weights_path)
	except (OSError, ValueError) as e:
		logger.warning("Could not download weights from %s: %s", url, e)
		return None
	return weights_path
