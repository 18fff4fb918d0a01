"""Shared fixtures: in-memory images and stand-in classifiers."""

import io

import pytest
import torch
from PIL import Image


class FixedScores(torch.nn.Module):
	"""Returns the same score row for every input."""

	def __init__(self, scores):
		super().__init__()
		self.register_buffer("scores", torch.tensor([scores], dtype=torch.float32))

	def forward(self, x):
		return x.new_zeros((x.shape[0], 1)) + self.scores


class RaisingModel(torch.nn.Module):
	def forward(self, x):
		raise RuntimeError("shape mismatch")


def encode(img: Image.Image, fmt: str = "PNG") -> bytes:
	buf = io.BytesIO()
	img.save(buf, format=fmt)
	return buf.getvalue()


@pytest.fixture
def make_image_bytes():
	def _make(size=(64, 48), color=(255, 0, 0, 255), mode="RGBA", fmt="PNG"):
		return encode(Image.new(mode, size, color), fmt)

	return _make


@pytest.fixture
def happy_handle():
	from emotion_bridge.models import ModelHandle

	return ModelHandle(FixedScores([0.1, 0.0, 0.2, 0.3, 0.0, 0.1, 2.5]))


@pytest.fixture
def raising_handle():
	from emotion_bridge.models import ModelHandle

	return ModelHandle(RaisingModel())
