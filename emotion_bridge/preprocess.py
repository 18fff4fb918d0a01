import io
from typing import Optional, Union

import albumentations as A
from albumentations.pytorch import ToTensorV2
import cv2
import numpy as np
import torch
from PIL import Image, ImageOps, UnidentifiedImageError

from .config import IMAGE_SIZE
from .errors import AllocationError, DecodeError

WIDE_GRAY_MODES = ("I;16", "I;16L", "I;16B", "I;16N", "I")


def tensor_transforms(width: int = IMAGE_SIZE, height: int = IMAGE_SIZE):
	"""Stretch to width x height and scale to [0, 1], channel-first.

	No mean/std standardization: the classifier was exported expecting raw
	RGB divided by 255.
	"""
	return A.Compose([
		A.Resize(height, width, interpolation=cv2.INTER_LINEAR),
		A.Normalize(mean=(0.0, 0.0, 0.0), std=(1.0, 1.0, 1.0), max_pixel_value=255.0),
		ToTensorV2(),
	])


def _to_8bit(img: Image.Image) -> Image.Image:
	# 16-bit grayscale keeps its high byte; convert() would clip it
	arr = np.asarray(img).astype(np.int64) >> 8
	return Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8))  # 2-D uint8 -> "L"


def decode_image(data: Union[bytes, bytearray]) -> Image.Image:
	"""Decode encoded bytes into an RGBA image with EXIF orientation applied."""
	if not data:
		raise DecodeError("Face bytes are empty")
	try:
		img = Image.open(io.BytesIO(data))
		img.load()  # decode now so truncated payloads fail here
		img = ImageOps.exif_transpose(img)
		if img.width == 0 or img.height == 0:
			raise DecodeError("Decoded image has zero size")
		if img.mode in WIDE_GRAY_MODES:
			img = _to_8bit(img)
		return img.convert("RGBA")
	except DecodeError:
		raise
	except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
		raise DecodeError(f"Unable to convert face bytes to image: {e}") from e


def flatten_alpha(img: Image.Image) -> Image.Image:
	"""Composite onto opaque black; transparent pixels end up black."""
	rgba = img.convert("RGBA")
	return Image.alpha_composite(Image.new("RGBA", rgba.size, (0, 0, 0, 255)), rgba)


class TensorPreprocessor:
	def __init__(self, width: int = IMAGE_SIZE, height: int = IMAGE_SIZE):
		self.width = width
		self.height = height
		self.tf = tensor_transforms(width, height)

	def _transforms(self, width: int, height: int):
		if (width, height) == (self.width, self.height):
			return self.tf
		return tensor_transforms(width, height)

	def to_tensor(self, img: Image.Image, width: int, height: int) -> torch.Tensor:
		if width <= 0 or height <= 0:
			raise AllocationError(f"Invalid tensor size {width}x{height}")
		rgb = np.asarray(flatten_alpha(img), dtype=np.uint8)[:, :, :3]
		try:
			t = self._transforms(width, height)(image=np.ascontiguousarray(rgb))["image"]
			t = t.to(torch.float32).clamp_(0.0, 1.0).unsqueeze(0).contiguous()  # 1x3xHxW
		except (cv2.error, MemoryError, RuntimeError, ValueError) as e:
			raise AllocationError(f"Unable to convert image to input tensor: {e}") from e
		if tuple(t.shape) != (1, 3, height, width):
			raise AllocationError(f"Unexpected tensor shape {tuple(t.shape)}")
		return t

	def prepare(self, data: Union[bytes, bytearray], width: Optional[int] = None, height: Optional[int] = None) -> torch.Tensor:
		img = decode_image(data)
		width = self.width if width is None else width
		height = self.height if height is None else height
		return self.to_tensor(img, width, height)
