"""Error taxonomy surfaced to the host shell.

Every per-request failure maps to one stable code. Nothing is retried;
the HTTP layer turns these into ChannelError responses.
"""
from typing import Any, Dict, Optional


class EmotionBridgeError(Exception):
	code = "INTERNAL_ERROR"
	status_code = 500
	default_message = "Unexpected error"

	def __init__(self, message: str = "", details: Optional[Any] = None):
		self.message = message or self.default_message
		self.details = details
		super().__init__(self.message)

	def to_dict(self) -> Dict[str, Any]:
		return {"code": self.code, "message": self.message, "details": self.details}


class InvalidArgumentsError(EmotionBridgeError):
	code = "INVALID_ARGUMENTS"
	status_code = 400
	default_message = "Face bytes are missing or invalid"


class ModelNotLoadedError(EmotionBridgeError):
	code = "MODEL_NOT_LOADED"
	status_code = 503
	default_message = "Emotion model is not loaded"


class DecodeError(EmotionBridgeError):
	code = "INVALID_IMAGE"
	status_code = 400
	default_message = "Unable to decode face bytes into an image"


class AllocationError(EmotionBridgeError):
	code = "MULTIARRAY_ERROR"
	status_code = 500
	default_message = "Unable to convert image to input tensor"


class InferenceError(EmotionBridgeError):
	code = "PREDICTION_ERROR"
	status_code = 500
	default_message = "Error during prediction"


class MethodNotImplemented(EmotionBridgeError):
	code = "NOT_IMPLEMENTED"
	status_code = 501
	default_message = "Method not implemented"


class ModelLoadError(RuntimeError):
	"""Raised at startup when the classifier cannot be loaded."""
