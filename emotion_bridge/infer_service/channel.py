"""Host-facing method channel.

The application shell sends a method name plus an argument map; the only
method is getEmotion with the encoded face image under "faceBytes".
Failures are raised as EmotionBridgeError subclasses carrying stable codes.
"""
import base64
import binascii
from typing import Any, Mapping, Optional

from ..errors import InvalidArgumentsError, MethodNotImplemented, ModelNotLoadedError
from .predictor import Predictor

GET_EMOTION = "getEmotion"


def decode_face_bytes(arguments: Any) -> bytes:
	if not isinstance(arguments, Mapping):
		raise InvalidArgumentsError()
	raw = arguments.get("faceBytes")
	if isinstance(raw, (bytes, bytearray)):
		return bytes(raw)
	if not isinstance(raw, str):
		raise InvalidArgumentsError()
	try:
		return base64.b64decode(raw, validate=True)
	except (binascii.Error, ValueError) as e:
		raise InvalidArgumentsError(f"Face bytes are not valid base64: {e}") from e


def handle_method_call(method: Any, arguments: Any, predictor: Optional[Predictor]) -> str:
	if not isinstance(method, str) or not method:
		raise InvalidArgumentsError("Method name is missing or invalid")
	if method != GET_EMOTION:
		raise MethodNotImplemented(f"Method {method!r} is not implemented")
	face_bytes = decode_face_bytes(arguments)
	if predictor is None:
		raise ModelNotLoadedError()
	return predictor.predict_label(face_bytes)
