from pydantic import BaseModel
from typing import Any, Dict, Optional


class MethodCall(BaseModel):
	# Checked by the channel handler, which reports bad shapes as INVALID_ARGUMENTS
	method: Any = None
	arguments: Any = None


class MethodResult(BaseModel):
	result: str


class ChannelError(BaseModel):
	code: str
	message: str
	details: Optional[Any] = None


class PredictResponse(BaseModel):
	emotion: str
	scores: Dict[str, float]
	model_version: str
	latency_ms: float


class HealthResponse(BaseModel):
	status: str
