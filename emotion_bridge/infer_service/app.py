from fastapi import FastAPI, UploadFile, File, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import os
import csv
import time
import hashlib
import json
import logging
import urllib.request
from collections import deque

from .schemas import MethodCall, MethodResult, ChannelError, PredictResponse, HealthResponse
from .predictor import Predictor
from .channel import handle_method_call
from ..errors import EmotionBridgeError, InvalidArgumentsError, ModelLoadError, ModelNotLoadedError
from ..models import fetch_weights, load_model_handle
from ..logger_config import configure_logging
from .. import config

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
app = FastAPI(title="Emotion Bridge", version=API_VERSION)

# Set once at startup; model is None while unloaded
predictor = None

LOG_PATH = config.REQUEST_LOG_PATH
_metrics = {"total": 0, "errors": 0, "latency_ms_sum": 0.0}
_latency_window = deque(maxlen=config.METRICS_WINDOW)

LOG_COLUMNS = ["ts", "request_id", "method", "label", "error_code", "latency_ms", "status", "source_hash"]

# Codes caused by the service rather than the caller
ALERT_CODES = {"MULTIARRAY_ERROR", "PREDICTION_ERROR"}

# CORS
origins = [o.strip() for o in config.CORS_ORIGINS.split(",")] if config.CORS_ORIGINS else ["*"]
app.add_middleware(
	CORSMiddleware,
	allow_origins=origins if origins != [""] else ["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)


def _init_request_log():
	os.makedirs(os.path.dirname(LOG_PATH) or ".", exist_ok=True)
	if not os.path.exists(LOG_PATH):
		with open(LOG_PATH, "w", newline="") as f:
			csv.writer(f).writerow(LOG_COLUMNS)


def _log_request(row):
	try:
		if not os.path.exists(LOG_PATH):
			_init_request_log()
		with open(LOG_PATH, "a", newline="") as f:
			csv.writer(f).writerow(row)
	except OSError as e:
		logger.warning("Could not write request log %s: %s", LOG_PATH, e)


def _alert_slack(message: str):
	if not config.SLACK_WEBHOOK_URL:
		return
	try:
		data = json.dumps({"text": message}).encode("utf-8")
		req = urllib.request.Request(config.SLACK_WEBHOOK_URL, data=data, headers={"Content-Type": "application/json"})
		urllib.request.urlopen(req, timeout=5)
	except (OSError, ValueError) as e:
		logger.warning("Slack alert failed: %s", e)


def _request_ids(request: Request, start: float):
	request_id = hashlib.sha1(f"{start}-{id(request)}".encode()).hexdigest()[:12]
	source_ip = request.client.host if request.client else ""
	source_hash = hashlib.sha1(source_ip.encode()).hexdigest()[:12] if source_ip else ""
	return request_id, source_hash


def _record(start: float, request_id: str, method: str, label: str, code: str, source_hash: str):
	latency_ms = round((time.time() - start) * 1000, 2)
	_metrics["total"] += 1
	_metrics["latency_ms_sum"] += latency_ms
	if code:
		_metrics["errors"] += 1
	_latency_window.append(latency_ms)
	status = "error" if code else "ok"
	_log_request([int(start), request_id, method, label, code, latency_ms, status, source_hash])


def _error_response(err: EmotionBridgeError) -> JSONResponse:
	if err.code in ALERT_CODES:
		_alert_slack(f":rotating_light: Emotion bridge error {err.code}: {err.message}")
	body = ChannelError(code=err.code, message=err.message, details=err.details)
	return JSONResponse(status_code=err.status_code, content=body.model_dump())


def load_predictor() -> Predictor:
	if fetch_weights(config.WEIGHTS_PATH, config.WEIGHTS_URL):
		logger.info("Downloaded weights from %s", config.WEIGHTS_URL)
	labels = config.load_labels()
	try:
		model = load_model_handle(
			config.WEIGHTS_PATH,
			device=config.DEVICE,
			num_classes=len(labels),
			backbone=config.DEFAULT_BACKBONE,
			output_name=config.MODEL_OUTPUT_NAME,
		)
	except ModelLoadError:
		if not config.ALLOW_MISSING_MODEL:
			raise
		logger.exception("Model failed to load; serving degraded")
		model = None
	return Predictor(model=model, labels=labels, image_size=config.IMAGE_SIZE, model_version=config.MODEL_VERSION)


@app.on_event("startup")
async def startup_event():
	global predictor
	configure_logging(level=config.LOG_LEVEL, json_format=config.LOG_JSON)
	_init_request_log()
	# Model load failure is fatal unless ALLOW_MISSING_MODEL is set
	predictor = load_predictor()


@app.get("/health", response_model=HealthResponse)
async def health():
	status = "ok" if predictor is not None and predictor.loaded else "degraded"
	return {"status": status}


@app.get("/labels")
async def labels():
	return {"labels": getattr(predictor, "labels", None) or config.load_labels()}


@app.get("/version")
async def version():
	return {
		"api_version": API_VERSION,
		"model_version": predictor.model_version if predictor is not None and predictor.loaded else "",
		"channel": config.CHANNEL_NAME,
	}


@app.get("/metrics")
async def metrics():
	avg_latency = (_metrics["latency_ms_sum"] / _metrics["total"]) if _metrics["total"] else 0.0
	window = list(_latency_window)
	p95 = 0.0
	if window:
		window_sorted = sorted(window)
		idx = int(0.95 * (len(window_sorted) - 1))
		p95 = window_sorted[idx]
	return {
		"total_requests": _metrics["total"],
		"error_rate": (_metrics["errors"] / _metrics["total"]) if _metrics["total"] else 0.0,
		"avg_latency_ms": round(avg_latency, 2),
		"p95_latency_ms": round(p95, 2),
		"window_size": len(window),
		"window_capacity": _latency_window.maxlen,
	}


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
	# Channel callers always get a tagged error, even for unparsable bodies
	if request.url.path == "/channel/emotion":
		return _error_response(InvalidArgumentsError("Method call body is missing or malformed"))
	return await request_validation_exception_handler(request, exc)


@app.post("/channel/emotion", response_model=MethodResult, responses={400: {"model": ChannelError}, 501: {"model": ChannelError}, 503: {"model": ChannelError}})
async def channel_emotion(request: Request, call: MethodCall):
	start = time.time()
	request_id, source_hash = _request_ids(request, start)
	try:
		label = await run_in_threadpool(handle_method_call, call.method, call.arguments, predictor)
	except EmotionBridgeError as e:
		_record(start, request_id, str(call.method or ""), "", e.code, source_hash)
		return _error_response(e)
	_record(start, request_id, call.method, label, "", source_hash)
	return {"result": label}


@app.post("/predict", response_model=PredictResponse, responses={400: {"model": ChannelError}, 503: {"model": ChannelError}})
async def predict(request: Request, file: UploadFile = File(...)):
	start = time.time()
	request_id, source_hash = _request_ids(request, start)
	try:
		if predictor is None:
			raise ModelNotLoadedError()
		img_bytes = await file.read()
		out = await run_in_threadpool(predictor.predict, img_bytes)
	except EmotionBridgeError as e:
		_record(start, request_id, "predict", "", e.code, source_hash)
		return _error_response(e)
	_record(start, request_id, "predict", out["emotion"], "", source_hash)
	return out


@app.post("/admin/reset_metrics")
async def admin_reset_metrics():
	global _metrics, _latency_window
	_metrics = {"total": 0, "errors": 0, "latency_ms_sum": 0.0}
	_latency_window = deque(maxlen=config.METRICS_WINDOW)
	return {"status": "ok"}
