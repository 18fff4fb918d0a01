"""
API Tests - HTTP surface of the bridge service.

Tests for emotion_bridge/infer_service/app.py. Startup is not run; the
predictor global is injected directly.
"""

import base64
import csv

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def api(monkeypatch, tmp_path):
	from emotion_bridge.infer_service import app as app_module

	monkeypatch.setattr(app_module, "LOG_PATH", str(tmp_path / "logs" / "requests.csv"))
	monkeypatch.setattr(app_module, "predictor", None)
	client = TestClient(app_module.app)
	client.post("/admin/reset_metrics")
	return app_module, client


@pytest.fixture
def loaded_api(api, happy_handle, monkeypatch):
	from emotion_bridge.infer_service.predictor import Predictor

	app_module, client = api
	monkeypatch.setattr(app_module, "predictor", Predictor(happy_handle))
	return app_module, client


def call(client, data: bytes, method: str = "getEmotion"):
	payload = {"method": method, "arguments": {"faceBytes": base64.b64encode(data).decode()}}
	return client.post("/channel/emotion", json=payload)


class TestChannelEndpoint:
	"""POST /channel/emotion results and tagged errors."""

	def test_success(self, loaded_api, make_image_bytes):
		_, client = loaded_api

		resp = call(client, make_image_bytes())

		assert resp.status_code == 200
		assert resp.json() == {"result": "happy"}

	def test_invalid_image(self, loaded_api):
		_, client = loaded_api

		resp = call(client, b"\x89PNG broken")

		assert resp.status_code == 400
		assert resp.json()["code"] == "INVALID_IMAGE"
		assert resp.json()["details"] is None

	def test_model_not_loaded(self, api):
		"""Missing model reported even for invalid images."""
		_, client = api

		resp = call(client, b"")

		assert resp.status_code == 503
		assert resp.json()["code"] == "MODEL_NOT_LOADED"

	def test_invalid_arguments(self, loaded_api):
		_, client = loaded_api

		resp = client.post("/channel/emotion", json={"method": "getEmotion", "arguments": {"faceBytes": 7}})

		assert resp.status_code == 400
		assert resp.json()["code"] == "INVALID_ARGUMENTS"

	def test_not_implemented(self, loaded_api, make_image_bytes):
		_, client = loaded_api

		resp = call(client, make_image_bytes(), method="getAge")

		assert resp.status_code == 501
		assert resp.json()["code"] == "NOT_IMPLEMENTED"

	def test_prediction_error(self, api, raising_handle, make_image_bytes, monkeypatch):
		from emotion_bridge.infer_service.predictor import Predictor

		app_module, client = api
		monkeypatch.setattr(app_module, "predictor", Predictor(raising_handle))

		resp = call(client, make_image_bytes())

		assert resp.status_code == 500
		assert resp.json()["code"] == "PREDICTION_ERROR"

	@pytest.mark.parametrize("payload", [
		{"method": "getEmotion", "arguments": [1, 2]},
		{"method": "getEmotion", "arguments": "abc"},
		{"arguments": {"faceBytes": ""}},
		{"method": 5, "arguments": {"faceBytes": ""}},
	])
	def test_malformed_call_is_tagged(self, loaded_api, payload):
		"""Bad call shapes get INVALID_ARGUMENTS, not a bare validation error."""
		_, client = loaded_api

		resp = client.post("/channel/emotion", json=payload)

		assert resp.status_code == 400
		assert resp.json()["code"] == "INVALID_ARGUMENTS"

	def test_non_object_body_is_tagged(self, loaded_api):
		_, client = loaded_api

		resp = client.post("/channel/emotion", content=b"[1, 2]", headers={"Content-Type": "application/json"})

		assert resp.status_code == 400
		assert resp.json()["code"] == "INVALID_ARGUMENTS"

	def test_bad_slack_url_keeps_tagged_error(self, api, raising_handle, make_image_bytes, monkeypatch):
		"""A malformed webhook URL is logged, the caller still gets the tagged body."""
		from emotion_bridge import config
		from emotion_bridge.infer_service.predictor import Predictor

		app_module, client = api
		monkeypatch.setattr(config, "SLACK_WEBHOOK_URL", "hooks.slack.com/services/x")
		monkeypatch.setattr(app_module, "predictor", Predictor(raising_handle))

		resp = call(client, make_image_bytes())

		assert resp.status_code == 500
		assert resp.json()["code"] == "PREDICTION_ERROR"


class TestPredictEndpoint:
	"""POST /predict multipart upload."""

	def test_predict(self, loaded_api, make_image_bytes):
		_, client = loaded_api

		resp = client.post("/predict", files={"file": ("face.png", make_image_bytes(), "image/png")})

		assert resp.status_code == 200
		body = resp.json()
		assert body["emotion"] == "happy"
		assert len(body["scores"]) == 7

	def test_predict_without_model(self, api, make_image_bytes):
		_, client = api

		resp = client.post("/predict", files={"file": ("face.png", make_image_bytes(), "image/png")})

		assert resp.status_code == 503
		assert resp.json()["code"] == "MODEL_NOT_LOADED"


class TestServiceEndpoints:
	"""Health, labels, version, metrics and the request log."""

	def test_health_degraded(self, api):
		_, client = api

		assert client.get("/health").json() == {"status": "degraded"}

	def test_health_ok(self, loaded_api):
		_, client = loaded_api

		assert client.get("/health").json() == {"status": "ok"}

	def test_labels(self, loaded_api):
		from emotion_bridge.config import LABELS

		_, client = loaded_api

		assert client.get("/labels").json() == {"labels": LABELS}

	def test_version(self, loaded_api):
		_, client = loaded_api

		body = client.get("/version").json()

		assert body["api_version"] == "1.0.0"
		assert body["channel"] == "emotion_bridge/emotion"

	def test_metrics_count_errors(self, loaded_api, make_image_bytes):
		_, client = loaded_api

		call(client, make_image_bytes())
		call(client, b"bad")
		body = client.get("/metrics").json()

		assert body["total_requests"] == 2
		assert body["error_rate"] == pytest.approx(0.5)
		assert body["window_size"] == 2

	def test_reset_metrics(self, loaded_api, make_image_bytes):
		_, client = loaded_api

		call(client, make_image_bytes())
		client.post("/admin/reset_metrics")

		assert client.get("/metrics").json()["total_requests"] == 0

	def test_request_log(self, loaded_api, make_image_bytes):
		app_module, client = loaded_api

		call(client, make_image_bytes())
		call(client, b"bad")

		with open(app_module.LOG_PATH, newline="") as f:
			rows = list(csv.DictReader(f))
		assert [r["status"] for r in rows] == ["ok", "error"]
		assert rows[0]["label"] == "happy"
		assert rows[1]["error_code"] == "INVALID_IMAGE"


class TestLoadPredictor:
	"""Startup model loading."""

	def test_missing_model_is_fatal(self, monkeypatch, tmp_path):
		from emotion_bridge import config
		from emotion_bridge.errors import ModelLoadError
		from emotion_bridge.infer_service.app import load_predictor

		monkeypatch.setattr(config, "WEIGHTS_PATH", str(tmp_path / "missing_ts.pt"))
		monkeypatch.setattr(config, "WEIGHTS_URL", "")
		monkeypatch.setattr(config, "ALLOW_MISSING_MODEL", False)

		with pytest.raises(ModelLoadError):
			load_predictor()

	def test_missing_model_allowed(self, monkeypatch, tmp_path):
		from emotion_bridge import config
		from emotion_bridge.infer_service.app import load_predictor

		monkeypatch.setattr(config, "WEIGHTS_PATH", str(tmp_path / "missing_ts.pt"))
		monkeypatch.setattr(config, "WEIGHTS_URL", "")
		monkeypatch.setattr(config, "ALLOW_MISSING_MODEL", True)

		predictor = load_predictor()

		assert predictor.loaded is False
