from typing import List
import json
import logging
import os

logger = logging.getLogger(__name__)

# Positional order matches the classifier's output layer
LABELS: List[str] = ["sad", "disgust", "angry", "neutral", "fear", "surprise", "happy"]
UNKNOWN_LABEL: str = "unknown"

ARTIFACTS_DIR = os.environ.get("ARTIFACTS_DIR", "artifacts")

LABELS_PATH = os.environ.get("LABELS_PATH", os.path.join(ARTIFACTS_DIR, "labels.json"))


# Allow override from artifacts/labels.json if present
def load_labels(path: str = "") -> List[str]:
	path = path or LABELS_PATH
	if os.path.exists(path):
		try:
			with open(path, "r") as f:
				labels = json.load(f)
		except (OSError, ValueError) as e:
			logger.warning("Ignoring unreadable label file %s: %s", path, e)
			return list(LABELS)
		if isinstance(labels, list) and labels and all(isinstance(l, str) for l in labels):
			return labels
		logger.warning("Ignoring label file %s: expected a non-empty list of strings", path)
	return list(LABELS)


def env_flag(name: str, default: str = "0") -> bool:
	return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


# Image settings
IMAGE_SIZE: int = int(os.environ.get("IMAGE_SIZE", "224"))

# Model defaults
WEIGHTS_PATH = os.environ.get("WEIGHTS_PATH", os.path.join(ARTIFACTS_DIR, "model_ts.pt"))
WEIGHTS_URL = os.environ.get("WEIGHTS_URL", "")
DEVICE = os.environ.get("DEVICE", "cpu")
DEFAULT_BACKBONE: str = os.environ.get("BACKBONE", "efficientnet_b0")
MODEL_VERSION = os.environ.get("MODEL_VERSION", "v1.0.0")
MODEL_OUTPUT_NAME = os.environ.get("MODEL_OUTPUT_NAME", "")
ALLOW_MISSING_MODEL: bool = env_flag("ALLOW_MISSING_MODEL")

# Service
CHANNEL_NAME = "emotion_bridge/emotion"
REQUEST_LOG_PATH = os.environ.get("REQUEST_LOG_PATH", "logs/requests.csv")
SLACK_WEBHOOK_URL = os.environ.get("SLACK_WEBHOOK_URL", "")
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")
METRICS_WINDOW = int(os.environ.get("METRICS_WINDOW", "200"))

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_JSON: bool = env_flag("LOG_JSON")
