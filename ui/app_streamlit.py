import base64
import os
import requests
import streamlit as st
from PIL import Image

import pandas as pd

st.set_page_config(page_title="Emotion Bridge Demo", layout="centered")
st.title("Facial Emotion Bridge")

with st.expander("Privacy & Consent", expanded=True):
	st.write("The uploaded face image is sent to the bridge service to predict an emotion class. Images are not stored. Do not upload sensitive images. By proceeding, you consent to this processing.")
	consent = st.checkbox("I consent to process the uploaded image for this demo.")

API_URL_DEFAULT = os.environ.get("EMOTION_API_URL", "http://localhost:8000")
api_url = st.text_input("API URL", value=API_URL_DEFAULT)

health_col1, health_col2 = st.columns([1, 3])
with health_col1:
	if st.button("Check API"):
		try:
			resp_h = requests.get(f"{api_url}/health", timeout=5)
			status = resp_h.json().get("status", "unknown") if resp_h.status_code == 200 else "down"
			st.session_state.api_health = status
		except requests.RequestException:
			st.session_state.api_health = "down"
with health_col2:
	status = st.session_state.get("api_health", None)
	if status is not None:
		color = "green" if status == "ok" else ("orange" if status == "degraded" else "red")
		st.markdown(f"**API Health:** <span style='color:{color}'>{status}</span>", unsafe_allow_html=True)

with st.expander("API Metrics", expanded=False):
	if st.button("Load Metrics"):
		try:
			resp_m = requests.get(f"{api_url}/metrics", timeout=5)
			st.session_state.api_metrics = resp_m.json() if resp_m.status_code == 200 else {"error": "unavailable"}
		except requests.RequestException:
			st.session_state.api_metrics = {"error": "unavailable"}
	metrics = st.session_state.get("api_metrics", None)
	if metrics:
		st.json(metrics)

show_scores = st.checkbox("Show class scores", value=False)

uploaded = st.file_uploader("Upload a face image", type=["jpg", "jpeg", "png"])
st.subheader("Webcam (optional)")
webcam = st.camera_input("Take a picture")


def get_emotion(face_bytes: bytes) -> dict:
	"""Call the getEmotion method the way the mobile shell does."""
	payload = {"method": "getEmotion", "arguments": {"faceBytes": base64.b64encode(face_bytes).decode()}}
	resp = requests.post(f"{api_url}/channel/emotion", json=payload, timeout=60)
	return resp.json()


def get_scores(face_bytes: bytes) -> dict:
	files = {"file": ("face.png", face_bytes, "application/octet-stream")}
	resp = requests.post(f"{api_url}/predict", files=files, timeout=60)
	resp.raise_for_status()
	return resp.json()


def render_probability_chart(scores: dict):
	df = pd.DataFrame({
		"label": list(scores.keys()),
		"probability": list(scores.values()),
	}).sort_values("probability", ascending=False)
	st.bar_chart(df.set_index("label"), use_container_width=True)


source = uploaded if uploaded is not None else webcam
if source is not None:
	face_bytes = source.getvalue()
	st.image(Image.open(source), caption="Input", use_container_width=True)
	if not consent:
		st.info("Please provide consent to enable prediction.")
	if st.button("Predict", disabled=not consent):
		with st.spinner("Calling bridge..."):
			try:
				out = get_emotion(face_bytes)
				if "result" in out:
					st.success(f"Emotion: {out['result']}")
				else:
					st.error(f"{out.get('code', 'ERROR')}: {out.get('message', '')}")
				if show_scores and "result" in out:
					render_probability_chart(get_scores(face_bytes)["scores"])
			except requests.RequestException as e:
				st.error(f"API error: {e}")
