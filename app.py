import os
import streamlit.web.bootstrap as bootstrap


def main():
	# Demo host shell; the bridge itself is served by
	# `uvicorn emotion_bridge.infer_service.app:app`.
	ui_path = os.path.join(os.path.dirname(__file__), "ui", "app_streamlit.py")
	bootstrap.run(ui_path, False, [], {})


if __name__ == "__main__":
	main()
