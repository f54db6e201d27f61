import logging
import os
import sys

# Ensure project root is in path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from karauli.gradio_app import app

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("KARAULI_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print("Starting Karauli Land Cover Explorer...")
    print("Please check the console for the local URL (usually http://127.0.0.1:7860)")
    app.launch(inbrowser=True)
