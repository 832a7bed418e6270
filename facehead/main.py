"""
Streamlit application: photo in, helmeted 3D head out.

Run with:
    streamlit run facehead/main.py
"""

import asyncio
import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

import streamlit as st

from facehead.config import HEADWEAR_CALIBRATIONS, HeadBuildConfig
from facehead.core.exceptions import HeadBuildError
from facehead.core.face_capture import FaceCapture
from facehead.core.models import BuildEvent
from facehead.core.pipeline import build_head_assembly
from facehead.utils.image_utils import load_image_from_bytes, resize_image
from facehead.utils.logging_utils import setup_logging
from facehead.utils.serialization import serialize_head_mesh
from facehead.utils.visualization import create_assembly_figure

logger = logging.getLogger(__name__)

DEFAULT_HELMET_PATH = Path(__file__).parent.parent / "assets" / "sfera_helmet.obj"


def helmet_path_from_env() -> Path:
    """Helmet asset location, overridable with FACEHEAD_HELMET_PATH."""
    return Path(os.environ.get("FACEHEAD_HELMET_PATH", str(DEFAULT_HELMET_PATH)))


def log_level_from_env() -> int:
    name = os.environ.get("FACEHEAD_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def main():
    setup_logging(log_level_from_env())

    st.set_page_config(
        page_title="Face Head Builder",
        page_icon="🪖",
        layout="wide",
    )

    st.title("Face Head Builder")
    st.markdown("Build a textured 3D head with a fitted helmet from a single front-facing photo")

    config = create_sidebar_config()

    uploaded_file = st.file_uploader(
        "Upload a face photo",
        type=["jpg", "jpeg", "png", "webp"],
        help="One clearly visible, front-facing face",
    )

    if uploaded_file is not None:
        st.image(uploaded_file, caption=uploaded_file.name[:20], width=200)
        uploaded_file.seek(0)

        if st.button("Build head", type="primary"):
            process_photo(uploaded_file.read(), config)


def create_sidebar_config() -> HeadBuildConfig:
    """Create HeadBuildConfig from sidebar inputs."""
    st.sidebar.header("Head Settings")

    depth_factor = st.sidebar.slider(
        "Head depth",
        min_value=0.3,
        max_value=0.8,
        value=0.5,
        step=0.05,
        help="Back shell depth as a fraction of face width",
    )
    shrink_nose = st.sidebar.checkbox("Shrink nose", value=False)

    st.sidebar.subheader("Face Texture")
    contrast = st.sidebar.slider("Contrast", 0.8, 1.3, 1.05, 0.05)
    saturation = st.sidebar.slider("Saturation", 0.8, 1.4, 1.1, 0.05)

    st.sidebar.subheader("Helmet")
    headwear_asset = st.sidebar.selectbox("Asset", list(HEADWEAR_CALIBRATIONS))
    headwear_hue = st.sidebar.slider("Hue", 0, 359, 220)

    return HeadBuildConfig(
        depth_factor=depth_factor,
        shrink_nose=shrink_nose,
        contrast=contrast,
        saturation=saturation,
        headwear_asset=headwear_asset,
        headwear_hue=float(headwear_hue),
    )


def process_photo(data: bytes, config: HeadBuildConfig):
    """Detect landmarks, build the assembly and show the preview."""
    image, _ = resize_image(load_image_from_bytes(data))

    with st.spinner("Detecting face landmarks..."):
        with FaceCapture() as capture:
            landmarks = capture.detect(image)

    if landmarks is None:
        st.error("No face detected. Try a brighter, front-facing photo.")
        return

    progress_bar = st.progress(0.0)

    def on_progress(event: BuildEvent):
        progress_bar.progress(event.fraction, text=event.stage.value.replace("_", " "))

    try:
        assembly = asyncio.run(
            build_head_assembly(landmarks, image, helmet_path_from_env(), config, on_progress)
        )
    except HeadBuildError as exc:
        logger.error("Head build failed: %s", exc)
        st.error(f"Could not build the head: {exc}")
        return

    st.plotly_chart(create_assembly_figure(assembly), use_container_width=True)

    col1, col2 = st.columns(2)
    with col1:
        st.image(assembly.head.texture, caption="Face texture", width=256)
    with col2:
        st.json(assembly.to_dict())

    payload = serialize_head_mesh(assembly.head, config.jpeg_quality).to_dict()
    st.download_button(
        label="Download head (JSON)",
        data=json.dumps(payload),
        file_name="head.json",
        mime="application/json",
    )


if __name__ == "__main__":
    main()
