"""Smoke test for the Streamlit app (no upload: AppTest cannot drive file_uploader)."""
import pytest
from streamlit.testing.v1 import AppTest


def test_app_starts_with_upload_prompt():
    at = AppTest.from_file("../app.py", default_timeout=30).run()
    assert not at.exception
    assert at.title[0].value.endswith("Smart Split (PDF)")
    assert "Upload a PDF" in at.info[0].value


def test_sidebar_exposes_detection_settings():
    at = AppTest.from_file("../app.py", default_timeout=30).run()
    assert at.sidebar.radio[0].options == ["Fast", "Accurate"]
    assert "Recommended" in at.sidebar.selectbox[0].options
    assert at.sidebar.number_input[0].value == pytest.approx(0.2)
