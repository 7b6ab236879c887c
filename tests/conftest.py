import fitz  # PyMuPDF
import pytest


def build_pdf(colors):
    """One page per entry: True -> big red block, False -> grey block and black text."""
    doc = fitz.open()
    for n, is_color in enumerate(colors, start=1):
        page = doc.new_page(width=595, height=842)
        rect = fitz.Rect(50, 50, 400, 400)
        if is_color:
            page.draw_rect(rect, color=(1, 0, 0), fill=(1, 0, 0))
        else:
            page.draw_rect(rect, color=(0, 0, 0), fill=(0.3, 0.3, 0.3))
        page.insert_text((72, 500), f"Page {n}", fontsize=24, color=(0, 0, 0))
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def pdf_file(tmp_path):
    def _write(colors, name="doc.pdf"):
        path = tmp_path / name
        path.write_bytes(build_pdf(colors))
        return path
    return _write
