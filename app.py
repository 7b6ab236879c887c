# app.py
# 🖨️ Smart Split: find the color pages of a PDF and plan the cheapest duplex print
# Pages are paired into sheets (1-2, 3-4, ...):
#   both sides color -> Double Side Color, both B&W -> Double Side B&W,
#   mixed sheets are split into Single Side Color / Single Side B&W jobs.
#
# Requirements:
#   pip install streamlit pymupdf numpy pandas

import logging
import math
import time

import fitz  # PyMuPDF
import streamlit as st

from color import (DEFAULT_COVERAGE_THRESH, DEFAULT_DPI_ACCURATE, DEFAULT_DPI_FAST,
                   SENSITIVITY_PRESETS, analysis_key, iter_pdf_pages)
from split import (CATEGORIES, OVERRIDE_CHOICES, InvalidPageNumberError, apply_override_choices,
                   bucketize, clear_overrides, editor_rows, format_ranges, override,
                   override_label, parse_ranges, to_csv, toggle)

logger = logging.getLogger(__name__)


# ---------- Helpers ----------
def reset_analysis():
    st.session_state.pages = []
    st.session_state.thumbs = {}
    st.session_state.source = None
    st.session_state.error = None
    st.session_state.elapsed = 0.0
    st.session_state.version += 1
    st.session_state.upload_round += 1


def set_pages(pages):
    st.session_state.pages = pages
    st.session_state.version += 1


def reset_range_text():
    st.session_state.version += 1


def run_analysis(pdf_bytes: bytes, dpi: int, variance_thresh: float, coverage_thresh: float):
    t0 = time.perf_counter()
    pages, thumbs = [], {}
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            total = doc.page_count
        bar = st.progress(0.0, text="Analyzing pages…")
        for record, png in iter_pdf_pages(pdf_bytes, dpi, variance_thresh, coverage_thresh):
            pages.append(record)
            thumbs[record.page_number] = png
            bar.progress(len(pages) / max(total, 1), text=f"Processing {len(pages)}/{total}")
        bar.empty()
    except (RuntimeError, ValueError) as exc:
        logger.exception("PDF analysis failed")
        st.session_state.error = str(exc) or "Failed to analyze PDF"
        return
    st.session_state.error = None
    st.session_state.thumbs = thumbs
    st.session_state.elapsed = time.perf_counter() - t0
    set_pages(pages)


# ---------- UI ----------
st.set_page_config(page_title="Smart Split — Color / B&W print planner", page_icon="🖨️", layout="wide")
st.title("🖨️ Smart Split (PDF)")

for key, default in [("pages", []), ("thumbs", {}), ("source", None), ("error", None),
                     ("elapsed", 0.0), ("version", 0), ("upload_round", 0)]:
    if key not in st.session_state:
        st.session_state[key] = default

# Sidebar
with st.sidebar:
    st.subheader("Analysis")
    mode = st.radio("Mode", ["Fast", "Accurate"], index=0,
                    help=f"Fast = {DEFAULT_DPI_FAST} DPI, Accurate = {DEFAULT_DPI_ACCURATE} DPI")
    dpi = DEFAULT_DPI_FAST if mode == "Fast" else DEFAULT_DPI_ACCURATE

    with st.expander("Advanced detection"):
        sensitivity_label = st.selectbox("Color sensitivity", list(SENSITIVITY_PRESETS.keys()), index=0,
                                         help="Channel difference above which a pixel counts as color")
        variance_thresh = SENSITIVITY_PRESETS[sensitivity_label]
        coverage_pct = st.number_input("Min color coverage (%)", min_value=0.0, max_value=10.0,
                                       value=DEFAULT_COVERAGE_THRESH * 100.0, step=0.05,
                                       help="Pages with less color than this are treated as B&W (dust, specks)")
        coverage_thresh = coverage_pct / 100.0

uploaded = st.file_uploader("Drag & drop a PDF", type=["pdf"], accept_multiple_files=False,
                            key=f"uploader_{st.session_state.upload_round}")

if uploaded:
    pdf_bytes = uploaded.getvalue()
    source = analysis_key(pdf_bytes, dpi, variance_thresh, coverage_thresh)
    if st.session_state.source != source:
        st.session_state.source = source
        run_analysis(pdf_bytes, dpi, variance_thresh, coverage_thresh)

    if st.session_state.error:
        st.error("Something went wrong. Failed to analyze the PDF file. Please try a valid PDF.")
        st.caption(st.session_state.error)
        st.button("Try Again", on_click=reset_analysis)
    else:
        pages = st.session_state.pages
        total_pages = len(pages)
        result = bucketize(pages, total_pages)

        k1, k2, k3, k4 = st.columns(4)
        k1.metric("Pages", f"{total_pages}")
        k2.metric("Sheets (duplex)", f"{math.ceil(total_pages / 2)}")
        k3.metric("Color pages", f"{sum(1 for p in pages if p.is_color)}")
        k4.metric("Time", f"{st.session_state.elapsed:.2f} s")

        left, right = st.columns([2, 1])

        with right:
            st.markdown("#### Smart Split")
            category = st.selectbox("Show", list(CATEGORIES.keys()), index=1,
                                    format_func=lambda k: CATEGORIES[k][0])
            label, kind, desc = CATEGORIES[category]
            numbers = result.pages_for(category, total_pages)
            st.caption(desc)

            range_text = f"1-{total_pages}" if category == "all" and total_pages > 1 else format_ranges(numbers)
            edited_text = st.text_area(f"{'🎨' if kind == 'color' else '⚫'} {label} — {len(numbers)} pages",
                                       value=range_text,
                                       key=f"range_{category}_{st.session_state.version}")
            try:
                selection = parse_ranges(edited_text, max_page=total_pages)
            except InvalidPageNumberError as exc:
                st.warning(f"Range not understood: {exc}")
                selection = []

            st.code(edited_text, language=None)
            if edited_text != range_text:
                st.button("Reset to calculated range", on_click=reset_range_text)

            b1, b2, b3 = st.columns(3)
            if b1.button("Force Color", disabled=not selection):
                set_pages(override(pages, selection, True))
                st.rerun()
            if b2.button("Force B&W", disabled=not selection):
                set_pages(override(pages, selection, False))
                st.rerun()
            if b3.button("Auto", disabled=not selection, help="Clear overrides, trust the detector"):
                set_pages(clear_overrides(pages, selection))
                st.rerun()

            st.download_button("Export Results (CSV)", data=to_csv(pages),
                               file_name="pdf-analysis-results.csv", mime="text/csv",
                               use_container_width=True)
            st.button("Upload New File", on_click=reset_analysis, use_container_width=True)

        with left:
            st.markdown(f"#### Page analysis — {len(numbers)} pages")
            edited = st.data_editor(
                editor_rows(pages, numbers, st.session_state.thumbs),
                hide_index=True, use_container_width=True,
                disabled=["page", "preview", "detected", "final", "color_pct"],
                column_config={
                    "page": st.column_config.NumberColumn("Page"),
                    "preview": st.column_config.ImageColumn("Preview"),
                    "detected": st.column_config.TextColumn("Detected"),
                    "override": st.column_config.SelectboxColumn("Override", options=OVERRIDE_CHOICES,
                                                                 required=True),
                    "final": st.column_config.TextColumn("Final"),
                    "color_pct": st.column_config.NumberColumn("Color %", format="%.3f%%"),
                },
                key=f"pages_{st.session_state.version}",
            )
            new_pages, changed = apply_override_choices(pages, dict(zip(edited["page"], edited["override"])))
            if changed:
                set_pages(new_pages)
                st.rerun()

            if numbers:
                with st.expander("Page viewer"):
                    viewed = st.selectbox("Page", numbers, key=f"viewer_{category}_{st.session_state.version}")
                    page = next(p for p in pages if p.page_number == viewed)
                    thumb = st.session_state.thumbs.get(viewed)
                    if thumb:
                        st.image(thumb, caption=f"Page {viewed}")
                    st.write(f"Detected **{'Color' if page.is_color_detected else 'B&W'}**, "
                             f"override **{override_label(page.is_color_user_forced)}**, "
                             f"printing as **{'Color' if page.is_color else 'B&W'}**")
                    if st.button("Toggle Color / B&W"):
                        set_pages(toggle(pages, viewed))
                        st.rerun()

        st.caption("Pages are paired into sheets (1-2, 3-4, …). Mixed sheets are split so B&W "
                   "sides never go through the color printer.")
else:
    st.info("Upload a PDF to begin. Detection settings are in the sidebar.")
