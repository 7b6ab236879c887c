import argparse
import hashlib
import logging
import sys
import time
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import fitz  # PyMuPDF
import numpy as np

from split import PageClassification, bucketize, summary_rows, to_csv

logger = logging.getLogger(__name__)

# ---------- Detection defaults ----------
DEFAULT_VARIANCE_THRESH = 20
DEFAULT_COVERAGE_THRESH = 0.002  # 0.2% of the page
# 32 catches light highlighter / signature ink while ignoring JPEG artifacts
RECOMMENDED_VARIANCE_THRESH = 32
DEFAULT_DPI_FAST = 36
DEFAULT_DPI_ACCURATE = 72
SENSITIVITY_PRESETS = {
    "Recommended": RECOMMENDED_VARIANCE_THRESH,
    "Standard": DEFAULT_VARIANCE_THRESH,
    "Strict (more counted as Color)": 12,
}


class InvalidBufferError(ValueError):
    """Pixel buffer that is not a whole number of RGBA samples, or impossible render size."""


@dataclass(frozen=True)
class ColorAnalysis:
    is_color: bool
    color_pixel_count: int
    total_pixel_count: int

    @property
    def coverage(self) -> float:
        if self.total_pixel_count == 0:
            return 0.0
        return self.color_pixel_count / self.total_pixel_count


def _rgba_samples(buffer) -> np.ndarray:
    if isinstance(buffer, (bytes, bytearray, memoryview)):
        samples = np.frombuffer(buffer, dtype=np.uint8)
    else:
        samples = np.asarray(buffer).reshape(-1)

    if samples.size % 4:
        raise InvalidBufferError(f"RGBA buffer length {samples.size} is not a multiple of 4")
    if samples.size and (samples.min() < 0 or samples.max() > 255):
        raise InvalidBufferError("RGBA channel values must be within 0-255")
    return samples.astype(np.int16).reshape(-1, 4)


def classify(buffer, variance_threshold: float = DEFAULT_VARIANCE_THRESH,
             coverage_threshold: float = DEFAULT_COVERAGE_THRESH) -> ColorAnalysis:
    """
    Decide whether an RGBA page buffer is color or black & white.

    - A pixel is "color" when max(|R-G|, |R-B|, |G-B|) > variance_threshold.
      Grey pixels have zero spread whatever their brightness; alpha is ignored.
    - The page is color when color pixels cover more than coverage_threshold
      of the page, so a few specks of dust or a colored staple don't count.
    """
    px = _rgba_samples(buffer)
    total = int(px.shape[0])
    if total == 0:
        return ColorAnalysis(is_color=False, color_pixel_count=0, total_pixel_count=0)

    rgb = px[:, :3]
    # the largest pairwise channel difference is max - min
    spread = rgb.max(axis=1) - rgb.min(axis=1)
    color_px = int((spread > variance_threshold).sum())

    return ColorAnalysis(
        is_color=(color_px / total) > coverage_threshold,
        color_pixel_count=color_px,
        total_pixel_count=total,
    )


# ---------- Rendering ----------
def render_page_rgba(page, dpi: int) -> "fitz.Pixmap":
    if dpi <= 0:
        raise InvalidBufferError(f"DPI must be positive, got {dpi}")
    zoom = dpi / 72.0
    pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), colorspace=fitz.csRGB, alpha=False)
    # render on white paper, then add an opaque alpha channel
    return fitz.Pixmap(pix, 1)


def iter_pdf_pages(pdf_bytes: bytes, dpi: int = DEFAULT_DPI_FAST,
                   variance_threshold: float = RECOMMENDED_VARIANCE_THRESH,
                   coverage_threshold: float = DEFAULT_COVERAGE_THRESH,
                   ) -> Iterator[Tuple[PageClassification, bytes]]:
    """Yield (classification, PNG thumbnail) one page at a time."""
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        logger.info("Analyzing %d pages at %d DPI", doc.page_count, dpi)
        for idx, page in enumerate(doc, start=1):
            pix = render_page_rgba(page, dpi)
            analysis = classify(pix.samples, variance_threshold, coverage_threshold)
            logger.debug("Page %d: %d/%d color pixels (%.4f%%) -> %s", idx,
                         analysis.color_pixel_count, analysis.total_pixel_count,
                         analysis.coverage * 100.0, "color" if analysis.is_color else "B&W")
            record = PageClassification(
                page_number=idx,
                is_color_detected=analysis.is_color,
                pixel_count=analysis.total_pixel_count,
                color_pixel_count=analysis.color_pixel_count,
            )
            yield record, fitz.Pixmap(pix, 0).tobytes("png")
    finally:
        doc.close()


def analyze_pdf_pages(pdf_bytes: bytes, dpi: int = DEFAULT_DPI_FAST,
                      variance_threshold: float = RECOMMENDED_VARIANCE_THRESH,
                      coverage_threshold: float = DEFAULT_COVERAGE_THRESH) -> List[PageClassification]:
    return [record for record, _thumb in
            iter_pdf_pages(pdf_bytes, dpi, variance_threshold, coverage_threshold)]


def analysis_key(pdf_bytes: bytes, dpi: int, variance_threshold: float,
                 coverage_threshold: float) -> Tuple[str, int, float, float]:
    """Identifies one analysis run: file content plus detection settings."""
    return (hashlib.sha256(pdf_bytes).hexdigest(), dpi, variance_threshold, coverage_threshold)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Split a PDF into color / B&W, single / double-sided print jobs.")
    ap.add_argument("pdf", help="Path to PDF")
    ap.add_argument("--dpi", type=int, default=DEFAULT_DPI_FAST, help="Render DPI (higher catches thinner color details, slower)")
    ap.add_argument("--variance", type=float, default=RECOMMENDED_VARIANCE_THRESH, help="Channel difference 0–255 above which a pixel counts as color")
    ap.add_argument("--coverage", type=float, default=DEFAULT_COVERAGE_THRESH, help="Fraction of color pixels (0–1) above which a page counts as color")
    ap.add_argument("--csv", help="Write the page-by-page results to this CSV file")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every page")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    t0 = time.perf_counter()
    try:
        with open(args.pdf, "rb") as fh:
            pages = analyze_pdf_pages(fh.read(), dpi=args.dpi, variance_threshold=args.variance,
                                      coverage_threshold=args.coverage)
    except (OSError, RuntimeError, ValueError) as exc:
        logger.error("Failed to analyze %s: %s", args.pdf, exc)
        return 1
    result = bucketize(pages, len(pages))
    t1 = time.perf_counter()

    print("\n=== Smart Split ===\n")
    for row in summary_rows(result, len(pages)):
        print(f"  {row['label'] + ':':<20} {row['count']:>4} pages   {row['range']}")
    print(f"\nProcessing time: {t1 - t0:.2f} seconds")

    if args.csv:
        with open(args.csv, "w", newline="", encoding="utf-8") as fh:
            fh.write(to_csv(pages))
        logger.info("Wrote %s", args.csv)
    return 0


if __name__ == "__main__":
    sys.exit(main())
