# split.py
# Smart Split: pair pages into printer sheets and group them for cheap duplex printing.
#
#   Double Side Color  -> sheets whose front and back are both color
#   Double Side B&W    -> sheets whose front and back are both B&W
#   Single Side Color  -> color pages pulled out of mixed sheets (+ unpaired last page)
#   Single Side B&W    -> B&W pages pulled out of mixed sheets (+ unpaired last page)

import base64
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

OVERRIDE_CHOICES = ["Auto", "Color", "B&W"]
EDITOR_COLUMNS = ["page", "preview", "detected", "override", "final", "color_pct"]
CSV_COLUMNS = ["Page Number", "Detected", "Manual Override", "Final Status",
               "Total Pixels", "Color Pixels"]

# key -> (label, type, description)
CATEGORIES = {
    "all": ("All Pages", "bw",
            "Showing all pages in the document."),
    "mixed-color": ("Single Side Color", "color",
                    "Individual Color pages from mixed sheets (e.g. Page 5 is Color, "
                    "Page 6 is B&W). Print these as Single Side."),
    "mixed-bw": ("Single Side B&W", "bw",
                 "Individual B&W pages from mixed sheets. Print these as Single Side."),
    "double-color": ("Double Side Color", "color",
                     "Perfect Color Sheets (Both Odd & Even are Color). Safe to print Double Sided."),
    "double-bw": ("Double Side B&W", "bw",
                  "Perfect B&W Sheets (Both Odd & Even are B&W). Safe to print Double Sided."),
}


class InvalidPageNumberError(ValueError):
    """Zero, negative, duplicate or out-of-range page numbers."""


# ---------- Data ----------
@dataclass(frozen=True)
class PageClassification:
    page_number: int
    is_color_detected: bool
    is_color_user_forced: Optional[bool] = None  # None = trust the detector
    pixel_count: int = 0
    color_pixel_count: int = 0

    @property
    def is_color(self) -> bool:
        if self.is_color_user_forced is not None:
            return self.is_color_user_forced
        return self.is_color_detected


@dataclass(frozen=True)
class SheetBucketResult:
    double_color_sheets: List[int] = field(default_factory=list)
    double_bw_sheets: List[int] = field(default_factory=list)
    mixed_color_pages: List[int] = field(default_factory=list)
    mixed_bw_pages: List[int] = field(default_factory=list)

    def pages_for(self, category: str, total_pages: int = 0) -> List[int]:
        if category == "all":
            return list(range(1, total_pages + 1))
        lookup = {
            "mixed-color": self.mixed_color_pages,
            "mixed-bw": self.mixed_bw_pages,
            "double-color": self.double_color_sheets,
            "double-bw": self.double_bw_sheets,
        }
        if category not in lookup:
            raise KeyError(f"Unknown category: {category!r}")
        return list(lookup[category])


# ---------- Overrides ----------
def override(pages: Iterable[PageClassification], page_numbers: Iterable[int],
             is_color: bool) -> List[PageClassification]:
    """Batch set: force the given pages to color / B&W. Returns a new list."""
    targets = set(page_numbers)
    return [replace(p, is_color_user_forced=is_color) if p.page_number in targets else p
            for p in pages]


def toggle(pages: Iterable[PageClassification], page_number: int) -> List[PageClassification]:
    """
    Flip the effective status of one page by writing an override.
    A toggled page keeps an override; use clear_overrides() to trust the detector again.
    """
    return [replace(p, is_color_user_forced=not p.is_color) if p.page_number == page_number else p
            for p in pages]


def clear_overrides(pages: Iterable[PageClassification],
                    page_numbers: Optional[Iterable[int]] = None) -> List[PageClassification]:
    targets = None if page_numbers is None else set(page_numbers)
    return [replace(p, is_color_user_forced=None)
            if targets is None or p.page_number in targets else p
            for p in pages]


# ---------- Smart split ----------
def _status_map(pages: Iterable[PageClassification], total_pages: int) -> Dict[int, bool]:
    status = {}
    for p in pages:
        n = p.page_number
        if n <= 0:
            raise InvalidPageNumberError(f"Page numbers start at 1, got {n}")
        if n > total_pages:
            raise InvalidPageNumberError(f"Page {n} is beyond the document ({total_pages} pages)")
        if n in status:
            raise InvalidPageNumberError(f"Duplicate page number {n}")
        status[n] = p.is_color
    return status


def bucketize(pages: Iterable[PageClassification], total_pages: int) -> SheetBucketResult:
    """
    Walk the document sheet by sheet (1-2, 3-4, 5-6 ...) and bucket every page.
    Pages without a record count as B&W.
    """
    if total_pages < 0:
        raise InvalidPageNumberError(f"total_pages must be >= 0, got {total_pages}")
    status = _status_map(pages, total_pages)

    double_color, double_bw = set(), set()
    mixed_color, mixed_bw = set(), set()

    for front in range(1, total_pages + 1, 2):
        back = front + 1
        front_color = status.get(front, False)

        if back > total_pages:
            # last single page
            (mixed_color if front_color else mixed_bw).add(front)
            continue

        back_color = status.get(back, False)
        if front_color and back_color:
            double_color.update((front, back))
        elif not front_color and not back_color:
            double_bw.update((front, back))
        else:
            # mixed sheet: print each side on its own
            (mixed_color if front_color else mixed_bw).add(front)
            (mixed_color if back_color else mixed_bw).add(back)

    result = SheetBucketResult(
        double_color_sheets=sorted(double_color),
        double_bw_sheets=sorted(double_bw),
        mixed_color_pages=sorted(mixed_color),
        mixed_bw_pages=sorted(mixed_bw),
    )
    logger.debug("Smart split of %d pages: %d double color, %d double B&W, "
                 "%d single color, %d single B&W", total_pages,
                 len(result.double_color_sheets), len(result.double_bw_sheets),
                 len(result.mixed_color_pages), len(result.mixed_bw_pages))
    return result


# ---------- Ranges ----------
def _range_token(start: int, end: int) -> str:
    return f"{start}" if start == end else f"{start}-{end}"


def format_ranges(page_numbers: Iterable[int]) -> str:
    """[1, 2, 3, 5, 7, 8] -> "1-3, 5, 7-8"; empty -> "None"."""
    ordered = sorted(set(page_numbers))
    if not ordered:
        return "None"

    tokens = []
    start = prev = ordered[0]
    for current in ordered[1:]:
        if current == prev + 1:
            prev = current
        else:
            tokens.append(_range_token(start, prev))
            start = prev = current
    tokens.append(_range_token(start, prev))
    return ", ".join(tokens)


_RANGE_TOKEN = re.compile(r"^(\d+)(?:\s*-\s*(\d+))?$")


def parse_ranges(text: str, max_page: Optional[int] = None) -> List[int]:
    """
    Reverse of format_ranges for user-edited text: "1-3, 5" -> [1, 2, 3, 5].
    With max_page, pages past the end of the document are dropped before a range
    is expanded, so "1-2000000000" costs no more than "1-<max_page>".
    """
    text = (text or "").strip()
    if not text or text.lower() == "none":
        return []

    pages = set()
    # "1 - 3" is one token, so normalise spaces around dashes before splitting on whitespace
    for token in re.split(r"[,\s]+", re.sub(r"\s*-\s*", "-", text)):
        if not token:
            continue
        m = _RANGE_TOKEN.match(token)
        if not m:
            raise InvalidPageNumberError(f"Not a page or range: {token!r}")
        start = int(m.group(1))
        end = int(m.group(2)) if m.group(2) else start
        if start <= 0:
            raise InvalidPageNumberError(f"Page numbers start at 1, got {token!r}")
        if end < start:
            raise InvalidPageNumberError(f"Descending range: {token!r}")
        if max_page is not None:
            end = min(end, max_page)
        pages.update(range(start, end + 1))
    return sorted(pages)


# ---------- Export ----------
def _status_label(is_color: bool) -> str:
    return "Color" if is_color else "B&W"


def results_table(pages: Iterable[PageClassification]) -> pd.DataFrame:
    rows = []
    for p in sorted(pages, key=lambda p: p.page_number):
        forced = p.is_color_user_forced
        rows.append({
            "Page Number": p.page_number,
            "Detected": _status_label(p.is_color_detected),
            "Manual Override": "" if forced is None else ("Forced Color" if forced else "Forced B&W"),
            "Final Status": _status_label(p.is_color),
            "Total Pixels": p.pixel_count,
            "Color Pixels": p.color_pixel_count,
        })
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def to_csv(pages: Iterable[PageClassification]) -> str:
    return results_table(pages).to_csv(index=False)


def summary_rows(result: SheetBucketResult, total_pages: int) -> List[dict]:
    """One row per category: label, page count and range text."""
    rows = []
    for key, (label, kind, _desc) in CATEGORIES.items():
        numbers = result.pages_for(key, total_pages)
        rng = f"1-{total_pages}" if key == "all" and total_pages > 1 else format_ranges(numbers)
        rows.append({"category": key, "label": label, "type": kind,
                     "count": len(numbers), "range": rng})
    return rows


# ---------- Page table ----------
def override_label(forced: Optional[bool]) -> str:
    if forced is None:
        return "Auto"
    return "Color" if forced else "B&W"


def editor_rows(pages: Iterable[PageClassification], page_numbers: Iterable[int],
                thumbs: Optional[Mapping[int, bytes]] = None) -> pd.DataFrame:
    """Rows for the page editor; thumbnails become PNG data URIs."""
    wanted = set(page_numbers)
    thumbs = thumbs or {}
    rows = []
    for p in sorted(pages, key=lambda p: p.page_number):
        if p.page_number not in wanted:
            continue
        png = thumbs.get(p.page_number)
        rows.append({
            "page": p.page_number,
            "preview": "data:image/png;base64," + base64.b64encode(png).decode("ascii") if png else None,
            "detected": _status_label(p.is_color_detected),
            "override": override_label(p.is_color_user_forced),
            "final": _status_label(p.is_color),
            "color_pct": (p.color_pixel_count * 100.0 / p.pixel_count) if p.pixel_count else 0.0,
        })
    return pd.DataFrame(rows, columns=EDITOR_COLUMNS)


def apply_override_choices(pages: Iterable[PageClassification],
                           choices: Mapping[int, str]) -> Tuple[List[PageClassification], bool]:
    """
    Apply the editor's Override column ("Auto" / "Color" / "B&W") by page number.
    Returns the new page list and whether anything changed.
    """
    pages = list(pages)
    changed = False
    for p in list(pages):
        choice = choices.get(p.page_number)
        if choice is None or choice == override_label(p.is_color_user_forced):
            continue
        if choice not in OVERRIDE_CHOICES:
            raise ValueError(f"Unknown override {choice!r} for page {p.page_number}")
        if choice == "Auto":
            pages = clear_overrides(pages, [p.page_number])
        else:
            pages = override(pages, [p.page_number], choice == "Color")
        changed = True
    return pages, changed
