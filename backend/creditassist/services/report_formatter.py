"""
Report Formatter - renders analysis text as the branded, paginated PDF report.

Rendering happens in two passes:
1. plan_report() classifies every line of analysis text and places it on a
   page (pure, deterministic, no drawing).
2. render_report() draws the plan onto a reportlab canvas.

The same text always yields the same plan, so the copy saved at upload time
and a copy regenerated later from stored analysis are layout-equivalent.

Page geometry (points, origin bottom-left, US Letter 612 x 792):

    792 +--------------------------------+  gold stripe
        |  HEADER BAND (navy, 145pt)     |
    647 +--------------------------------+  gold stripe
    617 |  body starts (page 1)          |
        |  ...                           |
     80 |- - - - footer reserve - - - - -|  no body content below this line
     62 |  gold stripe + fine print      |
      0 +--------------------------------+
"""

import io
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from creditassist.services.text_normalizer import strip_inline_emphasis

PAGE_WIDTH, PAGE_HEIGHT = letter

HEADER_HEIGHT = 145
HEADER_STRIPE = 4
FOOTER_RESERVE = 80
LEFT_MARGIN = 50
RIGHT_MARGIN = 50
CONTENT_WIDTH = PAGE_WIDTH - LEFT_MARGIN - RIGHT_MARGIN

BODY_START_Y = PAGE_HEIGHT - HEADER_HEIGHT - 30
CONTINUATION_TOP_Y = PAGE_HEIGHT - 50

VALUE_TAB_X = 230
VALUE_WIDTH = PAGE_WIDTH - RIGHT_MARGIN - VALUE_TAB_X
LABEL_WIDTH = VALUE_TAB_X - LEFT_MARGIN - 10
BULLET_INDENT = 20

BODY_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"
BODY_SIZE = 10
HEADING_SIZE = 13
LEADING = 14

HEADING_HEIGHT = 28
SECTION_GAP = 14
BULLET_PADDING = 4
PARAGRAPH_PADDING = 6
LABEL_VALUE_ADVANCE = 18
BLANK_GAP = 6

BRAND_NAVY = HexColor("#1e3a5f")
ACCENT_GOLD = HexColor("#d4a017")
VALUE_ACCENT = HexColor("#2e7d9a")
BODY_GRAY = HexColor("#4a4a4a")
RULE_GRAY = HexColor("#c8ccd2")
FINE_PRINT_GRAY = HexColor("#7a7a7a")

BRAND_TITLE = "TN CREDIT SOLUTIONS"
REPORT_SUBTITLE = "Credit Analysis Report"
DISCLAIMER_LINES = (
    "This report is an automated, informational summary of the document you provided and is not legal, tax or financial advice.",
    "TN Credit Solutions specialists review every report. Results vary and no specific credit score outcome is guaranteed.",
)


class LineKind(str, Enum):
    NOISE = "noise"
    BLANK = "blank"
    HEADING = "heading"
    BULLET = "bullet"
    LABEL_VALUE = "label_value"
    PARAGRAPH = "paragraph"


RULE_LINE = re.compile(r"^[\s\-=_*~•.]{3,}$")
SUMMARY_BANNER = re.compile(r"^(?:#+\s*)?(?:\*\*)?\s*(?:credit\s+(?:analysis\s+)?|document\s+(?:analysis\s+)?)?summary\s*(?:\*\*)?\s*:?\s*$", re.IGNORECASE)
EXCLAMATORY_OPENER = re.compile(r"^(?:\*\*)?[A-Za-z' ]{1,24}!+(?:\*\*)?$")

HASH_HEADING = re.compile(r"^#{1,6}\s*(?=[A-Z])(.+)$")
BOLD_HEADING = re.compile(r"^\*\*([A-Z][^*:]*)\*\*\s*(\([^)]*\))?\s*$")
BULLET_ITEM = re.compile(r"^(?:[-*•●▪]\s+|\d{1,2}[.)]\s+)(.+)$")


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    text: str = ""
    label: str = ""
    value: str = ""


def classify_line(line: str) -> ClassifiedLine:
    """
    Decide how one line of analysis text is rendered. Priority order:
    noise, heading, bullet, label/value, paragraph. Blank lines are kept
    separately because they only contribute spacing.
    """
    stripped = (line or "").strip()
    if not stripped:
        return ClassifiedLine(LineKind.BLANK)

    if RULE_LINE.match(stripped) or SUMMARY_BANNER.match(stripped) or EXCLAMATORY_OPENER.match(stripped):
        return ClassifiedLine(LineKind.NOISE)

    match = HASH_HEADING.match(stripped)
    if match:
        return ClassifiedLine(LineKind.HEADING, text=strip_inline_emphasis(match.group(1)).strip())
    match = BOLD_HEADING.match(stripped)
    if match:
        title = match.group(1).strip()
        if match.group(2):
            title = f"{title} {match.group(2)}"
        return ClassifiedLine(LineKind.HEADING, text=title)

    match = BULLET_ITEM.match(stripped)
    if match:
        return ClassifiedLine(LineKind.BULLET, text=strip_inline_emphasis(match.group(1)).strip())

    plain = strip_inline_emphasis(stripped).strip()
    if plain.count(":") == 1:
        label, value = (part.strip() for part in plain.split(":"))
        if label and value:
            return ClassifiedLine(LineKind.LABEL_VALUE, text=plain, label=label, value=value)

    return ClassifiedLine(LineKind.PARAGRAPH, text=plain)


def wrap_text(text: str, font_name: str, font_size: float, max_width: float) -> List[str]:
    """
    Word-wrap to max_width. Words wider than the column are broken by
    character so nothing runs past the right margin.
    """
    lines = []
    for line in simpleSplit(text, font_name, font_size, max_width) or [""]:
        if stringWidth(line, font_name, font_size) <= max_width:
            lines.append(line)
            continue
        current = ""
        for char in line:
            if current and stringWidth(current + char, font_name, font_size) > max_width:
                lines.append(current)
                current = char
            else:
                current += char
        if current:
            lines.append(current)
    return lines


def fit_single_line(text: str, font_name: str, font_size: float, max_width: float) -> str:
    if stringWidth(text, font_name, font_size) <= max_width:
        return text
    ellipsis = "..."
    while text and stringWidth(text + ellipsis, font_name, font_size) > max_width:
        text = text[:-1]
    return text.rstrip() + ellipsis


@dataclass(frozen=True)
class Placement:
    """One block (or a fragment of a block split across pages) on a page."""
    kind: LineKind
    top: float
    height: float
    lines: tuple = ()
    title: str = ""
    label: str = ""

    @property
    def bottom(self) -> float:
        return self.top - self.height


@dataclass
class ReportPlan:
    pages: List[List[Placement]] = field(default_factory=lambda: [[]])

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def kinds(self) -> List[LineKind]:
        return [p.kind for page in self.pages for p in page]


class _Layout:
    """Running cursor over the pages of a plan."""

    def __init__(self):
        self.plan = ReportPlan()
        self.page_top = BODY_START_Y
        self.cursor = BODY_START_Y
        self.sections = 0

    @property
    def at_page_top(self) -> bool:
        return self.cursor >= self.page_top

    def new_page(self):
        self.plan.pages.append([])
        self.page_top = CONTINUATION_TOP_Y
        self.cursor = CONTINUATION_TOP_Y

    def fits(self, height: float) -> bool:
        return self.cursor - height >= FOOTER_RESERVE

    def place(self, placement: Placement):
        self.plan.pages[-1].append(placement)
        self.cursor = placement.bottom

    def add_blank(self):
        if not self.at_page_top and self.fits(BLANK_GAP):
            self.cursor -= BLANK_GAP

    def add_heading(self, title: str):
        gap = SECTION_GAP if self.sections else 0
        if not self.fits(gap + HEADING_HEIGHT):
            self.new_page()
        if self.at_page_top:
            gap = 0
        self.cursor -= gap
        self.place(Placement(LineKind.HEADING, top=self.cursor, height=HEADING_HEIGHT, title=title))
        self.sections += 1

    def add_wrapped(self, kind: LineKind, lines: List[str], padding: float,
                    min_height: float = 0, label: str = ""):
        body_capacity = CONTINUATION_TOP_Y - FOOTER_RESERVE
        first = True
        while lines:
            height = max(len(lines) * LEADING + padding, min_height)
            if self.fits(height):
                self.place(Placement(kind, top=self.cursor, height=height,
                                     lines=tuple(lines), label=label if first else ""))
                return
            fit = int((self.cursor - FOOTER_RESERVE - padding) // LEADING)
            if fit >= 1 and (self.at_page_top or height > body_capacity):
                chunk, lines = lines[:fit], lines[fit:]
                self.place(Placement(kind, top=self.cursor, height=fit * LEADING + padding,
                                     lines=tuple(chunk), label=label if first else ""))
                first = False
                if not lines:
                    return
            self.new_page()


def plan_report(analysis_text: Optional[str]) -> ReportPlan:
    """
    Lay out analysis text into pages. Never raises for long input: every
    iteration either places content or moves to a fresh page, where at least
    one line always fits.
    """
    layout = _Layout()
    for raw_line in (analysis_text or "").splitlines():
        line = classify_line(raw_line)

        if line.kind is LineKind.NOISE:
            continue
        if line.kind is LineKind.BLANK:
            layout.add_blank()
        elif line.kind is LineKind.HEADING:
            layout.add_heading(line.text)
        elif line.kind is LineKind.BULLET:
            lines = wrap_text(line.text, BODY_FONT, BODY_SIZE, CONTENT_WIDTH - BULLET_INDENT)
            layout.add_wrapped(LineKind.BULLET, lines, BULLET_PADDING)
        elif line.kind is LineKind.LABEL_VALUE:
            lines = wrap_text(line.value, BODY_FONT, BODY_SIZE, VALUE_WIDTH)
            layout.add_wrapped(LineKind.LABEL_VALUE, lines, LABEL_VALUE_ADVANCE - LEADING,
                               min_height=LABEL_VALUE_ADVANCE, label=line.label)
        else:
            lines = wrap_text(line.text, BODY_FONT, BODY_SIZE, CONTENT_WIDTH)
            layout.add_wrapped(LineKind.PARAGRAPH, lines, PARAGRAPH_PADDING)
    return layout.plan


def report_filename(date_label: Optional[str]) -> str:
    suffix = f"-{date_label}" if date_label else ""
    return f"TN-Credit-Analysis{suffix}.pdf"


def _draw_header(c: canvas.Canvas, visitor_name: str, date_label: str):
    band_bottom = PAGE_HEIGHT - HEADER_HEIGHT
    c.setFillColor(BRAND_NAVY)
    c.rect(0, band_bottom, PAGE_WIDTH, HEADER_HEIGHT, fill=1, stroke=0)

    c.setFillColor(ACCENT_GOLD)
    c.rect(0, PAGE_HEIGHT - HEADER_STRIPE, PAGE_WIDTH, HEADER_STRIPE, fill=1, stroke=0)
    c.rect(0, band_bottom, PAGE_WIDTH, HEADER_STRIPE - 1, fill=1, stroke=0)

    c.setFillColor(white)
    c.setFont(BOLD_FONT, 22)
    c.drawString(LEFT_MARGIN, PAGE_HEIGHT - 55, BRAND_TITLE)

    c.setFillColor(ACCENT_GOLD)
    c.setFont(BODY_FONT, 13)
    c.drawString(LEFT_MARGIN, PAGE_HEIGHT - 78, REPORT_SUBTITLE)

    c.setFillColor(white)
    c.setFont(BODY_FONT, 10)
    c.drawString(LEFT_MARGIN, PAGE_HEIGHT - 105,
                 fit_single_line(f"Prepared for: {visitor_name}", BODY_FONT, 10, CONTENT_WIDTH))
    c.drawString(LEFT_MARGIN, PAGE_HEIGHT - 121, f"Report date: {date_label}")


def _draw_footer(c: canvas.Canvas, page_number: int, page_count: int):
    c.setFillColor(ACCENT_GOLD)
    c.rect(LEFT_MARGIN, 62, CONTENT_WIDTH, 1.5, fill=1, stroke=0)

    c.setFillColor(FINE_PRINT_GRAY)
    c.setFont(BODY_FONT, 6.5)
    c.drawString(LEFT_MARGIN, 48, fit_single_line(DISCLAIMER_LINES[0], BODY_FONT, 6.5, CONTENT_WIDTH - 50))
    c.drawString(LEFT_MARGIN, 38, fit_single_line(DISCLAIMER_LINES[1], BODY_FONT, 6.5, CONTENT_WIDTH - 50))
    c.drawRightString(PAGE_WIDTH - RIGHT_MARGIN, 48, f"Page {page_number} of {page_count}")


def _draw_lines(c: canvas.Canvas, lines, x: float, top: float):
    baseline = top - 11
    for text in lines:
        c.drawString(x, baseline, text)
        baseline -= LEADING


def _draw_placement(c: canvas.Canvas, p: Placement):
    if p.kind is LineKind.HEADING:
        c.setFillColor(ACCENT_GOLD)
        c.rect(LEFT_MARGIN, p.top - 18, 4, 18, fill=1, stroke=0)
        c.setFillColor(BRAND_NAVY)
        c.setFont(BOLD_FONT, HEADING_SIZE)
        c.drawString(LEFT_MARGIN + 12, p.top - 14,
                     fit_single_line(p.title, BOLD_FONT, HEADING_SIZE, CONTENT_WIDTH - 12))
        c.setStrokeColor(RULE_GRAY)
        c.setLineWidth(0.6)
        c.line(LEFT_MARGIN, p.top - 23, PAGE_WIDTH - RIGHT_MARGIN, p.top - 23)

    elif p.kind is LineKind.BULLET:
        c.setFillColor(ACCENT_GOLD)
        c.circle(LEFT_MARGIN + 7, p.top - 7.5, 2.2, fill=1, stroke=0)
        c.setFillColor(BODY_GRAY)
        c.setFont(BODY_FONT, BODY_SIZE)
        _draw_lines(c, p.lines, LEFT_MARGIN + BULLET_INDENT, p.top)

    elif p.kind is LineKind.LABEL_VALUE:
        if p.label:
            c.setFillColor(BRAND_NAVY)
            c.setFont(BOLD_FONT, BODY_SIZE)
            c.drawString(LEFT_MARGIN, p.top - 11, fit_single_line(p.label, BOLD_FONT, BODY_SIZE, LABEL_WIDTH))
        c.setFillColor(VALUE_ACCENT)
        c.setFont(BODY_FONT, BODY_SIZE)
        _draw_lines(c, p.lines, VALUE_TAB_X, p.top)

    else:
        c.setFillColor(BODY_GRAY)
        c.setFont(BODY_FONT, BODY_SIZE)
        _draw_lines(c, p.lines, LEFT_MARGIN, p.top)


def render_report(visitor_name: str, date_label: str, analysis_text: Optional[str]) -> bytes:
    """
    Render the branded report and return the PDF bytes. Missing analysis
    produces a header/footer only document.
    """
    plan = plan_report(analysis_text)
    buffer = io.BytesIO()

    c = canvas.Canvas(buffer, pagesize=letter, invariant=1)
    c.setTitle(f"{REPORT_SUBTITLE} - {visitor_name} - {date_label}")
    c.setAuthor(BRAND_TITLE.title())

    for index, placements in enumerate(plan.pages, start=1):
        if index == 1:
            _draw_header(c, visitor_name, date_label)
        _draw_footer(c, index, plan.page_count)
        for placement in placements:
            _draw_placement(c, placement)
        c.showPage()

    c.save()
    return buffer.getvalue()
