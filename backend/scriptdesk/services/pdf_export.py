"""
Rubric PDF export (ReportLab canvas).

Layout is a single top-down cursor measured in millimetres: every block asks
for the height it needs and a new page starts when the cursor would pass
PAGE_BREAK_Y. Page footers ("Page i of N") are drawn once the total page
count is known.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO
from typing import Any

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
LEFT_MARGIN = 20
CONTENT_WIDTH = PAGE_WIDTH / mm - 2 * LEFT_MARGIN
TOP_MARGIN = 20
PAGE_BREAK_Y = 270
LINE_HEIGHT = 7

GOLD = (212 / 255, 175 / 255, 55 / 255)
DARK = (20 / 255, 20 / 255, 20 / 255)
GREY = (100 / 255, 100 / 255, 100 / 255)
GREEN = (0, 128 / 255, 0)
ORANGE = (1, 140 / 255, 0)

COMPLETED_MARKERS = {"completed", "approved", "declined"}


@dataclass
class RenderedPdf:
    content: bytes
    page_count: int
    filename: str


def export_filename(title: str, today: date | None = None) -> str:
    slug = re.sub(r"[^a-z0-9]", "_", title or "", flags=re.IGNORECASE).lower()
    return f"rubric_{slug}_{(today or date.today()).isoformat()}.pdf"


def _format_date(value: Any) -> str:
    if not value:
        return "N/A"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime("%m/%d/%Y")


class _NumberedCanvas(canvas.Canvas):
    """Defers page output so every footer can show the final page count."""

    def __init__(self, *args, footer_date: str = "", footer_logo: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict] = []
        self._footer_date = footer_date
        self._footer_logo = footer_logo
        self.page_count = 0

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer()
            super().showPage()
        self.page_count = total
        super().save()

    def _draw_footer(self):
        self.setFont("Helvetica", 8)
        self.setFillColorRGB(*GREY)
        y = 10 * mm
        self.drawCentredString(PAGE_WIDTH / 2, y, f"Page {self._pageNumber} of {len(self._saved_page_states)}")
        self.drawRightString(PAGE_WIDTH - 20 * mm, y, f"Generated on {self._footer_date}")
        if self._footer_logo:
            self.drawImage(
                self._footer_logo, LEFT_MARGIN * mm, 6 * mm, width=18 * mm, height=8 * mm,
                preserveAspectRatio=True, mask="auto",
            )


class RubricPdfRenderer:
    def __init__(
        self,
        bundle: dict[str, Any],
        company_name: str = "Honey & Hemlock Productions",
        header_logo: str | None = None,
        footer_logo: str | None = None,
        today: date | None = None,
    ):
        self.bundle = bundle
        self.company_name = company_name
        self.header_logo = header_logo if header_logo and os.path.exists(header_logo) else None
        self.footer_logo = footer_logo if footer_logo and os.path.exists(footer_logo) else None
        self.today = today or date.today()
        self.y = TOP_MARGIN
        self.c: _NumberedCanvas | None = None

    # -- primitives --------------------------------------------------------

    def _pt_y(self, y_mm: float) -> float:
        return PAGE_HEIGHT - y_mm * mm

    def _ensure(self, needed: float = 30) -> bool:
        if self.y + needed > PAGE_BREAK_Y:
            self.c.showPage()
            self.y = TOP_MARGIN
            return True
        return False

    def _text(self, text: str, x_mm: float, font: str = "Helvetica", size: int = 10, color=DARK):
        self.c.setFont(font, size)
        self.c.setFillColorRGB(*color)
        self.c.drawString(x_mm * mm, self._pt_y(self.y), text)

    def _wrapped(self, text: str, font: str = "Helvetica", size: int = 10, color=DARK):
        for line in simpleSplit(str(text), font, size, CONTENT_WIDTH * mm):
            self._ensure(10)
            self._text(line, LEFT_MARGIN, font, size, color)
            self.y += LINE_HEIGHT

    def _bar(self, title: str):
        self.c.setFillColorRGB(*GOLD)
        self.c.rect(LEFT_MARGIN * mm, self._pt_y(self.y + 8), CONTENT_WIDTH * mm, 8 * mm, stroke=0, fill=1)
        self.c.setFont("Helvetica-Bold", 12)
        self.c.setFillColorRGB(1, 1, 1)
        self.c.drawString((LEFT_MARGIN + 2) * mm, self._pt_y(self.y + 5.5), title)
        self.y += 12

    def _field(self, label: str, value: str, offset: float = 25):
        self._text(label, LEFT_MARGIN, "Helvetica-Bold")
        self._text(value or "N/A", LEFT_MARGIN + offset)
        self.y += LINE_HEIGHT

    def _rating_boxes(self, rating: int, max_rating: int, x_mm: float):
        size = 4
        self.c.setStrokeColorRGB(*GOLD)
        self.c.setFillColorRGB(*GOLD)
        for i in range(max_rating):
            x = (x_mm + i * (size + 1)) * mm
            y = self._pt_y(self.y)
            self.c.rect(x, y, size * mm, size * mm, stroke=1, fill=1 if i < rating else 0)

    # -- sections ----------------------------------------------------------

    def _header(self):
        self.c.setFillColorRGB(*DARK)
        self.c.rect(0, self._pt_y(50), PAGE_WIDTH, 50 * mm, stroke=0, fill=1)
        if self.header_logo:
            self.c.drawImage(
                self.header_logo, LEFT_MARGIN * mm, self._pt_y(42), width=30 * mm, height=30 * mm,
                preserveAspectRatio=True, mask="auto",
            )
        self.c.setFillColorRGB(1, 1, 1)
        self.c.setFont("Helvetica-Bold", 24)
        self.c.drawCentredString(PAGE_WIDTH / 2, self._pt_y(25), "Script Review Rubric")
        self.c.setFont("Helvetica", 14)
        self.c.drawCentredString(PAGE_WIDTH / 2, self._pt_y(35), self.company_name)
        self.y = 60

    def _script_info(self):
        script = self.bundle["script"]
        self._bar("SCRIPT INFORMATION")
        amount = script.get("amount")
        fee = f"${amount / 100:,.2f}" if amount else "N/A"
        for label, value in (
            ("Title:", script.get("title")),
            ("Author:", script.get("author_name")),
            ("Email:", script.get("author_email")),
            ("Tier:", script.get("tier_name")),
            ("Review Fee:", fee),
        ):
            self._field(label, value)
        self.y += 5

    def _reviewer_info(self):
        self._bar("REVIEWER INFORMATION")
        contractor = self.bundle.get("contractor") or {}
        self._field("Reviewer:", contractor.get("name") or "Unknown")
        self._field("Review Date:", _format_date(self.bundle.get("submitted_at") or self.bundle.get("created_at")))
        completed = (
            self.bundle.get("status") in COMPLETED_MARKERS
            or (self.bundle.get("recommendation") or "") in COMPLETED_MARKERS
        )
        self._text("Status:", LEFT_MARGIN, "Helvetica-Bold")
        self._text(
            "COMPLETED" if completed else "INCOMPLETE",
            LEFT_MARGIN + 25,
            "Helvetica-Bold",
            color=GREEN if completed else ORANGE,
        )
        self.y += 10

    def _overall(self):
        notes = self.bundle.get("overall_notes")
        if not notes:
            return
        self._ensure()
        self._bar("OVERALL ASSESSMENT")
        self._wrapped(notes)
        self.y += 5

    def _rubric_sections(self, sections: list[dict[str, Any]]):
        for section in sections:
            if section["key"] == "title":
                if not section.get("response"):
                    continue
                self._ensure(25)
                self._text("Title", LEFT_MARGIN, "Helvetica-Bold", 11)
                self.y += 6
                self._wrapped(section["response"])
                self.y += 3
                continue
            rating, notes = section.get("rating"), section.get("notes")
            if not rating and not notes:
                continue
            self._ensure(25)
            self.c.setStrokeColorRGB(*GOLD)
            self.c.setLineWidth(0.5)
            self.c.line(
                LEFT_MARGIN * mm, self._pt_y(self.y), (LEFT_MARGIN + CONTENT_WIDTH) * mm, self._pt_y(self.y)
            )
            self.y += 5
            self._text(section["label"], LEFT_MARGIN, "Helvetica-Bold", 11)
            if rating:
                x = LEFT_MARGIN + CONTENT_WIDTH - 45
                self._rating_boxes(rating, section["max_rating"], x)
                self._text(f"{rating}/{section['max_rating']}", x + 32, "Helvetica", 10)
            self.y += 5
            self._text(section.get("description") or "", LEFT_MARGIN, "Helvetica-Oblique", 9, GREY)
            self.y += 6
            if notes:
                self._wrapped(notes)
            self.y += 3

    def _rubric(self):
        self._ensure(40)
        self._bar("RUBRIC ASSESSMENT")
        self._rubric_sections(self.bundle["sections"])

    def _page_notes(self):
        notes = self.bundle.get("page_notes") or []
        if not notes:
            return
        self._ensure(40)
        self.y += 5
        self._bar("PAGE-BY-PAGE NOTES")
        for note in notes:
            self._ensure(20)
            self._text(f"Page {note['page_number']}:", LEFT_MARGIN, "Helvetica-Bold", 10, GOLD)
            self.y += 5
            self._wrapped(note["note"])
            self.y += 3

    def _page_rubrics(self):
        rubrics = self.bundle.get("page_rubrics") or []
        if not rubrics:
            return
        self._ensure(40)
        self.y += 5
        self._bar("PAGE-BY-PAGE RUBRIC")
        for page in rubrics:
            self._ensure(30)
            self._text(f"Page {page['page_number']}", LEFT_MARGIN, "Helvetica-Bold", 12, GOLD)
            self.y += 7
            self._rubric_sections(page["sections"])

    def render(self) -> RenderedPdf:
        buf = BytesIO()
        title = self.bundle["script"].get("title") or "script"
        self.c = _NumberedCanvas(
            buf,
            pagesize=A4,
            footer_date=self.today.strftime("%m/%d/%Y"),
            footer_logo=self.footer_logo,
        )
        self.c.setTitle(f"Script Review Rubric - {title}")
        self.c.setAuthor(self.company_name)

        self._header()
        self._script_info()
        self._reviewer_info()
        self._overall()
        self._rubric()
        self._page_notes()
        self._page_rubrics()

        self.c.showPage()
        self.c.save()
        logger.info(f"[pdf_export] review {self.bundle.get('review_id')}: {self.c.page_count} page(s)")
        return RenderedPdf(
            content=buf.getvalue(),
            page_count=self.c.page_count,
            filename=export_filename(title, self.today),
        )


def render_rubric_pdf(bundle: dict[str, Any], **kwargs) -> RenderedPdf:
    return RubricPdfRenderer(bundle, **kwargs).render()
