"""Render a ReportDocument to PDF bytes with reportlab.

Fonts: a Unicode TTF (DejaVu Sans) is registered when available so the
cedi sign prints; otherwise Helvetica is used.
"""

from io import BytesIO
from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from palmtrack.exports.documents import DocumentTable, ReportDocument

FONT_DIRS = (
    Path(__file__).resolve().parent / "fonts",
    Path("/usr/share/fonts/truetype/dejavu"),
    Path("/usr/share/fonts/dejavu"),
)


def _register_font(name: str, filename: str) -> bool:
    for directory in FONT_DIRS:
        path = directory / filename
        if path.exists():
            pdfmetrics.registerFont(TTFont(name, str(path)))
            return True
    return False


BODY_FONT = "DejaVuSans" if _register_font("DejaVuSans", "DejaVuSans.ttf") else "Helvetica"
BOLD_FONT = (
    "DejaVuSans-Bold" if _register_font("DejaVuSans-Bold", "DejaVuSans-Bold.ttf")
    else "Helvetica-Bold"
)

HEADER_BG = HexColor("#1f5f3a")
ZEBRA_BG = HexColor("#f2f6f3")


def _styles():
    base = getSampleStyleSheet()
    for style in base.byName.values():
        style.fontName = BODY_FONT
    for name in ("Title", "Heading2", "Heading3"):
        base[name].fontName = BOLD_FONT
    return base


def _summary_table(pairs, width: float) -> Table:
    table = Table(
        [[label, value] for label, value in pairs],
        colWidths=[width * 0.45, width * 0.55],
    )
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), BODY_FONT),
        ("FONTNAME", (0, 0), (0, -1), BOLD_FONT),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return table


def _data_table(section: DocumentTable, width: float, styles) -> Table:
    cell = styles["BodyText"]
    cell.fontSize = 8
    cell.leading = 10
    data = [section.headers]
    for row in section.rows:
        data.append([Paragraph(escape(str(v)), cell) for v in row])

    col_width = width / max(len(section.headers), 1)
    table = Table(data, colWidths=[col_width] * len(section.headers), repeatRows=1)
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_BG),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), BOLD_FONT),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]
    for idx in section.numeric_columns:
        style_cmds.append(("ALIGN", (idx, 0), (idx, -1), "RIGHT"))
    for r in range(2, len(data), 2):
        style_cmds.append(("BACKGROUND", (0, r), (-1, r), ZEBRA_BG))
    table.setStyle(TableStyle(style_cmds))
    return table


def render_pdf(document: ReportDocument) -> bytes:
    buffer = BytesIO()
    styles = _styles()
    margin = 15 * mm
    page_width, _ = A4
    content_width = page_width - 2 * margin

    def draw_footer(c, doc):
        if not document.footer:
            return
        c.saveState()
        c.setFont(BODY_FONT, 7)
        c.setFillColor(colors.grey)
        c.drawString(margin, 8 * mm, document.footer)
        c.drawRightString(page_width - margin, 8 * mm, f"Page {doc.page}")
        c.restoreState()

    pdf = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=margin,
        rightMargin=margin,
        topMargin=margin,
        bottomMargin=margin + 5 * mm,
        title=document.title,
    )

    story = [Paragraph(escape(document.title), styles["Title"])]
    if document.subtitle:
        story.append(Paragraph(escape(document.subtitle), styles["Heading3"]))
    story.append(Spacer(1, 4 * mm))

    if document.summary:
        story.append(_summary_table(document.summary, content_width * 0.7))
        story.append(Spacer(1, 6 * mm))

    for section in document.sections:
        story.append(Paragraph(escape(section.title), styles["Heading2"]))
        if section.rows:
            story.append(_data_table(section, content_width, styles))
        else:
            story.append(Paragraph(escape(section.empty_text), styles["Italic"]))
        story.append(Spacer(1, 5 * mm))

    if document.notes:
        story.append(Paragraph("Notes", styles["Heading2"]))
        for note in document.notes:
            story.append(Paragraph(escape(f"• {note}"), styles["BodyText"]))

    pdf.build(story, onFirstPage=draw_footer, onLaterPages=draw_footer)
    return buffer.getvalue()
