# parsers/report_gen.py
"""
PDF report generator for decoded Recycle Bin records.

- Escape user-provided strings before passing to reportlab.platypus.Paragraph;
  original paths routinely contain characters ReportLab would try to parse.
- Truncate extremely long cell text for PDF table cells to avoid Flowable/Table
  "tallest cell ... too large" errors.
"""

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import (
    SimpleDocTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
    Image,
)
from reportlab.lib.units import mm
import datetime
import html
import os
from typing import List, Dict, Any, Optional

# Constants
PAGE_MARGIN_MM = 18
MAX_SAMPLE_ROWS = 1000  # limit to avoid enormous PDFs
DEFAULT_FONT = "Helvetica"


# ---------------------------
# Helpers
# ---------------------------

def _truncate_text(s: Optional[str], max_chars: int = 400) -> str:
    """
    Truncate long strings for PDF table cells.
    Cuts at a space near the boundary when there is one.
    """
    if s is None:
        return ""
    text = " ".join(str(s).split())
    if len(text) <= max_chars:
        return text
    idx = text.rfind(" ", 0, max_chars)
    if idx == -1 or idx < int(max_chars * 0.6):
        idx = max_chars
    return text[:idx].rstrip() + "..."


def _timestamp_sort_key(ts: Optional[str]):
    # five-digit years are longer strings and must sort after four-digit ones
    ts = ts or ""
    return (len(ts), ts)


def _human_size(n) -> str:
    if n is None:
        return ""
    size = float(n)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024 or unit == "TB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024


def _get_styles():
    styles = getSampleStyleSheet()
    normal = ParagraphStyle(
        "NormalWrap",
        parent=styles["Normal"],
        fontName=DEFAULT_FONT,
        fontSize=9,
        leading=12,
        wordWrap="CJK",
    )
    h1 = ParagraphStyle("H1", parent=styles["Heading1"], alignment=1, fontName=DEFAULT_FONT, fontSize=18, leading=22)
    h2 = ParagraphStyle("H2", parent=styles["Heading2"], fontName=DEFAULT_FONT, fontSize=14, leading=18)
    h3 = ParagraphStyle("H3", parent=styles["Heading3"], fontName=DEFAULT_FONT, fontSize=11, leading=14)
    small = ParagraphStyle("Small", parent=styles["Normal"], fontName=DEFAULT_FONT, fontSize=8, leading=10)
    mono = ParagraphStyle("Mono", parent=styles["Normal"], fontName="Courier", fontSize=8, leading=10, wordWrap="CJK")
    italic = ParagraphStyle("ItalicSmall", parent=styles["Italic"], fontName=DEFAULT_FONT, fontSize=8, leading=10)

    return {"normal": normal, "h1": h1, "h2": h2, "h3": h3, "small": small, "mono": mono, "italic": italic}


def _content_width(doc):
    page_w, _ = doc.pagesize
    return page_w - doc.leftMargin - doc.rightMargin


def _embed_image_if_exists(story, path, doc, caption=None, max_width_ratio=0.92):
    if not path or not os.path.exists(path):
        return
    img = Image(path)
    max_w = _content_width(doc) * max_width_ratio
    iw, ih = img.imageWidth, img.imageHeight
    if iw <= 0 or ih <= 0:
        return
    scale = min(1.0, max_w / iw)
    img.drawWidth = iw * scale
    img.drawHeight = ih * scale
    story.append(img)
    if caption:
        story.append(_p(caption, _get_styles()["small"]))
    story.append(Spacer(1, 8))


def _p(text: Any, style, allow_markup: bool = False) -> Paragraph:
    """
    Create a ReportLab Paragraph while safely escaping user-supplied content.
    Pass allow_markup=True only for strings built here with small inline tags.
    """
    s = "" if text is None else str(text)
    if not allow_markup:
        s = html.escape(s)
    s = s.replace("\n", "<br/>")
    return Paragraph(s, style)


# ---------------------------
# PDF Generator
# ---------------------------
def generate_pdf_report(rows: List[Dict[str, Any]], output_path: str, title: str = "Recycle Bin Report", metadata: Optional[Dict[str, str]] = None) -> str:
    """
    Render decoded $I rows into a PDF at output_path.
    metadata may carry case fields and a "chart_timeline" image path.
    """
    rows_sorted = sorted(rows, key=lambda r: _timestamp_sort_key(r.get("timestamp")))
    total_bytes = sum(r.get("file_size") or 0 for r in rows)

    doc = SimpleDocTemplate(
        output_path,
        pagesize=A4,
        rightMargin=PAGE_MARGIN_MM * mm,
        leftMargin=PAGE_MARGIN_MM * mm,
        topMargin=PAGE_MARGIN_MM * mm,
        bottomMargin=PAGE_MARGIN_MM * mm,
    )
    styles = _get_styles()
    story = []

    story.append(Paragraph(html.escape(title), styles["h1"]))
    story.append(Spacer(1, 6))
    gen_time = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
    story.append(Paragraph(f"Generated (UTC): {gen_time}", styles["normal"]))
    story.append(Spacer(1, 6))

    if metadata is None:
        metadata = {}

    metadata_order = [
        'Case ID', 'Evidence ID', 'Description', 'Examiner', 'Notes',
        'Source', 'OS', 'Tool Version', 'Scanned Folder'
    ]

    meta_lines = []
    for key in metadata_order:
        if key in metadata:
            meta_lines.append([Paragraph(f"<b>{html.escape(key)}</b>", styles["small"]), _p(metadata[key], styles["small"])])
    meta_lines.append([Paragraph("<b>Deleted files</b>", styles["small"]), Paragraph(str(len(rows)), styles["small"])])
    meta_lines.append([Paragraph("<b>Total size</b>", styles["small"]), Paragraph(_human_size(total_bytes), styles["small"])])

    meta_tbl = Table(meta_lines, colWidths=[40 * mm, _content_width(doc) - 40 * mm])
    meta_tbl.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LEFTPADDING", (0, 0), (-1, -1), 4),
                ("RIGHTPADDING", (0, 0), (-1, -1), 4),
                ("LINEBELOW", (0, 0), (-1, 0), 0.25, colors.lightgrey),
            ]
        )
    )
    story.append(meta_tbl)
    story.append(Spacer(1, 12))

    _embed_image_if_exists(story, metadata.get("chart_timeline"), doc, caption="Deletions over time (histogram)")

    story.append(Paragraph("Deleted files (chronological)", styles["h2"]))
    header = ["Deleted (UTC)", "$I file", "Original path", "Size"]
    data = [[_p(h, styles["h3"]) for h in header]]

    for r in rows_sorted[:MAX_SAMPLE_ROWS]:
        data.append([
            _p(r.get("timestamp") or "", styles["mono"]),
            _p(_truncate_text(r.get("name"), max_chars=60), styles["normal"]),
            _p(_truncate_text(r.get("original_path"), max_chars=400), styles["normal"]),
            _p(_human_size(r.get("file_size")), styles["normal"]),
        ])

    if len(rows_sorted) > MAX_SAMPLE_ROWS:
        data.append([_p("...", styles["small"])] + [_p("", styles["small"])] * (len(header) - 1))

    total_width = _content_width(doc)
    col_widths = [total_width * 0.22, total_width * 0.16, total_width * 0.48, total_width * 0.14]
    tbl = Table(data, colWidths=col_widths, repeatRows=1)
    style = TableStyle([("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey), ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#EFEFEF")), ("VALIGN", (0, 0), (-1, -1), "TOP"), ("LEFTPADDING", (0, 0), (-1, -1), 4), ("RIGHTPADDING", (0, 0), (-1, -1), 4)])
    for i in range(1, len(data)):
        if i % 2 == 0:
            style.add("BACKGROUND", (0, i), (-1, i), colors.whitesmoke)
    tbl.setStyle(style)
    story.append(tbl)

    story.append(Spacer(1, 12))
    story.append(Paragraph("Notes: Times are the deletion FILETIME stored in each $I file, shown in UTC. Sizes are the original file size at deletion.", styles["italic"]))

    doc.build(story)
    return output_path
