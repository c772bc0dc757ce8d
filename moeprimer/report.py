"""
Combine section text and figures into a PDF -- TEXT page then IMAGE page
for each section, framed by a cover page and a summary page.
"""

import os

import matplotlib.pyplot as plt
from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image as RLImage
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer


def savefig(fig, outdir, name):
    """Save a figure as PNG under outdir and close it; returns the path."""
    path = os.path.join(outdir, name)
    fig.savefig(path, bbox_inches="tight", dpi=150)
    plt.close(fig)
    return path


def escape(line):
    """Escape XML-sensitive chars for reportlab paragraphs."""
    return line.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


# name -> (parent, font, size, leading, space after, colour)
STYLE_TABLE = {
    "code": ("Normal", "Courier", 8.5, 11, 4, None),
    "title": ("Heading1", "Helvetica-Bold", 14, 18, 12, "#2171B5"),
    "heading": ("Title", "Helvetica-Bold", 18, 22, 6, None),
    "subtitle": ("Normal", "Helvetica", 10, 13, 20, "#555555"),
}

# Frame's default padding on each side, in points
FRAME_PADDING = 6


def _styles():
    base = getSampleStyleSheet()
    st = {"normal": base["Normal"]}
    for key, (parent, font, size, leading, after, color) in STYLE_TABLE.items():
        extra = {"textColor": color} if color else {}
        st[key] = ParagraphStyle(f"Primer-{key}", parent=base[parent],
                                 fontName=font, fontSize=size, leading=leading,
                                 spaceAfter=after, **extra)
    return st


def _text_block(story, text, st, spacer=6):
    for line in text.strip().split("\n"):
        safe = escape(line)
        if safe.strip() == "":
            story.append(Spacer(1, spacer))
        else:
            story.append(Paragraph(safe, st["code"]))


def fit_image(width, height, avail_w, avail_h):
    """Largest (w, h) with the image's aspect ratio inside avail_w x avail_h."""
    scale = min(avail_w / width, avail_h / height)
    return width * scale, height * scale


def _figure(story, fig_path, avail_w, avail_h):
    with Image.open(fig_path) as img:
        iw, ih = img.size
    w, h = fit_image(iw, ih, avail_w, avail_h)
    story.append(RLImage(fig_path, width=w, height=h))


def build_pdf(pdf_path, title, subtitle, intro_lines, sections, summary):
    """
    Build the primer PDF.

    Parameters
    ----------
    pdf_path : str
        Output file.
    title, subtitle : str
        Cover page heading.
    intro_lines : list of str
        Cover page body; "" inserts a small vertical gap.
    sections : list of (str, str)
        (section_text, figure_path). The first line of section_text is
        used as the section title.
    summary : str
        Text of the closing summary page.

    Returns
    -------
    str : pdf_path
    """
    st = _styles()
    doc = SimpleDocTemplate(pdf_path, pagesize=letter,
                            leftMargin=0.75 * inch, rightMargin=0.75 * inch,
                            topMargin=0.75 * inch, bottomMargin=0.75 * inch)
    avail_w = doc.width - 2 * FRAME_PADDING
    avail_h = doc.height - 2 * FRAME_PADDING
    story = []

    story.append(Paragraph(escape(title), st["heading"]))
    story.append(Paragraph(escape(subtitle), st["subtitle"]))
    story.append(Spacer(1, 12))
    for line in intro_lines:
        if line == "":
            story.append(Spacer(1, 6))
        else:
            story.append(Paragraph(escape(line), st["normal"]))
    story.append(PageBreak())

    for sec_text, fig_path in sections:
        lines = sec_text.strip().split("\n")
        story.append(Paragraph(escape(lines[0]).replace("--", "&mdash;"),
                               st["title"]))
        _text_block(story, "\n".join(lines[1:]), st)
        story.append(PageBreak())
        _figure(story, fig_path, avail_w, avail_h)
        story.append(PageBreak())

    story.append(Paragraph("Summary", st["title"]))
    story.append(Spacer(1, 8))
    _text_block(story, summary, st, spacer=4)

    doc.build(story)
    return pdf_path
