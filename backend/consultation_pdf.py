"""
consultation_pdf.py — SamvidhanAI
Renders one stored consultation as a downloadable PDF.
Helvetica core font only, so text is folded to Latin-1 first.
"""

import re

from fpdf import FPDF

from database import Consultation

C_HEADER = (30, 58, 138)
C_TEXT = (30, 41, 59)
C_GRAY = (100, 116, 139)

_REPLACEMENTS = {
    "—": "--", "–": "-", "₹": "Rs. ", "•": "-", "§": "S.",
    "‘": "'", "’": "'", "“": '"', "”": '"', "…": "...",
}
_MD_BOLD = re.compile(r"\*\*(.+?)\*\*")
_MD_HEADER = re.compile(r"^#{1,6}\s*", re.MULTILINE)


def latin1(text: str) -> str:
    for src, dst in _REPLACEMENTS.items():
        text = text.replace(src, dst)
    return text.encode("latin-1", "replace").decode("latin-1")


def plain(markdown: str) -> str:
    return latin1(_MD_HEADER.sub("", _MD_BOLD.sub(r"\1", markdown or "")))


def _heading(pdf: FPDF, label: str) -> None:
    pdf.set_text_color(*C_TEXT)
    pdf.set_font("Helvetica", "B", 11)
    pdf.set_xy(10, pdf.get_y() + 4)
    pdf.cell(0, 7, label, new_x="LMARGIN", new_y="NEXT")


def build_consultation_pdf(consultation: Consultation, user_name: str = "") -> bytes:
    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    # Header bar
    pdf.set_fill_color(*C_HEADER)
    pdf.rect(0, 0, 210, 28, "F")
    pdf.set_font("Helvetica", "B", 18)
    pdf.set_text_color(255, 255, 255)
    pdf.set_xy(10, 8)
    pdf.cell(0, 12, "SAMVIDHAN AI -- Legal Consultation", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 10)
    pdf.set_xy(10, 20)
    pdf.cell(0, 6, "For information only. This is NOT a substitute for a lawyer.", new_x="LMARGIN", new_y="NEXT")

    pdf.set_text_color(*C_GRAY)
    pdf.set_font("Helvetica", "", 9)
    pdf.set_xy(10, 32)
    stamp = consultation.created_at.strftime("%d %b %Y, %H:%M UTC")
    who = f"{latin1(user_name)} | " if user_name else ""
    pdf.cell(0, 6, f"{who}{stamp} | mode: {consultation.mode}", new_x="LMARGIN", new_y="NEXT")

    _heading(pdf, "Your Question:")
    pdf.set_font("Helvetica", "", 10)
    pdf.multi_cell(190, 6, plain(consultation.query), new_x="LMARGIN", new_y="NEXT")

    _heading(pdf, "Answer:")
    pdf.set_font("Helvetica", "", 10)
    pdf.multi_cell(190, 6, plain(consultation.ai_response), new_x="LMARGIN", new_y="NEXT")

    if consultation.citations:
        _heading(pdf, "Citations:")
        pdf.set_font("Helvetica", "", 9)
        for citation in consultation.citations:
            pdf.set_x(10)
            pdf.multi_cell(190, 6, f"  - {latin1(citation)}", new_x="LMARGIN", new_y="NEXT")

    if consultation.disclaimer:
        pdf.set_text_color(120, 80, 0)
        pdf.set_fill_color(255, 249, 219)
        pdf.set_font("Helvetica", "I", 9)
        pdf.set_xy(10, pdf.get_y() + 6)
        pdf.multi_cell(190, 6, latin1(consultation.disclaimer), border=1, fill=True, new_x="LMARGIN", new_y="NEXT")

    return bytes(pdf.output())
