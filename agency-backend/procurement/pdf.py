# procurement/pdf.py
"""
Printable need request ("état de besoin") rendered with reportlab.
"""
import io
import textwrap
from xml.sax.saxutils import escape

from django.conf import settings
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from staff.assignment import job_title_label
from .models import NeedStatus

BRAND_BLUE = colors.Color(0.07, 0.2, 0.47)
SEALED_GREEN = colors.Color(0.07, 0.42, 0.2)
PENDING_AMBER = colors.Color(0.58, 0.45, 0.08)

MAX_DETAIL_LINES = 14


def format_datetime(value):
    if not value:
        return "-"
    return timezone.localtime(value).strftime("%d/%m/%Y %H:%M")


def format_amount(amount, currency):
    if amount is None:
        return "-"
    whole = f"{amount:,.2f}".replace(",", " ").replace(".", ",")
    return f"{whole} {currency or 'XAF'}"


def _person(user):
    if user is None:
        return "-"
    return user.get_full_name() or user.get_username()


def detail_lines(details):
    """Bullet each non-empty line, wrapped; capped to fit one page."""
    raw = [line.strip() for line in (details or "").splitlines() if line.strip()]
    bulleted = [line if line.startswith(("-", "•")) else f"• {line}" for line in raw] or ["• -"]
    wrapped = [part for line in bulleted for part in textwrap.wrap(line, 90)]
    return wrapped[:MAX_DETAIL_LINES]


def render_need_request_pdf(need, printed_by=None) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=0.55 * inch,
        rightMargin=0.55 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
        title=f"État de besoin {need.reference}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("AgencyTitle", parent=styles["Title"], fontSize=16, textColor=BRAND_BLUE, alignment=0)
    subtitle_style = ParagraphStyle("AgencySubtitle", parent=styles["Normal"], fontSize=10, textColor=BRAND_BLUE)
    heading_style = ParagraphStyle("Section", parent=styles["Heading3"], fontSize=11, spaceBefore=10, spaceAfter=4)
    normal_style = styles["Normal"]
    footer_style = ParagraphStyle("Footer", parent=normal_style, fontSize=8, textColor=colors.HexColor("#262626"))

    approved = need.status == NeedStatus.APPROVED and need.sealed_at
    story = [
        Paragraph(f"<b>{escape(settings.AGENCY_NAME)}</b>", title_style),
        Paragraph("ÉTAT DE BESOIN - APPROVISIONNEMENT", subtitle_style),
        Spacer(1, 0.2 * inch),
    ]

    header = Table(
        [[f"Réf: {need.reference}", f"Statut: {need.status}"]],
        colWidths=[3.6 * inch, 3.4 * inch],
    )
    header.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10.5),
        ("TEXTCOLOR", (1, 0), (1, 0), SEALED_GREEN if need.status == NeedStatus.APPROVED else PENDING_AMBER),
        ("LINEABOVE", (0, 0), (-1, 0), 1, colors.HexColor("#D6DEF2")),
    ]))
    story.extend([header, Spacer(1, 0.15 * inch)])

    requester = _person(need.requester)
    requester_title = job_title_label(getattr(getattr(need.requester, "staff_profile", None), "job_title", ""))
    if requester_title:
        requester = f"{requester} ({requester_title})"

    rows = [
        ["Objet", need.title],
        ["Catégorie", need.category],
        ["Quantité", f"{need.quantity} {need.unit}"],
        ["Montant estimatif", format_amount(need.estimated_amount, need.currency)],
        ["Demandeur", requester],
        ["Soumis le", format_datetime(need.submitted_at)],
        ["Validé par", _person(need.reviewed_by)],
        ["Date validation", format_datetime(need.approved_at or need.reviewed_at)],
    ]
    details = Table([[f"{label}:", value] for label, value in rows], colWidths=[1.7 * inch, 5.3 * inch])
    details.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTNAME", (1, 0), (1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    story.append(details)

    story.append(Paragraph("<b>Articles demandés:</b>", heading_style))
    for line in detail_lines(need.details):
        story.append(Paragraph(escape(line), normal_style))

    story.append(Spacer(1, 0.2 * inch))
    story.append(Paragraph("<b>Validation Direction / Finance</b>", heading_style))
    comment = need.review_comment.strip() if need.review_comment else "-"
    story.append(Paragraph(f"Commentaire: {escape(comment)}", normal_style))
    story.append(Spacer(1, 0.3 * inch))

    if approved:
        seal_style = ParagraphStyle("Seal", parent=normal_style, textColor=SEALED_GREEN, fontName="Helvetica-Bold")
        story.append(Paragraph(f"Document scellé le {format_datetime(need.sealed_at)}", seal_style))
    else:
        seal_style = ParagraphStyle("Unsealed", parent=normal_style, textColor=PENDING_AMBER, fontName="Helvetica-Bold")
        story.append(Paragraph("Document non scellé (en attente d'approbation).", seal_style))

    story.append(Spacer(1, 0.4 * inch))
    footer = f"Page 1/1 • Imprimé le {format_datetime(timezone.now())}"
    if printed_by is not None:
        footer = f"{footer} • Par {escape(_person(printed_by))}"
    story.append(Paragraph(footer, footer_style))

    doc.build(story)
    buf.seek(0)
    return buf.getvalue()
