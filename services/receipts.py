# services/receipts.py

from io import BytesIO
from typing import Any, Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from core.utils import parse_datetime, utc_now

METHOD_LABELS = {
    "cash": "Espèces",
    "bank_transfer": "Virement bancaire",
    "check": "Chèque",
    "card": "Carte",
    "mobile_money": "Paiement mobile",
}

BRAND_COLOR = colors.HexColor("#1e40af")


def build_payment_receipt(
    receipt_number: str,
    residence: Dict[str, Any],
    resident_name: Optional[str],
    apartment_number: Optional[str],
    items: List[Dict[str, Any]],
    total: float,
    method: Optional[str],
    paid_at: Optional[str] = None,
) -> bytes:
    """
    Render a one-page payment receipt (reportlab platypus).
    items: [{"title": str, "amount": float}, ...]
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Reçu {receipt_number}")
    story = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        "ReceiptTitle",
        parent=styles["Heading1"],
        fontSize=18,
        textColor=BRAND_COLOR,
        spaceAfter=12,
        alignment=TA_CENTER,
    )

    story.append(Paragraph("Reçu de paiement", title_style))
    story.append(Paragraph(f"<b>{residence.get('name', '')}</b>", styles["Normal"]))
    address = ", ".join(filter(None, [residence.get("address"), residence.get("city")]))
    if address:
        story.append(Paragraph(address, styles["Normal"]))
    story.append(Spacer(1, 0.25 * inch))

    paid = parse_datetime(paid_at) or utc_now()
    details = [
        ["Numéro de reçu", receipt_number],
        ["Date", paid.strftime("%d/%m/%Y")],
        ["Résident", resident_name or "-"],
        ["Appartement", apartment_number or "-"],
        ["Mode de paiement", METHOD_LABELS.get(method or "", method or "-")],
    ]
    details_table = Table(details, colWidths=[2 * inch, 4 * inch])
    details_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    story.append(details_table)
    story.append(Spacer(1, 0.3 * inch))

    rows = [["Description", "Montant (MAD)"]]
    for item in items:
        rows.append([item.get("title", ""), f"{float(item.get('amount') or 0):.2f}"])
    rows.append(["Total", f"{total:.2f}"])

    items_table = Table(rows, colWidths=[4.5 * inch, 1.5 * inch])
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 10),
        ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
        ("GRID", (0, 0), (-1, -2), 0.5, colors.grey),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 0.4 * inch))

    footer_style = ParagraphStyle(
        "Footer",
        parent=styles["Normal"],
        fontSize=8,
        textColor=colors.grey,
        alignment=TA_CENTER,
    )
    story.append(Paragraph(
        f"Généré par SAKAN le {utc_now().strftime('%d/%m/%Y %H:%M')} UTC",
        footer_style,
    ))

    doc.build(story)
    return buffer.getvalue()
