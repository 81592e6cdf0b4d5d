"""
Invoice PDF rendering.

invoice_story() lays out the issuer header, invoice metadata, customer block,
line items and totals as reportlab flowables. draw_footer() adds the
regulatory footer to every page. render_invoice() builds both into PDF bytes
without writing to disk.
"""

import io
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from catalog import DEAL_TAG
from pricing import discount_amount, subtotal, to_money
from schemas import Order

TAX_RATE = Decimal("0.13")
TAX_LABEL = "VAT (13%)"
CURRENCY = "$"
NOT_AVAILABLE = "N/A"
DEAL_NOTE = "(25% discount)"

# El Salvador keeps UTC-6 all year
INVOICE_TZ = timezone(timedelta(hours=-6))
DATE_FORMAT = "%d/%m/%Y"
TIME_FORMAT = "%H:%M:%S"

ISSUER_NAME = "ADVENTURE WORKS EL SALVADOR"
ISSUER_LINES = (
    "Legal name: Adventure Works El Salvador S.A. de C.V.",
    "NIT: 0614-123456-001-2",
    "Address: Av. Principal, San Salvador, El Salvador",
    "Phone: +503 2234-5678",
    "Email: ventas@adventureworks.sv",
)
FOOTER_LINES = (
    "This invoice complies with the electronic invoicing regulations of El Salvador",
    "Ministerio de Hacienda - Republica de El Salvador",
)

PAGE_MARGIN = 40
COLUMN_WIDTHS = [255, 70, 95, 95]


@dataclass
class InvoiceTotals:
    subtotal: Decimal
    discount: Decimal
    discount_code: Optional[str]
    shipping: Decimal
    tax: Decimal
    total: Decimal


def money(amount: Decimal) -> str:
    return f"{CURRENCY}{amount:.2f}"


def invoice_totals(order: Order) -> InvoiceTotals:
    """
    Totals as printed on the invoice.

    The subtotal is summed again from the line totals so it can be checked
    against the stored order; the total itself is printed as stored.
    """
    sub = subtotal(order.items)
    discount = discount_amount(order.discount)
    return InvoiceTotals(
        subtotal=sub,
        discount=discount,
        discount_code=order.discount.code if order.discount else None,
        shipping=to_money(order.shipping or 0),
        tax=to_money((sub - discount) * TAX_RATE),
        total=to_money(order.total),
    )


def invoice_filename(order: Order) -> str:
    return f"Invoice-{order.id}.pdf"


def issued_at(order: Order) -> datetime:
    created = order.created_at or datetime.now(timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.astimezone(INVOICE_TZ)


def _styles():
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("InvoiceTitle", parent=base["Title"], fontSize=20, spaceAfter=4),
        "subtitle": ParagraphStyle("InvoiceSubtitle", parent=base["Normal"], fontSize=12, alignment=TA_CENTER),
        "section": ParagraphStyle("Section", parent=base["Heading3"], spaceBefore=10, spaceAfter=4),
        "body": ParagraphStyle("Body", parent=base["Normal"], fontSize=10, leading=13),
        "cell": ParagraphStyle("Cell", parent=base["Normal"], fontSize=10, leading=12),
        "right": ParagraphStyle("Right", parent=base["Normal"], fontSize=10, leading=14, alignment=TA_RIGHT),
        "grand": ParagraphStyle("Grand", parent=base["Normal"], fontName="Helvetica-Bold", fontSize=14,
                                leading=20, alignment=TA_RIGHT),
    }


def _or_na(value: Optional[str]) -> str:
    return escape(str(value)) if value else NOT_AVAILABLE


def _header(order: Order, styles) -> List:
    issued = issued_at(order)
    story = [
        Paragraph(ISSUER_NAME, styles["title"]),
        Paragraph("ELECTRONIC INVOICE", styles["subtitle"]),
        Spacer(1, 12),
    ]
    story += [Paragraph(line, styles["body"]) for line in ISSUER_LINES]
    story += [
        Paragraph("INVOICE DETAILS", styles["section"]),
        Paragraph(f"Invoice number: {escape(str(order.id))}", styles["body"]),
        Paragraph(f"Issue date: {issued.strftime(DATE_FORMAT)}", styles["body"]),
        Paragraph(f"Issue time: {issued.strftime(TIME_FORMAT)}", styles["body"]),
    ]
    return story


def _customer(order: Order, styles) -> List:
    address = order.address
    name = address.name if address else None
    email = address.email if address else None
    street = address.line1 if address else None
    city = address.city if address else None
    country = address.country if address else None
    return [
        Paragraph("CUSTOMER INFORMATION", styles["section"]),
        Paragraph(f"Name: {_or_na(name)}", styles["body"]),
        Paragraph(f"Email: {_or_na(email)}", styles["body"]),
        Paragraph(f"Address: {_or_na(street)}, {_or_na(city)}, {_or_na(country)}", styles["body"]),
    ]


def line_item_rows(order: Order, styles=None) -> List[list]:
    """Header row plus one row per order line. Descriptions are Paragraphs."""
    styles = styles or _styles()
    rows = [["Description", "Quantity", "Unit price", "Total"]]
    for line in order.items:
        description = escape(f"{line.name} ({line.brand})")
        if line.tag == DEAL_TAG:
            description += f'<br/><font size="8">{DEAL_NOTE}</font>'
        rows.append([
            Paragraph(description, styles["cell"]),
            str(line.quantity),
            money(to_money(line.unit_price)),
            money(to_money(line.line_total)),
        ])
    return rows


def _line_items(order: Order, styles) -> List:
    table = Table(line_item_rows(order, styles), colWidths=COLUMN_WIDTHS, repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("LINEBELOW", (0, 0), (-1, 0), 1, colors.black),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    return [Paragraph("PRODUCT DETAILS", styles["section"]), table]


def _totals(order: Order, styles) -> List:
    totals = invoice_totals(order)
    story = [Spacer(1, 12), Paragraph(f"Subtotal: {money(totals.subtotal)}", styles["right"])]
    if totals.discount:
        code = escape(totals.discount_code or "")
        story.append(Paragraph(f"Discount ({code}): -{money(totals.discount)}", styles["right"]))
    if totals.shipping:
        story.append(Paragraph(f"Shipping: {money(totals.shipping)}", styles["right"]))
    story.append(Paragraph(f"{TAX_LABEL}: {money(totals.tax)}", styles["right"]))
    story.append(Paragraph(f"TOTAL: {money(totals.total)}", styles["grand"]))
    return story


def draw_footer(canvas, doc):
    """Regulatory footer and page number, drawn on every page."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    width = doc.pagesize[0]
    y = PAGE_MARGIN - 12
    for line in FOOTER_LINES:
        canvas.drawCentredString(width / 2, y, line)
        y -= 10
    canvas.drawRightString(width - PAGE_MARGIN, y, f"Page {doc.page}")
    canvas.restoreState()


def invoice_story(order: Order) -> List:
    styles = _styles()
    return _header(order, styles) + _customer(order, styles) + _line_items(order, styles) + _totals(order, styles)


def render_invoice(order: Order) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN + 20,
        title=f"Invoice {order.id}",
        author=ISSUER_NAME,
    )
    doc.build(invoice_story(order), onFirstPage=draw_footer, onLaterPages=draw_footer)
    return buffer.getvalue()
