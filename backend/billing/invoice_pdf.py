"""Utilities for generating PDF invoices for bookings."""

import logging
import uuid
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import IO, Any, Mapping
from xml.sax.saxutils import escape

from django.conf import settings
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .exceptions import RenderError

logger = logging.getLogger(__name__)

FONT_REGULAR = 'Helvetica'
FONT_BOLD = 'Helvetica-Bold'


def _text(value) -> str:
    return escape(str(value or ''))


def _amount(value) -> str:
    return f"{Decimal(str(value)):,.2f}"


def _percent(value) -> str:
    return f"{Decimal(str(value)).normalize():f}%"


def _build_styles():
    styles = getSampleStyleSheet()
    styles['Normal'].fontName = FONT_REGULAR
    styles.add(ParagraphStyle(name='InvoiceTitle', fontSize=16, leading=20, fontName=FONT_BOLD, alignment=TA_CENTER))
    styles.add(ParagraphStyle(name='SectionHead', fontSize=10, fontName=FONT_BOLD))
    styles.add(ParagraphStyle(name='Info', fontSize=10, fontName=FONT_REGULAR))
    styles.add(ParagraphStyle(name='TableHead', fontSize=9, fontName=FONT_BOLD, alignment=TA_CENTER))
    styles.add(ParagraphStyle(name='TableCell', fontSize=9, fontName=FONT_REGULAR))
    styles.add(ParagraphStyle(name='TableCellCenter', fontSize=9, fontName=FONT_REGULAR, alignment=TA_CENTER))
    styles.add(ParagraphStyle(name='TableCellRight', fontSize=9, fontName=FONT_REGULAR, alignment=TA_RIGHT))
    styles.add(ParagraphStyle(name='TotalLabel', fontSize=10, fontName=FONT_REGULAR))
    styles.add(ParagraphStyle(name='TotalValue', fontSize=10, fontName=FONT_REGULAR, alignment=TA_RIGHT))
    styles.add(ParagraphStyle(name='GrandTotalLabel', fontSize=11, fontName=FONT_BOLD))
    styles.add(ParagraphStyle(name='GrandTotalValue', fontSize=11, fontName=FONT_BOLD, alignment=TA_RIGHT))
    styles.add(ParagraphStyle(name='Note', fontSize=8, fontName=FONT_REGULAR))
    return styles


def _totals_rows(invoice: Mapping[str, Any]):
    totals = invoice['totals']
    policy = invoice['policy']

    rows = [('GOODS VALUE', _amount(totals['subtotal']))]
    if policy['apply_packing']:
        rows.append((f"PACKING @ {_percent(policy['packing_percent'])}", _amount(totals['packing_charges'])))
        rows.append(('SUB TOTAL', _amount(totals['subtotal_with_packing'])))
    if Decimal(str(totals['extra_taxable_value'])):
        rows.append(('EXTRA TAXABLE VALUE', _amount(totals['extra_taxable_value'])))
    rows.append(('TAXABLE VALUE', _amount(totals['taxable_value'])))
    if Decimal(str(totals['additional_discount_amount'])):
        rows.append((
            f"SPECIAL DISCOUNT @ {_percent(policy['additional_discount'])}",
            f"-{_amount(totals['additional_discount_amount'])}",
        ))
    if policy['apply_igst']:
        rows.append((f"IGST @ {_percent(policy['igst_percent'])}", _amount(totals['igst_amount'])))
    elif policy['apply_cgst_sgst']:
        rows.append((f"CGST @ {_percent(policy['cgst_percent'])}", _amount(totals['cgst_amount'])))
        rows.append((f"SGST @ {_percent(policy['sgst_percent'])}", _amount(totals['sgst_amount'])))
    rows.append(('ROUND OFF', _amount(totals['round_off'])))
    return rows


def generate_invoice_pdf(invoice: Mapping[str, Any]) -> IO[bytes]:
    """Render ``invoice`` (bill header, item snapshot, totals and policy) to PDF."""

    buffer = BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        title=f"Bill {invoice['bill_number']}",
        author="Godown Billing",
    )
    styles = _build_styles()
    elements = []

    # --- 1. Title ---
    elements.append(Paragraph(getattr(settings, 'INVOICE_TITLE', 'Estimate'), styles['InvoiceTitle']))
    elements.append(Spacer(1, 8 * mm))

    # --- 2. Customer information and bill details ---
    bill_date = invoice['bill_date']
    customer_rows = [
        [Paragraph('Customer Information', styles['SectionHead'])],
        [Paragraph(f"Party Name : {_text(invoice.get('customer_name'))}", styles['Info'])],
        [Paragraph(f"Address : {_text(invoice.get('address'))}", styles['Info'])],
        [Paragraph(f"Agent Name : {_text(invoice.get('agent_name') or 'DIRECT')}", styles['Info'])],
    ]
    bill_rows = [
        [Paragraph('Bill Details', styles['SectionHead'])],
        [Paragraph(f"Bill NO : {_text(invoice['bill_number'])}", styles['Info'])],
        [Paragraph(f"Bill DATE : {bill_date.strftime('%d/%m/%Y')}", styles['Info'])],
        [Paragraph(f"GSTIN : {_text(invoice.get('gstin'))}", styles['Info'])],
        [Paragraph(f"L.R. NUMBER : {_text(invoice.get('lr_number'))}", styles['Info'])],
    ]
    if invoice.get('challan_number'):
        bill_rows.append([Paragraph(f"Challan NO : {_text(invoice['challan_number'])}", styles['Info'])])

    header_table = Table(
        [[Table(customer_rows, colWidths=[90 * mm]), Table(bill_rows, colWidths=[85 * mm])]],
        colWidths=[95 * mm, 85 * mm],
    )
    header_table.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
    elements.append(header_table)
    elements.append(Spacer(1, 8 * mm))

    # --- 3. Items table ---
    headers = ['S.No', 'Product', 'Case', 'Per', 'Qty', 'Rate', 'Disc', 'Amount', 'From']
    data = [[Paragraph(h, styles['TableHead']) for h in headers]]
    for item in invoice['items']:
        data.append([
            Paragraph(str(item['s_no']), styles['TableCellCenter']),
            Paragraph(_text(item['productname']), styles['TableCell']),
            Paragraph(str(item['cases']), styles['TableCellCenter']),
            Paragraph(str(item['per_case']), styles['TableCellCenter']),
            Paragraph(str(item['quantity']), styles['TableCellCenter']),
            Paragraph(f"{_amount(item['rate_per_box'])} Box", styles['TableCellRight']),
            Paragraph(_percent(item['discount_percent']), styles['TableCellCenter']),
            Paragraph(_amount(item['amount']), styles['TableCellRight']),
            Paragraph(_text(item.get('godown')), styles['TableCellCenter']),
        ])

    items_table = Table(
        data,
        colWidths=[12 * mm, 42 * mm, 14 * mm, 14 * mm, 16 * mm, 24 * mm, 14 * mm, 24 * mm, 20 * mm],
        repeatRows=1,
    )
    items_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('LINEBELOW', (0, 0), (-1, 0), 1, colors.black),
        ('LINEBELOW', (0, -1), (-1, -1), 0.5, colors.HexColor('#CCCCCC')),
        ('TOPPADDING', (0, 0), (-1, -1), 1.5 * mm),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 1.5 * mm),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 6 * mm))

    # --- 4. Transport details and totals ---
    totals = invoice['totals']
    transport_rows = [
        [Paragraph('Transport Details', styles['SectionHead'])],
        [Paragraph(f"No. of Cases : {totals['total_cases']}", styles['Info'])],
        [Paragraph(f"From : {_text(invoice.get('from'))}", styles['Info'])],
        [Paragraph(f"To : {_text(invoice.get('to'))}", styles['Info'])],
        [Paragraph(f"Through : {_text(invoice.get('through'))}", styles['Info'])],
    ]
    totals_data = [
        [Paragraph(label, styles['TotalLabel']), Paragraph(value, styles['TotalValue'])]
        for label, value in _totals_rows(invoice)
    ]
    totals_data.append([
        Paragraph('NET AMOUNT', styles['GrandTotalLabel']),
        Paragraph(_amount(totals['grand_total']), styles['GrandTotalValue']),
    ])
    totals_table = Table(totals_data, colWidths=[50 * mm, 30 * mm])
    totals_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 1),
        ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),
        ('TOPPADDING', (0, -1), (-1, -1), 3),
    ]))

    footer_table = Table(
        [[Table(transport_rows, colWidths=[90 * mm]), totals_table]],
        colWidths=[100 * mm, 80 * mm],
    )
    footer_table.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
    elements.append(footer_table)
    elements.append(Spacer(1, 10 * mm))

    # --- 5. Notes ---
    elements.append(Paragraph('Note:', styles['Note']))
    for note in getattr(settings, 'INVOICE_FOOTER_NOTES', ()):
        elements.append(Paragraph(_text(note), styles['Note']))

    doc.build(elements)
    buffer.seek(0)
    return buffer


class InvoiceDocumentGenerator:
    """Write booking invoices to ``BOOKING_DOCUMENT_ROOT``.

    Each render gets a fresh file name so an edited bill never overwrites the
    document of the version it replaces.
    """

    def __init__(self, root=None, base_url=None):
        self._root = root
        self._base_url = base_url

    @property
    def root(self) -> Path:
        root = self._root or getattr(settings, 'BOOKING_DOCUMENT_ROOT', None)
        if root is None:
            root = Path(settings.MEDIA_ROOT) / 'pdfs'
        return Path(root)

    @property
    def base_url(self) -> str:
        base_url = self._base_url or getattr(settings, 'BOOKING_DOCUMENT_URL', '/uploads/pdfs/')
        return base_url if base_url.endswith('/') else f"{base_url}/"

    def filename_for(self, bill_number: str) -> str:
        safe_number = ''.join(ch if ch.isalnum() or ch in '-_' else '_' for ch in bill_number)
        return f"bill_{safe_number}_{uuid.uuid4().hex[:8]}.pdf"

    def render(self, invoice: Mapping[str, Any]) -> str:
        """Render and store ``invoice``; return the public path of the file."""

        file_name = self.filename_for(invoice['bill_number'])
        target = self.root / file_name
        try:
            pdf_buffer = generate_invoice_pdf(invoice)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(pdf_buffer.getvalue())
        except Exception as exc:
            logger.exception("Failed to render invoice for %s", invoice.get('bill_number'))
            raise RenderError(f"Failed to generate invoice for {invoice.get('bill_number')}") from exc
        return f"{self.base_url}{file_name}"

    def path_for(self, pdf_path: str) -> Path:
        return self.root / Path(pdf_path).name

    def discard(self, pdf_path: str) -> None:
        """Remove a previously rendered document; missing files are ignored."""

        if not pdf_path:
            return
        try:
            self.path_for(pdf_path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove invoice document %s", pdf_path, exc_info=True)


__all__ = ['InvoiceDocumentGenerator', 'generate_invoice_pdf']
