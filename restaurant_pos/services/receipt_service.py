from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from restaurant_pos.config import settings

RECEIPT_COPIES = ('COPIA CLIENTE', 'COPIA NEGOCIO')
BRAND_COLOR = '#8B6F47'


@dataclass(frozen=True)
class ReceiptLine:
    name: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(Decimal('0.01'))


@dataclass(frozen=True)
class Receipt:
    business_name: str
    tagline: str
    lines: list[ReceiptLine]
    total: Decimal
    issued_at: datetime
    order_id: int | None = None


def format_money(value: Decimal | int | float | str | None) -> str:
    if value is None:
        return ''
    amount = Decimal(str(value)).quantize(Decimal('0.01'))
    sign = '-' if amount < 0 else ''
    return f'{sign}{settings.currency_symbol}{abs(amount):,.2f}'


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ''
    return value.strftime('%d/%m/%Y %H:%M')


def build_receipt(lines: Iterable, *, total: Decimal, issued_at: datetime, order_id: int | None = None) -> Receipt:
    """Build a receipt from order lines (``OrderLine`` objects or item snapshot dicts)."""
    receipt_lines = []
    for line in lines:
        if isinstance(line, dict):
            receipt_lines.append(
                ReceiptLine(
                    name=str(line['product_name']),
                    quantity=int(line['quantity']),
                    unit_price=Decimal(str(line['price'])),
                )
            )
        else:
            receipt_lines.append(ReceiptLine(name=line.product_name, quantity=line.quantity, unit_price=line.price))
    return Receipt(
        business_name=settings.business_name,
        tagline=settings.business_tagline,
        lines=receipt_lines,
        total=Decimal(total).quantize(Decimal('0.01')),
        issued_at=issued_at,
        order_id=order_id,
    )


def receipt_from_order(order) -> Receipt:
    return build_receipt(order.items, total=order.total, issued_at=order.created_at, order_id=order.id)


def receipt_context(receipt: Receipt) -> dict:
    return {'receipt': receipt, 'copies': RECEIPT_COPIES}


def session_summary_context(summary) -> dict:
    return {'summary': summary, 'business_name': settings.business_name}


def _styles() -> tuple[ParagraphStyle, ParagraphStyle, ParagraphStyle]:
    title_style = ParagraphStyle(
        name='ReceiptTitle',
        fontName='Helvetica-Bold',
        fontSize=14,
        leading=18,
        alignment=1,
        textColor=colors.HexColor(BRAND_COLOR),
    )
    meta_style = ParagraphStyle(
        name='ReceiptMeta',
        fontName='Helvetica',
        fontSize=9,
        leading=12,
        alignment=1,
        textColor=colors.HexColor('#666666'),
    )
    total_style = ParagraphStyle(
        name='ReceiptTotal',
        fontName='Helvetica-Bold',
        fontSize=12,
        leading=16,
        alignment=2,
        textColor=colors.HexColor(BRAND_COLOR),
    )
    return title_style, meta_style, total_style


def _table(data: list[list[str]], widths: list[float]) -> Table:
    table = Table(data, colWidths=widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                ('LINEBELOW', (0, 0), (-1, 0), 1, colors.HexColor(BRAND_COLOR)),
                ('FONTSIZE', (0, 0), (-1, -1), 9),
                ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
                ('LINEBELOW', (0, 1), (-1, -1), 0.3, colors.HexColor('#DDDDDD')),
                ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ]
        )
    )
    return table


def _document(buffer: io.BytesIO) -> SimpleDocTemplate:
    return SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=2.0 * cm,
        rightMargin=2.0 * cm,
        topMargin=2.0 * cm,
        bottomMargin=1.5 * cm,
    )


def render_receipt_pdf(receipt: Receipt) -> bytes:
    buffer = io.BytesIO()
    doc = _document(buffer)
    title_style, meta_style, total_style = _styles()

    data = [['Producto', 'Cant', 'Total']]
    for line in receipt.lines:
        data.append([line.name, f'x{line.quantity}', format_money(line.line_total)])

    story = []
    for idx, copy_label in enumerate(RECEIPT_COPIES):
        if idx:
            story.append(PageBreak())
        story.extend(
            [
                Paragraph(copy_label, meta_style),
                Paragraph(escape(receipt.business_name), title_style),
                Paragraph(escape(receipt.tagline), meta_style),
                Spacer(1, 0.4 * cm),
                _table(data, [doc.width * 0.6, doc.width * 0.15, doc.width * 0.25]),
                Spacer(1, 0.3 * cm),
                Paragraph(f'TOTAL: {format_money(receipt.total)}', total_style),
                Spacer(1, 0.3 * cm),
                Paragraph(f'Fecha: {format_timestamp(receipt.issued_at)}', meta_style),
                Paragraph('¡Gracias por tu compra!', meta_style),
            ]
        )

    doc.build(story)
    return buffer.getvalue()


def render_session_summary_pdf(summary) -> bytes:
    buffer = io.BytesIO()
    doc = _document(buffer)
    title_style, meta_style, total_style = _styles()

    totals = [
        ['Concepto', 'Valor'],
        ['Apertura', format_timestamp(summary.opened_at)],
        ['Cierre', format_timestamp(summary.closed_at) or 'Abierta'],
        ['Saldo inicial', format_money(summary.opening_balance)],
        ['Pedidos', str(summary.total_orders)],
        ['Total ventas', format_money(summary.total_sales)],
        ['Total registrado', format_money(summary.expected_balance)],
    ]
    if summary.closing_balance is not None:
        totals.append(['Monto final', format_money(summary.closing_balance)])
        totals.append(['Diferencia', format_money(summary.difference)])

    orders = [['Pedido', 'Productos', 'Total']]
    for order in summary.orders:
        items = ', '.join(f"{item['product_name']} x{item['quantity']}" for item in order['items'])
        orders.append([f"#{order['id']}", Paragraph(escape(items), meta_style), format_money(order['total'])])

    story = [
        Paragraph(escape(settings.business_name), title_style),
        Paragraph(f'Resumen de caja #{summary.session_id}', meta_style),
        Spacer(1, 0.4 * cm),
        _table(totals, [doc.width * 0.6, doc.width * 0.4]),
        Spacer(1, 0.6 * cm),
        _table(orders, [doc.width * 0.15, doc.width * 0.6, doc.width * 0.25]),
    ]
    doc.build(story)
    return buffer.getvalue()
