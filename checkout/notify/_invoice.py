"""
Invoice — VAT breakdown and PDF rendering.

Line prices on orders are tax-inclusive, so the invoice backs VAT out of
each gross line: net = gross / (1 + rate), vat = gross - net.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from fpdf import FPDF

from checkout._types import Money, money
from checkout.orders import Order, OrderLineItem

SELLER_ADDRESS = (
    "Aidezel Ltd.",
    "Unit 42, Innovation Tech Park",
    "123 Commerce Way, London",
    "United Kingdom, EC1A 1BB",
)
VAT_NUMBER = "GB 987 654 321"


@dataclass(frozen=True, slots=True)
class InvoiceLine:
    description: str
    quantity: int
    unit_net: Money
    net: Money
    vat: Money
    gross: Money


@dataclass(frozen=True, slots=True)
class InvoiceTotals:
    net: Money
    vat: Money
    gross: Money


@dataclass(frozen=True, slots=True)
class Invoice:
    filename: str
    pdf: bytes
    summary: str
    lines: tuple[InvoiceLine, ...]
    totals: InvoiceTotals


def split_vat(gross: Money, vat_rate: Decimal) -> tuple[Money, Money]:
    """£60.00 at 20% → (£50.00, £10.00)."""
    net = money(gross / (1 + vat_rate))
    return net, money(gross - net)


def invoice_lines(
    items: Sequence[OrderLineItem],
    vat_rate: Decimal,
) -> tuple[InvoiceLine, ...]:
    lines = []
    for item in items:
        gross = money(item.price_at_purchase * item.quantity)
        net, vat = split_vat(gross, vat_rate)
        description = item.product_name
        if item.variant:
            description = f"{description} ({item.variant})"
        lines.append(InvoiceLine(
            description=description,
            quantity=item.quantity,
            unit_net=money(item.price_at_purchase / (1 + vat_rate)),
            net=net,
            vat=vat,
            gross=gross,
        ))
    return tuple(lines)


def _gbp(amount: Money) -> str:
    return f"£{amount:.2f}"


def _latin1(text: str) -> str:
    """Core PDF fonts are latin-1 only."""
    return text.encode("latin-1", "replace").decode("latin-1")


class InvoiceRenderer:
    """
    Renders the tax invoice attached to confirmation emails.

    Example:
        invoice = InvoiceRenderer(brand_name="Aidezel").render(order, items)
        invoice.filename  # "Invoice-ORD-9F3A11C2.pdf"
    """

    def __init__(self, brand_name: str = "Aidezel", vat_rate: Decimal = Decimal("0.20")) -> None:
        self.brand_name = brand_name
        self.vat_rate = vat_rate

    def subject(self, order: Order) -> str:
        return f"Invoice #{order.id} from {self.brand_name}"

    def render(self, order: Order, items: Sequence[OrderLineItem]) -> Invoice:
        lines = invoice_lines(items, self.vat_rate)
        net, vat = split_vat(order.total_amount, self.vat_rate)
        totals = InvoiceTotals(net=net, vat=vat, gross=money(order.total_amount))
        return Invoice(
            filename=f"Invoice-{order.id}.pdf",
            pdf=self._pdf(order, lines, totals),
            summary=self._summary(order, totals),
            lines=lines,
            totals=totals,
        )

    def _summary(self, order: Order, totals: InvoiceTotals) -> str:
        return "\n".join((
            "Thank you for your order!",
            f"Hello {order.customer_name},",
            "Please find your official tax invoice attached to this email.",
            f"Order Total: {_gbp(totals.gross)}",
        ))

    def _pdf(
        self,
        order: Order,
        lines: tuple[InvoiceLine, ...],
        totals: InvoiceTotals,
    ) -> bytes:
        rate = f"{self.vat_rate * 100:.0f}%"
        pdf = FPDF()
        pdf.add_page()

        # Header
        pdf.set_font("helvetica", "B", 22)
        pdf.cell(90, 12, _latin1(self.brand_name.upper()))
        pdf.set_font("helvetica", "B", 16)
        pdf.cell(0, 12, "TAX INVOICE", align="R", new_x="LMARGIN", new_y="NEXT")
        pdf.ln(6)

        # Seller / customer
        pdf.set_font("helvetica", "", 10)
        customer = [order.customer_name.upper()]
        address = order.shipping_address
        if address is not None:
            customer += [address.line1, address.line2 or "", f"{address.city}, {address.postcode}"]
        for i in range(max(len(SELLER_ADDRESS), len(customer))):
            left = SELLER_ADDRESS[i] if i < len(SELLER_ADDRESS) else ""
            right = customer[i] if i < len(customer) else ""
            pdf.cell(110, 5, _latin1(left))
            pdf.cell(0, 5, _latin1(right), new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("helvetica", "", 8)
        pdf.cell(0, 6, f"VAT Reg No: {VAT_NUMBER}", new_x="LMARGIN", new_y="NEXT")
        pdf.ln(4)

        # Order bar
        pdf.set_font("helvetica", "", 9)
        pdf.cell(110, 7, f"Order Number: {order.id}", border="TB")
        pdf.cell(
            0, 7, f"Order Date: {order.created_at:%d/%m/%Y}",
            border="TB", new_x="LMARGIN", new_y="NEXT",
        )
        pdf.ln(3)

        # Lines
        widths = (62, 22, 12, 24, 16, 22, 24)
        head = ("DESCRIPTION", "UNIT PRICE", "QTY", "NET AMOUNT", "TAX RATE", "TAX AMT", "TOTAL")
        pdf.set_font("helvetica", "B", 8)
        pdf.set_fill_color(240, 240, 240)
        for width, title in zip(widths, head):
            pdf.cell(width, 7, title, fill=True)
        pdf.ln()
        pdf.set_font("helvetica", "", 9)
        for line in lines:
            row = (
                line.description[:38],
                _gbp(line.unit_net),
                str(line.quantity),
                _gbp(line.net),
                rate,
                _gbp(line.vat),
                _gbp(line.gross),
            )
            for width, value in zip(widths, row):
                pdf.cell(width, 7, _latin1(value))
            pdf.ln()
        pdf.ln(4)

        # Totals
        for label, value in (
            ("Total Net Amount:", _gbp(totals.net)),
            (f"Total Tax ({rate}):", _gbp(totals.vat)),
            ("Shipping:", "FREE"),
        ):
            pdf.cell(130)
            pdf.cell(32, 7, _latin1(label))
            pdf.cell(0, 7, _latin1(value), align="R", new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("helvetica", "B", 12)
        pdf.cell(130)
        pdf.cell(32, 9, "Grand Total:", border="T")
        pdf.cell(0, 9, _latin1(_gbp(totals.gross)), border="T", align="R", new_x="LMARGIN", new_y="NEXT")

        pdf.ln(12)
        pdf.set_font("helvetica", "", 8)
        pdf.cell(0, 5, "This is a computer generated invoice.")

        return bytes(pdf.output())


__all__ = (
    "InvoiceLine",
    "InvoiceTotals",
    "Invoice",
    "InvoiceRenderer",
    "split_vat",
    "invoice_lines",
)
