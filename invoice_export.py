from __future__ import annotations

import io
import textwrap
from pathlib import Path

import pandas as pd

from models import Customer, Invoice

PRIMARY_COLOR = "#1d4ed8"
SECONDARY_COLOR = "#dbeafe"
TEXT_COLOR = "#111111"

# Upper bound for where the first table row starts (tallest header and bill-to
# blocks), and the room needed after the last row for totals, signatory and footer.
TABLE_BODY_TOP = 850
BELOW_TABLE_HEIGHT = 400

DEFAULT_PROFILE = {
    "business_name": "Spectra Solar Solutions",
    "company_address": "123 Solar Street, Energy City, EC 12345",
    "tax_id": "GST123456789",
    "contact_line": "Phone: (555) 123-4567 | Email: info@spectrasolar.com",
    "support_line": "For support, contact us at support@spectrasolar.com",
    "currency": "INR ",
}


def money(value: float, currency: str = "INR ") -> str:
    return f"{currency}{float(value):,.2f}"


def _safe_text(value: object) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    return text if text.lower() not in {"nan", "none", "nat"} else ""


def _format_date(value: object) -> str:
    text = _safe_text(value)
    if not text:
        return ""
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return text
    return parsed.strftime("%m/%d/%Y")


def invoice_pdf_filename(invoice: Invoice) -> str:
    return f"invoice-{invoice.id}.pdf"


def build_invoice_payload(
    invoice: Invoice,
    customer: Customer | None,
    profile: dict | None = None,
) -> dict:
    merged = {**DEFAULT_PROFILE, **{k: v for k, v in (profile or {}).items() if _safe_text(v)}}
    rows = [
        {
            "name": _safe_text(item.name) or "Custom item",
            "quantity": float(item.quantity),
            "unit_cost": float(item.unit_cost),
            "line_total": float(item.line_total),
        }
        for item in invoice.line_items
    ]
    return {
        "business_name": _safe_text(merged["business_name"]),
        "company_address": _safe_text(invoice.company_address) or _safe_text(merged["company_address"]),
        "tax_id": _safe_text(invoice.tax_id) or _safe_text(merged["tax_id"]),
        "contact_line": _safe_text(merged["contact_line"]),
        "support_line": _safe_text(merged["support_line"]),
        "currency": merged["currency"] or "INR ",
        "invoice_id": _safe_text(invoice.id),
        "invoice_date": _format_date(invoice.created_at),
        "installation_date": _format_date(invoice.installation_date),
        "customer_name": _safe_text(customer.name) if customer else "",
        "customer_address": _safe_text(customer.address) if customer else "",
        "customer_phone": _safe_text(customer.phone) if customer else "",
        "customer_email": _safe_text(customer.email) if customer else "",
        "items": rows,
        "subtotal": float(invoice.subtotal),
        "taxes": float(invoice.taxes),
        "final_amount": float(invoice.final_amount),
        "signatory": _safe_text(invoice.signatory),
    }


def _wrap_item_name(name: str) -> list[str]:
    return (textwrap.wrap(name, width=42) or [name])[:3]


def _items_height(items: list[dict]) -> int:
    if not items:
        return 36
    return sum(40 + 26 * (len(_wrap_item_name(row["name"])) - 1) for row in items)


def _build_invoice_image(payload: dict, logo_path: str | Path | None = None):
    from PIL import Image, ImageDraw, ImageFont

    width = 1240
    height = max(1754, TABLE_BODY_TOP + _items_height(payload["items"]) + BELOW_TABLE_HEIGHT)

    image = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(image)

    def font(size: int, bold: bool = False):
        candidates = [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf" if bold else "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
            "/System/Library/Fonts/Supplemental/Arial Bold.ttf" if bold else "/System/Library/Fonts/Supplemental/Arial.ttf",
            "/System/Library/Fonts/Supplemental/Helvetica.ttc",
        ]
        for path in candidates:
            try:
                return ImageFont.truetype(path, size=size)
            except OSError:
                continue
        return ImageFont.load_default(size=size)

    f_title = font(40, bold=True)
    f_h1 = font(30, bold=True)
    f_h2 = font(24, bold=True)
    f_body = font(22)
    f_small = font(18)
    currency = payload["currency"]

    draw.rectangle((0, 0, width, 14), fill=PRIMARY_COLOR)

    text_left = 56
    if logo_path:
        path = Path(logo_path)
        if path.exists():
            try:
                logo = Image.open(path).convert("RGBA")
                logo.thumbnail((120, 120))
                image.paste(logo, (56, 36), mask=logo)
                text_left = 196
            except OSError:
                pass

    # Branding block
    brand = payload["business_name"]
    draw.text((text_left, 40), brand.upper(), fill=PRIMARY_COLOR, font=f_title)
    draw.text((text_left, 94), f"{brand.upper()} INVOICE", fill=TEXT_COLOR, font=f_h2)

    # Company block (left) and invoice metadata (right)
    y_left = 170
    for line in [
        brand,
        payload["company_address"],
        f"GST: {payload['tax_id']}" if payload["tax_id"] else "",
        payload["contact_line"],
    ]:
        for wrapped in textwrap.wrap(line, width=48)[:2]:
            draw.text((56, y_left), wrapped, fill=TEXT_COLOR, font=f_body)
            y_left += 32

    y_right = 170
    for line in [
        f"Invoice #: {payload['invoice_id']}",
        f"Date: {payload['invoice_date']}",
        f"Installation Date: {payload['installation_date']}",
    ]:
        for wrapped in textwrap.wrap(line, width=40)[:2]:
            draw.text((700, y_right), wrapped, fill=TEXT_COLOR, font=f_body)
            y_right += 32

    # Bill-to block
    y = max(y_left, y_right) + 36
    draw.text((56, y), "Bill To:", fill=PRIMARY_COLOR, font=f_h2)
    y += 40
    for line in [
        payload["customer_name"],
        payload["customer_address"],
        f"Phone: {payload['customer_phone']}" if payload["customer_phone"] else "",
        f"Email: {payload['customer_email']}" if payload["customer_email"] else "",
    ]:
        if line:
            for wrapped in textwrap.wrap(line, width=70)[:2]:
                draw.text((56, y), wrapped, fill=TEXT_COLOR, font=f_body)
                y += 32

    # Line-item table
    table_top = y + 30
    draw.rectangle((44, table_top, width - 44, table_top + 48), fill=SECONDARY_COLOR)
    draw.text((60, table_top + 10), "Description", fill=TEXT_COLOR, font=f_h2)
    draw.text((620, table_top + 10), "Qty", fill=TEXT_COLOR, font=f_h2)
    draw.text((740, table_top + 10), "Unit Cost", fill=TEXT_COLOR, font=f_h2)
    draw.text((980, table_top + 10), "Total", fill=TEXT_COLOR, font=f_h2)

    y = table_top + 62
    if not payload["items"]:
        draw.text((60, y), "No line items", fill=TEXT_COLOR, font=f_body)
        y += 36

    for row in payload["items"]:
        wrapped = _wrap_item_name(row["name"])
        draw.text((60, y), wrapped[0], fill=TEXT_COLOR, font=f_body)
        draw.text((620, y), f"{row['quantity']:g}", fill=TEXT_COLOR, font=f_body)
        draw.text((740, y), money(row["unit_cost"], currency), fill=TEXT_COLOR, font=f_body)
        draw.text((980, y), money(row["line_total"], currency), fill=TEXT_COLOR, font=f_body)
        y += 34
        for extra in wrapped[1:3]:
            draw.text((74, y), extra, fill=TEXT_COLOR, font=f_small)
            y += 26
        y += 6

    # Totals
    y += 16
    draw.line((700, y, width - 56, y), fill=PRIMARY_COLOR, width=3)
    y += 20
    draw.text((700, y), f"Subtotal: {money(payload['subtotal'], currency)}", fill=TEXT_COLOR, font=f_body)
    y += 36
    draw.text((700, y), f"Tax: {money(payload['taxes'], currency)}", fill=TEXT_COLOR, font=f_body)
    y += 40
    draw.text((700, y), f"Total: {money(payload['final_amount'], currency)}", fill=PRIMARY_COLOR, font=f_h1)

    if payload["signatory"]:
        y += 80
        draw.text((56, y), f"Authorized Signatory: {payload['signatory']}", fill=TEXT_COLOR, font=f_body)

    # Footer sits at a fixed offset from the bottom edge.
    footer_y = height - 110
    draw.text((56, footer_y), f"Thank you for choosing {brand}!", fill=TEXT_COLOR, font=f_small)
    draw.text((56, footer_y + 30), payload["support_line"], fill=TEXT_COLOR, font=f_small)

    return image


def render_invoice_pdf(
    invoice: Invoice,
    customer: Customer | None,
    profile: dict | None = None,
    logo_path: str | Path | None = None,
) -> bytes:
    payload = build_invoice_payload(invoice, customer, profile)
    image = _build_invoice_image(payload, logo_path=logo_path)
    out = io.BytesIO()
    image.save(out, format="PDF", resolution=150.0)
    out.seek(0)
    return out.getvalue()


def render_invoice_png(
    invoice: Invoice,
    customer: Customer | None,
    profile: dict | None = None,
    logo_path: str | Path | None = None,
) -> bytes:
    payload = build_invoice_payload(invoice, customer, profile)
    image = _build_invoice_image(payload, logo_path=logo_path)
    out = io.BytesIO()
    image.save(out, format="PNG")
    out.seek(0)
    return out.getvalue()
