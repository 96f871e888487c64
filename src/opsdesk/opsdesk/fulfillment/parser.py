"""Packing sheet import.

Sheets come from marketplace exports with inconsistent headers, so columns are
matched by regex rather than by exact name. The first matching header wins.
"""

from __future__ import annotations

import json
import logging
import re
import zipfile
from io import BytesIO, StringIO
from typing import Optional
from urllib.parse import urlparse

import pandas as pd

from ..core.constants import MAX_PACKING_FILE_BYTES
from ..core.enums import PackingStatus, PhotoStatus
from ..core.exceptions import ValidationError
from .model import PackingOrder

logger = logging.getLogger(__name__)

CSV_DELIMITERS = (",", ";", "\t")
POLAROID_SEPARATORS = (",", ";", "|", "\n")

COLUMN_PATTERNS = {
    "order_number": r"order.?number|order.?id|order(?!\s*photo)",
    "product_name": r"product.?name|product(?!\s*code)|item(?!\s*code)|title",
    "variant": r"variant|variation|option",
    "color": r"color|colour",
    "main_photo": r"main.?photo|main.?image|photo(?!.*polaroid)(?!.*additional)|picture(?!.*polaroid)",
    "polaroids": r"polaroid|additional.?photo|extra.?image|secondary.?photo",
    "back_engraving_type": r"back.?engraving.?type|engraving.?type",
    "back_engraving_value": r"back.?engraving.?value|back.?engraving(?!.*type)|engraving.?value|engraving(?!.*type)",
    "customer": r"customer|buyer|client.?name",
    "sku": r"sku|product.?code|item.?code",
    "quantity": r"quantity|qty|amount|count",
    "packer": r"packer|assigned.?to|operator|worker",
    "notes": r"notes|comments|remarks|memo",
}
_COMPILED = {name: re.compile(p, re.IGNORECASE) for name, p in COLUMN_PATTERNS.items()}


def is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_polaroids(value: Optional[str]) -> tuple[str, ...]:
    value = (value or "").strip()
    if not value:
        return ()

    try:
        decoded = json.loads(value)
    except ValueError:
        decoded = None
    if isinstance(decoded, list):
        return tuple(str(u).strip() for u in decoded if isinstance(u, str) and is_http_url(u))

    for sep in POLAROID_SEPARATORS:
        if sep in value:
            return tuple(u.strip() for u in value.split(sep) if u.strip() and is_http_url(u))

    return (value,) if is_http_url(value) else ()


def main_photo_status(value: Optional[str]) -> PhotoStatus:
    value = (value or "").strip()
    if not value or value.lower() == "missing photo":
        return PhotoStatus.MISSING
    return PhotoStatus.SUCCESS if is_http_url(value) else PhotoStatus.INVALID


def order_status(order_number: Optional[str], product_name: Optional[str], photo: PhotoStatus) -> PackingStatus:
    if not order_number or not product_name:
        return PackingStatus.INVALID
    if photo == PhotoStatus.MISSING:
        return PackingStatus.MISSING_PHOTO
    return PackingStatus.PENDING


def detect_columns(headers: list[str]) -> dict[str, int]:
    normalized = [str(h or "").strip().lower() for h in headers]
    mapping: dict[str, int] = {}
    for name, pattern in _COMPILED.items():
        mapping[name] = next((i for i, h in enumerate(normalized) if pattern.search(h)), -1)
    return mapping


def sniff_delimiter(text: str) -> str:
    first_line = text.split("\n", 1)[0]
    return max(CSV_DELIMITERS, key=lambda d: len(first_line.split(d)))


def _parse_quantity(value: str) -> int:
    try:
        return int(float(value)) or 1
    except (TypeError, ValueError):
        return 1


class PackingSheetParser:
    def __init__(self, max_bytes: int = MAX_PACKING_FILE_BYTES):
        self.max_bytes = max_bytes

    def read_rows(self, content: bytes, filename: str) -> list[list[str]]:
        if len(content) > self.max_bytes:
            raise ValidationError(f"File size exceeds {self.max_bytes // (1024 * 1024)}MB limit")
        if not content.strip():
            raise ValidationError("File is empty")

        try:
            if filename.lower().endswith(".csv"):
                text = content.decode("utf-8-sig")
                df = pd.read_csv(
                    StringIO(text),
                    sep=sniff_delimiter(text),
                    header=None,
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=True,
                    engine="python",
                )
            else:
                df = pd.read_excel(BytesIO(content), header=None, dtype=str, keep_default_na=False, engine="openpyxl")
        except pd.errors.EmptyDataError:
            raise ValidationError("File is empty")
        except (pd.errors.ParserError, UnicodeDecodeError, zipfile.BadZipFile, ValueError) as e:
            raise ValidationError(f"Failed to parse file: {e}")

        rows = [[str(cell).strip() for cell in row] for row in df.values.tolist()]
        if not rows:
            raise ValidationError("File is empty")
        return rows

    def parse(self, content: bytes, filename: str) -> list[PackingOrder]:
        rows = self.read_rows(content, filename)
        columns = detect_columns(rows[0])

        orders = []
        for row in rows[1:]:
            if not any(row):
                continue
            values = {
                name: (row[idx] if 0 <= idx < len(row) else "")
                for name, idx in columns.items()
            }
            photo_status = main_photo_status(values["main_photo"])
            polaroids = parse_polaroids(values["polaroids"])
            orders.append(
                PackingOrder(
                    packing_id=0,
                    order_number=values["order_number"] or None,
                    product_name=values["product_name"] or None,
                    variant=values["variant"] or None,
                    color=values["color"] or None,
                    main_photo=values["main_photo"] or None,
                    polaroids=polaroids,
                    back_engraving_type=values["back_engraving_type"] or None,
                    back_engraving_value=values["back_engraving_value"] or None,
                    status=order_status(values["order_number"], values["product_name"], photo_status),
                    packer=values["packer"] or None,
                    customer=values["customer"] or None,
                    sku=values["sku"] or None,
                    quantity=_parse_quantity(values["quantity"]),
                    notes=values["notes"] or None,
                    main_photo_status=photo_status,
                    polaroid_count=len(polaroids),
                )
            )

        logger.info("Parsed %s packing rows from %s", len(orders), filename)
        return orders
