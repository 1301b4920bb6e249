"""CSV encoding and decoding of inventory snapshots."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence, Tuple

from errors import MALFORMED_INPUT_ROW, message_for
from models import InventoryItem

logger = logging.getLogger(__name__)

CSV_HEADER: Tuple[str, ...] = (
    "ID",
    "Name",
    "Part Number",
    "Description",
    "Category",
    "Quantity",
    "Min Quantity",
    "Location",
    "Price",
    "Supplier",
    "Barcode",
    "Created At",
    "Updated At",
    "Tags",
)
REQUIRED_COLUMNS: Tuple[str, ...] = ("ID", "Name", "Part Number", "Category", "Quantity")
MIN_FIELDS = len(CSV_HEADER)
TAG_SEPARATOR = ";"


class MalformedRowError(ValueError):
    """A single CSV record that cannot be turned into an item."""


def escape_field(value: str) -> str:
    if (
        any(ch in value for ch in ',"\r\n')
        or value != value.strip()
    ):
        return '"' + value.replace('"', '""') + '"'
    return value


def encode(items: Iterable[InventoryItem]) -> str:
    lines = [",".join(CSV_HEADER)]
    for item in items:
        lines.append(",".join(escape_field(value) for value in _item_to_row(item)))
    return "\n".join(lines) + "\n"


def decode(text: str) -> Tuple[List[InventoryItem], int]:
    """Parse ``text`` into items, returning ``(items, error_count)``.

    The header record is skipped. Rows with fewer than ``MIN_FIELDS``
    fields or a broken quote are counted as errors and left out; the rest
    of the import carries on.
    """
    items: List[InventoryItem] = []
    errors = 0
    for index, record in enumerate(_iter_records(text)):
        if index == 0:
            continue
        try:
            items.append(_row_to_item(_split_record(record)))
        except MalformedRowError as exc:
            errors += 1
            logger.warning("skipping CSV record %d: %s", index, exc)
    return items, errors


def validate_header(text: str) -> bool:
    """True when the first line names every required column."""
    header = text.lstrip("\ufeff").splitlines()[0] if text.strip() else ""
    lowered = header.lower()
    return all(column.lower() in lowered for column in REQUIRED_COLUMNS)


def read_csv(path: Path) -> Tuple[List[InventoryItem], int]:
    # newline="" keeps CR characters that sit inside quoted values
    with open(path, encoding="utf-8", newline="") as handle:
        return decode(handle.read())


def write_csv(path: Path, items: Iterable[InventoryItem]) -> None:
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(encode(items))


# ----------------------------------------------------------------------
# Internal
# ----------------------------------------------------------------------


def _item_to_row(item: InventoryItem) -> List[str]:
    return [
        item.id,
        item.name,
        item.part_number,
        item.description,
        item.category,
        str(item.quantity),
        str(item.min_quantity),
        item.location,
        repr(float(item.price)),
        item.supplier,
        item.barcode,
        item.created_at,
        item.updated_at,
        TAG_SEPARATOR.join(item.tags),
    ]


def _row_to_item(values: Sequence[str]) -> InventoryItem:
    if len(values) < MIN_FIELDS:
        raise MalformedRowError(
            f"{message_for(MALFORMED_INPUT_ROW)} ({len(values)} < {MIN_FIELDS})"
        )
    return InventoryItem(
        id=values[0],
        name=values[1],
        part_number=values[2],
        description=values[3],
        category=values[4],
        quantity=_to_int(values[5], 0),
        min_quantity=_to_int(values[6], 5),
        location=values[7],
        price=_to_float(values[8], 0.0),
        supplier=values[9],
        barcode=values[10],
        created_at=values[11],
        updated_at=values[12],
        tags=tuple(tag for tag in values[13].split(TAG_SEPARATOR) if tag.strip()),
    )


def _iter_records(text: str) -> Iterator[str]:
    """Yield raw records, keeping line breaks that sit inside quotes."""
    text = text.lstrip("\ufeff")
    start = 0
    while start < len(text):
        end, next_start = _record_bounds(text, start)
        record = text[start:end]
        if record.strip():
            yield record
        start = next_start


def _record_bounds(text: str, start: int) -> Tuple[int, int]:
    """End of the record beginning at ``start`` and where the next one begins.

    A quote only opens a quoted field at the start of a field, as in
    ``_split_record``. A quoted field that never closes ends its record at
    the first line break so later rows still parse.
    """
    length = len(text)
    in_quotes = False
    field_start = True
    i = start
    while i < length:
        ch = text[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < length and text[i + 1] == '"':
                    i += 1
                else:
                    in_quotes = False
        elif ch in "\r\n":
            return i, _after_line_break(text, i)
        elif ch == '"' and field_start:
            in_quotes = True
            field_start = False
        elif ch == ",":
            field_start = True
        elif not ch.isspace():
            field_start = False
        i += 1
    if in_quotes:
        for j in range(start, length):
            if text[j] in "\r\n":
                return j, _after_line_break(text, j)
    return length, length


def _after_line_break(text: str, index: int) -> int:
    if text[index] == "\r" and index + 1 < len(text) and text[index + 1] == "\n":
        return index + 2
    return index + 1


def _split_record(record: str) -> List[str]:
    values: List[str] = []
    current: List[str] = []
    quoted = False
    in_quotes = False
    i = 0
    length = len(record)
    while i < length:
        ch = record[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < length and record[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(ch)
        elif ch == '"':
            if "".join(current).strip():
                raise MalformedRowError("quote inside an unquoted field")
            current = []
            in_quotes = True
            quoted = True
        elif ch == ",":
            values.append(_finish_field(current, quoted))
            current = []
            quoted = False
        elif quoted:
            if not ch.isspace():
                raise MalformedRowError("text after a closing quote")
        else:
            current.append(ch)
        i += 1
    if in_quotes:
        raise MalformedRowError("unterminated quoted field")
    values.append(_finish_field(current, quoted))
    return values


def _finish_field(chars: List[str], quoted: bool) -> str:
    value = "".join(chars)
    return value if quoted else value.strip()


def _to_int(value: str, default: int) -> int:
    try:
        return int(value)
    except ValueError:
        return default


def _to_float(value: str, default: float) -> float:
    try:
        number = float(value)
    except ValueError:
        return default
    return number if math.isfinite(number) else default
