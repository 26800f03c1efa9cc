from __future__ import annotations

import csv
import io
from typing import Optional

_HEADER_ALIASES = {
    "id": "id",
    "name": "name",
    "description": "description",
    "prizetype": "prize_type",
    "prize_type": "prize_type",
}


def _normalize_header(value: str) -> str:
    key = value.strip().strip('"').strip()
    return _HEADER_ALIASES.get(key.lower(), key)


def normalize_row(row: dict) -> dict:
    return {_normalize_header(str(key)): value for key, value in row.items()}


def read_raffle_items_csv(
    text: str, delimiter: str = ","
) -> tuple[list[dict[str, Optional[str]]], list[int]]:
    """Parse CSV text with an ``id,name,description,prizeType`` header.

    Returns the rows and, for each row, the line it starts on (the header is
    line 1). Quoted fields may contain the delimiter; values are trimmed and
    blank lines skipped. Missing trailing values come back as ``None`` so that
    row validation can report them.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")), delimiter=delimiter, skipinitialspace=True)
    records: list[tuple[int, list[str]]] = []
    start = 1
    for row in reader:
        if any(cell.strip() for cell in row):
            records.append((start, row))
        start = reader.line_num + 1
    if len(records) < 2:
        return [], []
    headers = [_normalize_header(cell) for cell in records[0][1]]
    items: list[dict[str, Optional[str]]] = []
    line_numbers: list[int] = []
    for line_number, row in records[1:]:
        values = [cell.strip() for cell in row]
        item: dict[str, Optional[str]] = {}
        for index, header in enumerate(headers):
            item[header] = values[index] if index < len(values) else None
        items.append(item)
        line_numbers.append(line_number)
    return items, line_numbers


def parse_raffle_items_csv(text: str, delimiter: str = ",") -> list[dict[str, Optional[str]]]:
    return read_raffle_items_csv(text, delimiter)[0]
