"""CSV export utilities."""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Iterator, Sequence

from flask import Response, stream_with_context


Column = tuple[str, str]


def _serialize_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _row_values(row: object, columns: Sequence[Column]) -> list[str]:
    values = []
    for field, _ in columns:
        if isinstance(row, dict):
            value = row.get(field)
        else:
            value = getattr(row, field, None)
        values.append(_serialize_value(value))
    return values


def iter_csv_lines(
    rows: Iterable[object],
    columns: Sequence[Column],
    *,
    preamble: Iterable[Sequence[object]] = (),
) -> Iterator[str]:
    """Yield CSV text one record at a time.

    ``preamble`` rows are written verbatim ahead of the column header.
    """

    output = io.StringIO()
    writer = csv.writer(output)

    def flush() -> str:
        text = output.getvalue()
        output.seek(0)
        output.truncate(0)
        return text

    for line in preamble:
        writer.writerow([_serialize_value(value) for value in line])
        yield flush()

    writer.writerow([header for _, header in columns])
    yield flush()
    for row in rows:
        writer.writerow(_row_values(row, columns))
        yield flush()


def rows_to_csv(
    rows: Iterable[object],
    columns: Sequence[Column],
    *,
    preamble: Iterable[Sequence[object]] = (),
) -> str:
    return "".join(iter_csv_lines(rows, columns, preamble=preamble))


def export_rows_to_csv(
    rows: Iterable[object],
    columns: Sequence[Column],
    filename: str,
    *,
    preamble: Iterable[Sequence[object]] = (),
) -> Response:
    response = Response(
        stream_with_context(iter_csv_lines(rows, columns, preamble=preamble)),
        mimetype="text/csv",
    )
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response
