from __future__ import annotations

import io
from typing import Iterable

import pandas as pd

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def to_excel(sheets: dict[str, Iterable[dict]]) -> io.BytesIO:
    """Write each list of row dicts to its own sheet of an in-memory workbook."""

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(list(rows)).to_excel(writer, index=False, sheet_name=name[:31])
    output.seek(0)
    return output
