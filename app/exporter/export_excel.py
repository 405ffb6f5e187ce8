"""Excel copy of an export projection."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from . import config
from .csv_export import export_filename, project
from .models import OrderRecord
from .utils import ensure_dirs, log_line


def write_xlsx_download(
    orders: Iterable[OrderRecord],
    export_mode: str,
    year: int,
    dest_dir: Optional[Path] = None,
) -> Path:
    """Write the same projection as the CSV export to an ``.xlsx`` workbook.

    Cells hold raw values; no CSV escaping applies. The product count column
    of the by-order grain is written as a number.
    """

    table = project(orders, export_mode)
    df = pd.DataFrame(table.rows, columns=table.headers)
    if "Product Count" in df.columns:
        df["Product Count"] = pd.to_numeric(df["Product Count"], errors="coerce").fillna(0).astype(int)
    if "Year" in df.columns:
        df["Year"] = pd.to_numeric(df["Year"], errors="coerce").fillna(0).astype(int)

    if dest_dir is None:
        ensure_dirs()
        dest_dir = config.EXPORTS_DIR
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_path = dest_dir / export_filename(export_mode, year, extension="xlsx")

    sheet = "Orders" if config.is_by_order(export_mode) else "Products"
    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet)

    log_line(f"[XLSX] Wrote {len(df)} rows -> {dest_path}")
    return dest_path


__all__ = ["write_xlsx_download"]
