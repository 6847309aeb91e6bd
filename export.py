# export.py
import csv
import time
from typing import Iterable, Optional

import pandas as pd

from models import CONTACT_FIELDS, Contact

CSV_HEADERS = ["Name", "Title", "Company", "Email", "Phone", "Website", "Address", "LinkedIn", "Notes"]
CSV_MIME = "text/csv"


def _cell(value) -> str:
    return "" if value is None else str(value).strip()


def to_dataframe(contacts: Iterable[Contact]) -> pd.DataFrame:
    rows = [[_cell(getattr(c, f, None)) for f in CONTACT_FIELDS] for c in contacts]
    return pd.DataFrame(rows, columns=CSV_HEADERS, dtype=str)


def to_csv(contacts: Iterable[Contact]) -> bytes:
    # 全セルを "" で囲み、内部の " は "" にする (ヘッダーも同様)
    text = to_dataframe(contacts).to_csv(
        index=False,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )
    return text[:-1].encode("utf-8") if text.endswith("\n") else text.encode("utf-8")


def export_filename(now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"bizcards_export_{now_ms}.csv"
