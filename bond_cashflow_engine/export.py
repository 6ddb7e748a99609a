from __future__ import annotations

import io
import pandas as pd
from typing import Sequence, Union

from .terms import Role
from .views import PeriodView, view_columns, views_frame


RATE_COLUMNS = ("annual_inflation", "period_inflation")
TEXT_COLUMNS = ("period", "date", "grace")


def to_delimited(rows: Sequence[PeriodView], role: Union[Role, str], sep: str = ",", money_decimals: int = 2) -> str:
    """
    Delimited-text export of role-projected rows: header line plus one line per
    period, ISO dates, money rounded to money_decimals and rates to 6 places.
    """
    df = views_frame(rows, role)
    for col in df.columns:
        if col in TEXT_COLUMNS:
            continue
        df[col] = df[col].astype(float).round(6 if col in RATE_COLUMNS else money_decimals)
    if not df.empty:
        df["date"] = pd.to_datetime(df["date"]).dt.strftime("%Y-%m-%d")
    return df.to_csv(sep=sep, index=False, lineterminator="\n")


def from_delimited(text: str, sep: str = ",") -> pd.DataFrame:
    """Parse text produced by to_delimited back into a typed DataFrame."""
    df = pd.read_csv(io.StringIO(text), sep=sep)
    if "date" in df.columns:
        df["date"] = pd.to_datetime(df["date"])
    if "period" in df.columns:
        df["period"] = df["period"].astype(int)
    return df


def expected_columns(role: Union[Role, str]) -> list:
    return list(view_columns(role))
