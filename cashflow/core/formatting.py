"""Export file naming."""

from __future__ import annotations

import re
from datetime import date

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")
_UNDERSCORES = re.compile(r"_+")


def clean_file_stem(name: str) -> str:
    stem = name.strip()
    if stem.lower().endswith(".xlsx"):
        stem = stem[: -len(".xlsx")]
    stem = _NON_ALNUM.sub("_", stem)
    stem = _UNDERSCORES.sub("_", stem).strip("_")
    return stem or "scenario"


def export_filename(scenario_name: str, today: date | None = None) -> str:
    """``scenario_<clean name>_<YYYY_MM_DD>.xlsx``."""

    stamp = (today or date.today()).strftime("%Y_%m_%d")
    return f"scenario_{clean_file_stem(scenario_name)}_{stamp}.xlsx"
