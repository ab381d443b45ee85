# clermontyping/scripts/mash_group.py
from __future__ import annotations
from pathlib import Path
from typing import Optional
import csv
import logging

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

from clermontyping.scripts.config import MASH_GROUP_IDENTITY
from clermontyping.scripts.results import NA, read_table, write_table

# mash screen output has no header
SCREEN_COLUMNS = ["identity", "shared_hashes", "median_multiplicity", "p_value", "query_id", "query_comment"]


def read_screen(screen_tab: Path) -> pd.DataFrame:
    try:
        df = pd.read_csv(screen_tab, sep="\t", header=None, dtype=str, quoting=csv.QUOTE_NONE)
    except EmptyDataError:
        return pd.DataFrame(columns=SCREEN_COLUMNS)
    df = df.iloc[:, :len(SCREEN_COLUMNS)]
    df.columns = SCREEN_COLUMNS[:df.shape[1]]
    if "query_id" not in df.columns:
        raise ValueError(f"{screen_tab}: expected {len(SCREEN_COLUMNS)} columns, found {df.shape[1]}")
    df["identity"] = pd.to_numeric(df["identity"], errors="coerce")
    return df.dropna(subset=["identity"])


def best_hit(screen_tab: Path, identity: float = MASH_GROUP_IDENTITY) -> str:
    """Reference ID of the highest-identity hit at or above `identity`, else NA."""
    p = Path(screen_tab)
    if not p.is_file():
        return NA
    df = read_screen(p)
    df = df[df["identity"] >= identity]
    if df.empty:
        return NA
    top = df.sort_values("identity", ascending=False, kind="mergesort").iloc[0]
    return str(top["query_id"]).strip() or NA


def add_mash_group(table_path: Path, identity: float = MASH_GROUP_IDENTITY,
                   logger: Optional[logging.Logger] = None) -> int:
    """
    Set the trailing mash_group field of every row in the result table.
    Screening references are resolved against the table's own directory.
    Returns the number of rows annotated with a group other than NA.
    """
    log = logger or logging.getLogger(__name__)
    table_path = Path(table_path)
    if not table_path.is_file():
        log.warning(f"No result table to annotate: {table_path}")
        return 0
    rows = read_table(table_path)
    base = table_path.parent
    annotated = []
    hits = 0
    for row in rows:
        try:
            group = best_hit(base / row.reference, identity)
        except (ParserError, ValueError) as e:
            log.warning(f"  Unreadable mash screen for {row.sample}: {e}")
            group = NA
        if group != NA:
            hits += 1
        annotated.append(row.with_extra(group))
    write_table(table_path, annotated)
    log.info(f"Mash group (identity >= {identity}): {hits}/{len(rows)} sample(s) assigned")
    return hits
