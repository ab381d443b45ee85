# clermontyping/scripts/results.py
"""
Result table (<run>_phylogroups.txt): one tab-delimited line per sample, no header.

    sample  markers  quadruplex  CE_alleles  phylogroup  <sample>_mash_screen.tab  [mash_group]

Fields 1-4 are the classifier output, copied as-is. A sample whose BLAST step
failed keeps the same width with empty support fields and "NA" as phylogroup.
The table is only ever appended to during a run.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Tuple
import logging
import os

NA = "NA"
CLASSIFIER_FIELDS = 4
REFERENCE_INDEX = 1 + CLASSIFIER_FIELDS      # 5
MIN_FIELDS = REFERENCE_INDEX + 1             # 6


class MalformedRowError(ValueError):
    pass


@dataclass(frozen=True)
class ResultRow:
    sample: str
    classifier_fields: Tuple[str, ...]
    reference: str
    extra: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def failure(cls, sample: str, reference: str) -> "ResultRow":
        return cls(sample, (NA,), reference)

    @property
    def phylogroup(self) -> str:
        return self.classifier_fields[-1] if self.classifier_fields else NA

    @property
    def is_failure(self) -> bool:
        return self.phylogroup == NA and not any(self.classifier_fields[:-1])

    def fields(self) -> List[str]:
        middle = list(self.classifier_fields)
        if len(middle) < CLASSIFIER_FIELDS:
            # short failure shape -> pad support fields so the width stays fixed
            middle = [""] * (CLASSIFIER_FIELDS - len(middle)) + middle
        return [self.sample] + middle + [self.reference] + list(self.extra)

    def with_extra(self, *values: str) -> "ResultRow":
        return ResultRow(self.sample, self.classifier_fields, self.reference, tuple(values))


def mash_reference(sample: str) -> str:
    return f"{sample}_mash_screen.tab"


def table_path(working_dir: Path, name: str) -> Path:
    return Path(working_dir) / f"{name}_phylogroups.txt"


def format_row(row: ResultRow) -> str:
    return "\t".join(row.fields())


def parse_row(line: str) -> ResultRow:
    cols = line.rstrip("\r\n").split("\t")
    if len(cols) < MIN_FIELDS:
        raise MalformedRowError(
            f"expected at least {MIN_FIELDS} tab-separated fields, found {len(cols)}: {line.strip()!r}"
        )
    sample = cols[0]
    middle = tuple(cols[1:REFERENCE_INDEX])
    if middle[-1] == NA and not any(middle[:-1]):
        middle = (NA,)
    return ResultRow(sample, middle, cols[REFERENCE_INDEX], tuple(cols[MIN_FIELDS:]))


def append_rows(path: Path, rows: Iterable[ResultRow]) -> int:
    n = 0
    with Path(path).open("a", newline="") as fh:
        for row in rows:
            fh.write(format_row(row) + "\n")
            n += 1
    return n


def read_table(path: Path) -> List[ResultRow]:
    rows: List[ResultRow] = []
    with Path(path).open("r") as fh:
        for line in fh:
            if line.strip():
                rows.append(parse_row(line))
    return rows


def write_table(path: Path, rows: Iterable[ResultRow]) -> None:
    """Replace a table through a sibling temp file (used by the annotation step only)."""
    path = Path(path)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with tmp.open("w", newline="") as fh:
            for row in rows:
                fh.write(format_row(row) + "\n")
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


# ----------------------------
# Summary re-aggregation
# ----------------------------
def source_directory(manifest_line: str) -> str:
    """Directory part of a manifest entry, i.e. everything before the last '/'."""
    line = manifest_line.strip()
    if "/" not in line:
        return ""
    return line.rsplit("/", 1)[0] or "/"


def rewrite_reference(source_dir: str, ref: str) -> str:
    """
    Re-root a reference from a prior run's directory to a sibling run directory.
    Absolute source directories are kept as they are.
    """
    if source_dir.startswith("/"):
        return f"{source_dir.rstrip('/')}/{ref}"
    if not source_dir:
        return f"../{ref}"
    return f"../{source_dir}/{ref}"


def aggregate_summaries(entries: Iterable[str], out_table: Path, logger: logging.Logger) -> int:
    """
    Merge prior result tables into `out_table`.

    Fields 0-4 are copied verbatim; the screening reference (field 5) is
    rewritten relative to the new run directory. Annotation fields past the
    reference are dropped since the report stage recomputes them.
    """
    written = 0
    with Path(out_table).open("a", newline="") as out:
        for entry in entries:
            src = Path(entry)
            if not src.is_file():
                logger.error(f"Summary source not found, skipping: {entry}")
                continue
            prefix = source_directory(entry)
            n_src = 0
            with src.open("r") as fh:
                for lineno, line in enumerate(fh, start=1):
                    if not line.strip():
                        continue
                    try:
                        row = parse_row(line)
                    except MalformedRowError as e:
                        logger.error(f"{entry}:{lineno}: malformed row rejected ({e})")
                        continue
                    cols = row.fields()[:REFERENCE_INDEX]
                    cols.append(rewrite_reference(prefix, row.reference))
                    out.write("\t".join(cols) + "\n")
                    n_src += 1
            logger.info(f"  {entry}: {n_src} row(s)")
            written += n_src
    return written
