# clermontyping/scripts/inputs.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
import logging

from clermontyping.scripts.config import ConfigError, SAMPLE_SUFFIX_DELIM

FRESH = "fresh"
SUMMARY = "summary"


class InputError(ConfigError):
    """Missing or conflicting input selectors."""


@dataclass(frozen=True)
class InputSelection:
    mode: str                  # FRESH or SUMMARY
    entries: Tuple[str, ...]   # sample paths, or prior result tables in summary mode

    @property
    def is_summary(self) -> bool:
        return self.mode == SUMMARY


def split_inline(fastas: str) -> List[str]:
    """Split an '@'-delimited path list, ignoring empty entries."""
    return [p for p in fastas.split("@") if p]


def _read_lines(path: Path) -> List[str]:
    # only the line terminator (and a literal trailing "\n") is stripped
    out: List[str] = []
    with Path(path).open("r") as fh:
        for line in fh:
            line = line.rstrip("\r\n")
            if line.endswith("\\n"):
                line = line[:-2]
            out.append(line)
    return out


def read_path_list(path: Path) -> List[str]:
    """One sample path per line."""
    if not Path(path).is_file():
        raise InputError(f"File of FASTA paths not found: {path}")
    return _read_lines(path)


def read_summary_manifest(path: Path) -> List[str]:
    """One prior *_phylogroups.txt path per line; blank lines carry nothing and are dropped."""
    if not Path(path).is_file():
        raise InputError(f"Summary file not found: {path}")
    return [ln for ln in _read_lines(path) if ln.strip()]


def resolve_inputs(
    fasta: Optional[str] = None,
    fastafile: Optional[Path] = None,
    summary: Optional[Path] = None,
) -> InputSelection:
    """
    Turn exactly one of --fasta / --fastafile / --summary into a unit of work.
    Anything else is an InputError.
    """
    if not fasta and not fastafile and not summary:
        raise InputError("Missing the contigs file. Option --fasta or --fastafile")
    if fasta and fastafile:
        raise InputError("Too many parameters. Option --fasta or --fastafile")
    if summary:
        if fasta or fastafile:
            raise InputError("Too many parameters. Option --fasta or --fastafile, or --summary")
        return InputSelection(SUMMARY, tuple(read_summary_manifest(summary)))
    if fastafile:
        return InputSelection(FRESH, tuple(read_path_list(fastafile)))
    return InputSelection(FRESH, tuple(split_inline(fasta)))


def existing_samples(paths, logger: logging.Logger) -> List[Path]:
    """Keep only existing sample files, in input order; report the others."""
    found: List[Path] = []
    for p in paths:
        if p and Path(p).is_file():
            found.append(Path(p))
        else:
            logger.warning(f"{p} doesn't exist")
    return found


def sample_name(path: Path) -> str:
    """File name with any run-specific '£...' suffix removed."""
    base = Path(path).name
    if SAMPLE_SUFFIX_DELIM in base:
        return base.rsplit(SAMPLE_SUFFIX_DELIM, 1)[0]
    return base
