#!/usr/bin/env python3

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from tabulate import tabulate

from clermontyping.scripts import config as C
from clermontyping.scripts.analysis import analyze_sample
from clermontyping.scripts.config import ConfigError, RunConfig
from clermontyping.scripts.inputs import InputSelection, existing_samples, resolve_inputs
from clermontyping.scripts.log import close_logging, init_logging, step
from clermontyping.scripts.report import report_stage
from clermontyping.scripts.results import MalformedRowError, aggregate_summaries, append_rows, read_table
from clermontyping.scripts.runner import ensure_dir

USAGE = """Script usage :
\t-h\t\t\t\t\t: Print this message and exit
\t-v\t\t\t\t\t: Print the version and exit
\t--fasta\t\t\t\t\t: FASTA contigs file(s). If multiple files, they must be separated by an arobase (@) value
\t--name\t\t\t\t\t: Name for this analysis (optional)
\t--threshold\t\t\t\t: Option for Clermont Typing, do not use contigs under this size (optional)
\t--minimal\t\t\t\t: Output a minimal set of files (optional)
\t--fastafile\t\t\t\t: File with path of FASTA contig file.  One file by line (optional)
\t--summary\t\t\t\t: File with path of *_phylogroups.txt. One file by line (optional)
\t--data-dir\t\t\t\t: Directory holding primers.fasta and mash/mash_reference.msh (optional)
\t--timeout\t\t\t\t: Seconds allowed per external command (optional)
\t--verbose\t\t\t\t: More console detail (optional)
"""


class _ArgParser(argparse.ArgumentParser):
    """Argument errors are configuration errors (exit 1), not argparse's exit 2."""

    def error(self, message):
        raise ConfigError(message)


def _build_argparser() -> argparse.ArgumentParser:
    p = _ArgParser(prog="clermontyping", add_help=False, allow_abbrev=False, usage=argparse.SUPPRESS)
    p.add_argument("-h", dest="show_help", action="store_true")
    p.add_argument("-v", dest="show_version", action="store_true")
    p.add_argument("--fasta")
    p.add_argument("--fastafile", type=Path)
    p.add_argument("--summary", type=Path)
    p.add_argument("--name")
    p.add_argument("--threshold", type=int, default=C.DEFAULT_THRESHOLD)
    p.add_argument("--minimal", action="store_true")
    p.add_argument("--data-dir", type=Path)
    p.add_argument("--timeout", type=float)
    p.add_argument("--verbose", action="store_true")
    p.add_argument("--tools-env", help=argparse.SUPPRESS)
    return p


def usage() -> None:
    print(USAGE, end="")


def _fail(message: str) -> int:
    sys.stderr.write(message + "\n")
    usage()
    return 1


def _prepare(args: argparse.Namespace) -> tuple:
    """Validate selectors and fixed data; nothing is written to disk here."""
    selection = resolve_inputs(args.fasta, args.fastafile, args.summary)
    name = C.SUMMARY_NAME if selection.is_summary else (args.name or C.default_run_name())
    cfg = C.build_run_config(
        name=name,
        data_dir=C.resolve_data_dir(args.data_dir),
        threshold=args.threshold,
        minimal=args.minimal,
        tools_env=args.tools_env,
        timeout=args.timeout,
    )
    return selection, cfg


def run_samples(selection: InputSelection, cfg: RunConfig, logger) -> int:
    samples = existing_samples(selection.entries, logger)
    seen: Dict[str, Path] = {}
    total = len(samples)
    for idx, sample in enumerate(samples, start=1):
        logger.info(f"[{idx}/{total}] Sample: {sample}")
        row = analyze_sample(sample, cfg, logger, seen)
        # appended one at a time so partial runs keep finished rows
        append_rows(cfg.table_path, [row])
    return total


def _print_table(cfg: RunConfig, logger) -> None:
    try:
        rows = read_table(cfg.table_path)
    except (MalformedRowError, OSError) as e:
        logger.warning(f"Could not read back {cfg.table_path.name}: {e}")
        return
    if not rows:
        logger.info("No result rows.")
        return
    body = [[r.sample, r.phylogroup] + list(r.extra[:1]) for r in rows]
    headers = ["sample", "phylogroup", "mash_group"][:max(len(b) for b in body)]
    logger.info("\n" + tabulate(body, headers=headers, tablefmt="simple"))


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv:
        usage()
        return 1

    ap = _build_argparser()
    try:
        args = ap.parse_args(argv)
    except ConfigError as e:
        return _fail(f"Error: {e}")

    if args.show_version:
        print(C.VERSION_LABEL)
        usage()
        return 0
    if args.show_help:
        usage()
        return 0

    try:
        selection, cfg = _prepare(args)
    except ConfigError as e:
        return _fail(str(e))

    ensure_dir(cfg.working_dir)
    logger = init_logging(cfg.working_dir, verbose=args.verbose)
    try:
        if selection.is_summary:
            logger.info(f"You asked for a Clermont Typing analysis named {cfg.name} of phylogroups.")
            with step(logger, "Summary re-aggregation"):
                n = aggregate_summaries(selection.entries, cfg.table_path, logger)
            logger.info(f"Summary rows written: {n}")
        else:
            logger.info(
                f"You asked for a Clermont Typing analysis named {cfg.name} of phylogroups on "
                f"{len(selection.entries)} file(s) with a minimum contig size of {cfg.threshold}."
            )
            logger.info(f"Working directory: {cfg.working_dir}")
            run_samples(selection, cfg, logger)

        cfg.table_path.touch(exist_ok=True)
        with step(logger, "Reporting"):
            report_stage(cfg, cfg.table_path, logger)

        _print_table(cfg, logger)
        logger.info(f"Result table: {cfg.table_path}")
        logger.info("============== End ==================")
    finally:
        close_logging(logger)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
