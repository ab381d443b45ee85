# clermontyping/scripts/analysis.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple
import logging
import shutil

from Bio import SeqIO
from Bio.Blast import NCBIXML

from clermontyping.scripts import config as C
from clermontyping.scripts.config import RunConfig
from clermontyping.scripts.inputs import sample_name
from clermontyping.scripts.results import CLASSIFIER_FIELDS, ResultRow, mash_reference
from clermontyping.scripts.runner import ToolFailure, check, ensure_dir
from clermontyping.scripts import runner


@dataclass(frozen=True)
class SampleContext:
    source: Path
    name: str
    fasta: Path        # copy inside the working directory
    mash_tab: Path
    blast_db: Path     # makeblastdb -out prefix
    blast_xml: Path

    @property
    def reference(self) -> str:
        return mash_reference(self.name)


def make_context(source: Path, cfg: RunConfig) -> SampleContext:
    name = sample_name(source)
    wd = cfg.working_dir
    return SampleContext(
        source=Path(source),
        name=name,
        fasta=wd / name,
        mash_tab=wd / mash_reference(name),
        blast_db=wd / "db" / name,
        blast_xml=wd / f"{name}.xml",
    )


def stage_sample(source: Path, cfg: RunConfig, logger: logging.Logger,
                 seen: Optional[Dict[str, Path]] = None) -> SampleContext:
    """Copy the sample into the working directory under its base name (last write wins)."""
    ctx = make_context(source, cfg)
    if seen is not None:
        prev = seen.get(ctx.name)
        if prev is not None and prev.resolve() != ctx.source.resolve():
            logger.warning(f"Sample name '{ctx.name}' already used by {prev}; its files will be overwritten.")
        seen[ctx.name] = ctx.source
    if ctx.source.resolve() != ctx.fasta.resolve():
        shutil.copyfile(ctx.source, ctx.fasta)
    return ctx


# ----------------------------
# Tool steps
# ----------------------------
def run_mash_screen(ctx: SampleContext, cfg: RunConfig, logger: logging.Logger) -> Path:
    cmd = [cfg.tool("mash"), "screen", "-w", str(cfg.mash_db), str(ctx.fasta)]
    rc, err = runner.run(cmd, cwd=None, log=logger, env_name=cfg.tools_env,
                         timeout=cfg.timeout, stdout_path=ctx.mash_tab)
    check("mash screen", rc, err)
    return ctx.mash_tab


def run_blast(ctx: SampleContext, cfg: RunConfig, logger: logging.Logger) -> Path:
    ensure_dir(ctx.blast_db.parent)
    mk = ["makeblastdb", "-in", str(ctx.fasta), "-input_type", "fasta",
          "-out", str(ctx.blast_db), "-dbtype", "nucl"]
    rc, out = runner.run(mk, cwd=None, log=logger, env_name=cfg.tools_env, timeout=cfg.timeout)
    (cfg.working_dir / "db" / f"{ctx.name}.makeblastdb.log").write_text(out)
    check("makeblastdb", rc, out)

    bl = ["blastn",
          "-query", str(cfg.primers),
          "-perc_identity", str(C.PERC_IDENTITY),
          "-task", C.BLAST_TASK,
          "-word_size", str(C.BLAST_WORD_SIZE),
          "-outfmt", str(C.BLAST_OUTFMT),
          "-db", str(ctx.blast_db),
          "-out", str(ctx.blast_xml)]
    rc, out = runner.run(bl, cwd=None, log=logger, env_name=cfg.tools_env, timeout=cfg.timeout)
    check("blastn", rc, out)
    if not ctx.blast_xml.exists():
        raise ToolFailure("blastn", rc, f"report not written: {ctx.blast_xml}")
    return ctx.blast_xml


def run_classifier(ctx: SampleContext, cfg: RunConfig, logger: logging.Logger) -> Tuple[str, ...]:
    """Run clermont.py on the BLAST report; its tab-separated stdout becomes the row's middle fields."""
    cmd = [cfg.tool("clermont.py"), "-x", str(ctx.blast_xml), "-s", str(cfg.threshold)]
    rc, out = runner.run(cmd, cwd=None, log=logger, env_name=cfg.tools_env,
                         timeout=cfg.timeout, merge_stderr=False)
    check("clermont.py", rc, out)
    lines = [ln for ln in out.splitlines() if ln.strip()]
    if not lines:
        raise ToolFailure("clermont.py", rc, "empty output")
    fields = tuple(lines[-1].split("\t"))
    if len(fields) > CLASSIFIER_FIELDS:
        raise ToolFailure("clermont.py", rc, f"unexpected output ({len(fields)} fields): {lines[-1]}")
    return fields


# ----------------------------
# Inspection helpers
# ----------------------------
def count_primer_hits(xml_path: Path) -> int:
    """Number of HSPs across all primer queries in a BLAST XML report."""
    n = 0
    with Path(xml_path).open("r") as fh:
        for record in NCBIXML.parse(fh):
            for alignment in record.alignments:
                n += len(alignment.hsps)
    return n


def contig_stats(fasta: Path, threshold: int) -> Tuple[int, int]:
    """(contigs, contigs at or above threshold); threshold 0 keeps everything."""
    total = kept = 0
    for rec in SeqIO.parse(str(fasta), "fasta"):
        total += 1
        if len(rec.seq) >= threshold:
            kept += 1
    return total, kept


# ----------------------------
# Per-sample orchestration
# ----------------------------
def analyze_sample(source: Path, cfg: RunConfig, logger: logging.Logger,
                   seen: Optional[Dict[str, Path]] = None) -> ResultRow:
    """
    Screen, search and classify one sample. Always returns a row: a failed
    staging copy, BLAST or classifier step gives the NA row, a failed screen
    is only logged.
    """
    try:
        ctx = stage_sample(source, cfg, logger, seen)
    except OSError as e:
        name = sample_name(source)
        logger.error(f"  Could not stage {source} as {name}: {e}")
        return ResultRow.failure(name, mash_reference(name))
    logger.info(f"============== Analysis of {ctx.name} ==================")

    try:
        total, kept = contig_stats(ctx.fasta, cfg.threshold)
        logger.info(f"  Contigs: {total} ({kept} >= {cfg.threshold} bp)")
        if total and cfg.threshold > 0 and kept == 0:
            logger.warning(f"  No contig of {ctx.name} reaches {cfg.threshold} bp; phylogroup may be unknown.")
    except (ValueError, OSError) as e:
        logger.warning(f"  Could not read contigs of {ctx.name}: {e}")

    logger.info("===== Running Mash =====")
    try:
        run_mash_screen(ctx, cfg, logger)
    except ToolFailure as e:
        logger.warning(f"  {e} for {ctx.name}; mash group will be NA. {e.tail()}")

    logger.info("===== Running BLAST =====")
    try:
        run_blast(ctx, cfg, logger)
    except ToolFailure as e:
        logger.error(f"  Error Detected! {e} for {ctx.name}. {e.tail()}")
        return ResultRow.failure(ctx.name, ctx.reference)

    try:
        logger.info(f"  Primer hits: {count_primer_hits(ctx.blast_xml)}")
    except Exception as e:
        logger.debug(f"  Could not parse {ctx.blast_xml.name}: {e}")

    logger.info("====== Clermont Typing =====")
    try:
        fields = run_classifier(ctx, cfg, logger)
    except ToolFailure as e:
        logger.error(f"  {e} for {ctx.name}. {e.tail()}")
        return ResultRow.failure(ctx.name, ctx.reference)

    row = ResultRow(ctx.name, fields, ctx.reference)
    logger.info(f"  Phylogroup: {row.phylogroup}")
    return row
