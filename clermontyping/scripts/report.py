from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
import logging
from xml.sax.saxutils import escape as _xml_escape

import pandas as pd

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from clermontyping.scripts.config import MASH_GROUP_IDENTITY, RunConfig, VERSION_LABEL
from clermontyping.scripts.mash_group import add_mash_group
from clermontyping.scripts.results import NA, MalformedRowError, read_table


# ──────────────────────────────────────────────────────────────────────────────
# Report template
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class ReportTemplate:
    title: str = "Clermont Typing Report"
    column_labels: Tuple[str, ...] = (
        "Sample", "Markers", "Quadruplex", "C/E alleles", "Phylogroup", "Mash screen",
    )
    extra_labels: Tuple[str, ...] = ("Mash group",)

    # Page & margins
    page_size: Tuple[float, float] = landscape(letter)
    left_margin: float = 36
    right_margin: float = 36
    top_margin: float = 48
    bottom_margin: float = 36

    header_block_font_size: int = 10
    table_header_font_size: int = 8
    table_body_font_size: int = 7

    # Wrapped as paragraphs (long marker lists / file names)
    wrap_cols: Tuple[int, ...] = (1, 5)
    phylogroup_col: int = 4

    na_color: colors.Color = field(default_factory=lambda: colors.HexColor("#b71c1c"))
    header_bg: colors.Color = field(default_factory=lambda: colors.HexColor("#f0f0f0"))


# ──────────────────────────────────────────────────────────────────────────────
# Public API
# ──────────────────────────────────────────────────────────────────────────────

def load_table(table_path: Path, template: ReportTemplate = ReportTemplate()) -> pd.DataFrame:
    """Result table as a DataFrame with labelled columns (annotation columns included)."""
    rows = [r.fields() for r in read_table(table_path)]
    width = max((len(r) for r in rows), default=len(template.column_labels))
    labels = list(template.column_labels) + list(template.extra_labels)
    while len(labels) < width:
        labels.append(f"Extra {len(labels) - len(template.column_labels) + 1}")
    padded = [r + [""] * (width - len(r)) for r in rows]
    return pd.DataFrame(padded, columns=labels[:width])


def phylogroup_counts(df: pd.DataFrame, template: ReportTemplate = ReportTemplate()) -> List[Tuple[str, int]]:
    if df.empty:
        return []
    col = df.columns[template.phylogroup_col]
    counts = Counter(v if v else NA for v in df[col].astype(str))
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))


def render_report(
    table_path: Path,
    pdf_path: Path,
    run_name: str,
    threshold: int = 0,
    template: ReportTemplate = ReportTemplate(),
) -> Path:
    """Render the result table at `table_path` into a PDF report."""
    df = load_table(table_path, template)
    metadata = [
        f"Run: {run_name}",
        f"Result table: {Path(table_path).name}",
        f"Samples: {len(df)}",
        f"Minimum contig size: {threshold} bp" if threshold else "Minimum contig size: none",
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        VERSION_LABEL,
    ]
    return _render_pdf(df, Path(pdf_path), metadata, phylogroup_counts(df, template), template, run_name)


def report_stage(cfg: RunConfig, table_path: Path, logger: logging.Logger,
                 identity: float = MASH_GROUP_IDENTITY) -> Optional[Path]:
    """
    Render the PDF (skipped in minimal mode; failures only logged), then
    always annotate the table with mash groups.
    """
    pdf: Optional[Path] = None
    if not cfg.minimal:
        logger.info("============= Generating Report ===============")
        try:
            pdf = render_report(table_path, cfg.report_path, cfg.name, cfg.threshold)
            logger.info(f"Report: {pdf}")
        except Exception as e:
            logger.warning(f"Report rendering failed: {e}")
            pdf = None
    else:
        logger.info("Minimal output requested; report not rendered.")

    try:
        add_mash_group(table_path, identity=identity, logger=logger)
    except (MalformedRowError, OSError) as e:
        logger.error(f"Mash group annotation failed: {e}")
    return pdf


# ──────────────────────────────────────────────────────────────────────────────
# Styles & layout helpers
# ──────────────────────────────────────────────────────────────────────────────

def _styles(template: ReportTemplate):
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="TitleCenter", parent=styles["Title"], alignment=TA_CENTER))
    styles.add(ParagraphStyle(
        name="HeaderBlock",
        parent=styles["Normal"],
        fontName="Helvetica",
        fontSize=template.header_block_font_size,
        leading=template.header_block_font_size + 2,
    ))
    styles.add(ParagraphStyle(name="Header", parent=styles["Heading2"], spaceAfter=4))
    styles.add(ParagraphStyle(
        name="TableBodyPara",
        parent=styles["Normal"],
        fontName="Helvetica",
        fontSize=template.table_body_font_size,
        leading=template.table_body_font_size + 2,
    ))
    return styles


def _page_footer_factory(run_name: Optional[str]):
    """Returns a ReportLab onPage callback that draws the desired footer."""
    prefix = "Clermont Typing"
    label = f"{prefix} - Run {run_name}" if run_name else prefix

    def _footer(canvas, doc):
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        canvas.drawRightString(doc.pagesize[0] - 36, 20, f"{label}    |    Page {doc.page}")
        canvas.restoreState()

    return _footer


def _compute_col_widths(n_cols: int, template: ReportTemplate) -> List[float]:
    page_w, _ = template.page_size
    usable = page_w - (template.left_margin + template.right_margin)
    wide = [i for i in template.wrap_cols if i < n_cols]
    narrow = n_cols - len(wide)
    # wrapped columns get twice the share of the others
    unit = usable / max(narrow + 2 * len(wide), 1)
    return [2 * unit if i in wide else unit for i in range(n_cols)]


def _build_counts_table(counts: Sequence[Tuple[str, int]]) -> Table:
    data = [["Phylogroup", "Samples"]] + [[k, str(v)] for k, v in counts]
    t = Table(data, hAlign="LEFT")
    t.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("ALIGN", (1, 0), (1, -1), "CENTER"),
    ]))
    return t


def _build_table(df: pd.DataFrame, template: ReportTemplate) -> Table:
    styles = _styles(template)
    wrap = set(template.wrap_cols)

    data: List[list] = [list(df.columns)]
    for row in df.astype(str).values.tolist():
        data.append([Paragraph(_xml_escape(cell), styles["TableBodyPara"]) if i in wrap else cell
                     for i, cell in enumerate(row)])

    t = Table(data, repeatRows=1, colWidths=_compute_col_widths(df.shape[1], template))
    style = TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), template.header_bg),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), template.table_header_font_size),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTSIZE", (0, 1), (-1, -1), template.table_body_font_size),
    ])
    for i in range(1, len(data)):
        style.add("BACKGROUND", (0, i), (-1, i), colors.HexColor("#fcfcfc") if i % 2 == 1 else colors.white)

    pg = template.phylogroup_col
    if pg < df.shape[1]:
        for r_idx, val in enumerate(df.iloc[:, pg].astype(str), start=1):
            if val.strip() in ("", NA):
                style.add("TEXTCOLOR", (pg, r_idx), (pg, r_idx), template.na_color)
    t.setStyle(style)
    return t


# ──────────────────────────────────────────────────────────────────────────────
# Document assembly
# ──────────────────────────────────────────────────────────────────────────────

def _render_pdf(
    df: pd.DataFrame,
    pdf_path: Path,
    metadata: List[str],
    counts: Sequence[Tuple[str, int]],
    template: ReportTemplate,
    run_name: Optional[str],
) -> Path:
    styles = _styles(template)
    doc = SimpleDocTemplate(
        str(pdf_path),
        pagesize=template.page_size,
        rightMargin=template.right_margin,
        leftMargin=template.left_margin,
        topMargin=template.top_margin,
        bottomMargin=template.bottom_margin,
    )

    story: List[object] = [Paragraph(template.title, styles["TitleCenter"]), Spacer(1, 0.2 * inch)]

    story.append(Paragraph("Run Metadata", styles["Header"]))
    for ln in metadata:
        story.append(Paragraph(ln, styles["HeaderBlock"]))
    story.append(Spacer(1, 0.15 * inch))

    if counts:
        story.append(Paragraph("Phylogroups", styles["Header"]))
        story.append(_build_counts_table(counts))
        story.append(Spacer(1, 0.15 * inch))

    story.append(Paragraph("Results", styles["Header"]))
    if df.empty:
        story.append(Paragraph("No sample in this run.", styles["HeaderBlock"]))
    else:
        story.append(_build_table(df, template))

    footer_func = _page_footer_factory(run_name)
    doc.build(story, onFirstPage=footer_func, onLaterPages=footer_func)
    return pdf_path
