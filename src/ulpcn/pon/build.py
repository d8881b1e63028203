"""
Panel of normals building from corrected normal samples.

This module provides the CLI and logic for building a PanelOfNormals from
the correctedDepth tables written by `ulpcn correct`.
"""

from pathlib import Path
from typing import List, Optional

import typer
import pandas as pd
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from ..core.genome import ChromosomeSet, GenomeStyle, keep_chromosomes, apply_style
from ..core.logging import get_logger, set_verbose
from .model import PanelOfNormals

console = Console(stderr=True)
logger = get_logger("build-pon")


def read_sample_list(sample_list: Path) -> List[Path]:
    """Paths listed one per line; blank lines and '#' comments are skipped."""
    with open(sample_list) as f:
        return [Path(line.strip()) for line in f if line.strip() and not line.startswith("#")]


def load_corrected_depth(path: Path, style: GenomeStyle, column: str = "corrected_logratio") -> pd.DataFrame:
    """Read a correctedDepth table and keep the columns needed for the panel."""
    df = pd.read_csv(path, sep="\t", dtype={"chrom": str}, na_values=["NA"])
    missing = [c for c in ("chrom", "start", "end", column) if c not in df.columns]
    if missing:
        raise ValueError(f"{path.name}: missing columns {missing}")
    return apply_style(df[["chrom", "start", "end", column]], style)


def build_pon(
    sample_list: Path = typer.Argument(..., help="Text file with paths to correctedDepth.tsv files (one per line)"),
    output: Path = typer.Option(..., "--output", "-o", help="Output panel file (.pon.parquet)"),
    genome_build: str = typer.Option("hg19", "--genome-build", "-G", help="Genome build label"),
    genome_style: GenomeStyle = typer.Option(GenomeStyle.NCBI, "--genome-style", help="Chromosome naming style of the panel"),
    chrs: Optional[str] = typer.Option(None, "--chrs", help="Comma-separated chromosomes to keep (default: 1-22,X,Y)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Build a panel of normals from corrected normal samples.

    The panel holds the per-bin median corrected log2 ratio across samples.

    Example:
        ulpcn build-pon normals.txt -G hg19 -o normals.pon.parquet
    """
    set_verbose(logger, verbose)

    if not sample_list.exists():
        logger.error(f"Sample list not found: {sample_list}")
        raise typer.Exit(1)

    samples = read_sample_list(sample_list)
    if len(samples) < 1:
        logger.error("No samples found in sample list")
        raise typer.Exit(1)
    logger.info(f"Building PON from {len(samples)} samples")

    if chrs:
        chromosomes = ChromosomeSet.from_names([c.strip() for c in chrs.split(",") if c.strip()], genome_style)
    else:
        chromosomes = ChromosomeSet.human(genome_style)

    tables = []
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Reading {len(samples)} samples...", total=len(samples))
        for path in samples:
            if not path.exists():
                logger.warning(f"Sample not found, skipping: {path}")
                progress.advance(task)
                continue
            progress.update(task, description=f"Reading {path.name}...")
            try:
                tables.append(keep_chromosomes(load_corrected_depth(path, genome_style), chromosomes))
            except ValueError as e:
                logger.warning(f"Skipping {path.name}: {e}")
            progress.advance(task)

    if not tables:
        logger.error("No samples processed successfully")
        raise typer.Exit(1)

    panel = PanelOfNormals.from_samples(tables, genome_build=genome_build, style=genome_style)
    for error in panel.validate():
        logger.warning(f"Validation warning: {error}")

    panel.save(output)
    logger.info(f"✅ PON built: {panel.n_samples} samples, {len(panel.bins)} bins → {output}")
