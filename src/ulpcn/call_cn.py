"""
Integer copy-number correction for a single sample.

Takes the per-bin and per-segment tables from the copy-number HMM together
with the fitted purity and ploidy, and re-calls amplifications, homozygous
deletions and male chrX from the log-ratio.
"""

from pathlib import Path
from typing import Optional

import typer
import pandas as pd

from .core.config import CopyNumberParams
from .core.genome import ChromosomeSet, GenomeStyle, apply_style
from .core.integer_cn import correct_integer_cn
from .core.logging import get_logger, set_verbose
from .core.models import Gender, SampleContext

logger = get_logger("correct-cn")

# Column names written by the R workflow
COLUMN_ALIASES = {
    "chr": "chrom",
    "median": "median_logratio",
    "logR": "corrected_logratio",
    "copy.number": "copy_number",
    "event": "call",
    "subclone.status": "subclone_status",
}


def read_table(path: Path) -> pd.DataFrame:
    """Read a tab-separated bin or segment table, normalizing known column aliases."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Table not found: {path}")
    df = pd.read_csv(path, sep="\t")
    df = df.rename(columns={k: v for k, v in COLUMN_ALIASES.items() if k in df.columns})
    df["chrom"] = df["chrom"].astype(str)
    return df


def correct_cn(
    bins_file: Path = typer.Argument(..., help="Per-bin table (chrom, start, end, corrected_logratio, copy_number, call)"),
    segments_file: Path = typer.Argument(..., help="Per-segment table (chrom, start, end, median_logratio, copy_number, call)"),
    output: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    sample_id: str = typer.Option(..., "--sample-id", "-s", help="Sample ID for output files"),
    purity: float = typer.Option(..., "--purity", "-p", help="Tumour purity (0-1)"),
    ploidy: float = typer.Option(..., "--ploidy", "-y", help="Tumour ploidy"),
    gender: Gender = typer.Option(Gender.UNKNOWN, "--gender", help="Sample sex"),
    cell_prev: Optional[float] = typer.Option(None, "--cell-prev", help="Cellular prevalence of subclonal events"),
    max_cn: Optional[float] = typer.Option(None, "--max-cn", help="Autosome amplification ceiling (default: max segment CN)"),
    max_cn_x: Optional[float] = typer.Option(None, "--max-cn-x", help="chrX amplification ceiling (default: max chrX segment CN)"),
    correct_homd: bool = typer.Option(True, "--homd/--no-homd", help="Rescue homozygous deletions"),
    whole_chrx: bool = typer.Option(True, "--whole-chrx/--amplified-chrx", help="Re-call all male chrX segments, or only amplified ones"),
    min_purity: float = typer.Option(0.2, "--min-purity", help="Minimum purity to apply corrections"),
    genome_style: GenomeStyle = typer.Option(GenomeStyle.NCBI, "--genome-style", help="Chromosome naming style"),
    genome_build: str = typer.Option("hg19", "--genome-build", "-G", help="Genome build label"),
    chrs: Optional[str] = typer.Option(None, "--chrs", help="Comma-separated chromosomes eligible for correction (default: 1-22,X)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Correct HMM integer copy numbers using the purity/ploidy model.

    Output: {sample}.cna.corrected.tsv and {sample}.seg.corrected.tsv with
    logR_Copy_Number, Corrected_Copy_Number and Corrected_Call added.
    """
    set_verbose(logger, verbose)

    for path in (bins_file, segments_file):
        if not path.exists():
            logger.error(f"Input file not found: {path}")
            raise typer.Exit(1)

    try:
        if chrs:
            chromosomes = ChromosomeSet.from_names([c.strip() for c in chrs.split(",") if c.strip()], genome_style)
        else:
            chromosomes = ChromosomeSet.human(genome_style, include_y=False)
        context = SampleContext(
            purity=purity,
            ploidy=ploidy,
            gender=gender,
            genome_build=genome_build,
            chromosomes=chromosomes,
        )
        params = CopyNumberParams(
            max_cn_autosomes=max_cn,
            max_cn_x=max_cn_x,
            correct_homd=correct_homd,
            correct_whole_chrx_for_males=whole_chrx,
            min_purity_to_correct=min_purity,
        )

        bins = apply_style(read_table(bins_file), genome_style)
        segments = apply_style(read_table(segments_file), genome_style)
        logger.info(f"Loaded {len(bins)} bins and {len(segments)} segments for {sample_id}")

        result = correct_integer_cn(bins, segments, context, params, cell_prev=cell_prev)

        output.mkdir(parents=True, exist_ok=True)
        bins_out = output / f"{sample_id}.cna.corrected.tsv"
        segs_out = output / f"{sample_id}.seg.corrected.tsv"
        result.bins.to_csv(bins_out, sep="\t", index=False, float_format="%.6f", na_rep="NA")
        result.segments.to_csv(segs_out, sep="\t", index=False, float_format="%.6f", na_rep="NA")
        logger.info(f"Corrected bins → {bins_out}")
        logger.info(f"Corrected segments → {segs_out}")

    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Copy-number correction failed: {e}")
        raise typer.Exit(1)
