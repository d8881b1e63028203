"""
Read-depth correction for a single sample.

Reads a binned depth wig with its covariate tracks, applies the region
filters, corrects GC / mappability / replication-timing bias, infers the
sample sex and normalizes against a matched normal and/or a panel of normals.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import json

import typer
import pandas as pd

from . import __version__
from .core.config import ReadCountParams
from .core.genome import ChromosomeSet, GenomeStyle
from .core.intervals import read_intervals
from .core.logging import get_logger, set_verbose
from .core.models import Gender
from .core.normalization import normalize_by_panel_or_matched_normal
from .core.readcounts import load_read_counts
from .core.wig import read_wig

logger = get_logger("correct")

OUTPUT_COLUMNS = [
    "chrom", "start", "end", "reads", "gc", "map", "repTime",
    "valid", "ideal", "cor_gc", "cor_map", "cor_rep", "corrected_logratio",
]


def parse_chromosomes(text: Optional[str], style: GenomeStyle) -> Optional[ChromosomeSet]:
    """Comma-separated chromosome list to a ChromosomeSet (None passes through)."""
    if not text:
        return None
    names = [c.strip() for c in text.split(",") if c.strip()]
    return ChromosomeSet.from_names(names, style)


def _load_sample(
    wig: Path,
    params: ReadCountParams,
    tracks: dict,
    centromere: Optional[pd.DataFrame],
    targets: Optional[pd.DataFrame],
):
    counts = read_wig(wig)
    return load_read_counts(
        counts,
        params=params,
        gc=tracks.get("gc"),
        map=tracks.get("map"),
        rep_time=tracks.get("rep_time"),
        centromere=centromere,
        targets=targets,
    )


def correct(
    wig: Path = typer.Argument(..., help="Read-depth wig (fixedStep, one value per bin)"),
    output: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    sample_id: Optional[str] = typer.Option(None, "--sample-id", "-s", help="Sample ID for output files"),
    gc_wig: Path = typer.Option(..., "--gc-wig", "-g", help="GC content wig binned like the depth wig"),
    map_wig: Optional[Path] = typer.Option(None, "--map-wig", "-m", help="Mappability wig"),
    rep_time_wig: Optional[Path] = typer.Option(None, "--rep-time-wig", help="Replication timing wig"),
    centromere: Optional[Path] = typer.Option(None, "--centromere", "-c", help="Centromere intervals to exclude"),
    targets: Optional[Path] = typer.Option(None, "--targets", "-T", help="Target regions; other bins are dropped"),
    normal_wig: Optional[Path] = typer.Option(None, "--normal-wig", "-n", help="Matched-normal depth wig"),
    pon: Optional[Path] = typer.Option(None, "--pon", "-P", help="Panel of normals (.pon.parquet)"),
    genome_style: GenomeStyle = typer.Option(GenomeStyle.NCBI, "--genome-style", help="Chromosome naming style"),
    genome_build: str = typer.Option("hg19", "--genome-build", "-G", help="Genome build label"),
    chrs: Optional[str] = typer.Option(None, "--chrs", help="Comma-separated chromosomes to analyse (default: 1-22,X,Y)"),
    chr_normalize: Optional[str] = typer.Option(None, "--chr-normalize", help="Comma-separated chromosomes used to fit bias curves"),
    flank_length: int = typer.Option(100000, "--flank-length", help="Flank (bp) around centromeres to exclude"),
    map_score_thres: float = typer.Option(0.9, "--map-score-thres", help="Minimum mappability to keep a bin"),
    frac_reads_chrY_male: float = typer.Option(0.002, "--frac-reads-chrY-male", help="chrY read fraction below which a sample is male"),
    chrX_median_male: float = typer.Option(-0.5, "--chrX-median-male", help="chrX median log-ratio below which a sample looks male"),
    use_chrY: bool = typer.Option(True, "--use-chrY/--no-use-chrY", help="Use chrY coverage for sex inference"),
    normalize_male_x: bool = typer.Option(False, "--normalize-male-x", help="Centre male chrX on its median without a matched normal"),
    apply_correction: bool = typer.Option(True, "--correct/--no-correct", help="Apply bias correction"),
    sample_size: int = typer.Option(50000, "--sample-size", help="Bins sampled to fit each bias curve"),
    seed: int = typer.Option(0, "--seed", help="Random seed for bin subsampling"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Correct binned read depth for GC, mappability and replication-timing bias.

    Output: {sample}.correctedDepth.tsv with the per-bin corrected log2 ratio
    (corrected_logratio) and {sample}.params.json with the run parameters,
    inferred sex and normalization counts.
    """
    set_verbose(logger, verbose)

    for label, path in [("Depth wig", wig), ("GC wig", gc_wig), ("Mappability wig", map_wig),
                        ("Replication timing wig", rep_time_wig), ("Centromere file", centromere),
                        ("Targets file", targets), ("Normal wig", normal_wig), ("Panel of normals", pon)]:
        if path is not None and not path.exists():
            logger.error(f"{label} not found: {path}")
            raise typer.Exit(1)

    if sample_id is None:
        sample_id = wig.name.replace(".gz", "").replace(".wig", "")
    output.mkdir(parents=True, exist_ok=True)
    depth_file = output / f"{sample_id}.correctedDepth.tsv"
    params_file = output / f"{sample_id}.params.json"

    try:
        params = ReadCountParams(
            genome_style=genome_style,
            chromosomes=parse_chromosomes(chrs, genome_style),
            chr_normalize=parse_chromosomes(chr_normalize, genome_style),
            flank_length=flank_length,
            apply_correction=apply_correction,
            map_score_thres=map_score_thres,
            frac_reads_chrY_for_male=frac_reads_chrY_male,
            chrX_median_for_male=chrX_median_male,
            use_chrY=use_chrY,
            sample_size=sample_size,
            seed=seed,
        )

        tracks = {"gc": read_wig(gc_wig)}
        if map_wig is not None:
            tracks["map"] = read_wig(map_wig)
        else:
            logger.info("No mappability wig; skipping mappability correction")
        if rep_time_wig is not None:
            tracks["rep_time"] = read_wig(rep_time_wig)
        centromere_df = read_intervals(centromere) if centromere is not None else None
        targets_df = read_intervals(targets) if targets is not None else None

        logger.info(f"Processing {sample_id}")
        tumour = _load_sample(wig, params, tracks, centromere_df, targets_df)
        gender = tumour.gender.gender if tumour.gender is not None else Gender.UNKNOWN

        normal_bins = None
        if normal_wig is not None:
            logger.info(f"Correcting matched normal {normal_wig.name}")
            normal_bins = _load_sample(normal_wig, params, tracks, centromere_df, targets_df).bins

        panel = None
        if pon is not None:
            from .pon.model import PanelOfNormals
            panel = PanelOfNormals.load(pon, style=params.genome_style, chromosomes=params.chromosomes)

        bins = tumour.bins
        stats = None
        if "corrected_logratio" in bins.columns and (normal_bins is not None or panel is not None
                                                     or normalize_male_x):
            bins, stats = normalize_by_panel_or_matched_normal(
                bins,
                params.genome_style,
                normal=normal_bins,
                panel=panel,
                gender=gender,
                normalize_male_x=normalize_male_x,
            )

        columns = [c for c in OUTPUT_COLUMNS if c in bins.columns]
        bins[columns].to_csv(depth_file, sep="\t", index=False, float_format="%.6f", na_rep="NA")
        logger.info(f"Corrected depth: {len(bins)} bins → {depth_file}")

        record = {
            "sample_id": sample_id,
            "ulpcn_version": __version__,
            "genome_build": genome_build,
            "params": params.to_dict(),
            "inputs": {
                "wig": str(wig),
                "gc_wig": str(gc_wig),
                "map_wig": str(map_wig) if map_wig else None,
                "rep_time_wig": str(rep_time_wig) if rep_time_wig else None,
                "centromere": str(centromere) if centromere else None,
                "targets": str(targets) if targets else None,
                "normal_wig": str(normal_wig) if normal_wig else None,
                "pon": str(pon) if pon else None,
            },
            "gender": gender.value,
            "chrY_cov_ratio": tumour.gender.chrY_cov_ratio if tumour.gender else None,
            "chrX_median": tumour.gender.chrX_median if tumour.gender else None,
            "normalization": stats.__dict__ if stats is not None else None,
            "timestamp": datetime.now().isoformat(),
        }
        with open(params_file, "w") as f:
            json.dump(record, f, indent=2, default=str)
        logger.info(f"Run parameters → {params_file}")

    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Read-depth correction failed: {e}")
        raise typer.Exit(1)
