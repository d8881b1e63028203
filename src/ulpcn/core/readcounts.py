"""
Read-count assembly.

Combines a depth track with its covariate tracks, applies the region filters
(chromosomes, centromeres, target regions), runs bias correction and infers
the sample sex. This is the in-memory counterpart of the `correct` command.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np
import pandas as pd

from .bias_correction import correct_read_counts, filter_by_mappability
from .config import ReadCountParams
from .genome import GenomeStyle, apply_style, is_chrY, keep_chromosomes
from .intervals import IntervalIndex
from .models import BiasModel, ReadCountTrack
from .sex_inference import GenderResult, chrY_coverage_ratio, infer_gender

logger = logging.getLogger("ulpcn.core.readcounts")


@dataclass
class ReadCountResult:
    """
    Output of load_read_counts.

    Attributes:
        bins: Bin table (corrected when correction was applied)
        track: Covariate presence for the loaded bins
        gender: Sex inference result (None without correction)
        model: Fitted bias curves (None without correction)
    """
    bins: pd.DataFrame
    track: ReadCountTrack
    gender: Optional[GenderResult] = None
    model: Optional[BiasModel] = None


def _attach_covariate(
    counts: pd.DataFrame, track: pd.DataFrame, name: str, params: ReadCountParams
) -> np.ndarray:
    styled = keep_chromosomes(apply_style(track, params.genome_style), params.chromosomes)
    if len(styled) != len(counts):
        raise ValueError(f"Number of bins in {name} different than input wig.")
    return styled["value"].to_numpy(dtype=float)


def exclude_centromere(
    bins: pd.DataFrame, centromere: pd.DataFrame, style: GenomeStyle, flank_length: int = 0
) -> pd.DataFrame:
    """
    Drop bins overlapping centromere intervals extended by `flank_length` on each side.
    """
    regions = apply_style(centromere, style)
    regions["start"] = regions["start"] - flank_length
    regions["end"] = regions["end"] + flank_length
    hits = IntervalIndex.from_frame(regions).overlaps_any(bins)
    logger.info(f"Removed {int(hits.sum())} bins near centromeres.")
    return bins.loc[~hits].reset_index(drop=True)


def filter_by_targeted_sequences(
    bins: pd.DataFrame, targets: pd.DataFrame, style: GenomeStyle
) -> pd.DataFrame:
    """Keep only bins overlapping at least one targeted region."""
    regions = apply_style(targets, style)
    keep = IntervalIndex.from_frame(regions).overlaps_any(bins)
    logger.info(f"Kept {int(keep.sum())}/{len(bins)} bins overlapping targeted regions")
    return bins.loc[keep].reset_index(drop=True)


def _apply_region_filters(
    bins: pd.DataFrame,
    params: ReadCountParams,
    centromere: Optional[pd.DataFrame],
    targets: Optional[pd.DataFrame],
) -> pd.DataFrame:
    if centromere is not None:
        bins = exclude_centromere(bins, centromere, params.genome_style, params.flank_length)
    if targets is not None:
        bins = filter_by_targeted_sequences(bins, targets, params.genome_style)
    return bins


def load_read_counts(
    counts: pd.DataFrame,
    params: Optional[ReadCountParams] = None,
    gc: Optional[pd.DataFrame] = None,
    map: Optional[pd.DataFrame] = None,
    rep_time: Optional[pd.DataFrame] = None,
    centromere: Optional[pd.DataFrame] = None,
    targets: Optional[pd.DataFrame] = None,
    rng: Optional[np.random.Generator] = None,
) -> ReadCountResult:
    """
    Assemble, filter and correct a read-count track.

    Args:
        counts: Depth track from read_wig (chrom, start, end, value)
        params: Run parameters (defaults to ReadCountParams())
        gc: GC content track binned identically to `counts`
        map: Mappability track binned identically to `counts`
        rep_time: Replication timing track binned identically to `counts`
        centromere: Centromere intervals to exclude (with params.flank_length)
        targets: Targeted regions; bins outside them are dropped
        rng: Random generator for subsampling (default: seeded from params.seed)

    Returns:
        ReadCountResult
    """
    if params is None:
        params = ReadCountParams()
    if rng is None:
        rng = np.random.default_rng(params.seed)

    raw = apply_style(counts, params.genome_style).rename(columns={"value": "reads"})
    bins = keep_chromosomes(raw, params.chromosomes)

    if gc is not None:
        bins["gc"] = _attach_covariate(bins, gc, "gc", params)
    if map is not None:
        bins["map"] = _attach_covariate(bins, map, "map", params)
    if rep_time is not None:
        bins["repTime"] = _attach_covariate(bins, rep_time, "repTime", params)

    bins = _apply_region_filters(bins, params, centromere, targets)

    if not params.apply_correction:
        return ReadCountResult(bins=bins, track=ReadCountTrack.from_frame(bins, require_gc=False))

    track = ReadCountTrack.from_frame(bins)
    # Ideal-bin mappability threshold is 0; low-mappability bins are dropped after fitting
    corrected = correct_read_counts(
        track,
        chr_normalize=params.chr_normalize,
        mappability=0.0,
        sample_size=params.sample_size,
        rng=rng,
    )
    out = corrected.bins
    if track.has_map:
        out = filter_by_mappability(out, params.map_score_thres)

    chrY_raw = raw.loc[[is_chrY(c) for c in raw["chrom"]]]
    chrY_raw = _apply_region_filters(chrY_raw.reset_index(drop=True), params, centromere, targets)
    gender = infer_gender(
        out,
        chrY_coverage_ratio(chrY_raw, raw),
        chrX_median_for_male=params.chrX_median_for_male,
        frac_reads_chrY_for_male=params.frac_reads_chrY_for_male,
        use_chrY=params.use_chrY,
    )
    return ReadCountResult(bins=out, track=track, gender=gender, model=corrected.model)
