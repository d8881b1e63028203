"""
Read-depth bias regression.

Corrects binned read counts for GC content, then mappability, then
replication timing. Each later stage is fit on the residual of the earlier
ones, so the order is fixed. Curves are fit with LOESS (skmisc) on a bounded
random subsample of well-behaved ("ideal") bins; the subsample is drawn from
an explicit numpy Generator so results are reproducible under a fixed seed.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import numpy as np
import pandas as pd
from skmisc.loess import loess

from .genome import ChromosomeSet
from .models import BiasCurve, BiasModel, ReadCountTrack

logger = logging.getLogger("ulpcn.core.bias_correction")

READS_OUTLIER = 0.01
DOMAIN_OUTLIER = 0.001
CORRECTED_OUTLIER = 0.01
ROUGH_SPAN = 0.03
FINAL_SPAN = 0.3
MAP_SPAN = 2 / 3
MIN_MAP_KNOTS = 5
GRID_STEP = 0.001


@dataclass
class BiasCorrectionResult:
    """Corrected bin table and the curves used to produce it."""
    bins: pd.DataFrame
    model: BiasModel


def _fit_loess(x: np.ndarray, y: np.ndarray, span: float, **kwargs) -> loess:
    model = loess(
        np.ascontiguousarray(x, dtype=float),
        np.ascontiguousarray(y, dtype=float),
        span=span,
        **kwargs,
    )
    model.fit()
    return model


def _predict(model: loess, x: np.ndarray, domain: Tuple[float, float]) -> np.ndarray:
    """Predict inside the fitted domain; values outside are undefined (NaN)."""
    x = np.asarray(x, dtype=float)
    out = np.full(x.shape, np.nan)
    inside = np.isfinite(x) & (x >= domain[0]) & (x <= domain[1])
    if inside.any():
        out[inside] = np.asarray(model.predict(x[inside], stderror=False).values)
    return out


def _subsample(candidates: np.ndarray, sample_size: int, rng: np.random.Generator) -> np.ndarray:
    n = min(len(candidates), sample_size)
    return np.sort(rng.choice(candidates, size=n, replace=False))


def _two_stage_curve(
    x: np.ndarray, y: np.ndarray, grid_lo: float, grid_hi: float
) -> BiasCurve:
    """
    Rough LOESS fit, re-smoothed over a uniform grid.

    The rough fit (narrow span) follows the data closely; re-smoothing its
    grid predictions with a wide span stabilises the tails.
    """
    if len(x) < 10:
        raise ValueError(f"Too few bins ({len(x)}) to fit a bias curve")
    rough = _fit_loess(x, y, span=ROUGH_SPAN)
    grid = np.round(np.arange(grid_lo, grid_hi + GRID_STEP / 2, GRID_STEP), 10)
    rough_pred = _predict(rough, grid, (x.min(), x.max()))
    defined = np.isfinite(rough_pred)
    final = _fit_loess(grid[defined], rough_pred[defined], span=FINAL_SPAN)
    grid = grid[defined]
    return BiasCurve(x=grid, y=_predict(final, grid, (grid.min(), grid.max())))


def _robust_curve(x: np.ndarray, y: np.ndarray) -> Optional[BiasCurve]:
    """
    Robust local-linear smooth over the unique x values.

    Tied x values are averaged first and fit once, weighted by their count.
    Returns None when there are too few distinct values to fit a curve.
    """
    if len(x) < 10:
        raise ValueError(f"Too few bins ({len(x)}) to fit a bias curve")
    grouped = pd.Series(np.asarray(y, dtype=float)).groupby(np.asarray(x, dtype=float)).agg(["mean", "size"])
    if len(grouped) < MIN_MAP_KNOTS:
        logger.info(f"Only {len(grouped)} distinct mappability values; skipping mappability correction")
        return None
    knots = grouped.index.to_numpy()
    fit = _fit_loess(
        knots, grouped["mean"].to_numpy(), span=MAP_SPAN,
        weights=grouped["size"].to_numpy(dtype=float), degree=1, family="symmetric",
    )
    return BiasCurve(x=knots, y=np.asarray(fit.outputs.fitted_values))


def correct_read_counts(
    track: ReadCountTrack,
    chr_normalize: ChromosomeSet,
    mappability: float = 0.9,
    sample_size: int = 50_000,
    rng: Optional[np.random.Generator] = None,
) -> BiasCorrectionResult:
    """
    Correct read counts for GC, mappability and replication-timing bias.

    Args:
        track: Bin table with reads and gc (map/repTime optional)
        chr_normalize: Chromosomes used to fit the curves
        mappability: Minimum mappability for a bin to be ideal
        sample_size: Cap on bins used to fit each curve
        rng: Random generator for subsampling (default: seed 0)

    Returns:
        BiasCorrectionResult with columns valid, ideal, cor_gc, cor_map,
        cor_rep and corrected_logratio added to the bins
    """
    if rng is None:
        rng = np.random.default_rng(0)

    x = track.bins.copy()
    reads = x["reads"].to_numpy(dtype=float)
    gc = x["gc"].to_numpy(dtype=float)
    chr_ind = x["chrom"].isin(chr_normalize.names).to_numpy()

    logger.info("Applying filter on data...")
    with np.errstate(invalid="ignore"):
        valid = np.isfinite(reads) & np.isfinite(gc) & (reads > 0) & (gc >= 0)
    fit_set = valid & chr_ind
    if not fit_set.any():
        raise ValueError("No valid bins on the normalization chromosomes to fit bias curves")

    range_lo, range_hi = np.quantile(reads[fit_set], [0, 1 - READS_OUTLIER])
    domain_lo, domain_hi = np.quantile(gc[fit_set], [DOMAIN_OUTLIER, 1 - DOMAIN_OUTLIER])
    ideal = (
        valid
        & (reads > range_lo) & (reads <= range_hi)
        & (gc >= domain_lo) & (gc <= domain_hi)
    )
    if track.has_map:
        with np.errstate(invalid="ignore"):
            ideal &= x["map"].to_numpy(dtype=float) >= mappability
    x["valid"] = valid
    x["ideal"] = ideal
    logger.debug(f"Valid bins: {valid.sum()}/{len(x)}, ideal bins: {ideal.sum()}")

    logger.info("Correcting for GC bias...")
    select = _subsample(np.flatnonzero(ideal & chr_ind), sample_size, rng)
    gc_curve = _two_stage_curve(gc[select], reads[select], 0.0, 1.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        cor_gc = reads / gc_curve(gc)
    x["cor_gc"] = cor_gc

    map_curve = None
    if track.has_map:
        logger.info("Correcting for mappability bias...")
        map_values = x["map"].to_numpy(dtype=float)
        select = _subsample(_below_outlier(cor_gc, valid & chr_ind, chr_ind), sample_size, rng)
        map_curve = _robust_curve(map_values[select], cor_gc[select])
    if map_curve is not None:
        with np.errstate(divide="ignore", invalid="ignore"):
            cor_map = cor_gc / map_curve(map_values)
    else:
        cor_map = cor_gc
    x["cor_map"] = cor_map

    rep_curve = None
    if track.has_rep_time:
        logger.info("Correcting for replication timing bias...")
        rep = x["repTime"].to_numpy(dtype=float)
        rep_fit_set = fit_set & np.isfinite(rep)
        rep_lo, rep_hi = np.quantile(rep[rep_fit_set], [DOMAIN_OUTLIER, 1 - DOMAIN_OUTLIER])
        candidates = _below_outlier(cor_map, valid & chr_ind, chr_ind & np.isfinite(rep))
        select = _subsample(candidates, sample_size, rng)
        rep_curve = _two_stage_curve(rep[select], cor_map[select], rep_lo, rep_hi)
        with np.errstate(divide="ignore", invalid="ignore"):
            cor_rep = cor_map / rep_curve(rep)
    else:
        cor_rep = cor_map
    x["cor_rep"] = cor_rep

    with np.errstate(divide="ignore", invalid="ignore"):
        copy = np.where(cor_rep > 0, np.log2(cor_rep), np.nan)
    x["corrected_logratio"] = copy
    logger.debug(f"Corrected bins: {np.isfinite(copy).sum()}/{len(x)} with a defined log-ratio")

    return BiasCorrectionResult(
        bins=x,
        model=BiasModel(gc=gc_curve, map=map_curve, rep_time=rep_curve),
    )


def _below_outlier(values: np.ndarray, quantile_set: np.ndarray, restrict: np.ndarray) -> np.ndarray:
    """Indices in `restrict` with values below the 99th percentile of `values[quantile_set]`."""
    ref = values[quantile_set]
    ref = ref[np.isfinite(ref)]
    if ref.size == 0:
        raise ValueError("No corrected values available to fit the next bias curve")
    upper = np.quantile(ref, 1 - CORRECTED_OUTLIER)
    with np.errstate(invalid="ignore"):
        keep = restrict & np.isfinite(values) & (values < upper)
    return np.flatnonzero(keep)


def filter_by_mappability(bins: pd.DataFrame, threshold: float = 0.9) -> pd.DataFrame:
    """Drop bins whose mappability score is below `threshold`."""
    logger.info(f"Filtering low uniqueness regions with mappability score < {threshold}")
    keep = bins["map"].to_numpy(dtype=float) >= threshold
    logger.info(f"Removed {int((~keep).sum())} bins with low mappability")
    return bins.loc[keep].reset_index(drop=True)
