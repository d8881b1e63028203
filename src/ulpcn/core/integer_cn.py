"""
Integer copy-number correction.

The HMM assigns each segment and bin an integer copy number from a small set
of states. High-level amplifications beyond the top state and homozygous
deletions are under-called, so the log-ratio is inverted analytically under
the purity/ploidy/cellular-prevalence model and used to overwrite the HMM
call where the two disagree in well-defined ways.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np
import pandas as pd

from .config import CopyNumberParams
from .genome import is_chrX, is_sex_chromosome, restyle_chromosomes
from .intervals import IntervalIndex
from .models import MIN_COPY_NUMBER, SampleContext, call_labels

logger = logging.getLogger("ulpcn.core.integer_cn")

HLAMP_FACTOR = 1.2
MAX_DIRECTION_GAP = 2

SEGMENT_COLUMNS = ("chrom", "start", "end", "median_logratio", "copy_number")
BIN_COLUMNS = ("chrom", "start", "end", "corrected_logratio", "copy_number")


def logr_based_cn(x, purity: float, ploidy: float, cell_prev=None, cn=2):
    """
    Copy number implied by a log-ratio under the purity/ploidy model.

    Inverts
        2^x = (purity*c*CN + ref*purity*(1-c) + ref*(1-purity))
              / (ref*(1-purity) + purity*ploidy*ref/2)
    for CN, with reference copy number `cn` (ref) and cellular prevalence c.
    The result is floored at 2^-6; missing log-ratios stay missing.

    Args:
        x: Log2 ratio (scalar or array)
        purity: Tumour purity
        ploidy: Tumour ploidy
        cell_prev: Cellular prevalence (scalar or array; None/NaN = 1)
        cn: Reference copy number (2 for autosomes, 1 for male chrX/chrY)

    Returns:
        Copy number (float for scalar input, array otherwise)
    """
    x_arr = np.asarray(x, dtype=float)
    if cell_prev is None:
        c = np.ones_like(x_arr)
    else:
        c = np.broadcast_to(np.asarray(cell_prev, dtype=float), x_arr.shape).copy()
        c[np.isnan(c)] = 1.0
    ref = np.asarray(cn, dtype=float)

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        ct = (
            2 ** x_arr * (ref * (1 - purity) + purity * ploidy * (ref / 2))
            - ref * (1 - purity)
            - ref * purity * (1 - c)
        )
        ct = ct / (purity * c)
    ct = np.where(np.isnan(x_arr), np.nan, np.fmax(ct, MIN_COPY_NUMBER))
    if np.ndim(x) == 0:
        return float(ct)
    return ct


@dataclass
class CopyNumberCorrection:
    """
    Result of correct_integer_cn.

    Attributes:
        bins: Bins with logR_Copy_Number, Corrected_Copy_Number, Corrected_Call
        segments: Segments with the same columns added
        changed_segments: Positional indices of segments that were re-called
        autosome_ceiling: Amplification ceiling used for autosomes
        chrX_ceiling: Amplification ceiling used for chrX (None without chrX)
    """
    bins: pd.DataFrame
    segments: pd.DataFrame
    changed_segments: np.ndarray
    autosome_ceiling: float
    chrX_ceiling: Optional[float]


def _require(df: pd.DataFrame, columns, what: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required {what} columns: {missing}")


def _cellular_prevalence(df: pd.DataFrame, cell_prev: Optional[float]) -> np.ndarray:
    c = np.ones(len(df))
    if "cellular_prevalence" in df.columns:
        per_row = df["cellular_prevalence"].to_numpy(dtype=float)
        c = np.where(np.isfinite(per_row), per_row, 1.0)
    elif cell_prev is not None and "subclone_status" in df.columns:
        subclonal = df["subclone_status"].fillna(False).astype(bool).to_numpy()
        c[subclonal] = cell_prev
    return c


def _amplified(copy_number: np.ndarray, logr_cn: np.ndarray, ceiling: float) -> np.ndarray:
    with np.errstate(invalid="ignore"):
        return ((copy_number >= ceiling) | (logr_cn >= ceiling * HLAMP_FACTOR)) & np.isfinite(logr_cn)


def _ceiling(override: Optional[float], copy_number: np.ndarray, mask: np.ndarray) -> float:
    if override is not None:
        return float(override)
    values = copy_number[mask & np.isfinite(copy_number)]
    return float(values.max()) if values.size else float("inf")


def _as_int(values: np.ndarray) -> pd.Series:
    return pd.Series(np.where(np.isfinite(values), values, np.nan)).astype("Int64")


def correct_integer_cn(
    bins: pd.DataFrame,
    segments: pd.DataFrame,
    context: SampleContext,
    params: Optional[CopyNumberParams] = None,
    cell_prev: Optional[float] = None,
    call_column: str = "call",
) -> CopyNumberCorrection:
    """
    Reconcile HMM integer copy numbers with log-ratio based copy numbers.

    Segment rules are applied in order (HLAMP rescue, HOMD rescue, male chrX
    re-correction, direction-conflict correction), then bins inherit the call
    of any overlapping re-called segment; remaining bins that meet the HLAMP
    test on their own are re-called from their own log-ratio.
    Rows whose log-ratio is missing keep their HMM call.

    Args:
        bins: Bin table (chrom, start, end, corrected_logratio, copy_number, call)
        segments: Segment table (chrom, start, end, median_logratio, copy_number, call)
        context: Purity, ploidy, gender and chromosome set of the sample
        params: Correction parameters
        cell_prev: Cellular prevalence applied to subclonal rows
        call_column: Column holding the HMM call label

    Returns:
        CopyNumberCorrection
    """
    if params is None:
        params = CopyNumberParams()
    _require(segments, SEGMENT_COLUMNS + (call_column,), "segment")
    _require(bins, BIN_COLUMNS + (call_column,), "bin")

    purity, ploidy = context.purity, context.ploidy
    male = context.is_male
    chromosomes = context.chromosomes
    apply = purity >= params.min_purity_to_correct

    segs = segments.copy().reset_index(drop=True)
    seg_chroms = segs["chrom"].astype(str).to_numpy()
    seg_chrX = np.array([is_chrX(c) for c in seg_chroms], dtype=bool)
    seg_haploid = np.array([male and is_sex_chromosome(c) for c in seg_chroms], dtype=bool)
    seg_offsets = seg_haploid.astype(int)
    seg_cn = segs["copy_number"].to_numpy(dtype=float)
    seg_lcn = logr_based_cn(
        segs["median_logratio"].to_numpy(dtype=float),
        purity, ploidy,
        _cellular_prevalence(segs, cell_prev),
        np.where(seg_haploid, 1, 2),
    )
    seg_rounded = np.rint(seg_lcn)
    seg_defined = np.isfinite(seg_lcn)
    segs["logR_Copy_Number"] = seg_lcn

    seg_styled = restyle_chromosomes(seg_chroms, chromosomes.style)
    auto_mask = np.isin(seg_styled, chromosomes.autosomes)
    autosome_ceiling = _ceiling(params.max_cn_autosomes, seg_cn, auto_mask)
    chrX_ceiling = _ceiling(params.max_cn_x, seg_cn, seg_chrX) if seg_chrX.any() else None
    logger.debug(f"Amplification ceilings: autosomes={autosome_ceiling}, chrX={chrX_ceiling}")

    corrected = seg_cn.copy()
    calls = segs[call_column].to_numpy(dtype=object).copy()
    changed = np.zeros(len(segs), dtype=bool)

    if apply:
        ind = _amplified(seg_cn, seg_lcn, autosome_ceiling)
        corrected[ind] = seg_rounded[ind]
        calls[ind] = call_labels(seg_rounded)[ind]
        changed |= ind
        logger.debug(f"HLAMP rescue: {int(ind.sum())} segments")

        if params.correct_homd:
            in_chrs = np.isin(seg_styled, chromosomes.names)
            ind = in_chrs & seg_defined & ((seg_cn == 0) | (seg_lcn == MIN_COPY_NUMBER))
            corrected[ind] = seg_rounded[ind]
            calls[ind] = call_labels(seg_rounded)[ind]
            changed |= ind
            logger.debug(f"HOMD rescue: {int(ind.sum())} segments")

        if male and seg_chrX.any():
            if params.correct_whole_chrx_for_males:
                ind = seg_chrX & seg_defined
            else:
                ind = seg_chrX & _amplified(seg_cn, seg_lcn, chrX_ceiling)
            corrected[ind] = seg_rounded[ind]
            calls[ind] = call_labels(seg_rounded, 1)[ind]
            changed |= ind
            logger.debug(f"Male chrX re-correction: {int(ind.sum())} segments")

        with np.errstate(invalid="ignore"):
            opposite = ((seg_rounded >= ploidy) & (corrected < ploidy)) | (
                (seg_rounded < ploidy) & (corrected >= ploidy)
            )
            ind = opposite & (np.abs(seg_rounded - corrected) > MAX_DIRECTION_GAP)
        corrected[ind] = seg_rounded[ind]
        calls[ind] = call_labels(seg_rounded, seg_offsets)[ind]
        changed |= ind
        logger.debug(f"Direction-conflict correction: {int(ind.sum())} segments")
    else:
        logger.info(
            f"Purity {purity:.3f} below {params.min_purity_to_correct}; keeping original copy-number calls"
        )

    segs["Corrected_Copy_Number"] = _as_int(corrected)
    segs["Corrected_Call"] = calls

    out_bins = _correct_bins(
        bins, segs, corrected, calls, changed, context, cell_prev, call_column,
        autosome_ceiling, apply,
    )
    logger.info(f"Corrected {int(changed.sum())}/{len(segs)} segments")
    return CopyNumberCorrection(
        bins=out_bins,
        segments=segs,
        changed_segments=np.flatnonzero(changed),
        autosome_ceiling=autosome_ceiling,
        chrX_ceiling=chrX_ceiling,
    )


def _correct_bins(
    bins: pd.DataFrame,
    segs: pd.DataFrame,
    seg_corrected: np.ndarray,
    seg_calls: np.ndarray,
    changed: np.ndarray,
    context: SampleContext,
    cell_prev: Optional[float],
    call_column: str,
    autosome_ceiling: float,
    apply: bool,
) -> pd.DataFrame:
    out = bins.copy().reset_index(drop=True)
    chroms = out["chrom"].astype(str).to_numpy()
    haploid = np.array([context.is_male and is_sex_chromosome(c) for c in chroms], dtype=bool)
    cn = out["copy_number"].to_numpy(dtype=float)
    lcn = logr_based_cn(
        out["corrected_logratio"].to_numpy(dtype=float),
        context.purity, context.ploidy,
        _cellular_prevalence(out, cell_prev),
        np.where(haploid, 1, 2),
    )
    corrected = cn.copy()
    calls = out[call_column].to_numpy(dtype=object).copy()

    if apply:
        covered = np.zeros(len(out), dtype=bool)
        changed_idx = np.flatnonzero(changed)
        if len(changed_idx):
            index = IntervalIndex.from_frame(segs.iloc[changed_idx])
            query_hits, subject_hits = index.find_overlaps_frame(out)
            if len(query_hits):
                # a bin spanning two re-called segments takes the later one
                rev_first = np.unique(query_hits[::-1], return_index=True)[1]
                last = len(query_hits) - 1 - rev_first
                q, s = query_hits[last], changed_idx[subject_hits[last]]
                corrected[q] = seg_corrected[s]
                calls[q] = seg_calls[s]
                covered[q] = True

        rounded = np.rint(lcn)
        ind = _amplified(cn, lcn, autosome_ceiling) & ~covered
        corrected[ind] = rounded[ind]
        calls[ind] = call_labels(rounded, haploid.astype(int))[ind]
        logger.debug(f"Bins: {int(covered.sum())} from segments, {int(ind.sum())} rescued individually")

    out["logR_Copy_Number"] = lcn
    out["Corrected_Copy_Number"] = _as_int(corrected)
    out["Corrected_Call"] = calls
    return out
