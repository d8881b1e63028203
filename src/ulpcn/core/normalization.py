"""
Normalization against a matched normal or a panel of normals.

Subtracts a reference log-ratio baseline from the tumour log-ratio. A matched
normal is subtracted bin-for-bin; without one, male chrX can be centred on its
own median; a panel of normals is then subtracted on bins whose interval
matches exactly.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import numpy as np
import pandas as pd

from .genome import GenomeStyle, apply_style, is_chrX
from .intervals import IntervalIndex
from .models import Gender

logger = logging.getLogger("ulpcn.core.normalization")


@dataclass
class NormalizationStats:
    """Counts of bins touched by each normalization step."""
    n_bins: int = 0
    n_matched_normal: int = 0
    n_self_normalized: int = 0
    n_panel: int = 0
    n_panel_missing: int = 0

    def log_summary(self) -> None:
        logger.info(
            f"Normalization: {self.n_matched_normal} bins by matched normal, "
            f"{self.n_self_normalized} chrX bins self-normalized, "
            f"{self.n_panel}/{self.n_bins} bins by panel"
        )
        if self.n_panel_missing:
            logger.debug(f"{self.n_panel_missing} bins absent from the panel kept their value")


def _check_same_bins(tumour: pd.DataFrame, normal: pd.DataFrame) -> None:
    if len(tumour) != len(normal):
        raise ValueError(
            f"Matched normal has {len(normal)} bins but tumour has {len(tumour)}; "
            f"both must be binned identically"
        )
    for col in ("chrom", "start", "end"):
        if not np.array_equal(tumour[col].astype(str).to_numpy(), normal[col].astype(str).to_numpy()):
            raise ValueError(f"Matched normal bins differ from tumour bins in column '{col}'")


def normalize_by_panel_or_matched_normal(
    tumour: pd.DataFrame,
    style: GenomeStyle,
    normal: Optional[pd.DataFrame] = None,
    panel=None,
    gender: Gender = Gender.FEMALE,
    normalize_male_x: bool = False,
    column: str = "corrected_logratio",
) -> Tuple[pd.DataFrame, NormalizationStats]:
    """
    Subtract a matched-normal and/or panel-of-normals baseline from tumour log-ratios.

    Args:
        tumour: Corrected tumour bins (chrom, start, end, `column`) in `style`
        style: Chromosome naming style of the tumour bins
        normal: Corrected matched-normal bins, binned identically to `tumour`
        panel: Loaded PanelOfNormals
        gender: Sample sex
        normalize_male_x: Centre male chrX on its median when there is no matched normal
        column: Log-ratio column to normalize

    The panel is subtracted on every matched bin, male chrX included, whether
    or not `normalize_male_x` already centred it.

    Returns:
        (normalized bins, NormalizationStats)
    """
    out = tumour.copy()
    values = out[column].to_numpy(dtype=float).copy()
    chrX_ind = np.array([is_chrX(c) for c in out["chrom"]], dtype=bool)
    stats = NormalizationStats(n_bins=len(out))

    if normal is not None:
        logger.info("Normalizing Tumour by Normal")
        _check_same_bins(out, apply_style(normal, style))
        values = values - normal[column].to_numpy(dtype=float)
        stats.n_matched_normal = len(out)
    elif Gender(gender) == Gender.MALE and normalize_male_x and chrX_ind.any():
        chrX_values = values[chrX_ind]
        chrX_values = chrX_values[np.isfinite(chrX_values)]
        if chrX_values.size:
            chrX_median = float(np.median(chrX_values))
            logger.info(f"Normalizing male chrX by its median ({chrX_median:.4f})")
            values[chrX_ind] = values[chrX_ind] - chrX_median
            stats.n_self_normalized = int(chrX_ind.sum())

    if panel is not None:
        logger.info("Normalizing Tumour by Panel of Normals (PoN)")
        # chrX is panel-normalized for every sample, including males without normalize_male_x
        panel_bins = apply_style(panel.bins, style)
        query_hits, subject_hits = IntervalIndex.from_frame(panel_bins).match_equal(out)
        values[query_hits] = values[query_hits] - panel_bins["median"].to_numpy(dtype=float)[subject_hits]
        stats.n_panel = len(query_hits)
        stats.n_panel_missing = len(out) - len(query_hits)

    out[column] = values
    stats.log_summary()
    return out, stats
