"""
Sample sex inference from chrX log-ratio and chrY coverage.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np
import pandas as pd

from .genome import is_chrX, is_chrY
from .models import Gender

logger = logging.getLogger("ulpcn.core.sex_inference")


@dataclass(frozen=True)
class GenderResult:
    gender: Gender
    chrY_cov_ratio: Optional[float]
    chrX_median: Optional[float]


def chrY_coverage_ratio(chrY_bins: pd.DataFrame, raw_bins: pd.DataFrame) -> float:
    """
    Fraction of all raw reads that fall on chrY.

    Args:
        chrY_bins: Raw chrY bins (after any exclusions) with a reads column
        raw_bins: All raw bins with a reads column

    Returns:
        Ratio of chrY reads to total reads (NaN when there are no reads)
    """
    chrY_reads = chrY_bins.loc[[is_chrY(c) for c in chrY_bins["chrom"]], "reads"].sum()
    total = raw_bins["reads"].sum()
    if total <= 0:
        return float("nan")
    return float(chrY_reads / total)


def infer_gender(
    corrected_bins: pd.DataFrame,
    chrY_cov_ratio: Optional[float],
    chrX_median_for_male: float = -0.5,
    frac_reads_chrY_for_male: float = 0.002,
    use_chrY: bool = True,
) -> GenderResult:
    """
    Classify a sample as male, female or unknown.

    A chrX median log-ratio below `chrX_median_for_male` suggests a single X.
    When chrY evidence is used it decides the call: the sample is male only
    if the chrY read fraction is also below `frac_reads_chrY_for_male`.
    Without chrX bins the sex is unknown.

    Args:
        corrected_bins: Bias-corrected bins with chrom and corrected_logratio
        chrY_cov_ratio: chrY read fraction from chrY_coverage_ratio()
        chrX_median_for_male: chrX median threshold
        frac_reads_chrY_for_male: chrY read-fraction threshold
        use_chrY: Let chrY coverage decide when chrX looks male

    Returns:
        GenderResult with the call and the statistics it was based on
    """
    chrX_mask = np.array([is_chrX(c) for c in corrected_bins["chrom"]], dtype=bool)
    chrX_values = corrected_bins.loc[chrX_mask, "corrected_logratio"].to_numpy(dtype=float)
    chrX_values = chrX_values[np.isfinite(chrX_values)]

    if chrX_values.size == 0:
        logger.info("No chrX bins available; sample sex is unknown")
        return GenderResult(gender=Gender.UNKNOWN, chrY_cov_ratio=None, chrX_median=None)

    chrX_median = float(np.median(chrX_values))
    if chrX_median < chrX_median_for_male:
        chrY_says_male = (
            chrY_cov_ratio is not None
            and np.isfinite(chrY_cov_ratio)
            and chrY_cov_ratio < frac_reads_chrY_for_male
        )
        if use_chrY and not chrY_says_male:
            gender = Gender.FEMALE
        else:
            gender = Gender.MALE
    else:
        gender = Gender.FEMALE

    logger.info(
        f"Sample sex: {gender.value} (chrX median={chrX_median:.4f}, chrY ratio={chrY_cov_ratio})"
    )
    return GenderResult(gender=gender, chrY_cov_ratio=chrY_cov_ratio, chrX_median=chrX_median)
