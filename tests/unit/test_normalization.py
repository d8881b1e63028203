"""
Unit tests for matched-normal and panel-of-normals normalization.
"""

import pytest
import numpy as np
import pandas as pd

from ulpcn.core.genome import GenomeStyle
from ulpcn.core.models import Gender
from ulpcn.core.normalization import normalize_by_panel_or_matched_normal
from ulpcn.pon.model import PanelOfNormals


@pytest.fixture
def tumour():
    return pd.DataFrame({
        "chrom": ["1", "1", "2", "X", "X"],
        "start": [1, 1001, 1, 1, 1001],
        "end": [1000, 2000, 1000, 1000, 2000],
        "corrected_logratio": [0.5, -0.2, 0.1, -0.9, -1.1],
    })


@pytest.fixture
def panel():
    bins = pd.DataFrame({
        "chrom": ["chr1", "chr1", "chrX"],
        "start": [1, 1001, 1],
        "end": [1000, 2000, 1000],
        "median": [0.1, -0.1, 0.05],
    })
    return PanelOfNormals(bins=bins, n_samples=3, genome_build="hg19", genome_style=GenomeStyle.UCSC)


@pytest.mark.unit
def test_matched_normal_subtracts_bin_for_bin(tumour):
    normal = tumour.assign(corrected_logratio=[0.1, 0.1, 0.1, 0.1, 0.1])
    out, stats = normalize_by_panel_or_matched_normal(tumour, GenomeStyle.NCBI, normal=normal)
    np.testing.assert_allclose(out["corrected_logratio"], [0.4, -0.3, 0.0, -1.0, -1.2])
    assert stats.n_matched_normal == 5
    # input untouched
    assert tumour["corrected_logratio"].iloc[0] == 0.5


@pytest.mark.unit
def test_matched_normal_length_mismatch(tumour):
    with pytest.raises(ValueError, match="binned identically"):
        normalize_by_panel_or_matched_normal(tumour, GenomeStyle.NCBI, normal=tumour.iloc[:4])


@pytest.mark.unit
def test_matched_normal_interval_mismatch(tumour):
    normal = tumour.copy()
    normal.loc[2, "start"] = 2
    with pytest.raises(ValueError, match="column 'start'"):
        normalize_by_panel_or_matched_normal(tumour, GenomeStyle.NCBI, normal=normal)


@pytest.mark.unit
def test_male_chrX_self_normalization(tumour):
    out, stats = normalize_by_panel_or_matched_normal(
        tumour, GenomeStyle.NCBI, gender=Gender.MALE, normalize_male_x=True
    )
    np.testing.assert_allclose(out["corrected_logratio"], [0.5, -0.2, 0.1, 0.1, -0.1])
    assert stats.n_self_normalized == 2


@pytest.mark.unit
def test_female_chrX_is_not_self_normalized(tumour):
    out, stats = normalize_by_panel_or_matched_normal(
        tumour, GenomeStyle.NCBI, gender=Gender.FEMALE, normalize_male_x=True
    )
    np.testing.assert_allclose(out["corrected_logratio"], tumour["corrected_logratio"])
    assert stats.n_self_normalized == 0


@pytest.mark.unit
def test_panel_subtracts_median_on_matched_bins_only(tumour, panel):
    out, stats = normalize_by_panel_or_matched_normal(tumour, GenomeStyle.NCBI, panel=panel)
    np.testing.assert_allclose(out["corrected_logratio"], [0.4, -0.1, 0.1, -0.95, -1.1])
    assert stats.n_panel == 3
    assert stats.n_panel_missing == 2


@pytest.mark.unit
def test_panel_applies_to_male_chrX_without_self_normalization(tumour, panel):
    out, _ = normalize_by_panel_or_matched_normal(
        tumour, GenomeStyle.NCBI, panel=panel, gender=Gender.MALE, normalize_male_x=False
    )
    assert out["corrected_logratio"].iloc[3] == pytest.approx(-0.95)


@pytest.mark.unit
def test_matched_normal_then_panel(tumour, panel):
    normal = tumour.assign(corrected_logratio=0.0)
    out, stats = normalize_by_panel_or_matched_normal(tumour, GenomeStyle.NCBI, normal=normal, panel=panel)
    np.testing.assert_allclose(out["corrected_logratio"], [0.4, -0.1, 0.1, -0.95, -1.1])
    assert stats.n_matched_normal == 5 and stats.n_panel == 3
