"""
Data model for ulpcn.

Bin and segment tables are pandas DataFrames; this module holds the value
objects that travel with them: sample context, covariate presence, fitted bias
curves and copy-number call labels.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .genome import ChromosomeSet

CALL_LABELS: Tuple[str, ...] = ("HOMD", "HETD", "NEUT", "GAIN", "AMP", "HLAMP")

# Floor applied to inverse-model copy number
MIN_COPY_NUMBER = 1 / 2 ** 6


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


def call_labels(copy_number, offset=0) -> np.ndarray:
    """
    Map integer copy numbers to call labels.

    Index 0..5 is HOMD..HLAMP; anything above 5 is HLAMP. `offset` shifts the
    index, as a scalar or per row (male sex chromosomes use +1 for their
    haploid baseline). Missing copy numbers map to None.
    """
    cn = np.asarray(copy_number, dtype=float)
    shift = np.broadcast_to(np.asarray(offset, dtype=float), cn.shape)
    labels = np.empty(cn.shape, dtype=object)
    finite = np.isfinite(cn)
    idx = np.clip(cn[finite] + shift[finite], 0, len(CALL_LABELS) - 1).astype(int)
    labels[finite] = np.asarray(CALL_LABELS, dtype=object)[idx]
    labels[~finite] = None
    return labels


@dataclass(frozen=True)
class SampleContext:
    """
    Immutable per-run sample parameters.

    Attributes:
        purity: Tumour fraction of sequenced cells (0-1)
        ploidy: Average tumour copy number (> 0)
        gender: Inferred or supplied sample sex
        genome_build: Genome build label (e.g., hg19)
        chromosomes: Chromosomes the run operates on
    """
    purity: float
    ploidy: float
    gender: Gender = Gender.UNKNOWN
    genome_build: str = "hg19"
    chromosomes: ChromosomeSet = field(default_factory=lambda: ChromosomeSet.human(include_y=False))

    def __post_init__(self):
        if not 0.0 <= self.purity <= 1.0:
            raise ValueError(f"Purity must be between 0 and 1, got {self.purity}")
        if not self.ploidy > 0:
            raise ValueError(f"Ploidy must be positive, got {self.ploidy}")
        object.__setattr__(self, "gender", Gender(self.gender))

    @property
    def is_male(self) -> bool:
        return self.gender == Gender.MALE

    def with_gender(self, gender) -> "SampleContext":
        return replace(self, gender=Gender(gender))


@dataclass(frozen=True)
class ReadCountTrack:
    """
    Bin table plus the covariates it carries.

    Covariate presence is decided once here; downstream stages check the
    flags rather than probing columns.
    """
    bins: pd.DataFrame
    has_map: bool = False
    has_rep_time: bool = False

    @classmethod
    def from_frame(cls, bins: pd.DataFrame, require_gc: bool = True) -> "ReadCountTrack":
        required = ("reads", "gc") if require_gc else ("reads",)
        if any(c not in bins.columns for c in required):
            raise ValueError(f"Missing one of required columns: {', '.join(required)}")
        return cls(
            bins=bins,
            has_map=bool("map" in bins.columns and bins["map"].notna().any()),
            has_rep_time=bool("repTime" in bins.columns and bins["repTime"].notna().any()),
        )


@dataclass(frozen=True)
class BiasCurve:
    """
    A fitted correction curve stored as sorted knots.

    Evaluation interpolates linearly between knots and is undefined (NaN)
    outside [x[0], x[-1]].
    """
    x: np.ndarray
    y: np.ndarray

    def __post_init__(self):
        x = np.asarray(self.x, dtype=float)
        y = np.asarray(self.y, dtype=float)
        if x.shape != y.shape or x.size == 0:
            raise ValueError("BiasCurve needs matching, non-empty x and y")
        order = np.argsort(x, kind="mergesort")
        object.__setattr__(self, "x", x[order])
        object.__setattr__(self, "y", y[order])

    @property
    def domain(self) -> Tuple[float, float]:
        return float(self.x[0]), float(self.x[-1])

    def __call__(self, values) -> np.ndarray:
        values = np.asarray(values, dtype=float)
        out = np.full(values.shape, np.nan)
        lo, hi = self.domain
        inside = np.isfinite(values) & (values >= lo) & (values <= hi)
        out[inside] = np.interp(values[inside], self.x, self.y)
        return out


@dataclass(frozen=True)
class BiasModel:
    """Curves fitted for one sample; never shared across samples."""
    gc: BiasCurve
    map: Optional[BiasCurve] = None
    rep_time: Optional[BiasCurve] = None
