"""
Chromosome naming and selection.

Chromosome naming is an explicit value (GenomeStyle) passed to every function
that touches genomic intervals. NCBI names are bare ("1", "X"), UCSC names are
prefixed ("chr1", "chrX").
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple
import logging

import pandas as pd

logger = logging.getLogger("ulpcn.core.genome")

_UCSC_PREFIX = "chr"


class GenomeStyle(str, Enum):
    NCBI = "NCBI"
    UCSC = "UCSC"


def restyle_chromosome(chrom: str, style: GenomeStyle) -> str:
    """Rename a single chromosome to the requested style."""
    chrom = str(chrom)
    if style == GenomeStyle.UCSC:
        if chrom.startswith(_UCSC_PREFIX):
            return chrom
        if chrom == "MT":
            return "chrM"
        return f"{_UCSC_PREFIX}{chrom}"
    if chrom.startswith(_UCSC_PREFIX):
        core = chrom[len(_UCSC_PREFIX):]
        return "MT" if core == "M" else core
    return chrom


def restyle_chromosomes(chroms: Iterable[str], style: GenomeStyle) -> list:
    return [restyle_chromosome(c, style) for c in chroms]


def _core_name(chrom: str) -> str:
    return restyle_chromosome(chrom, GenomeStyle.NCBI)


def is_chrX(chrom: str) -> bool:
    return _core_name(chrom) == "X"


def is_chrY(chrom: str) -> bool:
    return _core_name(chrom) == "Y"


def is_sex_chromosome(chrom: str) -> bool:
    return _core_name(chrom) in ("X", "Y")


@dataclass(frozen=True)
class ChromosomeSet:
    """
    Ordered set of chromosome names in a fixed naming style.

    Attributes:
        names: Chromosome names, already in `style`
        style: Naming style shared by every name
    """
    names: Tuple[str, ...]
    style: GenomeStyle = GenomeStyle.NCBI

    @classmethod
    def from_names(cls, names: Iterable[str], style: GenomeStyle = GenomeStyle.NCBI) -> "ChromosomeSet":
        return cls(names=tuple(restyle_chromosomes(names, style)), style=style)

    @classmethod
    def human(cls, style: GenomeStyle = GenomeStyle.NCBI, include_y: bool = True) -> "ChromosomeSet":
        names = [str(i) for i in range(1, 23)] + ["X"]
        if include_y:
            names.append("Y")
        return cls.from_names(names, style)

    def __contains__(self, chrom) -> bool:
        return chrom in self.names

    def __iter__(self):
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    @property
    def autosomes(self) -> Tuple[str, ...]:
        return tuple(c for c in self.names if not is_sex_chromosome(c))

    @property
    def chrX(self) -> Optional[str]:
        return next((c for c in self.names if is_chrX(c)), None)

    @property
    def chrY(self) -> Optional[str]:
        return next((c for c in self.names if is_chrY(c)), None)

    def restyled(self, style: GenomeStyle) -> "ChromosomeSet":
        return ChromosomeSet.from_names(self.names, style)


def apply_style(df: pd.DataFrame, style: GenomeStyle) -> pd.DataFrame:
    """Return a copy of `df` with its `chrom` column renamed to `style`."""
    out = df.copy()
    out["chrom"] = restyle_chromosomes(out["chrom"].astype(str), style)
    return out


def keep_chromosomes(df: pd.DataFrame, chromosomes: ChromosomeSet) -> pd.DataFrame:
    """
    Keep rows on `chromosomes` and sort them in chromosome-set order, then by start.

    The `chrom` column must already use the style of `chromosomes`.
    """
    order = {c: i for i, c in enumerate(chromosomes.names)}
    mask = df["chrom"].isin(order)
    kept = df.loc[mask].copy()
    kept["_chrom_order"] = kept["chrom"].map(order)
    kept = kept.sort_values(["_chrom_order", "start"], kind="mergesort")
    kept = kept.drop(columns="_chrom_order").reset_index(drop=True)
    dropped = int((~mask).sum())
    if dropped:
        logger.debug(f"Dropped {dropped} bins outside the selected chromosomes")
    return kept
