"""
Panel of Normals model for ulpcn.

A panel stores, for every bin, the median corrected log-ratio across a set of
normal samples. It is persisted as a single Parquet table with the metadata
repeated in the schema-level columns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from ..core.genome import ChromosomeSet, GenomeStyle, apply_style, keep_chromosomes
from ..core.intervals import IntervalIndex

logger = logging.getLogger("ulpcn.pon.model")

REQUIRED_COLUMNS = ("chrom", "start", "end", "median")


@dataclass
class PanelOfNormals:
    """
    Per-bin median log-ratio profile from normal samples.

    Attributes:
        bins: DataFrame with columns chrom, start, end, median
        n_samples: Number of normal samples aggregated
        genome_build: Genome build label (e.g., hg19)
        genome_style: Chromosome naming style of `bins`
        build_date: ISO timestamp of panel creation
        schema_version: Storage schema version
    """
    bins: pd.DataFrame
    n_samples: int = 0
    genome_build: str = ""
    genome_style: GenomeStyle = GenomeStyle.NCBI
    build_date: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    schema_version: str = "1.0"

    @classmethod
    def from_samples(
        cls,
        samples: Sequence[pd.DataFrame],
        genome_build: str = "",
        style: GenomeStyle = GenomeStyle.NCBI,
        column: str = "corrected_logratio",
    ) -> "PanelOfNormals":
        """
        Build a panel from corrected normal samples.

        Bins are aligned on exact interval equality with the first sample;
        bins missing from a sample count as missing for the median.

        Args:
            samples: Corrected bin tables (chrom, start, end, `column`)
            genome_build: Genome build label
            style: Chromosome naming style for the panel
            column: Log-ratio column to aggregate
        """
        if not samples:
            raise ValueError("At least one normal sample is required to build a panel")

        reference = apply_style(samples[0], style)[["chrom", "start", "end"]].reset_index(drop=True)
        index = IntervalIndex.from_frame(reference)
        matrix = np.full((len(reference), len(samples)), np.nan)
        for j, sample in enumerate(samples):
            styled = apply_style(sample, style)
            query_hits, subject_hits = index.match_equal(styled)
            matrix[subject_hits, j] = styled[column].to_numpy(dtype=float)[query_hits]
            logger.debug(f"Sample {j + 1}: {len(query_hits)}/{len(reference)} bins aligned")

        medians = pd.DataFrame(matrix).median(axis=1, skipna=True)
        bins = reference.assign(median=medians.to_numpy(dtype=float))
        logger.info(f"Built panel of normals from {len(samples)} samples ({len(bins)} bins)")
        return cls(bins=bins, n_samples=len(samples), genome_build=genome_build, genome_style=style)

    @classmethod
    def load(
        cls,
        path: Path,
        style: Optional[GenomeStyle] = None,
        chromosomes: Optional[ChromosomeSet] = None,
    ) -> "PanelOfNormals":
        """
        Load a panel from Parquet, optionally restyling and selecting chromosomes.

        Args:
            path: Path to .pon.parquet file
            style: Naming style to convert the panel to
            chromosomes: Chromosomes to keep (in `style`)
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Panel of normals not found: {path}")

        df = pd.read_parquet(path)
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Invalid panel file {path.name}: missing columns {missing}")

        meta = df.iloc[0] if len(df) else pd.Series(dtype=object)
        stored_style = GenomeStyle(str(meta.get("genome_style", GenomeStyle.NCBI.value)))
        bins = df[list(REQUIRED_COLUMNS)].copy()
        bins["chrom"] = bins["chrom"].astype(str)

        target_style = style or stored_style
        bins = apply_style(bins, target_style)
        if chromosomes is not None:
            bins = keep_chromosomes(bins, chromosomes.restyled(target_style))

        panel = cls(
            bins=bins,
            n_samples=int(meta.get("n_samples", 0)),
            genome_build=str(meta.get("genome_build", "")),
            genome_style=target_style,
            build_date=str(meta.get("build_date", "")),
            schema_version=str(meta.get("schema_version", "1.0")),
        )
        logger.info(f"Loaded panel of normals: {path.name} (n={panel.n_samples}, {len(bins)} bins)")
        return panel

    def save(self, path: Path) -> None:
        """
        Save the panel to Parquet.

        Args:
            path: Output path (should end with .pon.parquet)
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        df = self.bins[list(REQUIRED_COLUMNS)].copy()
        df["n_samples"] = self.n_samples
        df["genome_build"] = self.genome_build
        df["genome_style"] = GenomeStyle(self.genome_style).value
        df["build_date"] = self.build_date
        df["schema_version"] = self.schema_version
        df.to_parquet(path, index=False)
        logger.info(f"Saved panel of normals: {path}")

    def validate(self) -> List[str]:
        """
        Validate panel completeness.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        if self.n_samples < 1:
            errors.append("n_samples must be >= 1")
        if self.bins.empty:
            errors.append("Panel has no bins")
        elif self.bins["median"].isna().all():
            errors.append("Panel medians are all missing")
        if not self.genome_build:
            errors.append("Missing genome build")
        return errors
