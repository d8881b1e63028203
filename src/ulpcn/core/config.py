"""
Run parameters for ulpcn.

Defaults follow the reference ULP-WGS workflow. Every parameter that affects
results, including the subsampling seed, lives here so it can be recorded with
the run outputs.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .genome import ChromosomeSet, GenomeStyle


@dataclass(frozen=True)
class ReadCountParams:
    """
    Parameters for read-count loading, bias correction and sex inference.

    Attributes:
        genome_style: Chromosome naming style used throughout the run
        chromosomes: Chromosomes to keep from the input tracks
        chr_normalize: Chromosomes used to fit the bias curves (default: autosomes)
        flank_length: Flank (bp) added on both sides of centromere intervals
        apply_correction: Run bias correction and sex inference
        map_score_thres: Bins below this mappability are dropped after correction
        frac_reads_chrY_for_male: chrY read-fraction threshold for male calls
        chrX_median_for_male: chrX median log-ratio threshold for male calls
        use_chrY: Use chrY coverage as the deciding signal
        sample_size: Cap on bins used to fit each bias curve
        seed: Seed for the subsampling random generator
    """
    genome_style: GenomeStyle = GenomeStyle.NCBI
    chromosomes: Optional[ChromosomeSet] = None
    chr_normalize: Optional[ChromosomeSet] = None
    flank_length: int = 100_000
    apply_correction: bool = True
    map_score_thres: float = 0.9
    frac_reads_chrY_for_male: float = 0.002
    chrX_median_for_male: float = -0.5
    use_chrY: bool = True
    sample_size: int = 50_000
    seed: int = 0

    def __post_init__(self):
        style = GenomeStyle(self.genome_style)
        object.__setattr__(self, "genome_style", style)
        chroms = self.chromosomes or ChromosomeSet.human(style)
        object.__setattr__(self, "chromosomes", chroms.restyled(style))
        norm = self.chr_normalize or ChromosomeSet.from_names(ChromosomeSet.human(style).autosomes, style)
        object.__setattr__(self, "chr_normalize", norm.restyled(style))

    def to_dict(self) -> Dict[str, Any]:
        record = asdict(self)
        record["genome_style"] = self.genome_style.value
        record["chromosomes"] = list(self.chromosomes.names)
        record["chr_normalize"] = list(self.chr_normalize.names)
        return record


@dataclass(frozen=True)
class CopyNumberParams:
    """
    Parameters for integer copy-number correction.

    Attributes:
        max_cn_autosomes: Autosome amplification ceiling (None = max segment CN)
        max_cn_x: chrX amplification ceiling (None = max chrX segment CN)
        correct_homd: Rescue homozygous deletions
        correct_whole_chrx_for_males: Recompute all male chrX segments, not
            only those meeting the chrX ceiling
        min_purity_to_correct: Below this purity the original calls are kept

    The chromosomes eligible for correction come from the SampleContext.
    """
    max_cn_autosomes: Optional[float] = None
    max_cn_x: Optional[float] = None
    correct_homd: bool = True
    correct_whole_chrx_for_males: bool = True
    min_purity_to_correct: float = 0.2
