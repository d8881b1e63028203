"""
Shared pytest fixtures for the ulpcn test suite.

Synthetic genomes are built from a seeded generator: 1 Mb bins on five
autosomes plus X and Y, with read depth carrying a known GC bias (and an
optional mappability bias).
"""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path

BIN_SIZE = 1_000_000
CHROM_BINS = {"1": 600, "2": 550, "3": 500, "4": 450, "5": 400, "X": 300, "Y": 60}


def gc_bias(gc):
    """Smooth GC bias with a peak near 45% GC."""
    return 0.6 + 0.4 * np.exp(-0.5 * ((np.asarray(gc) - 0.45) / 0.08) ** 2)


def rep_time_effect(rep):
    """Linear replication-timing bias: late (0) to early (1) replicating."""
    return 0.7 + 0.6 * np.asarray(rep)


def make_genome(seed=7, male=False, depth=800.0, chrY_depth=None, with_map=False, with_rep_time=False,
                tied_map=False, rep_time_bias=False):
    """
    Build wig-shaped tracks (chrom, start, end, value) for a synthetic sample.

    With `tied_map`, most bins have mappability exactly 1.0 and the rest take
    two-decimal values, as in real mappability tracks. With `rep_time_bias`,
    early-replicating bins get proportionally more reads.

    Returns a dict with keys counts, gc and, when requested, map and rep_time.
    """
    rng = np.random.default_rng(seed)
    frames = {"counts": [], "gc": [], "map": [], "rep_time": []}
    for chrom, n in CHROM_BINS.items():
        starts = np.arange(n, dtype=np.int64) * BIN_SIZE + 1
        ends = starts + BIN_SIZE - 1
        gc = rng.uniform(0.32, 0.6, n)
        if not with_map:
            mappability = np.ones(n)
        elif tied_map:
            mappability = np.where(rng.random(n) < 0.7, 1.0, np.round(rng.uniform(0.5, 1.0, n), 2))
        else:
            mappability = rng.uniform(0.75, 1.0, n)
        rep = rng.uniform(0.0, 1.0, n)

        copies = 2.0
        if chrom == "X" and male:
            copies = 1.0
        mean = depth * copies / 2.0 * gc_bias(gc) * mappability
        if rep_time_bias:
            mean = mean * rep_time_effect(rep)
        if chrom == "Y":
            y_depth = chrY_depth if chrY_depth is not None else (depth / 2.0 if male else 0.5)
            mean = np.full(n, y_depth)
        reads = rng.poisson(mean).astype(float)

        base = {"chrom": chrom, "start": starts, "end": ends}
        frames["counts"].append(pd.DataFrame({**base, "value": reads}))
        frames["gc"].append(pd.DataFrame({**base, "value": gc}))
        frames["map"].append(pd.DataFrame({**base, "value": mappability}))
        frames["rep_time"].append(pd.DataFrame({**base, "value": rep}))

    tracks = {k: pd.concat(v, ignore_index=True) for k, v in frames.items()}
    if not with_map:
        tracks.pop("map")
    if not with_rep_time:
        tracks.pop("rep_time")
    return tracks


def write_wig(track: pd.DataFrame, path: Path) -> Path:
    """Write a wig-shaped track as fixedStep blocks, one per chromosome."""
    lines = []
    for chrom, block in track.groupby("chrom", sort=False):
        start = int(block["start"].iloc[0])
        span = int(block["end"].iloc[0] - block["start"].iloc[0] + 1)
        lines.append(f"fixedStep chrom={chrom} start={start} step={span} span={span}")
        lines.extend(f"{v:.6g}" for v in block["value"])
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def female_tracks():
    return make_genome(seed=11)


@pytest.fixture
def mappability_tracks():
    return make_genome(seed=13, with_map=True)


@pytest.fixture
def tied_mappability_tracks():
    return make_genome(seed=19, with_map=True, tied_map=True)


@pytest.fixture
def bins_frame(female_tracks):
    """Bin table with reads and gc columns, as assembled by the loader."""
    counts = female_tracks["counts"].rename(columns={"value": "reads"})
    counts["gc"] = female_tracks["gc"]["value"].to_numpy()
    return counts[counts["chrom"] != "Y"].reset_index(drop=True)


@pytest.fixture
def wig_files(tmp_path, female_tracks):
    """Depth and GC wig files for the female synthetic sample."""
    return {
        "counts": write_wig(female_tracks["counts"], tmp_path / "tumour.wig"),
        "gc": write_wig(female_tracks["gc"], tmp_path / "gc.wig"),
    }


@pytest.fixture
def genome_factory():
    """make_genome, for tests that need a non-default synthetic sample."""
    return make_genome


@pytest.fixture
def wig_writer():
    return write_wig
