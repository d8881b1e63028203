"""
Fixed-step wig reader.

Read-depth and covariate tracks (GC, mappability, replication timing) come as
fixedStep wig files with one value per bin:

    fixedStep chrom=1 start=1 step=1000000 span=1000000
    423
    518
    ...
"""

import logging
import re
from pathlib import Path

import numpy as np
import pandas as pd

from .intervals import _open_table

logger = logging.getLogger("ulpcn.core.wig")

_HEADER_FIELD = re.compile(r"(\w+)=(\S+)")


def _parse_header(line: str, path: Path, line_num: int) -> dict:
    fields = dict(_HEADER_FIELD.findall(line))
    missing = [k for k in ("chrom", "start", "step") if k not in fields]
    if missing:
        raise ValueError(f"{path}:{line_num}: fixedStep header missing {', '.join(missing)}")
    try:
        start = int(fields["start"])
        step = int(fields["step"])
        span = int(fields.get("span", 1))
    except ValueError:
        raise ValueError(f"{path}:{line_num}: non-integer start/step/span in fixedStep header")
    return {"chrom": fields["chrom"], "start": start, "step": step, "span": span}


def read_wig(path: Path, verbose: bool = True) -> pd.DataFrame:
    """
    Parse a fixedStep wig file into a bin table.

    Blocks are ordered by decreasing number of bins (chromosome size) before
    concatenation; callers re-sort by chromosome when selecting chromosomes.

    Args:
        path: Path to a .wig or .wig.gz file
        verbose: Log each block header at INFO level

    Returns:
        DataFrame with columns chrom, start, end, value (1-based, closed)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"WIG file not found: {path}")

    blocks = []
    header = None
    values = []

    def flush():
        if header is None:
            return
        n = len(values)
        starts = header["start"] + header["step"] * np.arange(n, dtype=np.int64)
        blocks.append(pd.DataFrame({
            "chrom": header["chrom"],
            "start": starts,
            "end": starts + header["span"] - 1,
            "value": np.asarray(values, dtype=float),
        }))

    with _open_table(path) as f:
        for line_num, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith(("#", "track", "browser")):
                continue
            if line.startswith("fixedStep"):
                flush()
                header = _parse_header(line, path, line_num)
                values = []
                if verbose:
                    logger.info(f"Parsing: {line}")
                continue
            if header is None:
                raise ValueError(f"{path}:{line_num}: value before any fixedStep header")
            try:
                values.append(float(line))
            except ValueError:
                raise ValueError(f"{path}:{line_num}: could not parse value '{line}'")
    flush()

    if not blocks:
        raise ValueError(f"No fixedStep blocks found in {path}")

    if verbose:
        logger.info("Sorting by decreasing chromosome size")
    blocks.sort(key=len, reverse=True)
    return pd.concat(blocks, ignore_index=True)
