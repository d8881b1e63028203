"""
Sorted interval index for overlap and equality joins.

Intervals are closed ([start, end], 1-based), matching bins built from
fixed-step wig tracks. Each chromosome keeps its subject intervals sorted by
start together with a running maximum of ends, so an overlap query is two
binary searches plus a filter over the candidate slice.
"""

import gzip
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Dict, Iterable, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger("ulpcn.core.intervals")


class _ChromIndex:
    __slots__ = ("starts", "ends", "max_ends", "ids")

    def __init__(self, starts: np.ndarray, ends: np.ndarray, ids: np.ndarray):
        order = np.argsort(starts, kind="mergesort")
        self.starts = starts[order]
        self.ends = ends[order]
        self.ids = ids[order]
        self.max_ends = np.maximum.accumulate(self.ends) if len(self.ends) else self.ends

    def candidates(self, start: int, end: int) -> np.ndarray:
        hi = np.searchsorted(self.starts, end, side="right")
        lo = np.searchsorted(self.max_ends[:hi], start, side="left")
        if lo >= hi:
            return self.ids[:0]
        keep = self.ends[lo:hi] >= start
        return self.ids[lo:hi][keep]


class IntervalIndex:
    """
    Index over a set of subject intervals.

    Subject ids are the 0-based positions of the intervals as supplied, so
    hits can be used directly with `.iloc` / array indexing.
    """

    def __init__(self, chroms: Iterable[str], starts: Iterable[int], ends: Iterable[int]):
        chroms = np.asarray(list(chroms), dtype=object)
        starts = np.asarray(list(starts), dtype=np.int64)
        ends = np.asarray(list(ends), dtype=np.int64)
        if not (len(chroms) == len(starts) == len(ends)):
            raise ValueError("chroms, starts and ends must have the same length")
        if np.any(ends < starts):
            raise ValueError("Interval end must not precede its start")

        self._size = len(chroms)
        self._by_chrom: Dict[str, _ChromIndex] = {}
        ids = np.arange(self._size)
        for chrom in pd.unique(chroms):
            mask = chroms == chrom
            self._by_chrom[chrom] = _ChromIndex(starts[mask], ends[mask], ids[mask])
        self._exact = {
            (c, int(s), int(e)): i for i, (c, s, e) in enumerate(zip(chroms, starts, ends))
        }

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "IntervalIndex":
        return cls(df["chrom"].astype(str), df["start"], df["end"])

    def __len__(self) -> int:
        return self._size

    def find_overlaps(
        self, chroms: Iterable[str], starts: Iterable[int], ends: Iterable[int]
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Return (query_hits, subject_hits) for every overlapping pair.

        Pairs are ordered by query, then by subject start.
        """
        query_hits = []
        subject_hits = []
        for qi, (chrom, start, end) in enumerate(zip(chroms, starts, ends)):
            index = self._by_chrom.get(chrom)
            if index is None:
                continue
            hits = index.candidates(int(start), int(end))
            if len(hits):
                query_hits.append(np.full(len(hits), qi, dtype=np.int64))
                subject_hits.append(hits)
        if not query_hits:
            empty = np.zeros(0, dtype=np.int64)
            return empty, empty.copy()
        return np.concatenate(query_hits), np.concatenate(subject_hits).astype(np.int64)

    def find_overlaps_frame(self, df: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
        return self.find_overlaps(df["chrom"].astype(str), df["start"], df["end"])

    def overlaps_any(self, df: pd.DataFrame) -> np.ndarray:
        """Boolean mask over the rows of `df` that overlap at least one subject."""
        mask = np.zeros(len(df), dtype=bool)
        query_hits, _ = self.find_overlaps_frame(df)
        mask[query_hits] = True
        return mask

    def match_equal(self, df: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
        """Return (query_hits, subject_hits) for rows of `df` with an identical interval."""
        query_hits = []
        subject_hits = []
        keys = zip(df["chrom"].astype(str), df["start"], df["end"])
        for qi, (chrom, start, end) in enumerate(keys):
            si = self._exact.get((chrom, int(start), int(end)))
            if si is not None:
                query_hits.append(qi)
                subject_hits.append(si)
        return np.asarray(query_hits, dtype=np.int64), np.asarray(subject_hits, dtype=np.int64)


@contextmanager
def _open_table(path: Path) -> IO[str]:
    """Open a text table, handling gzip compression transparently."""
    path = Path(path)
    if str(path).endswith('.gz'):
        f = gzip.open(path, 'rt')
    else:
        f = open(path, 'r')
    try:
        yield f
    finally:
        f.close()


def read_intervals(path: Path) -> pd.DataFrame:
    """
    Read a chrom/start/end interval table (centromeres, target regions).

    Lines starting with '#' and a non-numeric header row are skipped; extra
    columns are ignored.

    Args:
        path: Path to a tab- or whitespace-separated table (optionally gzipped)

    Returns:
        DataFrame with columns chrom, start, end
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Interval file not found: {path}")

    records = []
    with _open_table(path) as f:
        for line_num, line in enumerate(f, start=1):
            if not line.strip() or line.startswith('#'):
                continue
            fields = line.split()
            if len(fields) < 3:
                raise ValueError(f"{path}:{line_num}: expected at least 3 columns (chrom, start, end)")
            try:
                start = int(float(fields[1]))
                end = int(float(fields[2]))
            except ValueError:
                if not records:
                    continue  # header row
                raise ValueError(f"{path}:{line_num}: start/end must be integers")
            records.append((fields[0], start, end))

    logger.debug(f"Read {len(records)} intervals from {path.name}")
    return pd.DataFrame(records, columns=["chrom", "start", "end"])
