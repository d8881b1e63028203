"""
Unit tests for the sorted interval index and interval-table reader.
"""

import gzip

import pytest
import numpy as np
import pandas as pd

from ulpcn.core.intervals import IntervalIndex, read_intervals


@pytest.fixture
def subjects():
    return pd.DataFrame({
        "chrom": ["1", "1", "1", "2"],
        "start": [100, 1, 500, 10],
        "end": [200, 1000, 600, 20],
    })


@pytest.mark.unit
def test_find_overlaps_closed_intervals(subjects):
    index = IntervalIndex.from_frame(subjects)
    q, s = index.find_overlaps(["1", "1", "2", "3"], [200, 1001, 21, 1], [250, 2000, 30, 10])
    # query 0 touches subject 0 at its last base and lies inside subject 1
    assert list(q) == [0, 0]
    assert sorted(s.tolist()) == [0, 1]


@pytest.mark.unit
def test_hits_are_ordered_by_subject_start(subjects):
    index = IntervalIndex.from_frame(subjects)
    q, s = index.find_overlaps(["1"], [150], [550])
    assert list(q) == [0, 0, 0]
    assert list(s) == [1, 0, 2]


@pytest.mark.unit
def test_long_interval_found_through_running_max_end():
    # subject 0 spans everything; later subjects are short
    index = IntervalIndex(["1"] * 3, [1, 10, 20], [10_000, 12, 22])
    q, s = index.find_overlaps(["1"], [5000], [5001])
    assert list(s) == [0]


@pytest.mark.unit
def test_overlaps_any_mask(subjects):
    bins = pd.DataFrame({"chrom": ["1", "2", "2", "X"], "start": [1, 1, 15, 1], "end": [50, 9, 16, 50]})
    mask = IntervalIndex.from_frame(subjects).overlaps_any(bins)
    assert mask.tolist() == [True, False, True, False]


@pytest.mark.unit
def test_match_equal_requires_identical_interval(subjects):
    query = pd.DataFrame({"chrom": ["2", "1", "1"], "start": [10, 100, 100], "end": [20, 200, 201]})
    q, s = IntervalIndex.from_frame(subjects).match_equal(query)
    assert q.tolist() == [0, 1]
    assert s.tolist() == [3, 0]


@pytest.mark.unit
def test_empty_query_returns_empty_arrays(subjects):
    q, s = IntervalIndex.from_frame(subjects).find_overlaps([], [], [])
    assert q.dtype == np.int64 and len(q) == 0 and len(s) == 0


@pytest.mark.unit
def test_rejects_inverted_interval():
    with pytest.raises(ValueError, match="must not precede"):
        IntervalIndex(["1"], [10], [5])


@pytest.mark.unit
def test_read_intervals_skips_header_and_comments(tmp_path):
    path = tmp_path / "centromere.txt"
    path.write_text("# centromeres\nChrom\tchromStart\tchromEnd\n1\t121535434\t124535434\nX\t58632012\t61632012\n")
    df = read_intervals(path)
    assert df.columns.tolist() == ["chrom", "start", "end"]
    assert df["chrom"].tolist() == ["1", "X"]
    assert df["start"].iloc[0] == 121535434


@pytest.mark.unit
def test_read_intervals_gzip(tmp_path):
    path = tmp_path / "targets.bed.gz"
    with gzip.open(path, "wt") as f:
        f.write("chr1\t100\t200\tgeneA\n")
    df = read_intervals(path)
    assert df.iloc[0].tolist() == ["chr1", 100, 200]


@pytest.mark.unit
def test_read_intervals_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_intervals(tmp_path / "missing.bed")


@pytest.mark.unit
def test_read_intervals_short_row(tmp_path):
    path = tmp_path / "bad.bed"
    path.write_text("1\t100\n")
    with pytest.raises(ValueError, match="at least 3 columns"):
        read_intervals(path)
