"""
Integration tests for the correct, build-pon and correct-cn commands.

Runs the commands through the Typer app on synthetic wig files.
"""

import json

import pytest
import numpy as np
import pandas as pd
from typer.testing import CliRunner

from ulpcn.cli import app

runner = CliRunner()


def _run(args):
    result = runner.invoke(app, [str(a) for a in args])
    assert result.exit_code == 0, result.output
    return result


@pytest.mark.integration
def test_correct_writes_depth_and_params(tmp_path, wig_files):
    out = tmp_path / "out"
    _run(["correct", wig_files["counts"], "--gc-wig", wig_files["gc"], "-o", out, "-s", "tumour", "--seed", 1])

    depth = pd.read_csv(out / "tumour.correctedDepth.tsv", sep="\t", dtype={"chrom": str})
    assert {"chrom", "start", "end", "reads", "gc", "valid", "ideal", "corrected_logratio"} <= set(depth.columns)
    assert depth["chrom"].iloc[0] == "1"
    auto = depth["chrom"].isin(["1", "2", "3", "4", "5"])
    assert abs(depth.loc[auto, "corrected_logratio"].median()) < 0.05

    with open(out / "tumour.params.json") as f:
        record = json.load(f)
    assert record["sample_id"] == "tumour"
    assert record["params"]["seed"] == 1
    assert record["gender"] == "female"
    assert record["normalization"] is None


@pytest.mark.integration
def test_correct_is_reproducible(tmp_path, wig_files):
    for name in ("a", "b"):
        _run(["correct", wig_files["counts"], "--gc-wig", wig_files["gc"], "-o", tmp_path, "-s", name,
              "--seed", 9, "--sample-size", 1500])
    a = pd.read_csv(tmp_path / "a.correctedDepth.tsv", sep="\t")
    b = pd.read_csv(tmp_path / "b.correctedDepth.tsv", sep="\t")
    pd.testing.assert_series_equal(a["corrected_logratio"], b["corrected_logratio"])


@pytest.mark.integration
def test_correct_with_centromere_and_ucsc_style(tmp_path, wig_files):
    centromere = tmp_path / "centromere.txt"
    centromere.write_text("Chrom\tchromStart\tchromEnd\nchr1\t100000001\t110000000\n")
    _run(["correct", wig_files["counts"], "--gc-wig", wig_files["gc"], "-o", tmp_path, "-s", "t",
          "--centromere", centromere, "--genome-style", "UCSC"])
    depth = pd.read_csv(tmp_path / "t.correctedDepth.tsv", sep="\t")
    chr1 = depth[depth["chrom"] == "chr1"]
    # 10 centromere bins plus one flanking bin on each side
    assert len(chr1) == 600 - 12


@pytest.mark.integration
def test_panel_of_normals_workflow(tmp_path, genome_factory, wig_writer, wig_files):
    normals = []
    for i, seed in enumerate((101, 102)):
        tracks = genome_factory(seed=seed)
        wig = wig_writer(tracks["counts"], tmp_path / f"normal{i}.wig")
        gc = wig_writer(tracks["gc"], tmp_path / f"normal{i}.gc.wig")
        _run(["correct", wig, "--gc-wig", gc, "-o", tmp_path / "normals", "-s", f"normal{i}"])
        normals.append(tmp_path / "normals" / f"normal{i}.correctedDepth.tsv")

    sample_list = tmp_path / "normals.txt"
    sample_list.write_text("# normals\n" + "\n".join(str(p) for p in normals) + "\n")
    pon = tmp_path / "normals.pon.parquet"
    _run(["build-pon", sample_list, "-o", pon, "-G", "hg19"])
    assert pon.exists()

    _run(["correct", wig_files["counts"], "--gc-wig", wig_files["gc"], "-o", tmp_path, "-s", "tumour", "--pon", pon])
    with open(tmp_path / "tumour.params.json") as f:
        record = json.load(f)
    stats = record["normalization"]
    assert stats["n_panel"] == stats["n_bins"]
    assert stats["n_panel_missing"] == 0


@pytest.mark.integration
def test_build_pon_without_samples(tmp_path):
    sample_list = tmp_path / "normals.txt"
    sample_list.write_text("# nothing here\n")
    result = runner.invoke(app, ["build-pon", str(sample_list), "-o", str(tmp_path / "x.pon.parquet")])
    assert result.exit_code == 1


@pytest.mark.integration
def test_correct_cn_reads_r_style_tables(tmp_path):
    bins = pd.DataFrame({
        "chr": ["1", "1", "1", "2"],
        "start": [1, 1001, 2001, 1],
        "end": [1000, 2000, 3000, 1000],
        "logR": [0.0, np.log2(3.5), np.log2(3.5), 0.0],
        "copy.number": [2, 6, 6, 2],
        "event": ["NEUT", "HLAMP", "HLAMP", "NEUT"],
    })
    segments = pd.DataFrame({
        "chr": ["1", "1", "2"],
        "start": [1, 1001, 1],
        "end": [1000, 3000, 1000],
        "median": [0.0, np.log2(3.5), 0.0],
        "copy.number": [2, 6, 2],
        "call": ["NEUT", "HLAMP", "NEUT"],
        "subclone.status": [False, False, False],
    })
    bins_file = tmp_path / "s.cna.seg"
    segs_file = tmp_path / "s.seg.txt"
    bins.to_csv(bins_file, sep="\t", index=False)
    segments.to_csv(segs_file, sep="\t", index=False)

    out = tmp_path / "out"
    _run(["correct-cn", bins_file, segs_file, "-o", out, "-s", "s", "--purity", 1.0, "--ploidy", 2.0,
          "--gender", "female", "--max-cn", 4])

    segs_out = pd.read_csv(out / "s.seg.corrected.tsv", sep="\t")
    bins_out = pd.read_csv(out / "s.cna.corrected.tsv", sep="\t")
    assert segs_out["Corrected_Copy_Number"].tolist() == [2, 7, 2]
    assert segs_out["Corrected_Call"].tolist() == ["NEUT", "HLAMP", "NEUT"]
    assert bins_out["Corrected_Copy_Number"].tolist() == [2, 7, 7, 2]
    assert "logR_Copy_Number" in segs_out.columns


@pytest.mark.integration
def test_correct_cn_rejects_invalid_purity(tmp_path):
    table = tmp_path / "t.tsv"
    pd.DataFrame({"chrom": ["1"], "start": [1], "end": [10], "median_logratio": [0.0],
                  "corrected_logratio": [0.0], "copy_number": [2], "call": ["NEUT"]}).to_csv(table, sep="\t", index=False)
    result = runner.invoke(app, ["correct-cn", str(table), str(table), "-o", str(tmp_path), "-s", "t",
                                 "--purity", "1.5", "--ploidy", "2"])
    assert result.exit_code == 1
