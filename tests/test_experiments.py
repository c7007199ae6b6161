import csv

import pytest

import experiments as exp
import huffman as huff


def test_run_one_records_roundtrip_and_sizes():
    data = b"hello huffman world " * 30
    row = exp.run_one(data)
    assert row.correctness_ok == 1
    assert row.file_size_bytes == len(data)
    assert row.compressed_bytes == len(huff.compress(data))
    assert row.compression_ratio == pytest.approx(row.compressed_bytes / len(data))
    assert row.unique_symbols == len(set(data))
    assert row.max_code_length >= 1
    assert 0 < row.bits_per_symbol <= 8
    # header plus payload (PSEUDO_EOF code included), rounded up to whole bytes
    payload_bits = round(row.bits_per_symbol * len(data))
    assert row.compressed_bytes == (row.header_bits + payload_bits + 7) // 8


def test_run_one_empty_input():
    row = exp.run_one(b"")
    assert row.correctness_ok == 1
    assert row.unique_symbols == 0
    assert row.header_bits == huff.BITS_PER_INT + 1 + 2 * (1 + huff.SYMBOL_BITS)


def test_header_bits_matches_literal_example():
    root = huff.make_tree_from_counts(huff.read_for_counts(exp.BitInputStream(b"AAB")))
    assert exp.header_bits_for(root) == 64


def test_generators_are_seeded_and_sized():
    for name in exp.GENERATOR_REGISTRY:
        a = exp.generate_dataset(name, 300, seed=9)
        b = exp.generate_dataset(name, 300, seed=9)
        assert len(a) == 300
        assert a == b
    assert set(exp.generate_dataset("constant", 50, seed=1)) == {ord('A')}
    assert max(exp.generate_dataset("uniform16", 500, seed=1)) < 16


def test_unknown_generator_rejected():
    with pytest.raises(ValueError):
        exp.generate_dataset("nope", 10, seed=0)


def _rows():
    rows = []
    for run_id, size in ((1, 1024), (2, 1024), (1, 2048)):
        row = exp.run_one(exp.generate_dataset("zipf128", size, seed=run_id))
        row.exp_name = "exp2_size_scaling"
        row.dataset_name = "zipf128"
        row.run_id = run_id
        rows.append(row)
    return rows


def test_csv_outputs(tmp_path):
    rows = _rows()
    exp.write_csv(tmp_path / "metrics.csv", rows)
    exp.group_summary(rows, tmp_path / "summary.csv")

    with (tmp_path / "metrics.csv").open(encoding="utf-8") as f:
        metrics = list(csv.DictReader(f))
    assert len(metrics) == 3
    assert metrics[0]["dataset_name"] == "zipf128"

    with (tmp_path / "summary.csv").open(encoding="utf-8") as f:
        summary = list(csv.DictReader(f))
    assert [int(r["n_runs"]) for r in summary] == [2, 1]
    assert float(summary[1]["compression_ratio_stdev"]) == 0.0
    assert float(summary[0]["correctness_ok_rate"]) == 1.0


def test_size_scaling_plots(tmp_path):
    exp.plot_experiment_2(_rows(), tmp_path)
    assert (tmp_path / "exp2_compression_ratio.png").exists()
    assert (tmp_path / "exp2_time_zipf128.png").exists()


def test_main_end_to_end(tmp_path, capsys):
    status = exp.main([
        "--outdir", str(tmp_path),
        "--runs", "1",
        "--exp1_size_kb", "1",
        "--exp1_generators", "english_like,constant",
        "--no_exp2",
    ])
    assert status == 0
    assert (tmp_path / "metrics.csv").exists()
    assert (tmp_path / "summary.csv").exists()
    assert (tmp_path / "exp1_compression_ratio.png").exists()
    assert (tmp_path / "exp1_bits_per_symbol.png").exists()
    assert "Round-trip correctness rate across all runs: 1.000" in capsys.readouterr().out


def test_main_csv_only(tmp_path):
    status = exp.main([
        "--outdir", str(tmp_path / "out"),
        "--runs", "2",
        "--exp1_size_kb", "2",
        "--exp1_generators", "uniform16",
        "--no_exp2",
        "--no_plots",
    ])
    assert status == 0
    assert not list((tmp_path / "out").glob("*.png"))
